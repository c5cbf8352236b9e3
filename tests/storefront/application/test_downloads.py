"""Application tests for download tokens — issuance, regeneration and redemption."""

from datetime import timedelta

import pytest
from protean import current_domain
from protean.exceptions import ExpectedVersionError

from storefront.download.file import DigitalFile
from storefront.download.issuance import issue_download_token, regenerate_download_token, tokens_for
from storefront.download.redemption import RedeemDownloadToken, redeem
from storefront.download.storage import content_disposition, resolve_path
from storefront.download.token import DownloadToken
from storefront.errors import Expired, LimitExceeded, NotFoundError, ValidationError
from storefront.notification.notification import NotificationTemplate, QueuedNotification


def _token_for(order_id):
    return current_domain.repository_for(DownloadToken)._dao.query.filter(order_id=order_id).all().items[0]


def _token_record(value):
    return current_domain.repository_for(DownloadToken)._dao.find_by(token=value)


class TestIssue:
    def test_issue_returns_live_token_instead_of_minting(self, register_file, paid_order):
        file_id = register_file()
        order_id = paid_order(file_ids=[file_id])
        settled = _token_for(order_id).token

        assert issue_download_token(order_id, file_id) == settled
        assert len(tokens_for(order_id, file_id)) == 1

    def test_issue_for_pending_order_rejected(self, register_file, place_order):
        file_id = register_file()
        order_id = place_order(file_ids=[file_id])
        with pytest.raises(ValidationError):
            issue_download_token(order_id, file_id)

    def test_issue_for_file_outside_order_rejected(self, register_file, paid_order):
        order_id = paid_order()
        with pytest.raises(ValidationError):
            issue_download_token(order_id, register_file("other.zip"))

    def test_exhausted_token_gets_replaced(self, register_file, paid_order):
        file_id = register_file()
        order_id = paid_order(file_ids=[file_id])
        first = _token_for(order_id)
        for _ in range(first.max_downloads):
            redeem(first.token)

        second = issue_download_token(order_id, file_id)

        assert second != first.token
        assert len(tokens_for(order_id, file_id)) == 2


class TestRegenerate:
    def test_regenerate_revokes_live_token(self, register_file, paid_order):
        file_id = register_file()
        order_id = paid_order(file_ids=[file_id])
        old = _token_for(order_id).token

        new = regenerate_download_token(order_id, file_id)

        assert new != old
        with pytest.raises(Expired):
            redeem(old)
        assert redeem(new).file_id == file_id

    def test_regenerate_can_email_the_link(self, register_file, paid_order):
        file_id = register_file()
        order_id = paid_order(file_ids=[file_id])

        new = regenerate_download_token(order_id, file_id, notify=True)

        queued = current_domain.repository_for(QueuedNotification)._dao.query.filter(
            template=NotificationTemplate.DOWNLOAD_LINK.value
        ).all().items
        assert len(queued) == 1
        assert new in queued[0].context()["url"]


class TestRedeem:
    def test_redeem_streams_file(self, register_file, paid_order):
        file_id = register_file(content=b"hello template")
        order_id = paid_order(file_ids=[file_id])

        stream = redeem(_token_for(order_id).token)

        assert stream.is_redirect is False
        assert stream.size == len(b"hello template")
        assert b"".join(stream.chunks) == b"hello template"
        assert _token_for(order_id).download_count == 1
        assert current_domain.repository_for(DigitalFile).get(file_id).download_count == 1

    def test_limit_reached(self, register_file, paid_order):
        file_id = register_file()
        order_id = paid_order(file_ids=[file_id])
        token = _token_for(order_id)
        for _ in range(token.max_downloads):
            redeem(token.token)

        with pytest.raises(LimitExceeded):
            redeem(token.token)
        assert _token_record(token.token).download_count == token.max_downloads

    def test_expired_token(self, register_file, paid_order):
        file_id = register_file()
        order_id = paid_order(file_ids=[file_id])
        token = _token_for(order_id)
        token.expires_at = token.created_at - timedelta(seconds=1)
        current_domain.repository_for(DownloadToken).add(token)

        with pytest.raises(Expired):
            redeem(token.token)
        assert _token_record(token.token).download_count == 0

    def test_unknown_token(self):
        with pytest.raises(NotFoundError):
            redeem("f" * 64)

    def test_token_longer_than_any_issued_is_unknown(self):
        with pytest.raises(NotFoundError):
            redeem("f" * 65)

    def test_missing_token(self):
        with pytest.raises(ValidationError):
            redeem("  ")

    def test_missing_file_consumes_nothing(self, register_file, paid_order):
        file_id = register_file()
        order_id = paid_order(file_ids=[file_id])
        token = _token_for(order_id)
        resolve_path(current_domain.repository_for(DigitalFile).get(file_id).file_path).unlink()

        with pytest.raises(NotFoundError):
            redeem(token.token)
        assert _token_record(token.token).download_count == 0

    def test_external_file_redirects(self, register_file, paid_order):
        file_id = register_file(file_path=None, external_url="https://cdn.example.com/theme.zip")
        order_id = paid_order(file_ids=[file_id])

        stream = redeem(_token_for(order_id).token)

        assert stream.is_redirect is True
        assert stream.external_url == "https://cdn.example.com/theme.zip"
        assert _token_for(order_id).download_count == 1

    def test_last_download_race_has_one_winner(self, register_file, paid_order):
        file_id = register_file()
        order_id = paid_order(file_ids=[file_id])
        token = _token_for(order_id)
        for _ in range(token.max_downloads - 1):
            redeem(token.token)

        repo = current_domain.repository_for(DownloadToken)
        stale = repo._dao.find_by(token=token.token)
        redeem(token.token)

        # A writer that read the token before the last download loses on version.
        stale.redeem()
        with pytest.raises(ExpectedVersionError):
            repo.add(stale)
        with pytest.raises(LimitExceeded):
            current_domain.process(RedeemDownloadToken(token=token.token), asynchronous=False)


class TestContentDisposition:
    def test_ascii_name(self):
        assert content_disposition("theme.zip") == "attachment; filename=\"theme.zip\"; filename*=UTF-8''theme.zip"

    def test_non_ascii_name_has_fallback(self):
        header = content_disposition("thème.zip")
        assert 'filename="thme.zip"' in header
        assert "filename*=UTF-8''th%C3%A8me.zip" in header

    def test_unprintable_name_falls_back_to_download(self):
        assert content_disposition("été").startswith('attachment; filename="t";')
        assert 'filename="download"' in content_disposition("日本")
