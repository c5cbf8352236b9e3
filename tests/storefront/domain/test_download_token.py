"""Tests for the DownloadToken aggregate — expiry, count limit and revocation."""

from datetime import UTC, datetime, timedelta

import pytest
from protean.exceptions import ValidationError

from storefront.download.token import (
    DOWNLOAD_LINK_EXPIRY_DAYS,
    MAX_DOWNLOAD_ATTEMPTS,
    DownloadToken,
    download_url,
)
from storefront.errors import Expired, LimitExceeded


def _make_token(**overrides):
    defaults = {"order_id": "ord-001", "file_id": "file-001"}
    defaults.update(overrides)
    return DownloadToken.issue(**defaults)


class TestIssue:
    def test_defaults(self):
        token = _make_token()
        assert len(token.token) == 64
        assert token.max_downloads == MAX_DOWNLOAD_ATTEMPTS
        assert token.download_count == 0
        remaining = token.expires_at - datetime.now(UTC)
        assert timedelta(days=DOWNLOAD_LINK_EXPIRY_DAYS - 1) < remaining <= timedelta(days=DOWNLOAD_LINK_EXPIRY_DAYS)

    def test_tokens_are_unique(self):
        assert _make_token().token != _make_token().token

    def test_download_url(self, monkeypatch):
        monkeypatch.setenv("DOWNLOAD_URL_TEMPLATE", "https://shop.example.com/download?token={token}")
        assert download_url("abc") == "https://shop.example.com/download?token=abc"


class TestRedeem:
    def test_redeem_increments_count(self):
        token = _make_token(max_downloads=2)
        token.redeem()
        assert token.download_count == 1
        assert token.remaining_downloads() == 1
        assert token.last_downloaded_at is not None

    def test_limit_is_enforced(self):
        token = _make_token(max_downloads=2)
        token.redeem()
        token.redeem()
        assert token.is_exhausted() is True

        with pytest.raises(LimitExceeded):
            token.redeem()
        assert token.download_count == 2

    def test_expired_token_rejected(self):
        token = _make_token(ttl=timedelta(seconds=1))
        with pytest.raises(Expired):
            token.redeem(now=datetime.now(UTC) + timedelta(seconds=5))
        assert token.download_count == 0

    def test_count_can_never_exceed_max(self):
        token = _make_token(max_downloads=1)
        with pytest.raises(ValidationError):
            token.download_count = 2


class TestRevoke:
    def test_revoked_token_is_expired(self):
        token = _make_token()
        token.revoke()
        assert token.is_live() is False
        assert token.revoked_at is not None
        with pytest.raises(Expired):
            token.redeem()
