"""Download token issuance — mint, reuse and regenerate tokens.

``IssueDownloadToken`` returns the existing live token for an
(order, file) pair instead of minting a second one, so replayed settlement
does not sprawl tokens. ``RegenerateDownloadToken`` is the operator path:
it revokes whatever is live for the pair and always mints a fresh token.
"""

from datetime import timedelta

import structlog
from protean import handle
from protean.fields import Identifier, Integer
from protean.utils.globals import current_domain

from storefront.domain import storefront
from storefront.download.file import DigitalFile
from storefront.download.token import DOWNLOAD_LINK_EXPIRY_DAYS, MAX_DOWNLOAD_ATTEMPTS, DownloadToken, download_url
from storefront.errors import NotFoundError, ValidationError
from storefront.notification.notification import NotificationTemplate
from storefront.notification.queue import enqueue
from storefront.order.order import Order, OrderStatus

logger = structlog.get_logger(__name__)


@storefront.command(part_of="DownloadToken")
class IssueDownloadToken:
    order_id = Identifier(required=True)
    file_id = Identifier(required=True)
    max_downloads = Integer(default=MAX_DOWNLOAD_ATTEMPTS, min_value=1)
    ttl_seconds = Integer(default=DOWNLOAD_LINK_EXPIRY_DAYS * 86400, min_value=1)


@storefront.command(part_of="DownloadToken")
class RegenerateDownloadToken:
    order_id = Identifier(required=True)
    file_id = Identifier(required=True)
    max_downloads = Integer(default=MAX_DOWNLOAD_ATTEMPTS, min_value=1)
    ttl_seconds = Integer(default=DOWNLOAD_LINK_EXPIRY_DAYS * 86400, min_value=1)


def tokens_for(order_id: str, file_id: str) -> list[DownloadToken]:
    repo = current_domain.repository_for(DownloadToken)
    return repo._dao.query.filter(order_id=str(order_id), file_id=str(file_id)).order_by("-created_at").all().items


def _assert_issuable(order_id: str, file_id: str) -> None:
    order = current_domain.repository_for(Order).get(order_id)
    if order.status != OrderStatus.PAID.value:
        raise ValidationError({"order_id": ["Download tokens are only issued for paid orders"]})
    if not any(str(item.file_id) == str(file_id) for item in order.digital_items()):
        raise ValidationError({"file_id": ["File is not part of this order"]})
    if current_domain.repository_for(DigitalFile).get_or_none(file_id) is None:
        raise NotFoundError(f"File {file_id} does not exist")


@storefront.command_handler(part_of=DownloadToken)
class DownloadTokenIssuanceHandler:
    @handle(IssueDownloadToken)
    def issue(self, command):
        _assert_issuable(command.order_id, command.file_id)

        for existing in tokens_for(command.order_id, command.file_id):
            if existing.is_live():
                return existing.token

        token = DownloadToken.issue(
            order_id=command.order_id,
            file_id=command.file_id,
            max_downloads=command.max_downloads,
            ttl=timedelta(seconds=command.ttl_seconds),
        )
        current_domain.repository_for(DownloadToken).add(token)
        logger.info("Download token issued", order_id=str(command.order_id), file_id=str(command.file_id))
        return token.token

    @handle(RegenerateDownloadToken)
    def regenerate(self, command):
        _assert_issuable(command.order_id, command.file_id)
        repo = current_domain.repository_for(DownloadToken)

        for existing in tokens_for(command.order_id, command.file_id):
            if existing.is_live():
                existing.revoke()
                repo.add(existing)

        token = DownloadToken.issue(
            order_id=command.order_id,
            file_id=command.file_id,
            max_downloads=command.max_downloads,
            ttl=timedelta(seconds=command.ttl_seconds),
        )
        repo.add(token)
        logger.info("Download token regenerated", order_id=str(command.order_id), file_id=str(command.file_id))
        return token.token


def issue_download_token(
    order_id: str,
    file_id: str,
    max_downloads: int = MAX_DOWNLOAD_ATTEMPTS,
    ttl: timedelta = timedelta(days=DOWNLOAD_LINK_EXPIRY_DAYS),
) -> str:
    return current_domain.process(
        IssueDownloadToken(
            order_id=order_id,
            file_id=file_id,
            max_downloads=max_downloads,
            ttl_seconds=max(int(ttl.total_seconds()), 1),
        ),
        asynchronous=False,
    )


def regenerate_download_token(order_id: str, file_id: str, notify: bool = False) -> str:
    """Operator path: revoke the live link and mint a new one, optionally emailing it."""
    token = current_domain.process(
        RegenerateDownloadToken(order_id=order_id, file_id=file_id),
        asynchronous=False,
    )

    if notify:
        order = current_domain.repository_for(Order).get(order_id)
        if order.customer_email:
            digital_file = current_domain.repository_for(DigitalFile).get(file_id)
            enqueue(
                recipient_email=order.customer_email,
                recipient_name=order.customer_name,
                template=NotificationTemplate.DOWNLOAD_LINK.value,
                template_data={
                    "order_id": str(order.id),
                    "file_name": digital_file.file_name,
                    "url": download_url(token),
                },
                order_id=str(order.id),
            )
    return token
