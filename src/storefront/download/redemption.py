"""Download token redemption — validate, count, then stream.

The token checks (exists, not expired, downloads left) and the count
increment are one unit of work. The per-file tally is bumped afterwards in
its own unit of work; losing that update only skews statistics, so it is
logged rather than failing a download the customer already paid for.
"""

from collections.abc import Iterator
from dataclasses import dataclass, field

import structlog
from protean import handle
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from storefront.domain import storefront
from storefront.download.file import DEFAULT_MIME_TYPE, DigitalFile
from storefront.download.storage import iter_file, resolve_path
from storefront.download.token import TOKEN_MAX_LENGTH, DownloadToken
from storefront.errors import NotFoundError, ValidationError

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class FileStream:
    """What the download endpoint sends back: local bytes or a redirect."""

    file_id: str
    file_name: str
    mime_type: str = DEFAULT_MIME_TYPE
    size: int | None = None
    external_url: str | None = None
    chunks: Iterator[bytes] | None = field(default=None, compare=False, repr=False)

    @property
    def is_redirect(self) -> bool:
        return self.external_url is not None


@storefront.command(part_of="DownloadToken")
class RedeemDownloadToken:
    token = String(required=True, max_length=TOKEN_MAX_LENGTH)


@storefront.command(part_of="DigitalFile")
class RecordFileDownload:
    file_id = Identifier(required=True)


@storefront.command_handler(part_of=DownloadToken)
class RedeemDownloadTokenHandler:
    @handle(RedeemDownloadToken)
    def redeem(self, command):
        repo = current_domain.repository_for(DownloadToken)
        matches = repo._dao.query.filter(token=command.token).all().items
        if not matches:
            raise NotFoundError("Download link not found")
        token = matches[0]

        digital_file = current_domain.repository_for(DigitalFile).get_or_none(token.file_id)
        if digital_file is None:
            raise NotFoundError("File not found")

        size = digital_file.file_size
        if not digital_file.is_external():
            path = resolve_path(digital_file.file_path)
            if path is None or not path.is_file():
                raise NotFoundError("File not found")
            size = path.stat().st_size

        token.redeem()
        repo.add(token)

        return {
            "file_id": str(digital_file.id),
            "file_name": digital_file.file_name,
            "mime_type": digital_file.mime_type or DEFAULT_MIME_TYPE,
            "size": size,
            "file_path": digital_file.file_path,
            "external_url": digital_file.external_url,
            "remaining": token.remaining_downloads(),
        }


@storefront.command_handler(part_of=DigitalFile)
class RecordFileDownloadHandler:
    @handle(RecordFileDownload)
    def record_download(self, command):
        repo = current_domain.repository_for(DigitalFile)
        digital_file = repo.get(command.file_id)
        digital_file.record_download()
        repo.add(digital_file)


def redeem(token: str | None) -> FileStream:
    """Consume one download from ``token`` and open the file.

    Raises:
        ValidationError: no token given.
        NotFoundError: unknown token, or the file is gone.
        Expired: the token is past its expiry.
        LimitExceeded: no downloads left.
    """
    if not token or not token.strip():
        raise ValidationError({"token": ["Download token is required"]})

    token = token.strip()
    # Longer than any issued token: it cannot exist, so it is unknown, not malformed.
    if len(token) > TOKEN_MAX_LENGTH:
        raise NotFoundError("Download link not found")

    result = current_domain.process(RedeemDownloadToken(token=token), asynchronous=False)
    logger.info("Download token redeemed", file_id=result["file_id"], remaining=result["remaining"])

    try:
        current_domain.process(RecordFileDownload(file_id=result["file_id"]), asynchronous=False)
    except Exception as exc:
        logger.warning("Failed to record file download", file_id=result["file_id"], error=str(exc))

    if result["external_url"]:
        return FileStream(
            file_id=result["file_id"],
            file_name=result["file_name"],
            mime_type=result["mime_type"],
            external_url=result["external_url"],
        )

    return FileStream(
        file_id=result["file_id"],
        file_name=result["file_name"],
        mime_type=result["mime_type"],
        size=result["size"],
        chunks=iter_file(resolve_path(result["file_path"])),
    )
