"""DigitalFile aggregate (CQRS) — a purchasable file and its download tally.

A file is either stored locally (``file_path``, resolved against
``DOWNLOAD_ROOT`` when relative) or hosted elsewhere (``external_url``, the
download endpoint redirects there).
"""

from protean.exceptions import ValidationError
from protean.fields import DateTime, Identifier, Integer, String

from storefront.domain import storefront
from storefront.utils.clock import utcnow

DEFAULT_MIME_TYPE = "application/octet-stream"


@storefront.aggregate
class DigitalFile:
    item_id = Identifier()  # Catalogue item this file belongs to
    file_name = String(required=True, max_length=255, sanitize=False)
    file_path = String(max_length=1024, sanitize=False)
    external_url = String(max_length=2048, sanitize=False)
    mime_type = String(max_length=127, default=DEFAULT_MIME_TYPE)
    file_size = Integer(min_value=0)
    download_count = Integer(default=0)
    created_at = DateTime()
    updated_at = DateTime()

    @classmethod
    def register(cls, file_name, file_path=None, external_url=None, mime_type=None, file_size=None, item_id=None):
        if not file_path and not external_url:
            raise ValidationError({"file_path": ["A file needs either a path or an external URL"]})
        now = utcnow()
        return cls(
            item_id=item_id,
            file_name=file_name,
            file_path=file_path,
            external_url=external_url,
            mime_type=mime_type or DEFAULT_MIME_TYPE,
            file_size=file_size,
            download_count=0,
            created_at=now,
            updated_at=now,
        )

    def is_external(self) -> bool:
        return bool(self.external_url)

    def record_download(self) -> None:
        self.download_count = (self.download_count or 0) + 1
        self.updated_at = utcnow()
