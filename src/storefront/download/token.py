"""DownloadToken aggregate (CQRS) — bounded access to one purchased file.

Invariant: ``download_count <= max_downloads``. A token that is exhausted
or past ``expires_at`` is permanently inert; nothing renews it. Operators
mint a fresh token instead (see ``download.issuance``).

Redemption checks and the count increment run in one unit of work and are
committed with a version check, so two redemptions racing for the last
download cannot both succeed: the loser's retry re-reads the token and
fails with ``LimitExceeded``.
"""

import os
from datetime import datetime, timedelta
from secrets import token_hex

from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import DateTime, Identifier, Integer, String

from storefront.domain import storefront
from storefront.errors import Expired, LimitExceeded
from storefront.utils.clock import as_utc, utcnow

MAX_DOWNLOAD_ATTEMPTS = 10
DOWNLOAD_LINK_EXPIRY_DAYS = 30
TOKEN_MAX_LENGTH = 64


def generate_token() -> str:
    return token_hex(32)


def download_url(token: str) -> str:
    """Customer-facing link for a token, from ``DOWNLOAD_URL_TEMPLATE``."""
    template = os.getenv("DOWNLOAD_URL_TEMPLATE", "/downloads?token={token}")
    return template.format(token=token)


@storefront.aggregate
class DownloadToken:
    token = String(required=True, max_length=TOKEN_MAX_LENGTH, unique=True)
    order_id = Identifier(required=True)
    file_id = Identifier(required=True)
    max_downloads = Integer(required=True, min_value=1)
    download_count = Integer(default=0, min_value=0)
    expires_at = DateTime(required=True)
    last_downloaded_at = DateTime()
    revoked_at = DateTime()
    created_at = DateTime()

    @invariant.post
    def download_count_within_limit(self):
        if (self.download_count or 0) > self.max_downloads:
            raise ValidationError({"download_count": ["Download count cannot exceed max downloads"]})

    @classmethod
    def issue(
        cls,
        order_id,
        file_id,
        max_downloads: int = MAX_DOWNLOAD_ATTEMPTS,
        ttl: timedelta = timedelta(days=DOWNLOAD_LINK_EXPIRY_DAYS),
    ):
        now = utcnow()
        return cls(
            token=generate_token(),
            order_id=order_id,
            file_id=file_id,
            max_downloads=max_downloads,
            download_count=0,
            expires_at=now + ttl,
            created_at=now,
        )

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    def is_expired(self, now: datetime | None = None) -> bool:
        return (now or utcnow()) > as_utc(self.expires_at)

    def is_exhausted(self) -> bool:
        return (self.download_count or 0) >= self.max_downloads

    def is_live(self, now: datetime | None = None) -> bool:
        return not self.is_expired(now) and not self.is_exhausted()

    def remaining_downloads(self) -> int:
        return max(self.max_downloads - (self.download_count or 0), 0)

    # -------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------
    def redeem(self, now: datetime | None = None) -> None:
        """Consume one download. Raises without mutating if the token is inert."""
        now = now or utcnow()
        if self.is_expired(now):
            raise Expired("Download link has expired")
        if self.is_exhausted():
            raise LimitExceeded("Download limit reached")

        self.download_count = (self.download_count or 0) + 1
        self.last_downloaded_at = now

    def revoke(self) -> None:
        """Expire the token immediately."""
        now = utcnow()
        if not self.is_expired(now):
            self.expires_at = now - timedelta(seconds=1)
            self.revoked_at = now
