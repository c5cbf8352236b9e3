"""Discount code aggregates (CQRS) — bonus, affiliate and referral codes.

Three independent aggregates share one code namespace from the customer's
point of view: whatever the variant, a customer types a single uppercase
string at checkout. Resolution order between the variants lives in
``discount.resolver``; these aggregates only know whether they are usable
right now and how to record their own side-effect counters.

Lifecycle (all variants):
    ACTIVE ⇄ INACTIVE
    A code with an ``expires_at`` in the past is unusable regardless of status.
"""

from datetime import datetime
from enum import Enum

from protean.exceptions import ValidationError
from protean.fields import Boolean, DateTime, Float, Identifier, Integer, String

from storefront.discount.resolver import DiscountCode, DiscountVariant, normalize_code
from storefront.domain import storefront
from storefront.utils.clock import as_utc, utcnow

# Fixed customer discount (percent) for affiliate and referral codes
CUSTOMER_DISCOUNT_RATE = 20.0

# Default share of the sale paid to the affiliate
AFFILIATE_COMMISSION_RATE = 0.30


class CodeStatus(Enum):
    ACTIVE = "Active"
    INACTIVE = "Inactive"


def _clean_code(code: str) -> str:
    normalized = normalize_code(code)
    if not normalized:
        raise ValidationError({"code": ["Code cannot be blank"]})
    return normalized


def _not_expired(expires_at: datetime | None, now: datetime) -> bool:
    return expires_at is None or as_utc(expires_at) >= now


# ---------------------------------------------------------------------------
# Bonus code
# ---------------------------------------------------------------------------
@storefront.aggregate
class BonusCode:
    """Promotional code with a flat percentage discount and optional expiry."""

    code = String(required=True, max_length=50, unique=True)
    discount_percent = Float(required=True, min_value=0.0, max_value=100.0)
    is_active = Boolean(default=True)
    expires_at = DateTime()
    description = String(max_length=255)
    usage_count = Integer(default=0)
    total_sales_generated = Float(default=0.0)
    created_at = DateTime()
    updated_at = DateTime()

    @classmethod
    def create(cls, code, discount_percent, expires_at=None, description=None, is_active=True):
        now = utcnow()
        return cls(
            code=_clean_code(code),
            discount_percent=discount_percent,
            expires_at=expires_at,
            description=description,
            is_active=is_active,
            usage_count=0,
            total_sales_generated=0.0,
            created_at=now,
            updated_at=now,
        )

    def is_usable(self, now: datetime | None = None) -> bool:
        return bool(self.is_active) and _not_expired(self.expires_at, now or utcnow())

    def activate(self) -> None:
        self.is_active = True
        self.updated_at = utcnow()

    def deactivate(self) -> None:
        self.is_active = False
        self.updated_at = utcnow()

    def record_usage(self, sale_amount: float) -> None:
        """Count one paid order that used this code."""
        self.usage_count = (self.usage_count or 0) + 1
        self.total_sales_generated = round((self.total_sales_generated or 0.0) + sale_amount, 2)
        self.updated_at = utcnow()

    def to_discount_code(self) -> DiscountCode:
        return DiscountCode(
            variant=DiscountVariant.BONUS,
            code=self.code,
            active=bool(self.is_active),
            expires_at=as_utc(self.expires_at),
            discount_percent=self.discount_percent,
        )


# ---------------------------------------------------------------------------
# Affiliate code
# ---------------------------------------------------------------------------
@storefront.aggregate
class AffiliateCode:
    """Code owned by a commission-earning partner."""

    code = String(required=True, max_length=50, unique=True)
    owner_id = Identifier(required=True)
    commission_rate = Float(default=AFFILIATE_COMMISSION_RATE, min_value=0.0, max_value=1.0)
    status = String(choices=CodeStatus, default=CodeStatus.ACTIVE.value)
    expires_at = DateTime()
    clicks = Integer(default=0)
    total_sales = Integer(default=0)
    commission_earned = Float(default=0.0)
    commission_pending = Float(default=0.0)
    created_at = DateTime()
    updated_at = DateTime()

    @classmethod
    def create(cls, code, owner_id, commission_rate=AFFILIATE_COMMISSION_RATE, expires_at=None):
        now = utcnow()
        return cls(
            code=_clean_code(code),
            owner_id=owner_id,
            commission_rate=commission_rate,
            status=CodeStatus.ACTIVE.value,
            expires_at=expires_at,
            clicks=0,
            total_sales=0,
            commission_earned=0.0,
            commission_pending=0.0,
            created_at=now,
            updated_at=now,
        )

    def is_usable(self, now: datetime | None = None) -> bool:
        return self.status == CodeStatus.ACTIVE.value and _not_expired(self.expires_at, now or utcnow())

    def activate(self) -> None:
        self.status = CodeStatus.ACTIVE.value
        self.updated_at = utcnow()

    def deactivate(self) -> None:
        self.status = CodeStatus.INACTIVE.value
        self.updated_at = utcnow()

    def record_click(self) -> None:
        self.clicks = (self.clicks or 0) + 1

    def credit_sale(self, sale_amount: float) -> float:
        """Count one paid order and credit its commission. Returns the amount credited.

        Credited commission stays pending until paid out.
        """
        commission = round(sale_amount * (self.commission_rate or 0.0), 2)
        self.total_sales = (self.total_sales or 0) + 1
        self.commission_earned = round((self.commission_earned or 0.0) + commission, 2)
        self.commission_pending = round((self.commission_pending or 0.0) + commission, 2)
        self.updated_at = utcnow()
        return commission

    def to_discount_code(self) -> DiscountCode:
        return DiscountCode(
            variant=DiscountVariant.AFFILIATE,
            code=self.code,
            active=self.status == CodeStatus.ACTIVE.value,
            expires_at=as_utc(self.expires_at),
            discount_percent=CUSTOMER_DISCOUNT_RATE,
            owner_id=str(self.owner_id),
            commission_rate=self.commission_rate,
        )


# ---------------------------------------------------------------------------
# Referral code
# ---------------------------------------------------------------------------
@storefront.aggregate
class ReferralCode:
    """Code owned by an existing customer who refers others."""

    code = String(required=True, max_length=50, unique=True)
    owner_id = Identifier(required=True)
    status = String(choices=CodeStatus, default=CodeStatus.ACTIVE.value)
    expires_at = DateTime()
    clicks = Integer(default=0)
    created_at = DateTime()
    updated_at = DateTime()

    @classmethod
    def create(cls, code, owner_id, expires_at=None):
        now = utcnow()
        return cls(
            code=_clean_code(code),
            owner_id=owner_id,
            status=CodeStatus.ACTIVE.value,
            expires_at=expires_at,
            clicks=0,
            created_at=now,
            updated_at=now,
        )

    def is_usable(self, now: datetime | None = None) -> bool:
        return self.status == CodeStatus.ACTIVE.value and _not_expired(self.expires_at, now or utcnow())

    def activate(self) -> None:
        self.status = CodeStatus.ACTIVE.value
        self.updated_at = utcnow()

    def deactivate(self) -> None:
        self.status = CodeStatus.INACTIVE.value
        self.updated_at = utcnow()

    def record_click(self) -> None:
        self.clicks = (self.clicks or 0) + 1

    def to_discount_code(self) -> DiscountCode:
        return DiscountCode(
            variant=DiscountVariant.REFERRAL,
            code=self.code,
            active=self.status == CodeStatus.ACTIVE.value,
            expires_at=as_utc(self.expires_at),
            discount_percent=CUSTOMER_DISCOUNT_RATE,
            owner_id=str(self.owner_id),
        )


CODE_AGGREGATES = {
    DiscountVariant.BONUS: BonusCode,
    DiscountVariant.AFFILIATE: AffiliateCode,
    DiscountVariant.REFERRAL: ReferralCode,
}
