"""Discount resolution — a pure function over a cart, a code and session state.

No persistence and no ambient session: callers pass a ``CodeLookup`` that
answers "which code of this variant matches this string" and the current
``SessionDiscountState``. The function returns the priced cart and a *new*
session state; the caller decides where to store it.

Resolution order is fixed and exclusive — the first usable match wins and
later variants are not consulted:

    1. Bonus code      (code's own discount percent)
    2. Affiliate code  (fixed customer discount rate)
    3. Referral code   (fixed customer discount rate)

At most one code is attached to a session. Attaching a code of any variant
supersedes whatever was attached before.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from storefront.errors import AlreadyAppliedError, NotFoundError, ValidationError
from storefront.utils.clock import utcnow


class DiscountVariant(Enum):
    BONUS = "Bonus"
    AFFILIATE = "Affiliate"
    REFERRAL = "Referral"


RESOLUTION_ORDER = (DiscountVariant.BONUS, DiscountVariant.AFFILIATE, DiscountVariant.REFERRAL)


def normalize_code(code: str | None) -> str:
    return (code or "").strip().upper()


# ---------------------------------------------------------------------------
# Cart snapshot
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class CartLine:
    item_id: str
    item_name: str
    quantity: int
    unit_price: float
    file_id: str | None = None

    @property
    def subtotal(self) -> float:
        return round(self.unit_price * self.quantity, 2)

    def to_dict(self) -> dict:
        return {
            "item_id": self.item_id,
            "item_name": self.item_name,
            "quantity": self.quantity,
            "unit_price": self.unit_price,
            "file_id": self.file_id,
            "subtotal": self.subtotal,
        }


@dataclass(frozen=True)
class Cart:
    """Immutable checkout-time snapshot of the cart lines."""

    lines: tuple[CartLine, ...] = ()

    @classmethod
    def from_items(cls, items: list[dict]) -> "Cart":
        lines = []
        for item in items:
            quantity = int(item.get("quantity", 1))
            unit_price = float(item["unit_price"])
            if quantity < 1:
                raise ValidationError({"quantity": ["Quantity must be at least 1"]})
            if unit_price < 0:
                raise ValidationError({"unit_price": ["Unit price cannot be negative"]})
            lines.append(
                CartLine(
                    item_id=str(item["item_id"]),
                    item_name=item.get("item_name") or str(item["item_id"]),
                    quantity=quantity,
                    unit_price=unit_price,
                    file_id=str(item["file_id"]) if item.get("file_id") else None,
                )
            )
        return cls(lines=tuple(lines))

    @property
    def subtotal(self) -> float:
        return round(sum(line.subtotal for line in self.lines), 2)

    @property
    def item_count(self) -> int:
        return sum(line.quantity for line in self.lines)

    @property
    def is_empty(self) -> bool:
        return not self.lines


# ---------------------------------------------------------------------------
# Codes, discounts and session state
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class DiscountCode:
    """Read-only view of one discount code variant, as seen by the resolver."""

    variant: DiscountVariant
    code: str
    active: bool
    discount_percent: float
    expires_at: datetime | None = None
    owner_id: str | None = None
    commission_rate: float | None = None

    def is_usable(self, now: datetime) -> bool:
        return self.active and (self.expires_at is None or self.expires_at >= now)


@dataclass(frozen=True)
class AppliedDiscount:
    variant: DiscountVariant
    code: str
    discount_percent: float
    discount_amount: float = 0.0
    owner_id: str | None = None


@dataclass(frozen=True)
class PricedCart:
    subtotal: float
    discount: float
    total: float
    item_count: int


@dataclass(frozen=True)
class SessionDiscountState:
    """The single discount code attached to a shopper's session, if any."""

    variant: DiscountVariant | None = None
    code: str | None = None
    discount_percent: float = 0.0
    owner_id: str | None = None

    @property
    def has_discount(self) -> bool:
        return self.code is not None

    def attach(self, discount: AppliedDiscount) -> "SessionDiscountState":
        return SessionDiscountState(
            variant=discount.variant,
            code=discount.code,
            discount_percent=discount.discount_percent,
            owner_id=discount.owner_id,
        )

    def cleared(self) -> "SessionDiscountState":
        return SessionDiscountState()

    def to_dict(self) -> dict:
        return {
            "variant": self.variant.value if self.variant else None,
            "code": self.code,
            "discount_percent": self.discount_percent,
            "owner_id": self.owner_id,
        }

    @classmethod
    def from_dict(cls, data: dict | None) -> "SessionDiscountState":
        if not data or not data.get("code"):
            return cls()
        return cls(
            variant=DiscountVariant(data["variant"]),
            code=normalize_code(data["code"]),
            discount_percent=float(data.get("discount_percent") or 0.0),
            owner_id=data.get("owner_id"),
        )


@dataclass(frozen=True)
class DiscountResolution:
    priced: PricedCart
    applied: AppliedDiscount
    session: SessionDiscountState
    superseded: SessionDiscountState | None = None


class CodeLookup(ABC):
    """Finds a code of one variant by its normalized string."""

    @abstractmethod
    def find(self, variant: DiscountVariant, code: str) -> DiscountCode | None: ...


# ---------------------------------------------------------------------------
# Pricing
# ---------------------------------------------------------------------------
def price_cart(cart: Cart, discount_percent: float = 0.0) -> PricedCart:
    subtotal = cart.subtotal
    discount = round(subtotal * discount_percent / 100.0, 2)
    return PricedCart(
        subtotal=subtotal,
        discount=discount,
        total=round(subtotal - discount, 2),
        item_count=cart.item_count,
    )


def price_with_session(cart: Cart, session: SessionDiscountState) -> tuple[PricedCart, AppliedDiscount | None]:
    """Price the cart with whatever discount the session already carries."""
    if not session.has_discount:
        return price_cart(cart), None
    priced = price_cart(cart, session.discount_percent)
    applied = AppliedDiscount(
        variant=session.variant,
        code=session.code,
        discount_percent=session.discount_percent,
        discount_amount=priced.discount,
        owner_id=session.owner_id,
    )
    return priced, applied


def resolve_discount(
    cart: Cart,
    submitted_code: str,
    session: SessionDiscountState,
    lookup: CodeLookup,
    now: datetime | None = None,
) -> DiscountResolution:
    """Resolve ``submitted_code`` against the cart.

    Raises:
        ValidationError: blank code.
        AlreadyAppliedError: the code is the one already attached to the session.
        NotFoundError: no usable bonus, affiliate or referral code matches.
    """
    code = normalize_code(submitted_code)
    if not code:
        raise ValidationError({"code": ["Discount code is required"]})

    if session.code == code:
        raise AlreadyAppliedError(f"Discount code {code} is already applied")

    now = now or utcnow()
    match = None
    for variant in RESOLUTION_ORDER:
        candidate = lookup.find(variant, code)
        if candidate is not None and candidate.is_usable(now):
            match = candidate
            break

    if match is None:
        raise NotFoundError(f"Invalid or inactive discount code: {code}")

    priced = price_cart(cart, match.discount_percent)
    applied = AppliedDiscount(
        variant=match.variant,
        code=match.code,
        discount_percent=match.discount_percent,
        discount_amount=priced.discount,
        owner_id=match.owner_id,
    )
    superseded = session if session.has_discount else None

    return DiscountResolution(
        priced=priced,
        applied=applied,
        session=session.attach(applied),
        superseded=superseded,
    )
