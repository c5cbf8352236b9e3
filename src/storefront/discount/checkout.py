"""Applying discount codes at checkout.

Bridges the pure resolver to the code repositories and runs the click
counter side effect. Totals and the new session state are returned to the
caller; nothing about the session is stored server-side.
"""

import structlog
from protean.utils.globals import current_domain

from storefront.discount.clicks import RecordDiscountCodeClick
from storefront.discount.codes import CODE_AGGREGATES
from storefront.discount.resolver import (
    AppliedDiscount,
    Cart,
    CodeLookup,
    DiscountCode,
    DiscountResolution,
    DiscountVariant,
    PricedCart,
    SessionDiscountState,
    price_cart,
    resolve_discount,
)
from storefront.errors import ValidationError
from storefront.utils.clock import utcnow

logger = structlog.get_logger(__name__)


class RepositoryCodeLookup(CodeLookup):
    """Reads each variant's aggregate fresh from its repository."""

    def find(self, variant: DiscountVariant, code: str) -> DiscountCode | None:
        repo = current_domain.repository_for(CODE_AGGREGATES[variant])
        matches = repo._dao.query.filter(code=code).all().items
        if not matches:
            return None
        return matches[0].to_discount_code()


def apply_discount_code(cart: Cart, submitted_code: str, session: SessionDiscountState) -> DiscountResolution:
    """Resolve and attach a code, superseding whatever the session held."""
    resolution = resolve_discount(cart, submitted_code, session, RepositoryCodeLookup())

    if resolution.superseded is not None:
        logger.info(
            "Discount code superseded",
            previous_code=resolution.superseded.code,
            previous_variant=resolution.superseded.variant.value,
            new_code=resolution.applied.code,
            new_variant=resolution.applied.variant.value,
        )

    if resolution.applied.variant in (DiscountVariant.AFFILIATE, DiscountVariant.REFERRAL):
        _record_click(resolution.applied.variant, resolution.applied.code)

    logger.info(
        "Discount code applied",
        code=resolution.applied.code,
        variant=resolution.applied.variant.value,
        discount=resolution.priced.discount,
    )
    return resolution


def remove_discount_code(cart: Cart, session: SessionDiscountState) -> tuple[PricedCart, SessionDiscountState]:
    if session.has_discount:
        logger.info("Discount code removed", code=session.code, variant=session.variant.value)
    return price_cart(cart), session.cleared()


def _record_click(variant: DiscountVariant, code: str) -> None:
    try:
        current_domain.process(
            RecordDiscountCodeClick(variant=variant.value, code=code),
            asynchronous=False,
        )
    except Exception as exc:
        logger.warning("Failed to record discount code click", code=code, variant=variant.value, error=str(exc))


def price_for_checkout(cart: Cart, session: SessionDiscountState) -> tuple[PricedCart, AppliedDiscount | None]:
    """Final pricing for order creation.

    The session's code is re-read rather than trusted, so a code deactivated
    or expired since it was applied no longer discounts the order.
    """
    if not session.has_discount:
        return price_cart(cart), None

    code = RepositoryCodeLookup().find(session.variant, session.code)
    if code is None or not code.is_usable(utcnow()):
        raise ValidationError({"code": [f"Discount code {session.code} is no longer valid"]})

    priced = price_cart(cart, code.discount_percent)
    return priced, AppliedDiscount(
        variant=code.variant,
        code=code.code,
        discount_percent=code.discount_percent,
        discount_amount=priced.discount,
        owner_id=code.owner_id,
    )
