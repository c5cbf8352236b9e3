"""Affiliate commission — credit the code owner once per paid order.

A paid order that used an affiliate code gets exactly one ``AffiliateSale``
row (unique on ``order_id``) and a matching credit on the code's tallies.
Both are written in the same unit of work, so the sale row is the record
that the credit happened. Two writers crediting the same order collide on
the ``AffiliateCode`` version; the retry re-reads, finds the sale row and
does nothing.
"""

import structlog
from protean import handle
from protean.fields import DateTime, Float, Identifier, String
from protean.utils.globals import current_domain

from storefront.discount.codes import AffiliateCode
from storefront.discount.resolver import DiscountVariant, normalize_code
from storefront.domain import storefront
from storefront.order.events import OrderPaid
from storefront.utils.clock import utcnow

logger = structlog.get_logger(__name__)


@storefront.aggregate
class AffiliateSale:
    """One commission-bearing sale, credited to an affiliate."""

    order_id = Identifier(required=True, unique=True)
    affiliate_code = String(required=True, max_length=50)
    owner_id = Identifier(required=True)
    sale_amount = Float(required=True, min_value=0.0)
    commission_rate = Float(required=True, min_value=0.0, max_value=1.0)
    commission_amount = Float(required=True, min_value=0.0)
    credited_at = DateTime()


def credit_affiliate_sale(order_id: str, code: str, sale_amount: float) -> AffiliateSale | None:
    """Credit ``code``'s owner for a paid order, unless the order was already credited.

    Runs in the caller's unit of work. Returns the new sale, or None when
    there was nothing to credit.
    """
    sale_repo = current_domain.repository_for(AffiliateSale)
    if sale_repo._dao.query.filter(order_id=order_id).all().items:
        return None

    code_repo = current_domain.repository_for(AffiliateCode)
    matches = code_repo._dao.query.filter(code=normalize_code(code)).all().items
    if not matches:
        logger.warning("Affiliate code not found, no commission credited", order_id=order_id, code=code)
        return None
    affiliate = matches[0]

    commission = affiliate.credit_sale(sale_amount)
    sale = AffiliateSale(
        order_id=order_id,
        affiliate_code=affiliate.code,
        owner_id=str(affiliate.owner_id),
        sale_amount=sale_amount,
        commission_rate=affiliate.commission_rate,
        commission_amount=commission,
        credited_at=utcnow(),
    )
    code_repo.add(affiliate)
    sale_repo.add(sale)

    logger.info(
        "Affiliate commission credited",
        order_id=order_id,
        code=affiliate.code,
        commission_amount=commission,
    )
    return sale


@storefront.event_handler(part_of=AffiliateCode, stream_category="storefront::order")
class AffiliateCommissionHandler:
    @handle(OrderPaid)
    def on_order_paid(self, event: OrderPaid) -> None:
        if event.discount_variant != DiscountVariant.AFFILIATE.value or not event.discount_code:
            return
        credit_affiliate_sale(str(event.order_id), event.discount_code, event.total_amount or 0.0)
