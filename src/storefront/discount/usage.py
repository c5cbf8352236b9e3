"""Bonus code usage tally — reacts to OrderPaid.

Usage is counted only for paid orders, once per order: ``OrderPaid`` is
raised by the single pending → paid transition and a replayed settlement
never raises it again. The handler runs after the order has committed, in
its own unit of work.
"""

import structlog
from protean import handle
from protean.exceptions import ExpectedVersionError
from protean.utils.globals import current_domain

from storefront.discount.codes import BonusCode
from storefront.discount.resolver import DiscountVariant
from storefront.domain import storefront
from storefront.order.events import OrderPaid

logger = structlog.get_logger(__name__)


@storefront.event_handler(part_of=BonusCode, stream_category="storefront::order")
class BonusCodeUsageHandler:
    @handle(OrderPaid)
    def on_order_paid(self, event: OrderPaid) -> None:
        if event.discount_variant != DiscountVariant.BONUS.value or not event.discount_code:
            return

        repo = current_domain.repository_for(BonusCode)
        # Version conflicts are left to the handler's retry, which re-reads the
        # code. One that outlasts the retries, at ``repo.add`` or at commit,
        # propagates to the caller of ``settle`` with the order already paid,
        # and the tally stays one short.
        try:
            codes = repo._dao.query.filter(code=event.discount_code).all().items
            if not codes:
                logger.warning("Bonus code not found for usage tally", code=event.discount_code)
                return
            code = codes[0]
            code.record_usage(event.total_amount or 0.0)
            repo.add(code)
        except ExpectedVersionError:
            raise
        except Exception as exc:
            logger.warning(
                "Failed to record bonus code usage",
                order_id=str(event.order_id),
                code=event.discount_code,
                error=str(exc),
            )
