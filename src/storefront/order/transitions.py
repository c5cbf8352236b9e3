"""Ledger transitions — mark an order paid or failed.

Both commands are idempotent: a terminal order is returned unchanged. A
version conflict with a concurrent transition is retried by the handler in
a fresh unit of work, where the order is already terminal and the retry
becomes a no-op reporting the winner's status.
"""

import structlog
from protean import handle
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from storefront.domain import storefront
from storefront.order.order import Order

logger = structlog.get_logger(__name__)


@storefront.command(part_of="Order")
class MarkOrderPaid:
    order_id = Identifier(required=True)


@storefront.command(part_of="Order")
class MarkOrderFailed:
    order_id = Identifier(required=True)
    reason = String(max_length=500, sanitize=False)


@storefront.command_handler(part_of=Order)
class OrderTransitionHandler:
    @handle(MarkOrderPaid)
    def mark_paid(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)

        if order.mark_paid():
            repo.add(order)
            logger.info("Order marked paid", order_id=str(order.id), total_amount=order.total_amount)
        else:
            logger.info("Order already settled, skipping", order_id=str(order.id), status=order.status)

        return order.status

    @handle(MarkOrderFailed)
    def mark_failed(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)

        if order.mark_failed(command.reason):
            repo.add(order)
            logger.info("Order marked failed", order_id=str(order.id), reason=command.reason)
        else:
            logger.info("Order already settled, skipping", order_id=str(order.id), status=order.status)

        return order.status


def mark_paid(order_id: str) -> str:
    return current_domain.process(MarkOrderPaid(order_id=order_id), asynchronous=False)


def mark_failed(order_id: str, reason: str | None = None) -> str:
    return current_domain.process(MarkOrderFailed(order_id=order_id, reason=reason), asynchronous=False)
