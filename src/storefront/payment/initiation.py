"""Payment hand-off — record the Payment row, then register it with the gateway.

The row exists before the customer ever reaches the gateway, so a callback
can always be matched to an order by its reference. Starting payment again
for the same order reuses the existing pending Payment.
"""

from secrets import token_hex

import structlog
from protean import handle
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from storefront.domain import storefront
from storefront.gateway import get_gateway
from storefront.gateway.port import InitializationResult
from storefront.order.order import Order
from storefront.payment.payment import Payment, PaymentStatus

logger = structlog.get_logger(__name__)


def generate_reference(order_id: str) -> str:
    return f"ORD-{str(order_id)[:8].upper()}-{token_hex(6)}"


@storefront.command(part_of="Payment")
class StartPayment:
    order_id = Identifier(required=True)
    gateway_reference = String(max_length=100)


@storefront.command_handler(part_of=Payment)
class StartPaymentHandler:
    @handle(StartPayment)
    def start_payment(self, command):
        order_repo = current_domain.repository_for(Order)
        payment_repo = current_domain.repository_for(Payment)

        order = order_repo.get(command.order_id)

        existing = payment_repo._dao.query.filter(order_id=str(order.id)).all().items
        for payment in existing:
            if payment.status == PaymentStatus.PENDING.value:
                return payment.gateway_reference

        reference = command.gateway_reference or generate_reference(str(order.id))
        order.attach_gateway_reference(reference)

        payment = Payment.start(
            order_id=str(order.id),
            gateway_reference=reference,
            amount=order.total_amount,
            currency=order.currency,
            gateway_name=get_gateway().name,
        )
        payment_repo.add(payment)
        order_repo.add(order)

        logger.info("Payment started", order_id=str(order.id), gateway_reference=reference)
        return reference


def start_payment(
    order_id: str,
    gateway_reference: str | None = None,
    callback_url: str | None = None,
) -> InitializationResult:
    """Create (or reuse) the Payment row and register the transaction with the gateway."""
    reference = current_domain.process(
        StartPayment(order_id=order_id, gateway_reference=gateway_reference),
        asynchronous=False,
    )
    order = current_domain.repository_for(Order).get(order_id)
    return get_gateway().initialize_transaction(
        reference=reference,
        email=order.customer_email,
        amount=order.total_amount,
        currency=order.currency,
        callback_url=callback_url,
    )
