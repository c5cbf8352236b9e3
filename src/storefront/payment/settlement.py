"""Payment settlement — turn a gateway callback into a final order state.

``settle(reference)`` is the only entry point and is safe to call any
number of times for the same reference:

1. The Payment row is found by gateway reference (``ReferenceNotFound``).
2. A terminal order is never re-verified. A PAID order only has its
   settlement effects repaired (missing tokens, missing confirmation,
   missing affiliate credit).
3. Otherwise the gateway is asked, outside any unit of work. A timeout or
   outage raises ``ExternalServiceError`` and the order stays pending.
4. The verdict is recorded in one unit of work: Payment result, Order
   transition, one DownloadToken per digital file and the confirmation
   notification commit together or not at all. Concurrent settlements of
   the same order race on the order version; the loser's retry finds the
   order terminal and reports the winner's status.
"""

import json
from dataclasses import asdict, dataclass

import structlog
from protean import handle
from protean.fields import Boolean, Float, Identifier, String, Text
from protean.utils.globals import current_domain

from storefront.discount.commission import credit_affiliate_sale
from storefront.discount.resolver import DiscountVariant
from storefront.domain import storefront
from storefront.download.file import DigitalFile
from storefront.download.issuance import tokens_for
from storefront.download.token import DownloadToken, download_url
from storefront.errors import ConsistencyError, ReferenceNotFound, ValidationError
from storefront.gateway import get_gateway
from storefront.gateway.port import VerificationResult
from storefront.notification.notification import NotificationPriority, NotificationTemplate, QueuedNotification
from storefront.notification.queue import find_by_dedupe_key
from storefront.order.order import Order, OrderStatus
from storefront.payment.payment import Payment

logger = structlog.get_logger(__name__)

AMOUNT_MISMATCH = "amount_mismatch"


@dataclass(frozen=True)
class SettlementOutcome:
    order_id: str
    status: str

    def to_dict(self) -> dict:
        return asdict(self)


@storefront.command(part_of="Payment")
class RecordPaymentResult:
    gateway_reference = String(required=True, max_length=100)
    success = Boolean(required=True)
    verified_amount = Float()
    gateway_response = Text(sanitize=False)
    failure_reason = String(max_length=500, sanitize=False)


@storefront.command(part_of="Order")
class RepairSettlement:
    """Re-run the paid-order effects that may be missing (replayed callback)."""

    order_id = Identifier(required=True)


def confirmation_key(order_id: str) -> str:
    return f"payment_confirmed:{order_id}"


# ---------------------------------------------------------------------------
# Settlement effects: run inside the caller's unit of work
# ---------------------------------------------------------------------------
def _issue_missing_tokens(order: Order) -> list[dict]:
    """Mint one token per digital file that has none yet. Returns link data for all files."""
    token_repo = current_domain.repository_for(DownloadToken)
    file_repo = current_domain.repository_for(DigitalFile)

    links = []
    for item in order.digital_items():
        digital_file = file_repo.get_or_none(item.file_id)
        if digital_file is None:
            logger.error(
                "Digital file missing, no download token issued",
                order_id=str(order.id),
                file_id=str(item.file_id),
            )
            continue

        existing = tokens_for(str(order.id), str(item.file_id))
        if existing:
            token = existing[0]
        else:
            token = DownloadToken.issue(order_id=str(order.id), file_id=str(item.file_id))
            token_repo.add(token)
            logger.info("Download token issued", order_id=str(order.id), file_id=str(item.file_id))

        links.append(
            {
                "file_id": str(item.file_id),
                "file_name": digital_file.file_name,
                "url": download_url(token.token),
            }
        )
    return links


def _enqueue_confirmation(order: Order, links: list[dict]) -> None:
    if not order.customer_email:
        logger.info("No contact address, confirmation not queued", order_id=str(order.id))
        return

    key = confirmation_key(str(order.id))
    if find_by_dedupe_key(key) is not None:
        return

    notification = QueuedNotification.create(
        recipient_email=order.customer_email,
        recipient_name=order.customer_name,
        template=NotificationTemplate.PAYMENT_CONFIRMED.value,
        template_data={
            "order_id": str(order.id),
            "customer_name": order.customer_name,
            "amount": f"{order.total_amount:.2f}",
            "currency": order.currency,
            "downloads": links,
        },
        priority=NotificationPriority.NORMAL.value,
        order_id=str(order.id),
        dedupe_key=key,
    )
    current_domain.repository_for(QueuedNotification).add(notification)


def complete_paid_order(order: Order) -> None:
    _enqueue_confirmation(order, _issue_missing_tokens(order))


# ---------------------------------------------------------------------------
# Command Handlers
# ---------------------------------------------------------------------------
@storefront.command_handler(part_of=Payment)
class RecordPaymentResultHandler:
    @handle(RecordPaymentResult)
    def record(self, command: RecordPaymentResult) -> str:
        payment_repo = current_domain.repository_for(Payment)
        order_repo = current_domain.repository_for(Order)

        payment = payment_repo._dao.find_by(gateway_reference=command.gateway_reference)
        order = order_repo.get(payment.order_id)

        if order.is_terminal():
            logger.info("Order already settled", order_id=str(order.id), status=order.status)
            return order.status

        if command.success:
            payment.record_verified(command.verified_amount, command.gateway_response)
            order.mark_paid()
        else:
            payment.record_failed(command.failure_reason, command.gateway_response)
            order.mark_failed(command.failure_reason)

        payment_repo.add(payment)
        order_repo.add(order)

        if order.status == OrderStatus.PAID.value:
            complete_paid_order(order)

        logger.info(
            "Payment settled",
            order_id=str(order.id),
            gateway_reference=command.gateway_reference,
            status=order.status,
        )
        return order.status


@storefront.command_handler(part_of=Order)
class RepairSettlementHandler:
    @handle(RepairSettlement)
    def repair(self, command: RepairSettlement) -> None:
        order = current_domain.repository_for(Order).get(command.order_id)
        if order.status != OrderStatus.PAID.value:
            return

        complete_paid_order(order)
        if order.discount and order.discount.variant == DiscountVariant.AFFILIATE.value:
            credit_affiliate_sale(str(order.id), order.discount.code, order.total_amount)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------
def _load(reference: str) -> tuple[Payment, Order]:
    payments = current_domain.repository_for(Payment)._dao.query.filter(gateway_reference=reference).all().items
    if not payments:
        raise ReferenceNotFound(f"No payment found for reference {reference}")
    payment = payments[0]

    order = current_domain.repository_for(Order).get_or_none(payment.order_id)
    if order is None:
        logger.error("Payment references a missing order", gateway_reference=reference, order_id=str(payment.order_id))
        raise ConsistencyError(f"Order {payment.order_id} for reference {reference} does not exist")
    if order.gateway_reference and order.gateway_reference != reference:
        logger.error(
            "Order is bound to a different gateway reference",
            order_id=str(order.id),
            gateway_reference=reference,
            order_reference=order.gateway_reference,
        )
        raise ConsistencyError(f"Order {order.id} is not bound to reference {reference}")
    return payment, order


def _judge(result: VerificationResult, order: Order) -> tuple[bool, str | None]:
    """Gateway success alone is not enough: the verified amount must cover the order."""
    if not result.success:
        return False, result.failure_reason or result.gateway_status or "Payment verification failed"
    if result.amount is not None and round(result.amount, 2) < round(order.total_amount, 2):
        logger.error(
            "Verified amount below order total",
            order_id=str(order.id),
            verified_amount=result.amount,
            total_amount=order.total_amount,
        )
        return False, AMOUNT_MISMATCH
    return True, None


def settle(gateway_reference: str) -> SettlementOutcome:
    """Verify a gateway reference and settle its order. Idempotent."""
    reference = (gateway_reference or "").strip()
    if not reference:
        raise ValidationError({"reference": ["No payment reference provided"]})

    _, order = _load(reference)

    if order.is_terminal():
        if order.status == OrderStatus.PAID.value:
            current_domain.process(RepairSettlement(order_id=str(order.id)), asynchronous=False)
        return SettlementOutcome(order_id=str(order.id), status=order.status)

    result = get_gateway().verify_transaction(reference)
    success, reason = _judge(result, order)

    status = current_domain.process(
        RecordPaymentResult(
            gateway_reference=reference,
            success=success,
            verified_amount=result.amount,
            gateway_response=json.dumps(
                {"status": result.gateway_status, "message": result.gateway_response, "currency": result.currency}
            ),
            failure_reason=reason,
        ),
        asynchronous=False,
    )
    return SettlementOutcome(order_id=str(order.id), status=status)
