"""Payment aggregate (CQRS) — one gateway transaction for one order.

A Payment is created when the customer is handed off to the gateway, before
anything is verified. Settlement always finds it by ``gateway_reference``,
never by order id.

State Machine:
    PENDING → VERIFIED
    PENDING → FAILED
    VERIFIED, FAILED: terminal. Recording a result twice is a no-op.
"""

from enum import Enum

from protean.exceptions import ValidationError
from protean.fields import DateTime, Float, Identifier, String, Text

from storefront.domain import storefront
from storefront.payment.events import PaymentRejected, PaymentStarted, PaymentVerified
from storefront.utils.clock import utcnow


class PaymentStatus(Enum):
    PENDING = "Pending"
    VERIFIED = "Verified"
    FAILED = "Failed"


_VALID_TRANSITIONS = {
    PaymentStatus.PENDING: {PaymentStatus.VERIFIED, PaymentStatus.FAILED},
    PaymentStatus.VERIFIED: set(),  # Terminal
    PaymentStatus.FAILED: set(),  # Terminal
}


@storefront.aggregate
class Payment:
    order_id = Identifier(required=True)
    gateway_reference = String(required=True, max_length=100, unique=True)
    gateway_name = String(max_length=50)
    amount = Float(required=True, min_value=0.0)
    currency = String(max_length=3, default="NGN")
    status = String(choices=PaymentStatus, default=PaymentStatus.PENDING.value)
    verified_amount = Float()
    gateway_response = Text(sanitize=False)
    failure_reason = String(max_length=500, sanitize=False)
    verified_at = DateTime()
    created_at = DateTime()
    updated_at = DateTime()

    @classmethod
    def start(cls, order_id, gateway_reference, amount, currency="NGN", gateway_name=None):
        now = utcnow()
        payment = cls(
            order_id=order_id,
            gateway_reference=gateway_reference,
            gateway_name=gateway_name,
            amount=amount,
            currency=currency,
            status=PaymentStatus.PENDING.value,
            created_at=now,
            updated_at=now,
        )
        payment.raise_(
            PaymentStarted(
                payment_id=str(payment.id),
                order_id=str(order_id),
                gateway_reference=gateway_reference,
                amount=amount,
                currency=currency,
                started_at=now,
            )
        )
        return payment

    def is_terminal(self) -> bool:
        return not _VALID_TRANSITIONS[PaymentStatus(self.status)]

    def _assert_can_transition(self, target_status: PaymentStatus) -> None:
        current = PaymentStatus(self.status)
        if target_status not in _VALID_TRANSITIONS.get(current, set()):
            raise ValidationError({"status": [f"Cannot transition from {current.value} to {target_status.value}"]})

    def record_verified(self, verified_amount: float | None, gateway_response: str | None = None) -> bool:
        if self.is_terminal():
            return False
        self._assert_can_transition(PaymentStatus.VERIFIED)

        now = utcnow()
        self.status = PaymentStatus.VERIFIED.value
        self.verified_amount = verified_amount
        self.gateway_response = gateway_response
        self.verified_at = now
        self.updated_at = now
        self.raise_(
            PaymentVerified(
                payment_id=str(self.id),
                order_id=str(self.order_id),
                gateway_reference=self.gateway_reference,
                verified_amount=verified_amount,
                verified_at=now,
            )
        )
        return True

    def record_failed(self, reason: str | None, gateway_response: str | None = None) -> bool:
        if self.is_terminal():
            return False
        self._assert_can_transition(PaymentStatus.FAILED)

        now = utcnow()
        self.status = PaymentStatus.FAILED.value
        self.failure_reason = reason
        self.gateway_response = gateway_response
        self.updated_at = now
        self.raise_(
            PaymentRejected(
                payment_id=str(self.id),
                order_id=str(self.order_id),
                gateway_reference=self.gateway_reference,
                reason=reason,
                rejected_at=now,
            )
        )
        return True
