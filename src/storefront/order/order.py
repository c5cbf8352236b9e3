"""Order aggregate (CQRS) — the settlement ledger entry.

An Order is created once from a priced cart and then moves exactly once to
a terminal state. The cart lines and the applied discount are snapshotted
at creation; nothing on the order reads catalogue prices or discount codes
again.

State Machine:
    PENDING → PAID
    PENDING → FAILED
    PAID, FAILED: terminal. Marking a terminal order again is a no-op.

Concurrent writers are reconciled through the aggregate version: the loser
of a race gets ``ExpectedVersionError`` and re-reads the winner's state.
"""

from enum import Enum

from protean.exceptions import ValidationError
from protean.fields import DateTime, Float, HasMany, Identifier, Integer, String, ValueObject

from storefront.domain import storefront
from storefront.order.events import OrderPaid, OrderPaymentFailed, OrderPlaced
from storefront.utils.clock import utcnow

DEFAULT_CURRENCY = "NGN"


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class OrderStatus(Enum):
    PENDING = "Pending"
    PAID = "Paid"
    FAILED = "Failed"


_VALID_TRANSITIONS = {
    OrderStatus.PENDING: {OrderStatus.PAID, OrderStatus.FAILED},
    OrderStatus.PAID: set(),  # Terminal
    OrderStatus.FAILED: set(),  # Terminal
}


# ---------------------------------------------------------------------------
# Value Objects
# ---------------------------------------------------------------------------
@storefront.value_object(part_of="Order")
class OrderDiscount:
    """The discount resolved at checkout, frozen onto the order."""

    variant = String(max_length=20, required=True)  # Bonus, Affiliate, Referral
    code = String(max_length=50, required=True)
    discount_percent = Float(default=0.0)
    discount_amount = Float(default=0.0)
    owner_id = Identifier()


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@storefront.entity(part_of="Order")
class OrderItem:
    item_id = Identifier(required=True)
    item_name = String(max_length=255, sanitize=False)
    quantity = Integer(required=True, min_value=1)
    unit_price = Float(required=True, min_value=0.0)
    subtotal = Float(required=True)
    file_id = Identifier()  # Set for digital items


# ---------------------------------------------------------------------------
# Aggregate Root
# ---------------------------------------------------------------------------
@storefront.aggregate
class Order:
    customer_id = Identifier()  # Nullable for guest checkout
    customer_email = String(max_length=254)
    customer_name = String(max_length=255, sanitize=False)
    items = HasMany(OrderItem)
    discount = ValueObject(OrderDiscount)
    currency = String(max_length=3, default=DEFAULT_CURRENCY)
    subtotal = Float(default=0.0)
    discount_amount = Float(default=0.0)
    total_amount = Float(required=True, min_value=0.0)
    gateway_reference = String(max_length=100)
    status = String(choices=OrderStatus, default=OrderStatus.PENDING.value)
    payment_verified_at = DateTime()
    failure_reason = String(max_length=500, sanitize=False)
    created_at = DateTime()
    updated_at = DateTime()

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def create_pending(
        cls,
        lines: list[dict],
        subtotal: float,
        total_amount: float,
        discount: dict | None = None,
        customer_id: str | None = None,
        customer_email: str | None = None,
        customer_name: str | None = None,
        currency: str = DEFAULT_CURRENCY,
    ):
        """Snapshot a priced cart as a pending order."""
        if not lines:
            raise ValidationError({"items": ["An order needs at least one item"]})
        if total_amount > subtotal:
            raise ValidationError({"total_amount": ["Total cannot exceed the subtotal"]})

        now = utcnow()
        order = cls(
            customer_id=customer_id,
            customer_email=customer_email,
            customer_name=customer_name,
            discount=OrderDiscount(**discount) if discount else None,
            currency=currency,
            subtotal=subtotal,
            discount_amount=round(subtotal - total_amount, 2),
            total_amount=total_amount,
            status=OrderStatus.PENDING.value,
            created_at=now,
            updated_at=now,
        )
        for line in lines:
            order.add_items(
                OrderItem(
                    item_id=line["item_id"],
                    item_name=line.get("item_name"),
                    quantity=line["quantity"],
                    unit_price=line["unit_price"],
                    subtotal=line.get("subtotal", round(line["unit_price"] * line["quantity"], 2)),
                    file_id=line.get("file_id"),
                )
            )

        order.raise_(
            OrderPlaced(
                order_id=str(order.id),
                customer_id=customer_id,
                subtotal=subtotal,
                discount_amount=order.discount_amount,
                total_amount=total_amount,
                currency=currency,
                discount_code=order.discount.code if order.discount else None,
                discount_variant=order.discount.variant if order.discount else None,
                placed_at=now,
            )
        )
        return order

    # -------------------------------------------------------------------
    # State helpers
    # -------------------------------------------------------------------
    def is_terminal(self) -> bool:
        return not _VALID_TRANSITIONS[OrderStatus(self.status)]

    def _assert_can_transition(self, target_status: OrderStatus) -> None:
        current = OrderStatus(self.status)
        if target_status not in _VALID_TRANSITIONS.get(current, set()):
            raise ValidationError({"status": [f"Cannot transition from {current.value} to {target_status.value}"]})

    def digital_items(self) -> list[OrderItem]:
        return [item for item in self.items if item.file_id]

    # -------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------
    def attach_gateway_reference(self, reference: str) -> None:
        if OrderStatus(self.status) != OrderStatus.PENDING:
            raise ValidationError({"status": ["Payment can only be started for a pending order"]})
        self.gateway_reference = reference
        self.updated_at = utcnow()

    def mark_paid(self) -> bool:
        """Move to PAID and stamp ``payment_verified_at``.

        Returns False, changing nothing, when the order is already terminal.
        """
        if self.is_terminal():
            return False
        self._assert_can_transition(OrderStatus.PAID)

        now = utcnow()
        self.status = OrderStatus.PAID.value
        self.payment_verified_at = now
        self.updated_at = now
        self.raise_(
            OrderPaid(
                order_id=str(self.id),
                customer_id=str(self.customer_id) if self.customer_id else None,
                customer_email=self.customer_email,
                total_amount=self.total_amount,
                currency=self.currency,
                discount_code=self.discount.code if self.discount else None,
                discount_variant=self.discount.variant if self.discount else None,
                payment_verified_at=now,
            )
        )
        return True

    def mark_failed(self, reason: str | None = None) -> bool:
        """Move to FAILED. Returns False, changing nothing, when already terminal."""
        if self.is_terminal():
            return False
        self._assert_can_transition(OrderStatus.FAILED)

        now = utcnow()
        self.status = OrderStatus.FAILED.value
        self.failure_reason = reason
        self.updated_at = now
        self.raise_(
            OrderPaymentFailed(
                order_id=str(self.id),
                reason=reason,
                failed_at=now,
            )
        )
        return True
