"""Pending order creation — command, handler and checkout helper."""

import json

from protean import handle
from protean.fields import Float, Identifier, String, Text
from protean.utils.globals import current_domain

from storefront.discount.resolver import AppliedDiscount, Cart, PricedCart
from storefront.domain import storefront
from storefront.errors import ValidationError
from storefront.order.order import DEFAULT_CURRENCY, Order


@storefront.command(part_of="Order")
class CreatePendingOrder:
    items = Text(required=True, sanitize=False)  # JSON: list of cart line dicts
    subtotal = Float(required=True, min_value=0.0)
    total_amount = Float(required=True, min_value=0.0)
    discount = Text(sanitize=False)  # JSON: applied discount dict
    customer_id = Identifier()
    customer_email = String(max_length=254)
    customer_name = String(max_length=255, sanitize=False)
    currency = String(max_length=3, default=DEFAULT_CURRENCY)


@storefront.command_handler(part_of=Order)
class CreatePendingOrderHandler:
    @handle(CreatePendingOrder)
    def create_pending(self, command):
        lines = json.loads(command.items)
        discount = json.loads(command.discount) if command.discount else None

        order = Order.create_pending(
            lines=lines,
            subtotal=command.subtotal,
            total_amount=command.total_amount,
            discount=discount,
            customer_id=command.customer_id,
            customer_email=command.customer_email,
            customer_name=command.customer_name,
            currency=command.currency or DEFAULT_CURRENCY,
        )
        current_domain.repository_for(Order).add(order)
        return str(order.id)


def create_pending_order(
    cart: Cart,
    priced: PricedCart,
    applied: AppliedDiscount | None = None,
    customer_id: str | None = None,
    customer_email: str | None = None,
    customer_name: str | None = None,
    currency: str = DEFAULT_CURRENCY,
) -> str:
    """Record a priced cart as a pending order and return its id."""
    if cart.is_empty:
        raise ValidationError({"items": ["Cart is empty"]})
    if round(cart.subtotal, 2) != round(priced.subtotal, 2):
        raise ValidationError({"subtotal": ["Priced subtotal does not match the cart"]})

    discount = None
    if applied is not None:
        discount = {
            "variant": applied.variant.value,
            "code": applied.code,
            "discount_percent": applied.discount_percent,
            "discount_amount": applied.discount_amount,
            "owner_id": applied.owner_id,
        }

    command = CreatePendingOrder(
        items=json.dumps([line.to_dict() for line in cart.lines]),
        subtotal=priced.subtotal,
        total_amount=priced.total,
        discount=json.dumps(discount) if discount else None,
        customer_id=customer_id,
        customer_email=customer_email,
        customer_name=customer_name,
        currency=currency,
    )
    return current_domain.process(command, asynchronous=False)
