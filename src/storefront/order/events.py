"""Domain events for the Order aggregate."""

from protean.fields import DateTime, Float, Identifier, String

from storefront.domain import storefront


@storefront.event(part_of="Order")
class OrderPlaced:
    """A priced cart was recorded as a pending order."""

    __version__ = 1

    order_id = Identifier(required=True)
    customer_id = Identifier()
    subtotal = Float(required=True)
    discount_amount = Float()
    total_amount = Float(required=True)
    currency = String(max_length=3)
    discount_code = String(max_length=50)
    discount_variant = String(max_length=20)
    placed_at = DateTime(required=True)


@storefront.event(part_of="Order")
class OrderPaid:
    """The gateway confirmed payment; the order is fulfillable."""

    __version__ = 1

    order_id = Identifier(required=True)
    customer_id = Identifier()
    customer_email = String(max_length=254)
    total_amount = Float(required=True)
    currency = String(max_length=3)
    discount_code = String(max_length=50)
    discount_variant = String(max_length=20)
    payment_verified_at = DateTime(required=True)


@storefront.event(part_of="Order")
class OrderPaymentFailed:
    """The gateway reported the payment as failed."""

    __version__ = 1

    order_id = Identifier(required=True)
    reason = String(max_length=500)
    failed_at = DateTime(required=True)
