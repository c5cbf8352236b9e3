"""Domain events for the Payment aggregate."""

from protean.fields import DateTime, Float, Identifier, String

from storefront.domain import storefront


@storefront.event(part_of="Payment")
class PaymentStarted:
    """The customer was handed off to the gateway."""

    __version__ = 1

    payment_id = Identifier(required=True)
    order_id = Identifier(required=True)
    gateway_reference = String(required=True, max_length=100)
    amount = Float(required=True)
    currency = String(max_length=3)
    started_at = DateTime(required=True)


@storefront.event(part_of="Payment")
class PaymentVerified:
    """The gateway confirmed the transaction."""

    __version__ = 1

    payment_id = Identifier(required=True)
    order_id = Identifier(required=True)
    gateway_reference = String(required=True, max_length=100)
    verified_amount = Float()
    verified_at = DateTime(required=True)


@storefront.event(part_of="Payment")
class PaymentRejected:
    """The gateway reported the transaction as unsuccessful."""

    __version__ = 1

    payment_id = Identifier(required=True)
    order_id = Identifier(required=True)
    gateway_reference = String(required=True, max_length=100)
    reason = String(max_length=500)
    rejected_at = DateTime(required=True)
