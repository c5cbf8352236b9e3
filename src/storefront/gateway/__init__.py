"""Payment gateway factory.

Provides get_gateway() / set_gateway() to swap implementations:
- PaystackGateway when PAYSTACK_SECRET_KEY is set
- FakeGateway otherwise (development and testing)
"""

import os

from storefront.gateway.fake_adapter import FakeGateway
from storefront.gateway.paystack_adapter import DEFAULT_BASE_URL, DEFAULT_TIMEOUT_SECONDS, PaystackGateway
from storefront.gateway.port import PaymentGateway

_current_gateway: PaymentGateway | None = None


def _gateway_from_env() -> PaymentGateway:
    secret_key = os.getenv("PAYSTACK_SECRET_KEY")
    if not secret_key:
        return FakeGateway()
    return PaystackGateway(
        secret_key=secret_key,
        base_url=os.getenv("PAYSTACK_BASE_URL", DEFAULT_BASE_URL),
        timeout=float(os.getenv("GATEWAY_TIMEOUT_SECONDS", DEFAULT_TIMEOUT_SECONDS)),
    )


def get_gateway() -> PaymentGateway:
    """Return the current payment gateway."""
    global _current_gateway
    if _current_gateway is None:
        _current_gateway = _gateway_from_env()
    return _current_gateway


def set_gateway(gateway: PaymentGateway) -> None:
    """Override the active payment gateway (useful for tests)."""
    global _current_gateway
    _current_gateway = gateway


def reset_gateway() -> None:
    """Reset to default gateway."""
    global _current_gateway
    _current_gateway = None
