"""Payment gateway port (abstract interface).

The gateway is the only trusted source of truth for whether money moved.
Adapters translate transport problems (timeouts, connection errors, 5xx)
into ``ExternalServiceError`` so settlement can leave the order pending
and be retried later.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class InitializationResult:
    """Where to send the customer to complete payment."""

    reference: str
    authorization_url: str | None = None
    access_code: str | None = None


@dataclass(frozen=True)
class VerificationResult:
    """Gateway's verdict on a transaction reference. Amounts are in major units."""

    success: bool
    reference: str
    amount: float | None = None
    currency: str | None = None
    gateway_status: str | None = None
    gateway_response: str | None = None
    failure_reason: str | None = None


class PaymentGateway(ABC):
    """Abstract payment gateway interface."""

    name: str = "gateway"

    @abstractmethod
    def initialize_transaction(
        self,
        reference: str,
        email: str | None,
        amount: float,
        currency: str,
        callback_url: str | None = None,
    ) -> InitializationResult:
        """Register a transaction with the gateway before handing the customer over."""
        ...

    @abstractmethod
    def verify_transaction(self, reference: str) -> VerificationResult:
        """Ask the gateway what happened to ``reference``.

        Raises:
            ExternalServiceError: the gateway could not be reached or timed out.
        """
        ...
