"""Configurable fake payment gateway for development and testing.

Remembers the amount of every initialized transaction so verification
reports it back, the way the real gateway does. Can be told to decline,
to time out, or to report a different amount.
"""

from uuid import uuid4

from storefront.errors import ExternalServiceError
from storefront.gateway.port import InitializationResult, PaymentGateway, VerificationResult


class FakeGateway(PaymentGateway):
    """Configurable fake payment gateway."""

    name = "fake"

    def __init__(self) -> None:
        self.should_succeed: bool = True
        self.should_time_out: bool = False
        self.failure_reason: str = "Declined"
        self.amount_override: float | None = None
        self.transactions: dict[str, dict] = {}
        self.calls: list[dict] = []

    def configure(
        self,
        should_succeed: bool = True,
        failure_reason: str = "Declined",
        should_time_out: bool = False,
        amount_override: float | None = None,
    ) -> None:
        """Configure gateway behavior at runtime."""
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason
        self.should_time_out = should_time_out
        self.amount_override = amount_override

    def initialize_transaction(
        self,
        reference: str,
        email: str | None,
        amount: float,
        currency: str,
        callback_url: str | None = None,
    ) -> InitializationResult:
        self.calls.append(
            {
                "method": "initialize_transaction",
                "reference": reference,
                "email": email,
                "amount": amount,
                "currency": currency,
            }
        )
        self.transactions[reference] = {"amount": amount, "currency": currency}
        return InitializationResult(
            reference=reference,
            authorization_url=f"https://checkout.fake-gateway.test/{reference}",
            access_code=uuid4().hex[:12],
        )

    def verify_transaction(self, reference: str) -> VerificationResult:
        self.calls.append({"method": "verify_transaction", "reference": reference})

        if self.should_time_out:
            raise ExternalServiceError(f"Timed out verifying {reference}")

        known = self.transactions.get(reference, {})
        amount = self.amount_override if self.amount_override is not None else known.get("amount")

        if self.should_succeed:
            return VerificationResult(
                success=True,
                reference=reference,
                amount=amount,
                currency=known.get("currency"),
                gateway_status="success",
                gateway_response="Approved",
            )
        return VerificationResult(
            success=False,
            reference=reference,
            amount=amount,
            currency=known.get("currency"),
            gateway_status="failed",
            failure_reason=self.failure_reason,
        )

    def verification_count(self, reference: str | None = None) -> int:
        return sum(
            1
            for call in self.calls
            if call["method"] == "verify_transaction" and (reference is None or call["reference"] == reference)
        )
