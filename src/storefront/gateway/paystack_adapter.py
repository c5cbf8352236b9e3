"""Paystack gateway adapter.

Talks to the Paystack REST API with httpx. Amounts travel in the minor unit
(kobo) and are converted to and from major units here. Every request has a
bounded timeout; timeouts, transport errors, 5xx answers and API-level
refusals (``"status": false``, no transaction status) become
``ExternalServiceError`` ("unknown, try later"), never a failed payment.
"""

import json

import httpx
import structlog

from storefront.errors import ExternalServiceError
from storefront.gateway.port import InitializationResult, PaymentGateway, VerificationResult

logger = structlog.get_logger(__name__)

DEFAULT_BASE_URL = "https://api.paystack.co"
DEFAULT_TIMEOUT_SECONDS = 10.0


class PaystackGateway(PaymentGateway):
    name = "paystack"

    def __init__(
        self,
        secret_key: str,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._client = httpx.Client(
            base_url=base_url,
            timeout=timeout,
            headers={
                "Authorization": f"Bearer {secret_key}",
                "Content-Type": "application/json",
            },
            transport=transport,
        )

    def close(self) -> None:
        self._client.close()

    def _request(self, method: str, path: str, **kwargs) -> dict:
        try:
            response = self._client.request(method, path, **kwargs)
        except httpx.TimeoutException as exc:
            logger.warning("Paystack request timed out", path=path)
            raise ExternalServiceError(f"Paystack timed out on {path}") from exc
        except httpx.HTTPError as exc:
            logger.warning("Paystack request failed", path=path, error=str(exc))
            raise ExternalServiceError(f"Paystack unreachable: {exc}") from exc

        if response.status_code >= 500:
            raise ExternalServiceError(f"Paystack returned HTTP {response.status_code}")

        try:
            return response.json()
        except json.JSONDecodeError as exc:
            raise ExternalServiceError("Paystack returned a non-JSON body") from exc

    def initialize_transaction(
        self,
        reference: str,
        email: str | None,
        amount: float,
        currency: str,
        callback_url: str | None = None,
    ) -> InitializationResult:
        payload = {
            "email": email,
            "amount": int(round(amount * 100)),
            "currency": currency,
            "reference": reference,
        }
        if callback_url:
            payload["callback_url"] = callback_url

        body = self._request("POST", "/transaction/initialize", json=payload)
        if not body.get("status"):
            raise ExternalServiceError(body.get("message") or "Paystack refused to initialize the transaction")

        data = body.get("data") or {}
        return InitializationResult(
            reference=data.get("reference", reference),
            authorization_url=data.get("authorization_url"),
            access_code=data.get("access_code"),
        )

    def verify_transaction(self, reference: str) -> VerificationResult:
        body = self._request("GET", f"/transaction/verify/{reference}")
        data = body.get("data") or {}
        gateway_status = data.get("status")

        # Only a reported transaction status is a verdict; an API-level refusal
        # (bad key, unknown reference, 4xx) says nothing about the payment.
        if body.get("status") is not True or not gateway_status:
            logger.warning(
                "Paystack did not report a transaction outcome",
                reference=reference,
                message=body.get("message"),
            )
            raise ExternalServiceError(body.get("message") or f"Paystack could not verify {reference}")

        amount = data.get("amount")
        success = gateway_status == "success"
        return VerificationResult(
            success=success,
            reference=data.get("reference", reference),
            amount=amount / 100 if amount is not None else None,
            currency=data.get("currency"),
            gateway_status=gateway_status,
            gateway_response=data.get("gateway_response"),
            failure_reason=None if success else (data.get("gateway_response") or gateway_status),
        )
