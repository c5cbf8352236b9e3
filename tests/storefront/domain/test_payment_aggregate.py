"""Tests for the Payment aggregate."""

from storefront.payment.events import PaymentRejected, PaymentStarted, PaymentVerified
from storefront.payment.payment import Payment, PaymentStatus


def _make_payment(**overrides):
    defaults = {
        "order_id": "ord-001",
        "gateway_reference": "tx_abc123",
        "amount": 5600.0,
        "currency": "NGN",
        "gateway_name": "fake",
    }
    defaults.update(overrides)
    return Payment.start(**defaults)


class TestPaymentStart:
    def test_starts_pending(self):
        payment = _make_payment()
        assert payment.status == PaymentStatus.PENDING.value
        assert payment.gateway_reference == "tx_abc123"
        assert isinstance(payment._events[-1], PaymentStarted)


class TestPaymentResult:
    def test_record_verified(self):
        payment = _make_payment()
        assert payment.record_verified(5600.0, '{"status": "success"}') is True
        assert payment.status == PaymentStatus.VERIFIED.value
        assert payment.verified_amount == 5600.0
        assert payment.verified_at is not None
        assert isinstance(payment._events[-1], PaymentVerified)

    def test_record_failed(self):
        payment = _make_payment()
        assert payment.record_failed("Declined") is True
        assert payment.status == PaymentStatus.FAILED.value
        assert isinstance(payment._events[-1], PaymentRejected)

    def test_terminal_payment_ignores_second_result(self):
        payment = _make_payment()
        payment.record_failed("Declined")
        assert payment.record_verified(5600.0) is False
        assert payment.status == PaymentStatus.FAILED.value
