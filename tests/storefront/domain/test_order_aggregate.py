"""Tests for the Order aggregate — the pending → paid | failed ledger entry."""

import pytest
from protean.exceptions import ValidationError

from storefront.order.events import OrderPaid, OrderPaymentFailed, OrderPlaced
from storefront.order.order import Order, OrderStatus


def _lines(**overrides):
    line = {
        "item_id": "tpl-001",
        "item_name": "Agency Landing Page",
        "quantity": 1,
        "unit_price": 5000.0,
        "file_id": "file-001",
    }
    line.update(overrides)
    return [line, {"item_id": "svc-001", "item_name": "Setup service", "quantity": 2, "unit_price": 1000.0}]


def _make_order(**overrides):
    defaults = {
        "lines": _lines(),
        "subtotal": 7000.0,
        "total_amount": 5600.0,
        "discount": {
            "variant": "Affiliate",
            "code": "PARTNER",
            "discount_percent": 20.0,
            "discount_amount": 1400.0,
            "owner_id": "aff-001",
        },
        "customer_email": "buyer@example.com",
        "customer_name": "Ada Buyer",
    }
    defaults.update(overrides)
    return Order.create_pending(**defaults)


class TestOrderCreation:
    def test_starts_pending(self):
        order = _make_order()
        assert order.status == OrderStatus.PENDING.value
        assert order.is_terminal() is False

    def test_snapshots_lines_and_discount(self):
        order = _make_order()
        assert len(order.items) == 2
        assert order.discount.code == "PARTNER"
        assert order.discount_amount == 1400.0
        assert order.currency == "NGN"

    def test_digital_items_are_those_with_files(self):
        order = _make_order()
        assert [str(item.file_id) for item in order.digital_items()] == ["file-001"]

    def test_raises_order_placed(self):
        order = _make_order()
        assert isinstance(order._events[-1], OrderPlaced)
        assert order._events[-1].discount_variant == "Affiliate"

    def test_empty_order_rejected(self):
        with pytest.raises(ValidationError):
            _make_order(lines=[])

    def test_total_above_subtotal_rejected(self):
        with pytest.raises(ValidationError):
            _make_order(total_amount=9000.0)


class TestOrderTransitions:
    def test_mark_paid(self):
        order = _make_order()
        assert order.mark_paid() is True
        assert order.status == OrderStatus.PAID.value
        assert order.payment_verified_at is not None
        assert isinstance(order._events[-1], OrderPaid)

    def test_mark_paid_twice_is_noop(self):
        order = _make_order()
        order.mark_paid()
        stamped = order.payment_verified_at
        events = len(order._events)

        assert order.mark_paid() is False
        assert order.payment_verified_at == stamped
        assert len(order._events) == events

    def test_mark_failed(self):
        order = _make_order()
        assert order.mark_failed("Declined") is True
        assert order.status == OrderStatus.FAILED.value
        assert order.failure_reason == "Declined"
        assert isinstance(order._events[-1], OrderPaymentFailed)

    def test_failed_order_never_becomes_paid(self):
        order = _make_order()
        order.mark_failed("Declined")
        assert order.mark_paid() is False
        assert order.status == OrderStatus.FAILED.value

    def test_paid_order_never_becomes_failed(self):
        order = _make_order()
        order.mark_paid()
        assert order.mark_failed("late failure") is False
        assert order.status == OrderStatus.PAID.value

    def test_gateway_reference_only_while_pending(self):
        order = _make_order()
        order.attach_gateway_reference("ORD-1-abc")
        assert order.gateway_reference == "ORD-1-abc"

        order.mark_paid()
        with pytest.raises(ValidationError):
            order.attach_gateway_reference("ORD-1-def")
