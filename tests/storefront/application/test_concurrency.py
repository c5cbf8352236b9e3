"""Application tests for overlapping settlements and drains, each in its own thread."""

import threading

from protean import current_domain

from storefront.discount.checkout import apply_discount_code
from storefront.discount.codes import BonusCode
from storefront.discount.management import CreateBonusCode
from storefront.discount.resolver import Cart, SessionDiscountState
from storefront.domain import storefront
from storefront.download.token import DownloadToken
from storefront.notification.notification import NotificationStatus, NotificationTemplate, QueuedNotification
from storefront.notification.queue import enqueue
from storefront.notification.worker import drain
from storefront.order.order import Order, OrderStatus
from storefront.payment.initiation import start_payment
from storefront.payment.settlement import settle


def _run_together(*calls):
    """Start every call at once, each thread in its own domain context."""
    barrier = threading.Barrier(len(calls))
    lock = threading.Lock()
    results, errors = [], []

    def worker(call):
        with storefront.domain_context():
            barrier.wait()
            try:
                result = call()
            except Exception as exc:  # collected and asserted on by the caller
                with lock:
                    errors.append(exc)
            else:
                with lock:
                    results.append(result)

    threads = [threading.Thread(target=worker, args=(call,), name=f"worker-{i}") for i, call in enumerate(calls)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=30)
    assert not any(thread.is_alive() for thread in threads)
    return results, errors


def _count(aggregate_cls, **filters):
    return current_domain.repository_for(aggregate_cls)._dao.query.filter(**filters).count()


class TestConcurrentSettlement:
    def test_racing_settlements_have_one_effect(self, place_order):
        order_id = place_order()
        start_payment(order_id, gateway_reference="tx_race")

        outcomes, errors = _run_together(*[lambda: settle("tx_race")] * 4)

        assert errors == []
        assert {outcome.status for outcome in outcomes} == {OrderStatus.PAID.value}
        assert current_domain.repository_for(Order).get(order_id).status == OrderStatus.PAID.value
        assert _count(DownloadToken, order_id=order_id) == 1
        assert _count(QueuedNotification, order_id=order_id) == 1

    def test_bonus_usage_counts_every_order_settled_at_once(self, place_order):
        current_domain.process(CreateBonusCode(code="LAUNCH", discount_percent=10.0), asynchronous=False)
        cart = Cart.from_items([{"item_id": "tpl-0", "unit_price": 5000.0}])
        session = apply_discount_code(cart, "LAUNCH", SessionDiscountState()).session

        references = []
        for i in range(3):
            reference = f"tx_launch{i}"
            start_payment(place_order(session=session), gateway_reference=reference)
            references.append(reference)

        _, errors = _run_together(*[lambda ref=ref: settle(ref) for ref in references])

        assert errors == []
        bonus = current_domain.repository_for(BonusCode)._dao.find_by(code="LAUNCH")
        assert bonus.usage_count == 3
        assert bonus.total_sales_generated == 13500.0


class TestConcurrentDrain:
    def test_overlapping_drains_send_each_row_once(self, mailbox):
        recipients = [f"user{i}@example.com" for i in range(32)]
        for recipient in recipients:
            enqueue(recipient, NotificationTemplate.OTP_CODE.value, {"otp_code": "123456"})

        reports, errors = _run_together(drain, drain, drain)

        assert errors == []
        assert sum(report.sent for report in reports) == 32
        assert sorted(email["to"] for email in mailbox.sent_emails) == sorted(recipients)
        assert _count(QueuedNotification, status=NotificationStatus.SENT.value) == 32
