"""Integration tests for the checkout and order endpoints via TestClient."""

from protean import current_domain

from storefront.discount.management import CreateAffiliateCode, CreateBonusCode
from storefront.order.order import Order, OrderStatus

ITEMS = [{"item_id": "tpl-001", "item_name": "Agency", "quantity": 1, "unit_price": 5000.0}]


def _bonus(code="SAVE10", percent=10.0):
    current_domain.process(CreateBonusCode(code=code, discount_percent=percent), asynchronous=False)


class TestApplyDiscountAPI:
    def test_apply_returns_totals_and_session(self, client):
        _bonus()
        response = client.post("/checkout/discount", json={"items": ITEMS, "code": "save10"})

        assert response.status_code == 200
        body = response.json()
        assert body["totals"] == {"subtotal": 5000.0, "discount": 500.0, "total": 4500.0, "item_count": 1}
        assert body["session"]["code"] == "SAVE10"
        assert body["session"]["variant"] == "Bonus"
        assert body["superseded_code"] is None

    def test_unknown_code_is_404(self, client):
        response = client.post("/checkout/discount", json={"items": ITEMS, "code": "NOPE"})
        assert response.status_code == 404

    def test_blank_code_is_400(self, client):
        response = client.post("/checkout/discount", json={"items": ITEMS, "code": "  "})
        assert response.status_code == 400

    def test_reapplied_code_is_409(self, client):
        _bonus()
        session = client.post("/checkout/discount", json={"items": ITEMS, "code": "SAVE10"}).json()["session"]

        response = client.post("/checkout/discount", json={"items": ITEMS, "code": "SAVE10", "session": session})

        assert response.status_code == 409

    def test_new_code_supersedes(self, client):
        _bonus()
        current_domain.process(CreateAffiliateCode(code="PARTNER", owner_id="aff-001"), asynchronous=False)
        session = client.post("/checkout/discount", json={"items": ITEMS, "code": "PARTNER"}).json()["session"]

        response = client.post("/checkout/discount", json={"items": ITEMS, "code": "SAVE10", "session": session})

        assert response.status_code == 200
        assert response.json()["superseded_code"] == "PARTNER"
        assert response.json()["totals"]["total"] == 4500.0

    def test_remove_discount(self, client):
        _bonus()
        session = client.post("/checkout/discount", json={"items": ITEMS, "code": "SAVE10"}).json()["session"]

        response = client.request("DELETE", "/checkout/discount", json={"items": ITEMS, "session": session})

        assert response.status_code == 200
        assert response.json()["totals"]["total"] == 5000.0
        assert response.json()["session"]["code"] is None


class TestOrderAPI:
    def test_create_order_is_201(self, client):
        _bonus()
        session = client.post("/checkout/discount", json={"items": ITEMS, "code": "SAVE10"}).json()["session"]

        response = client.post(
            "/checkout/orders",
            json={"items": ITEMS, "session": session, "customer_email": "buyer@example.com"},
        )

        assert response.status_code == 201
        order = current_domain.repository_for(Order).get(response.json()["order_id"])
        assert order.status == OrderStatus.PENDING.value
        assert order.total_amount == 4500.0
        assert order.discount.code == "SAVE10"

    def test_empty_cart_is_422(self, client):
        response = client.post("/checkout/orders", json={"items": []})
        assert response.status_code == 422

    def test_read_order(self, client):
        order_id = client.post("/checkout/orders", json={"items": ITEMS}).json()["order_id"]

        response = client.get(f"/orders/{order_id}")

        assert response.status_code == 200
        assert response.json()["status"] == OrderStatus.PENDING.value
        assert response.json()["items"][0]["item_id"] == "tpl-001"

    def test_unknown_order_is_404(self, client):
        assert client.get("/orders/ord-missing").status_code == 404

    def test_start_payment(self, client):
        order_id = client.post("/checkout/orders", json={"items": ITEMS}).json()["order_id"]

        response = client.post(f"/checkout/orders/{order_id}/payment", json={})

        assert response.status_code == 200
        assert response.json()["authorization_url"].startswith("https://checkout.fake-gateway.test/")
