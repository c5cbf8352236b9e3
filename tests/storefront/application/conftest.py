import pytest
from protean import current_domain

from storefront.discount.checkout import price_for_checkout
from storefront.discount.resolver import Cart, SessionDiscountState
from storefront.download.registration import RegisterDigitalFile
from storefront.order.creation import create_pending_order
from storefront.payment.initiation import start_payment
from storefront.payment.settlement import settle


@pytest.fixture()
def register_file(tmp_path):
    """Register a DigitalFile backed by a real file under ``tmp_path``."""

    def _register(file_name="landing-page.zip", content=b"PK\x03\x04template-bytes", **overrides):
        path = tmp_path / file_name
        path.write_bytes(content)
        fields = {"file_name": file_name, "file_path": str(path), "mime_type": "application/zip"}
        fields.update(overrides)
        return current_domain.process(RegisterDigitalFile(**fields), asynchronous=False)

    return _register


@pytest.fixture()
def place_order(register_file):
    """Price a cart of digital templates and record it as a pending order."""

    def _place(file_ids=None, unit_price=5000.0, customer_email="buyer@example.com", session=None):
        if file_ids is None:
            file_ids = [register_file()]
        cart = Cart.from_items(
            [
                {
                    "item_id": f"tpl-{i}",
                    "item_name": f"Template {i}",
                    "quantity": 1,
                    "unit_price": unit_price,
                    "file_id": file_id,
                }
                for i, file_id in enumerate(file_ids)
            ]
        )
        priced, applied = price_for_checkout(cart, session or SessionDiscountState())
        return create_pending_order(
            cart, priced, applied, customer_email=customer_email, customer_name="Ada Buyer"
        )

    return _place


@pytest.fixture()
def paid_order(place_order):
    """A pending order taken through payment and a successful settlement."""

    def _pay(reference="tx_paid001", **kwargs):
        order_id = place_order(**kwargs)
        start_payment(order_id, gateway_reference=reference)
        settle(reference)
        return order_id

    return _pay
