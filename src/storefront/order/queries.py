"""Order reads — always fresh from the repository."""

from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain

from storefront.errors import NotFoundError
from storefront.order.order import Order


def get_order(order_id: str) -> Order:
    try:
        return current_domain.repository_for(Order).get(order_id)
    except ObjectNotFoundError as exc:
        raise NotFoundError(f"Order {order_id} does not exist") from exc
