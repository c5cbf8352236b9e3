"""Storefront API package."""

from storefront.api.routes import (
    checkout_router,
    download_router,
    notification_router,
    order_router,
    payment_router,
)

__all__ = [
    "checkout_router",
    "download_router",
    "notification_router",
    "order_router",
    "payment_router",
]
