"""FastAPI routes for the storefront — checkout, settlement, downloads, queue."""

import os

import structlog
from fastapi import APIRouter, BackgroundTasks
from fastapi.responses import PlainTextResponse, RedirectResponse, StreamingResponse

from storefront.api.schemas import (
    ApplyDiscountRequest,
    CreateOrderRequest,
    DiscountResponse,
    DownloadTokenResponse,
    OrderIdResponse,
    OrderItemResponse,
    OrderResponse,
    PaymentStartedResponse,
    QueueTriggerResponse,
    RegenerateDownloadRequest,
    RemoveDiscountRequest,
    SessionDiscountSchema,
    StartPaymentRequest,
    TotalsSchema,
)
from storefront.discount.checkout import apply_discount_code, price_for_checkout, remove_discount_code
from storefront.discount.resolver import Cart, PricedCart, SessionDiscountState
from storefront.domain import storefront
from storefront.download.issuance import regenerate_download_token
from storefront.download.redemption import redeem
from storefront.download.storage import content_disposition
from storefront.download.token import download_url
from storefront.errors import (
    ConsistencyError,
    Expired,
    ExternalServiceError,
    LimitExceeded,
    NotFoundError,
    ReferenceNotFound,
    ValidationError,
)
from storefront.notification.worker import DEFAULT_BATCH_SIZE, DrainMode, drain, queue_stats
from storefront.order.creation import create_pending_order
from storefront.order.order import OrderStatus
from storefront.order.queries import get_order
from storefront.payment.initiation import start_payment
from storefront.payment.settlement import settle

logger = structlog.get_logger(__name__)


def _cart(items) -> Cart:
    return Cart.from_items([item.model_dump() for item in items])


def _session(schema: SessionDiscountSchema | None) -> SessionDiscountState:
    return SessionDiscountState.from_dict(schema.model_dump() if schema else None)


def _totals(priced: PricedCart) -> TotalsSchema:
    return TotalsSchema(
        subtotal=priced.subtotal,
        discount=priced.discount,
        total=priced.total,
        item_count=priced.item_count,
    )


# ---------------------------------------------------------------------------
# Checkout Router
# ---------------------------------------------------------------------------
checkout_router = APIRouter(prefix="/checkout", tags=["checkout"])


@checkout_router.post("/discount", response_model=DiscountResponse)
async def apply_discount(body: ApplyDiscountRequest) -> DiscountResponse:
    """Apply a code to the cart, replacing any code the session already holds."""
    resolution = apply_discount_code(_cart(body.items), body.code, _session(body.session))
    return DiscountResponse(
        totals=_totals(resolution.priced),
        session=SessionDiscountSchema(**resolution.session.to_dict()),
        superseded_code=resolution.superseded.code if resolution.superseded else None,
    )


@checkout_router.delete("/discount", response_model=DiscountResponse)
async def remove_discount(body: RemoveDiscountRequest) -> DiscountResponse:
    priced, session = remove_discount_code(_cart(body.items), _session(body.session))
    return DiscountResponse(totals=_totals(priced), session=SessionDiscountSchema(**session.to_dict()))


@checkout_router.post("/orders", status_code=201, response_model=OrderIdResponse)
async def create_order(body: CreateOrderRequest) -> OrderIdResponse:
    cart = _cart(body.items)
    priced, applied = price_for_checkout(cart, _session(body.session))
    order_id = create_pending_order(
        cart,
        priced,
        applied=applied,
        customer_id=body.customer_id,
        customer_email=body.customer_email,
        customer_name=body.customer_name,
        currency=body.currency,
    )
    return OrderIdResponse(order_id=order_id)


@checkout_router.post("/orders/{order_id}/payment", response_model=PaymentStartedResponse)
async def begin_payment(order_id: str, body: StartPaymentRequest) -> PaymentStartedResponse:
    """Hand the order to the gateway. The customer is sent to ``authorization_url``."""
    result = start_payment(order_id, callback_url=body.callback_url)
    return PaymentStartedResponse(
        reference=result.reference,
        authorization_url=result.authorization_url,
        access_code=result.access_code,
    )


# ---------------------------------------------------------------------------
# Order Router
# ---------------------------------------------------------------------------
order_router = APIRouter(prefix="/orders", tags=["orders"])


@order_router.get("/{order_id}", response_model=OrderResponse)
async def read_order(order_id: str) -> OrderResponse:
    order = get_order(order_id)
    return OrderResponse(
        order_id=str(order.id),
        status=order.status,
        currency=order.currency,
        subtotal=order.subtotal,
        discount_amount=order.discount_amount,
        total_amount=order.total_amount,
        discount_code=order.discount.code if order.discount else None,
        gateway_reference=order.gateway_reference,
        payment_verified_at=order.payment_verified_at.isoformat() if order.payment_verified_at else None,
        items=[
            OrderItemResponse(
                item_id=str(item.item_id),
                item_name=item.item_name,
                quantity=item.quantity,
                unit_price=item.unit_price,
                subtotal=item.subtotal,
                file_id=str(item.file_id) if item.file_id else None,
            )
            for item in order.items
        ],
    )


# ---------------------------------------------------------------------------
# Payment Router
# ---------------------------------------------------------------------------
payment_router = APIRouter(prefix="/payments", tags=["payments"])


def _order_detail_url(order_id: str, flag: str) -> str:
    url = os.getenv("ORDER_DETAIL_URL", "/orders/{order_id}").format(order_id=order_id)
    separator = "&" if "?" in url else "?"
    return f"{url}{separator}payment={flag}"


@payment_router.get("/callback")
def payment_callback(reference: str | None = None):
    """Gateway return URL. Settles the order and redirects to its detail page."""
    if not reference or not reference.strip():
        return PlainTextResponse("No payment reference provided", status_code=400)

    try:
        outcome = settle(reference)
    except ReferenceNotFound:
        logger.warning("Callback for unknown payment reference", gateway_reference=reference)
        return PlainTextResponse("Payment reference not found", status_code=404)
    except ExternalServiceError as exc:
        logger.warning("Payment verification unavailable", gateway_reference=reference, error=str(exc))
        return PlainTextResponse("Payment verification error occurred", status_code=500)
    except ConsistencyError:
        return PlainTextResponse("Payment verification error occurred", status_code=500)

    flag = "success" if outcome.status == OrderStatus.PAID.value else "failed"
    return RedirectResponse(_order_detail_url(outcome.order_id, flag), status_code=302)


# ---------------------------------------------------------------------------
# Download Router
# ---------------------------------------------------------------------------
download_router = APIRouter(prefix="/downloads", tags=["downloads"])

_DOWNLOAD_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Cache-Control": "private, no-cache, no-store, must-revalidate",
    "Pragma": "no-cache",
    "Expires": "0",
}


@download_router.get("")
def download(token: str | None = None):
    """Redeem a token and stream the file (or redirect to its external URL)."""
    if not token or not token.strip():
        return PlainTextResponse("Invalid download link: the token is missing", status_code=400)

    try:
        stream = redeem(token)
    except Expired:
        return PlainTextResponse("Link Expired: this download link has expired", status_code=404)
    except LimitExceeded:
        return PlainTextResponse("Download Limit Reached: contact support for a new link", status_code=403)
    except NotFoundError as exc:
        return PlainTextResponse(f"{exc}", status_code=404)

    if stream.is_redirect:
        return RedirectResponse(stream.external_url, status_code=302)

    headers = dict(_DOWNLOAD_HEADERS)
    headers["Content-Disposition"] = content_disposition(stream.file_name)
    if stream.size is not None:
        headers["Content-Length"] = str(stream.size)
    return StreamingResponse(stream.chunks, media_type=stream.mime_type, headers=headers)


@download_router.post("/regenerate", status_code=201, response_model=DownloadTokenResponse)
async def regenerate_download(body: RegenerateDownloadRequest) -> DownloadTokenResponse:
    """Operator path: revoke the live link for an (order, file) pair and mint a new one."""
    token = regenerate_download_token(body.order_id, body.file_id, notify=body.notify)
    return DownloadTokenResponse(token=token, url=download_url(token))


# ---------------------------------------------------------------------------
# Notification Queue Router
# ---------------------------------------------------------------------------
notification_router = APIRouter(prefix="/notifications", tags=["notifications"])


def _drain_in_background(batch_size: int, mode: DrainMode) -> None:
    with storefront.domain_context():
        drain(batch_size=batch_size, mode=mode)


@notification_router.get("/queue/trigger", response_model=QueueTriggerResponse)
def trigger_queue(
    background_tasks: BackgroundTasks,
    aggressive: int = 0,
    stats: int = 0,
    batch_size: int = DEFAULT_BATCH_SIZE,
) -> QueueTriggerResponse:
    """Start a drain after the response is sent, or report queue depth."""
    if stats:
        return QueueTriggerResponse(status="ok", mode="stats", stats=queue_stats())

    if batch_size < 1:
        raise ValidationError({"batch_size": ["Batch size must be at least 1"]})

    mode = DrainMode.AGGRESSIVE if aggressive else DrainMode.NORMAL
    background_tasks.add_task(_drain_in_background, batch_size, mode)
    return QueueTriggerResponse(status="queued", mode=mode.value)
