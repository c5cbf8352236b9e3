"""Pydantic request/response schemas for the storefront API.

These are external contracts (anti-corruption layer) — separate from
internal Protean commands.
"""

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Shared sub-models
# ---------------------------------------------------------------------------
class CartLineSchema(BaseModel):
    item_id: str
    item_name: str | None = None
    quantity: int = Field(ge=1, default=1)
    unit_price: float = Field(ge=0)
    file_id: str | None = None


class SessionDiscountSchema(BaseModel):
    variant: str | None = None
    code: str | None = None
    discount_percent: float = 0.0
    owner_id: str | None = None


class TotalsSchema(BaseModel):
    subtotal: float
    discount: float
    total: float
    item_count: int


# ---------------------------------------------------------------------------
# Checkout Request Schemas
# ---------------------------------------------------------------------------
class ApplyDiscountRequest(BaseModel):
    items: list[CartLineSchema] = Field(min_length=1)
    code: str
    session: SessionDiscountSchema | None = None

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "items": [{"item_id": "tpl-001", "item_name": "Landing page", "quantity": 1, "unit_price": 5000}],
                    "code": "SAVE20",
                    "session": None,
                }
            ]
        }
    }


class RemoveDiscountRequest(BaseModel):
    items: list[CartLineSchema] = Field(min_length=1)
    session: SessionDiscountSchema | None = None


class CreateOrderRequest(BaseModel):
    items: list[CartLineSchema] = Field(min_length=1)
    session: SessionDiscountSchema | None = None
    customer_id: str | None = None
    customer_email: str | None = None
    customer_name: str | None = None
    currency: str = "NGN"


class StartPaymentRequest(BaseModel):
    callback_url: str | None = None


class RegenerateDownloadRequest(BaseModel):
    order_id: str
    file_id: str
    notify: bool = False


# ---------------------------------------------------------------------------
# Response Schemas
# ---------------------------------------------------------------------------
class DiscountResponse(BaseModel):
    totals: TotalsSchema
    session: SessionDiscountSchema
    superseded_code: str | None = None


class OrderIdResponse(BaseModel):
    order_id: str


class PaymentStartedResponse(BaseModel):
    reference: str
    authorization_url: str | None = None
    access_code: str | None = None


class OrderItemResponse(BaseModel):
    item_id: str
    item_name: str | None = None
    quantity: int
    unit_price: float
    subtotal: float
    file_id: str | None = None


class OrderResponse(BaseModel):
    order_id: str
    status: str
    currency: str
    subtotal: float
    discount_amount: float
    total_amount: float
    discount_code: str | None = None
    gateway_reference: str | None = None
    payment_verified_at: str | None = None
    items: list[OrderItemResponse]


class DownloadTokenResponse(BaseModel):
    token: str
    url: str


class QueueTriggerResponse(BaseModel):
    status: str
    mode: str
    stats: dict | None = None
