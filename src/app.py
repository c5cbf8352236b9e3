"""Storefront FastAPI application.

Processes commands synchronously via HTTP. Every request is wrapped in the
storefront domain context.

Usage:
    uvicorn app:app --app-dir src --host 0.0.0.0 --port 8000 --reload
"""

# ---------------------------------------------------------------------------
# Logging and domain initialization
# ---------------------------------------------------------------------------
# The domain is initialized at module level so uvicorn workers share it.
# PROTEAN_ENV selects the config overlay in storefront/domain.toml:
#   - "test"       → memory provider
#   - "production" → PostgreSQL via DATABASE_URL
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from protean.integrations.fastapi import register_exception_handlers

from storefront.domain import storefront
from storefront.errors import ConsistencyError, ExternalServiceError, LimitExceeded
from storefront.utils.logging import configure_logging

configure_logging()
storefront.init()

# ---------------------------------------------------------------------------
# FastAPI app
# ---------------------------------------------------------------------------
app = FastAPI(
    title="Storefront API",
    description="Template storefront — discounts, orders, payment settlement, downloads and email queue",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def domain_context_middleware(request: Request, call_next):
    """Push the storefront domain context for each request."""
    with storefront.domain_context():
        response = await call_next(request)
    return response


# ---------------------------------------------------------------------------
# Error mapping
# ---------------------------------------------------------------------------
register_exception_handlers(app)


@app.exception_handler(LimitExceeded)
async def limit_exceeded_handler(request: Request, exc: LimitExceeded) -> JSONResponse:
    return JSONResponse(status_code=403, content={"error": str(exc)})


@app.exception_handler(ExternalServiceError)
async def external_service_handler(request: Request, exc: ExternalServiceError) -> JSONResponse:
    return JSONResponse(status_code=502, content={"error": "Upstream service unavailable, try again later"})


@app.exception_handler(ConsistencyError)
async def consistency_handler(request: Request, exc: ConsistencyError) -> JSONResponse:
    return JSONResponse(status_code=500, content={"error": "Something went wrong, support has been notified"})


# ---------------------------------------------------------------------------
# Routers
# ---------------------------------------------------------------------------
from storefront.api import (  # noqa: E402
    checkout_router,
    download_router,
    notification_router,
    order_router,
    payment_router,
)

app.include_router(checkout_router)
app.include_router(order_router)
app.include_router(payment_router)
app.include_router(download_router)
app.include_router(notification_router)


# ---------------------------------------------------------------------------
# Health / root
# ---------------------------------------------------------------------------
@app.get("/health")
async def health():
    return JSONResponse(
        content={
            "status": "ok",
            "domain": {"name": storefront.name},
        }
    )
