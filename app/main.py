# =============================================================================
# app/main.py - FastAPI Application Entry Point
# =============================================================================
# This is the main entry point for the AKUSHO Store API.
# It configures the FastAPI application with middleware, routers, and handlers.
#
# Usage:
#   uvicorn app.main:app --reload
# =============================================================================

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.config import settings
from app.exceptions import (
    StoreException,
    http_exception_handler,
    store_exception_handler,
    validation_exception_handler,
)
from app.routers import (
    catalog,
    checkout,
    coupons,
    email,
    finance,
    health,
    inventory,
    orders,
    shipping,
)
from app.auth import routes as auth_routes

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

API_VERSION = "1.0.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Logs the environment and which external services are configured.
    """
    logger.info(f"Starting AKUSHO Store API in {settings.ENVIRONMENT} mode")
    logger.info(f"CORS origins: {settings.cors_origins_list}")
    logger.info(f"Email dispatch mode: {settings.EMAIL_DISPATCH_MODE}")
    if not settings.RAZORPAY_KEY_SECRET:
        logger.warning("RAZORPAY_KEY_SECRET is not set; checkout will fail")
    if not settings.SHIPROCKET_EMAIL:
        logger.warning("Shiprocket credentials are not set; shipping rates use the fallback")

    yield

    logger.info("Shutting down AKUSHO Store API")


# Create FastAPI application
app = FastAPI(
    title="AKUSHO Store API",
    description="""
## Anime collectibles storefront and back-office API

### Order lifecycle

1. **Checkout** - `POST /api/checkout/create-order` creates a payment order
2. **Verify** - `POST /api/checkout/verify` checks the payment signature
3. **Pack** - `POST /api/admin/inventory/pack` deducts stock per suborder
4. **Dispatch** - `POST /api/admin/orders/{id}/actions` assigns a courier
5. **Track** - courier webhooks move the order to shipped / delivered
""",
    version=API_VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
    openapi_tags=[
        {"name": "Auth", "description": "Signed-in profile and welcome email"},
        {"name": "Checkout", "description": "Order creation and payment verification"},
        {"name": "Coupons", "description": "Coupon validation"},
        {"name": "Orders", "description": "Order lookup"},
        {"name": "Admin Orders", "description": "Order list, edits, lifecycle actions, returns"},
        {"name": "Inventory", "description": "Packing, restocking and packing history"},
        {"name": "Catalog", "description": "Products, categories and spotlight"},
        {"name": "Shipping", "description": "Rates, shipments and tracking"},
        {"name": "Admin Shipping", "description": "Courier actions"},
        {"name": "Webhooks", "description": "Courier status pushes"},
        {"name": "Finance", "description": "Ledger and offline invoices"},
        {"name": "Email", "description": "Transactional emails"},
        {"name": "Health", "description": "API health and readiness checks"},
    ],
)


# =============================================================================
# Middleware
# =============================================================================

# CORS middleware - allows cross-origin requests
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list if settings.is_production else ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# =============================================================================
# Exception Handlers
# =============================================================================

app.add_exception_handler(StoreException, store_exception_handler)
app.add_exception_handler(StarletteHTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)


@app.exception_handler(Exception)
async def handle_general_exception(request: Request, exc: Exception):
    """Handle unexpected exceptions."""
    logger.exception(f"Unexpected error on {request.method} {request.url.path}: {exc}")
    return JSONResponse(
        status_code=500,
        content={
            "error": "An unexpected error occurred",
            "code": "INTERNAL_ERROR",
        }
    )


# =============================================================================
# Routers
# =============================================================================

# Authentication endpoints
app.include_router(auth_routes.router, prefix="/api/auth", tags=["Auth"])
app.include_router(auth_routes.profile_router, prefix="/api", tags=["Auth"])

# Health check endpoints
app.include_router(health.router, prefix="/api", tags=["Health"])

# Storefront
app.include_router(checkout.router, prefix="/api/checkout", tags=["Checkout"])
app.include_router(coupons.router, prefix="/api/coupons", tags=["Coupons"])
app.include_router(orders.router, prefix="/api/orders", tags=["Orders"])
app.include_router(catalog.products_router, prefix="/api/products", tags=["Catalog"])
app.include_router(catalog.categories_router, prefix="/api/categories", tags=["Catalog"])
app.include_router(catalog.settings_router, prefix="/api/settings", tags=["Catalog"])
app.include_router(shipping.router, prefix="/api/shipping", tags=["Shipping"])
app.include_router(email.router, prefix="/api/email", tags=["Email"])

# Courier webhooks
app.include_router(shipping.webhook_router, prefix="/api/webhooks", tags=["Webhooks"])

# Back-office
app.include_router(orders.admin_router, prefix="/api/admin/orders", tags=["Admin Orders"])
app.include_router(inventory.pack_router, prefix="/api/admin/inventory", tags=["Inventory"])
app.include_router(inventory.router, prefix="/api/inventory", tags=["Inventory"])
app.include_router(shipping.admin_router, prefix="/api/admin/shipping", tags=["Admin Shipping"])
app.include_router(finance.router, prefix="/api/admin/finance", tags=["Finance"])
app.include_router(finance.invoices_router, prefix="/api/admin/invoices", tags=["Finance"])


# =============================================================================
# Root Endpoint
# =============================================================================

@app.get("/", tags=["Root"])
async def root():
    """
    Root endpoint - returns API info.
    """
    return {
        "name": "AKUSHO Store API",
        "version": API_VERSION,
        "docs": "/docs",
        "health": "/api/health",
    }
