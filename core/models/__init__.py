# =============================================================================
# core/models/ - Pydantic Data Models
# =============================================================================
# This package contains Pydantic schemas for request validation:
# - order.py: Order/payment statuses, checkout and admin order bodies
# - coupon.py: Coupon validation schemas
# - inventory.py: Packing and restock schemas
# - catalog.py: Product, category and spotlight schemas
# - shipping.py: Rates, shipments, admin courier actions, webhook payload
# - finance.py: Ledger entries and offline invoices
# - email.py: Email types and send requests
#
# These models define the "contract" between API and clients.
# =============================================================================

# -----------------------------------------------------------------------------
# Order Models - Checkout and lifecycle
# -----------------------------------------------------------------------------
from .order import (
    BulkOrderRequest,
    CartItem,
    CreateOrderRequest,
    CustomerDetails,
    OrderAction,
    OrderActionRequest,
    OrderPatchRequest,
    OrderStatus,
    PaymentStatus,
    RETURN_REASON_LABELS,
    ReturnReason,
    ReturnRequest,
    ShippingAddress,
    VerifyPaymentRequest,
)

# -----------------------------------------------------------------------------
# Coupon Models
# -----------------------------------------------------------------------------
from .coupon import AppliedCoupon, CouponValidateRequest, DiscountType

# -----------------------------------------------------------------------------
# Inventory Models - Packing and restocking
# -----------------------------------------------------------------------------
from .inventory import (
    AddStockRequest,
    PackRequest,
    StockChangeType,
    StockEntry,
    StockReferenceType,
)

# -----------------------------------------------------------------------------
# Catalog Models
# -----------------------------------------------------------------------------
from .catalog import (
    CategoryCreate,
    ProductCreate,
    ProductImage,
    ProductUpdate,
    SpotlightRequest,
)

# -----------------------------------------------------------------------------
# Shipping Models
# -----------------------------------------------------------------------------
from .shipping import (
    AdminShippingAction,
    AdminShippingRequest,
    CreateShipmentRequest,
    ShippingCalculateRequest,
    ShippingCheckRequest,
    ShiprocketWebhookPayload,
    TrackBulkRequest,
)

# -----------------------------------------------------------------------------
# Finance Models
# -----------------------------------------------------------------------------
from .finance import (
    EntryType,
    FinancialEntryCreate,
    FinancialEntryUpdate,
    InvoiceCreate,
    InvoiceEmailRequest,
)

# -----------------------------------------------------------------------------
# Email Models
# -----------------------------------------------------------------------------
from .email import EmailType, PUBLIC_EMAIL_TYPES, SendEmailRequest, WelcomeRequest

__all__ = [
    # Order
    "BulkOrderRequest",
    "CartItem",
    "CreateOrderRequest",
    "CustomerDetails",
    "OrderAction",
    "OrderActionRequest",
    "OrderPatchRequest",
    "OrderStatus",
    "PaymentStatus",
    "RETURN_REASON_LABELS",
    "ReturnReason",
    "ReturnRequest",
    "ShippingAddress",
    "VerifyPaymentRequest",
    # Coupon
    "AppliedCoupon",
    "CouponValidateRequest",
    "DiscountType",
    # Inventory
    "AddStockRequest",
    "PackRequest",
    "StockChangeType",
    "StockEntry",
    "StockReferenceType",
    # Catalog
    "CategoryCreate",
    "ProductCreate",
    "ProductImage",
    "ProductUpdate",
    "SpotlightRequest",
    # Shipping
    "AdminShippingAction",
    "AdminShippingRequest",
    "CreateShipmentRequest",
    "ShippingCalculateRequest",
    "ShippingCheckRequest",
    "ShiprocketWebhookPayload",
    "TrackBulkRequest",
    # Finance
    "EntryType",
    "FinancialEntryCreate",
    "FinancialEntryUpdate",
    "InvoiceCreate",
    "InvoiceEmailRequest",
    # Email
    "EmailType",
    "PUBLIC_EMAIL_TYPES",
    "SendEmailRequest",
    "WelcomeRequest",
]
