# =============================================================================
# core/services/__init__.py - Service Layer Exports
# =============================================================================

from .catalog_service import CatalogService
from .checkout_service import CheckoutService
from .coupon_service import CouponService
from .finance_service import FinanceService
from .inventory_service import InventoryService
from .notification_service import NotificationService
from .order_service import OrderService
from .shipping_service import ShippingService

__all__ = [
    "CatalogService",
    "CheckoutService",
    "CouponService",
    "FinanceService",
    "InventoryService",
    "NotificationService",
    "OrderService",
    "ShippingService",
]
