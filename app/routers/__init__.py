# =============================================================================
# app/routers/ - API Route Definitions
# =============================================================================
# This package contains FastAPI routers organized by feature:
# - health.py: Health check endpoints
# - checkout.py: Order creation and payment verification
# - coupons.py: Coupon validation
# - orders.py: Order lookup, admin order list and lifecycle actions
# - inventory.py: Packing, restocking and packing history
# - catalog.py: Products, categories and the homepage spotlight
# - shipping.py: Rates, shipments, tracking, admin courier actions, webhook
# - finance.py: Back-office ledger and offline invoices
# - email.py: Transactional email sends
#
# Each router is mounted in main.py with a URL prefix.
# =============================================================================

from . import health
from . import checkout
from . import coupons
from . import orders
from . import inventory
from . import catalog
from . import shipping
from . import finance
from . import email

__all__ = [
    "health",
    "checkout",
    "coupons",
    "orders",
    "inventory",
    "catalog",
    "shipping",
    "finance",
    "email",
]
