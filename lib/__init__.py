# =============================================================================
# lib/ - External Service Wrappers and Utilities
# =============================================================================
# This package contains reusable wrappers around the SaaS APIs the store
# is built on:
# - supabase_client.py: Typed Supabase wrapper for database operations
# - razorpay_client.py: Payment gateway orders and signature verification
# - shiprocket_client.py: Courier aggregator (rates, AWB, labels, tracking)
# - email_client.py / email_templates.py: Resend delivery + Jinja2 templates
# - utils.py: Shared utilities (order numbers, slugs, dates, base error)
# =============================================================================

from lib.supabase_client import SupabaseClient, SupabaseClientError
from lib.razorpay_client import RazorpayClient, RazorpayError
from lib.shiprocket_client import ShiprocketClient, ShiprocketError
from lib.email_client import EmailClient, EmailError
from lib.utils import ApplicationError

__all__ = [
    # Supabase
    "SupabaseClient",
    "SupabaseClientError",
    # Payments
    "RazorpayClient",
    "RazorpayError",
    # Shipping
    "ShiprocketClient",
    "ShiprocketError",
    # Email
    "EmailClient",
    "EmailError",
    # Utils
    "ApplicationError",
]
