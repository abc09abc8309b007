# =============================================================================
# core/ - Business Logic Package
# =============================================================================
# This package contains the store's business rules:
# - models/: Pydantic schemas for request validation
# - services/: Service classes (checkout, coupons, inventory, orders,
#   shipping, catalog, finance, notifications)
#
# Services raise app.exceptions errors and talk to external APIs through
# lib/. They don't import FastAPI; the only Celery touchpoint is the lazy
# enqueue in NotificationService.dispatch.
# =============================================================================
