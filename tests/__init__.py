# =============================================================================
# tests/ - Test Suite
# =============================================================================
# This package contains all tests for the AKUSHO Store API:
# - test_models.py: Unit tests for Pydantic model validation
# - test_checkout.py / test_coupons.py: Order creation, payment, coupons
# - test_inventory.py: Packing, restocking and packing history
# - test_orders.py / test_shipping.py: Admin lifecycle, courier, webhook
# - test_catalog.py / test_finance.py: Catalog and back-office
# - test_notifications.py: Templates, dispatch modes, Celery task
# - test_api.py: Route-level tests through TestClient
#
# Run tests with: pytest
# =============================================================================
