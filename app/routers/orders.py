# =============================================================================
# app/routers/orders.py - Customer and Admin Order Endpoints
# =============================================================================
# - router: order lookup for the storefront's order-success / tracking page
# - admin_router: back-office list, bulk actions, edits, lifecycle actions
#   and returns
# =============================================================================

from typing import Annotated

from fastapi import APIRouter, Path, Query

from app.dependencies import AdminUser
from core.models.order import (
    BulkOrderRequest,
    OrderActionRequest,
    OrderPatchRequest,
    ReturnRequest,
)
from core.services.order_service import OrderService

router = APIRouter()
admin_router = APIRouter()


# =============================================================================
# Storefront
# =============================================================================

@router.get("/{order_number}")
async def get_order_by_number(
    order_number: Annotated[str, Path(description="Customer-facing AKU-... number")],
):
    return {"order": OrderService.get_order_by_number(order_number)}


# =============================================================================
# Admin
# =============================================================================

@admin_router.get("")
async def list_orders(
    admin: AdminUser,
    status: Annotated[str | None, Query(description="Status or group: pending, processing, shipped, cancelled")] = None,
    payment: Annotated[str | None, Query(description="payment_status filter")] = None,
    search: Annotated[str | None, Query()] = None,
    limit: Annotated[int, Query(ge=1, le=500)] = 100,
    offset: Annotated[int, Query(ge=0)] = 0,
):
    """
    Order list with dashboard stats.
    """
    return OrderService.list_orders(status=status, payment=payment, search=search, limit=limit, offset=offset)


@admin_router.post("")
async def bulk_orders(request: BulkOrderRequest, admin: AdminUser):
    """bulk_status_update or export for a set of orders."""
    return OrderService.bulk_action(request.action, request.order_ids, request.data)


@admin_router.get("/{order_id}")
async def get_order(order_id: str, admin: AdminUser):
    return {"order": OrderService.get_order(order_id)}


@admin_router.patch("/{order_id}")
async def patch_order(order_id: str, request: OrderPatchRequest, admin: AdminUser):
    """Edit allow-listed columns directly."""
    return OrderService.patch_order(order_id, request)


@admin_router.get("/{order_id}/actions")
async def get_order_details(order_id: str, admin: AdminUser):
    """Order with status history, courier tracking and email log."""
    return OrderService.get_order_details(order_id)


@admin_router.post("/{order_id}/actions")
async def perform_order_action(order_id: str, request: OrderActionRequest, admin: AdminUser):
    """
    Lifecycle actions: accept, reject, ready_to_dispatch, update_status.

    Each writes an order_status_history row and emails the customer.
    """
    return OrderService.perform_action(order_id, request)


@admin_router.get("/{order_id}/return")
async def get_return_eligibility(order_id: str, admin: AdminUser):
    return OrderService.return_eligibility(order_id)


@admin_router.post("/{order_id}/return")
async def request_return(order_id: str, request: ReturnRequest, admin: AdminUser):
    """
    Start a return for a delivered order.

    Creates a courier return pickup when the order has an AWB, otherwise
    records a manual return.
    """
    return OrderService.request_return(order_id, request.reason, request.notes)
