# =============================================================================
# app/routers/inventory.py - Packing and Stock Endpoints
# =============================================================================
# - pack_router (/admin/inventory): scan a marketplace suborder, deduct stock
# - router (/inventory): bulk restock and packing history
# =============================================================================

from typing import Annotated

from fastapi import APIRouter, Query

from app.dependencies import AdminUser
from core.models.inventory import AddStockRequest, PackRequest
from core.services.inventory_service import InventoryService

router = APIRouter()
pack_router = APIRouter()


@pack_router.post("/pack")
async def pack_order(request: PackRequest, admin: AdminUser):
    """
    Record a packed suborder and deduct its stock.

    A suborder can be packed once; a repeat scan is 409 with the
    existing packed row.
    """
    return InventoryService.pack_order(
        suborder_id=request.suborder_id,
        product_id=request.product_id,
        quantity=request.quantity,
        product_name=request.product_name,
    )


@router.post("/add")
async def add_stock(request: AddStockRequest, admin: AdminUser):
    return InventoryService.add_stock(request.entries)


@router.get("/history")
async def packing_history(
    admin: AdminUser,
    limit: Annotated[int, Query(ge=1, le=500)] = 50,
    offset: Annotated[int, Query(ge=0)] = 0,
    search: Annotated[str | None, Query(description="Suborder id or product name")] = None,
    date: Annotated[str | None, Query(pattern=r"^\d{4}-\d{2}-\d{2}$", description="YYYY-MM-DD")] = None,
):
    return InventoryService.list_packed_orders(limit=limit, offset=offset, search=search, date=date)


@router.delete("/history")
async def delete_packed_order(
    admin: AdminUser,
    packed_id: Annotated[str | None, Query(alias="id")] = None,
    restore_stock: Annotated[bool, Query(alias="restoreStock")] = False,
):
    """Delete a packed row; restoreStock=true gives the units back."""
    return InventoryService.delete_packed_order(packed_id, restore_stock=restore_stock)
