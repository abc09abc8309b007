# =============================================================================
# core/models/inventory.py - Inventory Schemas
# =============================================================================
# These models define the API contract for stock reconciliation:
# - PackRequest: Warehouse scans a marketplace suborder and deducts stock
# - StockEntry / AddStockRequest: Bulk restock from a delivery
# - StockChangeType / StockReferenceType: Labels written to stock_logs
#
# Every stock movement is appended to stock_logs with the previous and new
# stock, so the table doubles as an audit trail.
# =============================================================================

from enum import Enum

from pydantic import BaseModel, Field


class StockChangeType(str, Enum):
    DEDUCT = "deduct"
    ADD = "add"
    RESTORE = "restore"


class StockReferenceType(str, Enum):
    """What caused a stock movement."""
    PACK_ORDER = "pack_order"
    MANUAL_ADD = "manual_add"
    PACK_ORDER_DELETED = "pack_order_deleted"


class PackRequest(BaseModel):
    """
    Schema for POST /admin/inventory/pack.

    The suborder id is normalised (trimmed, upper-cased) before lookup.

    Example:
        {"suborderId": "od12345-1", "productId": "p-1", "quantity": 2}
    """

    suborder_id: str | None = Field(default=None, alias="suborderId", description="Marketplace suborder ID")
    product_id: str | int | None = Field(default=None, alias="productId")
    quantity: int | None = Field(default=None, description="Units to deduct")
    product_name: str | None = Field(default=None, alias="productName")

    model_config = {"populate_by_name": True}


class StockEntry(BaseModel):
    product_id: str | int | None = Field(default=None, alias="productId")
    product_name: str | None = Field(default=None, alias="productName")
    quantity: int | None = None

    model_config = {"populate_by_name": True}


class AddStockRequest(BaseModel):
    """
    Schema for POST /inventory/add.

    Each entry is applied independently; one failing entry does not stop
    the others.
    """

    entries: list[StockEntry] = Field(default_factory=list)
