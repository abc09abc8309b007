# =============================================================================
# core/services/inventory_service.py - Stock Reconciliation
# =============================================================================
# Packing marketplace suborders, bulk restocking and the packing history.
#
# Invariants:
# - A suborder id (normalised: trimmed, upper-cased) is packed at most once.
#   The packed_orders.suborder_id unique index backs this up when two packers
#   race; the loser gets the same 409 as the pre-check.
# - Stock never goes negative: a pack larger than the available stock is
#   rejected before anything is written.
# - Every stock movement appends a stock_logs row with previous/new stock.
# =============================================================================

import logging
from typing import Any

from lib.supabase_client import SupabaseClient, is_unique_violation
from lib.utils import normalize_suborder_id, utc_now_iso
from core.models.inventory import StockChangeType, StockEntry, StockReferenceType
from app.exceptions import (
    BadRequestError,
    DuplicateSuborderError,
    InsufficientStockError,
    PackedOrderNotFoundError,
    ProductNotFoundError,
    StoreException,
)

logger = logging.getLogger(__name__)


class InventoryService:
    """
    Service for stock movements.
    """

    # -------------------------------------------------------------------------
    # Stock Log
    # -------------------------------------------------------------------------

    @staticmethod
    def log_stock_change(
        product: dict[str, Any],
        change_type: StockChangeType,
        quantity_change: int,
        previous_stock: int,
        new_stock: int,
        reference_type: StockReferenceType,
        reference_id: str | None = None,
        notes: str | None = None,
    ) -> None:
        """Append a stock_logs row. A failed log insert is only a warning."""
        client = SupabaseClient.get_client()
        try:
            client.table("stock_logs").insert({
                "product_id": product.get("id"),
                "product_name": product.get("name"),
                "change_type": change_type.value,
                "quantity_change": quantity_change,
                "previous_stock": previous_stock,
                "new_stock": new_stock,
                "reference_type": reference_type.value,
                "reference_id": reference_id,
                "notes": notes,
                "created_at": utc_now_iso(),
            }).execute()
        except Exception as e:
            logger.warning(f"Failed to write stock log for product {product.get('id')}: {e}")

    # -------------------------------------------------------------------------
    # Packing
    # -------------------------------------------------------------------------

    @staticmethod
    def pack_order(
        suborder_id: str | None,
        product_id: str | int | None,
        quantity: int | None,
        product_name: str | None = None,
    ) -> dict[str, Any]:
        """
        Record a packed suborder and deduct its stock.

        Args:
            suborder_id: Marketplace suborder ID as scanned
            product_id: Product being shipped
            quantity: Units packed (>= 1)
            product_name: Optional display name, defaults to the product's name

        Returns:
            {"success", "message", "packedOrder", "newStock"}

        Raises:
            BadRequestError: Missing fields
            DuplicateSuborderError: Suborder already packed (409)
            ProductNotFoundError: Unknown product
            InsufficientStockError: quantity > stock
            StoreException: Stock update failed (packed row rolled back)
        """
        if not suborder_id or not suborder_id.strip() or not product_id or not quantity:
            raise BadRequestError("Missing required fields: suborderId, productId, quantity")
        if quantity < 1:
            raise BadRequestError("Quantity must be at least 1")

        normalized_id = normalize_suborder_id(suborder_id)
        client = SupabaseClient.get_client()

        existing = (
            client.table("packed_orders")
            .select("suborder_id, product_name, quantity, packed_at")
            .eq("suborder_id", normalized_id)
            .limit(1)
            .execute()
        )
        if existing.data:
            logger.info(f"Duplicate pack attempt for suborder {normalized_id}")
            raise DuplicateSuborderError(normalized_id, existing.data[0])

        product = SupabaseClient.fetch_one("products", "id", product_id, columns="id, name, stock")
        if not product:
            raise ProductNotFoundError(str(product_id))

        current_stock = product.get("stock") or 0
        if quantity > current_stock:
            raise InsufficientStockError(available=current_stock, requested=quantity)

        try:
            insert_response = client.table("packed_orders").insert({
                "suborder_id": normalized_id,
                "product_id": product["id"],
                "product_name": product_name or product.get("name"),
                "quantity": quantity,
                "packed_at": utc_now_iso(),
            }).execute()
        except Exception as e:
            if is_unique_violation(e):
                raise DuplicateSuborderError(normalized_id)
            logger.error(f"Failed to insert packed order {normalized_id}: {e}")
            raise StoreException("Failed to record packed order", code="PACK_FAILED")

        packed = insert_response.data[0]
        new_stock = current_stock - quantity

        try:
            client.table("products").update({
                "stock": new_stock,
                "updated_at": utc_now_iso(),
            }).eq("id", product["id"]).execute()
        except Exception as e:
            logger.error(f"Stock update failed for {product['id']}, rolling back pack {normalized_id}: {e}")
            client.table("packed_orders").delete().eq("id", packed["id"]).execute()
            raise StoreException("Failed to update stock", code="STOCK_UPDATE_FAILED")

        InventoryService.log_stock_change(
            product,
            StockChangeType.DEDUCT,
            quantity_change=-quantity,
            previous_stock=current_stock,
            new_stock=new_stock,
            reference_type=StockReferenceType.PACK_ORDER,
            reference_id=normalized_id,
            notes=f"Packed order {normalized_id}",
        )

        logger.info(f"Packed {normalized_id}: {quantity} x {product.get('name')} (stock {current_stock} -> {new_stock})")
        return {
            "success": True,
            "message": "Order packed successfully",
            "packedOrder": {
                "id": packed.get("id"),
                "suborder_id": normalized_id,
                "product_name": packed.get("product_name"),
                "quantity": quantity,
            },
            "newStock": new_stock,
        }

    # -------------------------------------------------------------------------
    # Restocking
    # -------------------------------------------------------------------------

    @staticmethod
    def _add_entry(entry: StockEntry) -> dict[str, Any]:
        """Apply one restock entry. Returns the per-entry result row."""
        result: dict[str, Any] = {
            "productId": entry.product_id,
            "productName": entry.product_name,
            "previousStock": 0,
            "addedQuantity": entry.quantity or 0,
            "newStock": 0,
            "success": False,
        }

        if not entry.product_id or not entry.quantity or entry.quantity < 1:
            result["error"] = f"Invalid entry for product {entry.product_name or entry.product_id}"
            return result

        product = SupabaseClient.fetch_one("products", "id", entry.product_id, columns="id, name, stock")
        if not product:
            result["error"] = "Product not found"
            return result

        previous_stock = product.get("stock") or 0
        new_stock = previous_stock + entry.quantity
        result["productName"] = entry.product_name or product.get("name")
        result["previousStock"] = previous_stock

        client = SupabaseClient.get_client()
        try:
            client.table("products").update({
                "stock": new_stock,
                "updated_at": utc_now_iso(),
            }).eq("id", product["id"]).execute()
        except Exception as e:
            logger.error(f"Restock failed for product {product['id']}: {e}")
            result["error"] = "Failed to update stock"
            return result

        InventoryService.log_stock_change(
            product,
            StockChangeType.ADD,
            quantity_change=entry.quantity,
            previous_stock=previous_stock,
            new_stock=new_stock,
            reference_type=StockReferenceType.MANUAL_ADD,
            notes="Bulk stock addition",
        )
        try:
            client.table("stock_additions").insert({
                "product_id": product["id"],
                "product_name": result["productName"],
                "quantity_added": entry.quantity,
                "added_at": utc_now_iso(),
            }).execute()
        except Exception as e:
            logger.warning(f"Failed to record stock addition for {product['id']}: {e}")

        result["newStock"] = new_stock
        result["success"] = True
        return result

    @staticmethod
    def add_stock(entries: list[StockEntry]) -> dict[str, Any]:
        """
        Bulk restock. Entries are applied independently.

        Raises:
            BadRequestError: If no entries were given
        """
        if not entries:
            raise BadRequestError("No stock entries provided")

        results = [InventoryService._add_entry(entry) for entry in entries]
        succeeded = [r for r in results if r["success"]]
        fail_count = len(results) - len(succeeded)

        message = f"Updated {len(succeeded)} products"
        if fail_count:
            message += f", {fail_count} failed"
        logger.info(message)

        return {
            "success": fail_count == 0,
            "message": message,
            "results": results,
            "summary": {
                "total": len(results),
                "success": len(succeeded),
                "failed": fail_count,
                "totalUnitsAdded": sum(r["addedQuantity"] for r in succeeded),
            },
        }

    # -------------------------------------------------------------------------
    # Packing History
    # -------------------------------------------------------------------------

    @staticmethod
    def list_packed_orders(
        limit: int = 50,
        offset: int = 0,
        search: str | None = None,
        date: str | None = None,
    ) -> dict[str, Any]:
        """
        Paginated packing history, newest first.

        Args:
            search: Matches suborder id or product name (case-insensitive)
            date: YYYY-MM-DD, limits to rows packed that day (UTC)
        """
        client = SupabaseClient.get_client()
        query = client.table("packed_orders").select("*", count="exact")

        if search:
            term = search.strip()
            query = query.or_(f"suborder_id.ilike.%{term}%,product_name.ilike.%{term}%")
        if date:
            query = query.gte("packed_at", f"{date}T00:00:00.000Z").lte("packed_at", f"{date}T23:59:59.999Z")

        response = (
            query.order("packed_at", desc=True)
            .range(offset, offset + limit - 1)
            .execute()
        )
        total = response.count or 0

        return {
            "success": True,
            "packedOrders": response.data or [],
            "pagination": {
                "total": total,
                "limit": limit,
                "offset": offset,
                "hasMore": offset + limit < total,
            },
        }

    @staticmethod
    def delete_packed_order(packed_id: str | None, restore_stock: bool = False) -> dict[str, Any]:
        """
        Delete a packed row, optionally giving its units back to stock.

        Raises:
            BadRequestError: If no id was given
            PackedOrderNotFoundError: If the row doesn't exist
        """
        if not packed_id:
            raise BadRequestError("Missing packed order ID")

        packed = SupabaseClient.fetch_one("packed_orders", "id", packed_id)
        if not packed:
            raise PackedOrderNotFoundError(packed_id)

        client = SupabaseClient.get_client()

        if restore_stock and packed.get("product_id"):
            product = SupabaseClient.fetch_one("products", "id", packed["product_id"], columns="id, name, stock")
            if product:
                previous_stock = product.get("stock") or 0
                quantity = packed.get("quantity") or 0
                new_stock = previous_stock + quantity
                client.table("products").update({
                    "stock": new_stock,
                    "updated_at": utc_now_iso(),
                }).eq("id", product["id"]).execute()

                InventoryService.log_stock_change(
                    product,
                    StockChangeType.RESTORE,
                    quantity_change=quantity,
                    previous_stock=previous_stock,
                    new_stock=new_stock,
                    reference_type=StockReferenceType.PACK_ORDER_DELETED,
                    reference_id=packed.get("suborder_id"),
                    notes=f"Restored from deleted pack order {packed.get('suborder_id')}",
                )

        client.table("packed_orders").delete().eq("id", packed_id).execute()
        logger.info(f"Deleted packed order {packed.get('suborder_id')} (restore={restore_stock})")

        message = f"Deleted packed order {packed.get('suborder_id')}"
        if restore_stock:
            message += " and restored stock"
        return {"success": True, "message": message, "deletedOrder": packed}
