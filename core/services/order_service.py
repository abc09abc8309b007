# =============================================================================
# core/services/order_service.py - Order Lifecycle
# =============================================================================
# Customer order lookup and the admin back-office order workflow:
# - list / stats / bulk updates / direct edits
# - lifecycle actions (accept, reject, ready to dispatch, update status)
# - returns within the return window
#
# Every status change made here appends an order_status_history row.
# Customer emails are side effects (see NotificationService.dispatch).
# =============================================================================

import logging
from typing import Any

from app.config import settings
from app.exceptions import (
    BadRequestError,
    OrderActionError,
    OrderNotFoundError,
    StoreException,
)
from lib.shiprocket_client import ShiprocketClient, ShiprocketError
from lib.supabase_client import SupabaseClient
from lib.utils import date_part, parse_items, parse_timestamp, utc_now, utc_now_iso
from core.models.email import EmailType
from core.models.order import (
    OrderAction,
    OrderActionRequest,
    OrderPatchRequest,
    OrderStatus,
    PaymentStatus,
    RETURN_REASON_LABELS,
    ReturnReason,
)
from core.services.notification_service import NotificationService, order_context

logger = logging.getLogger(__name__)

# Admin list filter -> statuses it covers
STATUS_GROUPS: dict[str, list[str]] = {
    "pending": [OrderStatus.PENDING.value, OrderStatus.PENDING_REVIEW.value],
    "processing": [
        OrderStatus.CONFIRMED.value,
        OrderStatus.PROCESSING.value,
        OrderStatus.READY_TO_DISPATCH.value,
    ],
    "shipped": [OrderStatus.SHIPPED.value, OrderStatus.OUT_FOR_DELIVERY.value],
    "cancelled": [
        OrderStatus.CANCELLED.value,
        OrderStatus.RTO_INITIATED.value,
        OrderStatus.RTO_DELIVERED.value,
    ],
}

ACCEPTABLE_STATUSES = {OrderStatus.PENDING.value, OrderStatus.PENDING_REVIEW.value}
UNREJECTABLE_STATUSES = {
    OrderStatus.SHIPPED.value,
    OrderStatus.DELIVERED.value,
    OrderStatus.CANCELLED.value,
}
DISPATCHABLE_STATUSES = {OrderStatus.CONFIRMED.value, OrderStatus.PROCESSING.value}
CONFIRMED_PAYMENTS = {PaymentStatus.PAID.value, PaymentStatus.COD.value}

PATCHABLE_FIELDS = (
    "status",
    "payment_status",
    "tracking_id",
    "awb_code",
    "courier_name",
    "shiprocket_order_id",
    "shiprocket_shipment_id",
    "label_url",
    "shipped_at",
    "delivered_at",
    "expected_delivery",
    "cancel_reason",
)


def compute_order_stats(orders: list[dict[str, Any]]) -> dict[str, int]:
    """Dashboard counters over (status, payment_status) rows."""
    def count(statuses: set[str]) -> int:
        return sum(1 for o in orders if o.get("status") in statuses)

    return {
        "total": len(orders),
        "pending": count(ACCEPTABLE_STATUSES),
        "confirmed": count({OrderStatus.CONFIRMED.value}),
        "processing": count({OrderStatus.PROCESSING.value, OrderStatus.READY_TO_DISPATCH.value}),
        "shipped": count(set(STATUS_GROUPS["shipped"])),
        "delivered": count({OrderStatus.DELIVERED.value}),
        "cancelled": count(set(STATUS_GROUPS["cancelled"])),
        "paid": sum(1 for o in orders if o.get("payment_status") == PaymentStatus.PAID.value),
    }


def days_since(timestamp: str | None) -> int | None:
    parsed = parse_timestamp(timestamp)
    if not parsed:
        return None
    return (utc_now() - parsed).days


class OrderService:
    """
    Service for order lookup and the admin lifecycle.
    """

    # -------------------------------------------------------------------------
    # Lookups
    # -------------------------------------------------------------------------

    @staticmethod
    def get_order(order_id: str) -> dict[str, Any]:
        """
        Raises:
            OrderNotFoundError: If the order doesn't exist
        """
        order = SupabaseClient.fetch_order(order_id)
        if not order:
            raise OrderNotFoundError(str(order_id))
        return order

    @staticmethod
    def get_order_by_number(order_number: str) -> dict[str, Any]:
        order = SupabaseClient.fetch_order_by_number(order_number)
        if not order:
            raise OrderNotFoundError(order_number)
        return order

    @staticmethod
    def get_tracking_history(order_id: str, limit: int | None = None) -> list[dict[str, Any]]:
        client = SupabaseClient.get_client()
        query = (
            client.table("shipment_tracking")
            .select("*")
            .eq("order_id", order_id)
            .order("timestamp", desc=True)
        )
        if limit:
            query = query.limit(limit)
        return query.execute().data or []

    @staticmethod
    def get_order_details(order_id: str) -> dict[str, Any]:
        """Order with its status history, tracking events and email log."""
        order = OrderService.get_order(order_id)
        client = SupabaseClient.get_client()

        history = (
            client.table("order_status_history")
            .select("*")
            .eq("order_id", order_id)
            .order("created_at", desc=True)
            .execute()
        )
        emails = (
            client.table("email_logs")
            .select("*")
            .eq("order_id", order_id)
            .order("created_at", desc=True)
            .execute()
        )

        return {
            "order": order,
            "history": history.data or [],
            "tracking": OrderService.get_tracking_history(order_id),
            "emails": emails.data or [],
        }

    # -------------------------------------------------------------------------
    # Admin List & Bulk
    # -------------------------------------------------------------------------

    @staticmethod
    def list_orders(
        status: str | None = None,
        payment: str | None = None,
        search: str | None = None,
        limit: int = 100,
        offset: int = 0,
    ) -> dict[str, Any]:
        """
        Admin order list, newest first, with dashboard stats.

        Args:
            status: A status or a group name (pending, processing, shipped,
                cancelled); "all" or None for every order
            payment: payment_status filter
            search: Matches order number, customer name/email or AWB
        """
        client = SupabaseClient.get_client()
        query = client.table("orders").select("*", count="exact")

        if status and status != "all":
            if status in STATUS_GROUPS:
                query = query.in_("status", STATUS_GROUPS[status])
            else:
                query = query.eq("status", status)
        if payment and payment != "all":
            query = query.eq("payment_status", payment)
        if search:
            term = search.strip()
            query = query.or_(
                f"order_number.ilike.%{term}%,customer_name.ilike.%{term}%,"
                f"customer_email.ilike.%{term}%,awb_code.ilike.%{term}%"
            )

        response = (
            query.order("created_at", desc=True)
            .range(offset, offset + limit - 1)
            .execute()
        )

        all_orders = client.table("orders").select("status, payment_status").execute()

        return {
            "orders": response.data or [],
            "count": response.count,
            "stats": compute_order_stats(all_orders.data or []),
        }

    @staticmethod
    def bulk_action(action: str | None, order_ids: list[str], data: dict[str, Any]) -> dict[str, Any]:
        """
        Raises:
            BadRequestError: Missing action/ids, missing newStatus or unknown action
        """
        if not action or not order_ids:
            raise BadRequestError("Invalid request: action and orderIds required")

        client = SupabaseClient.get_client()

        if action == "bulk_status_update":
            new_status = (data or {}).get("newStatus") or (data or {}).get("status")
            if not new_status:
                raise BadRequestError("newStatus is required")

            client.table("orders").update({
                "status": new_status,
                "updated_at": utc_now_iso(),
            }).in_("id", order_ids).execute()

            client.table("order_status_history").insert([
                {
                    "order_id": order_id,
                    "new_status": new_status,
                    "changed_by": "admin",
                    "change_reason": "Bulk status update",
                }
                for order_id in order_ids
            ]).execute()

            logger.info(f"Bulk updated {len(order_ids)} orders to {new_status}")
            return {"success": True, "message": f"{len(order_ids)} orders updated to {new_status}"}

        if action == "export":
            response = client.table("orders").select("*").in_("id", order_ids).execute()
            return {"success": True, "orders": response.data or []}

        raise BadRequestError(f"Unknown action: {action}")

    @staticmethod
    def patch_order(order_id: str, patch: OrderPatchRequest) -> dict[str, Any]:
        """
        Edit allow-listed columns. shipped/delivered timestamps are stamped
        when the status moves there without one.
        """
        OrderService.get_order(order_id)
        updates = patch.model_dump(mode="json", exclude_unset=True, include=set(PATCHABLE_FIELDS))

        now = utc_now_iso()
        if updates.get("status") == OrderStatus.SHIPPED.value and not updates.get("shipped_at"):
            updates["shipped_at"] = now
        if updates.get("status") == OrderStatus.DELIVERED.value and not updates.get("delivered_at"):
            updates["delivered_at"] = now
        updates["updated_at"] = now

        client = SupabaseClient.get_client()
        try:
            response = client.table("orders").update(updates).eq("id", order_id).execute()
        except Exception as e:
            logger.error(f"Failed to update order {order_id}: {e}")
            raise BadRequestError("Failed to update order")

        return {"success": True, "order": (response.data or [None])[0]}

    # -------------------------------------------------------------------------
    # Lifecycle Actions
    # -------------------------------------------------------------------------

    @staticmethod
    def record_status_change(
        order: dict[str, Any],
        new_status: str,
        reason: str,
        metadata: dict[str, Any] | None = None,
        changed_by: str = "admin",
    ) -> None:
        client = SupabaseClient.get_client()
        try:
            client.table("order_status_history").insert({
                "order_id": order.get("id"),
                "order_number": order.get("order_number"),
                "old_status": order.get("status"),
                "new_status": new_status,
                "changed_by": changed_by,
                "change_reason": reason,
                "metadata": metadata or {},
            }).execute()
        except Exception as e:
            logger.warning(f"Failed to write status history for {order.get('order_number')}: {e}")

    @staticmethod
    def _update(order_id: str, updates: dict[str, Any]) -> None:
        client = SupabaseClient.get_client()
        client.table("orders").update({**updates, "updated_at": utc_now_iso()}).eq("id", order_id).execute()

    @staticmethod
    def perform_action(order_id: str, request: OrderActionRequest) -> dict[str, Any]:
        """
        Run an admin lifecycle action.

        Raises:
            OrderNotFoundError: Unknown order
            OrderActionError: Action not allowed from the current status
            BadRequestError: Missing reason/newStatus or unknown action
            StoreException: Courier dispatch failed
        """
        order = OrderService.get_order(order_id)
        logger.info(f"Admin action {request.action} on order {order.get('order_number')}")

        if request.action == OrderAction.ACCEPT.value:
            return OrderService.accept_order(order, request.notes)
        if request.action == OrderAction.REJECT.value:
            return OrderService.reject_order(order, request.reason, request.notes)
        if request.action == OrderAction.READY_TO_DISPATCH.value:
            return OrderService.ready_to_dispatch(order)
        if request.action == OrderAction.UPDATE_STATUS.value:
            return OrderService.update_status(order, request.new_status, request.reason, request.notes)

        raise BadRequestError(f"Unknown action: {request.action}")

    @staticmethod
    def accept_order(order: dict[str, Any], notes: str | None = None) -> dict[str, Any]:
        status = order.get("status")
        if status not in ACCEPTABLE_STATUSES:
            raise OrderActionError(f"Cannot accept order with status: {status}", current_status=status)
        if order.get("payment_status") not in CONFIRMED_PAYMENTS:
            raise OrderActionError("Payment not confirmed", current_status=status)

        OrderService._update(order["id"], {
            "status": OrderStatus.CONFIRMED.value,
            "accepted_at": utc_now_iso(),
            "admin_notes": notes,
        })
        OrderService.record_status_change(
            order, OrderStatus.CONFIRMED.value, "Order accepted by admin", {"notes": notes}
        )
        NotificationService.dispatch(
            EmailType.ORDER_ACCEPTED.value,
            order.get("customer_email"),
            order_context(order),
            order_id=order["id"],
        )

        return {
            "success": True,
            "message": "Order accepted successfully",
            "newStatus": OrderStatus.CONFIRMED.value,
        }

    @staticmethod
    def reject_order(order: dict[str, Any], reason: str | None, notes: str | None = None) -> dict[str, Any]:
        status = order.get("status")
        if status in UNREJECTABLE_STATUSES:
            raise OrderActionError(f"Cannot reject order with status: {status}", current_status=status)
        if not reason:
            raise BadRequestError("Rejection reason is required")

        updates: dict[str, Any] = {
            "status": OrderStatus.CANCELLED.value,
            "rejected_at": utc_now_iso(),
            "reject_reason": reason,
            "cancel_reason": reason,
            "admin_notes": notes,
        }
        refund_amount = None
        if order.get("payment_status") == PaymentStatus.PAID.value:
            refund_amount = order.get("total") or order.get("total_amount")
            updates["refund_status"] = "pending"
            updates["refund_amount"] = refund_amount

        OrderService._update(order["id"], updates)
        OrderService.record_status_change(
            order,
            OrderStatus.CANCELLED.value,
            f"Order rejected: {reason}",
            {"reason": reason, "notes": notes},
        )
        NotificationService.dispatch(
            EmailType.ORDER_REJECTED.value,
            order.get("customer_email"),
            order_context(order, reason=reason, refund_amount=refund_amount),
            order_id=order["id"],
        )

        return {
            "success": True,
            "message": "Order rejected successfully",
            "newStatus": OrderStatus.CANCELLED.value,
        }

    @staticmethod
    def ready_to_dispatch(order: dict[str, Any]) -> dict[str, Any]:
        status = order.get("status")
        if status not in DISPATCHABLE_STATUSES:
            raise OrderActionError(
                f"Cannot dispatch order with status: {status}. Order must be confirmed first.",
                current_status=status,
            )

        courier_order = {
            **order,
            "items": parse_items(order.get("items")),
            "customer_phone": order.get("customer_phone") or "9999999999",
            "subtotal": order.get("subtotal") or order.get("total_amount"),
        }
        result = ShiprocketClient.process_ready_to_dispatch(courier_order)
        if not result.get("success"):
            raise StoreException(
                result.get("error") or "Failed to process shipment",
                code="DISPATCH_FAILED",
            )

        now = utc_now_iso()
        shipping = {
            "shiprocketOrderId": result.get("shiprocketOrderId"),
            "shipmentId": result.get("shipmentId"),
            "awbCode": result.get("awbCode"),
            "courierName": result.get("courierName"),
            "labelUrl": result.get("labelUrl"),
            "trackingUrl": result.get("trackingUrl"),
            "expectedDelivery": result.get("expectedDelivery"),
        }
        OrderService._update(order["id"], {
            "status": OrderStatus.READY_TO_DISPATCH.value,
            "shiprocket_order_id": str(shipping["shiprocketOrderId"]) if shipping["shiprocketOrderId"] else None,
            "shiprocket_shipment_id": str(shipping["shipmentId"]) if shipping["shipmentId"] else None,
            "awb_code": shipping["awbCode"],
            "courier_name": shipping["courierName"],
            "label_url": shipping["labelUrl"],
            "tracking_url": shipping["trackingUrl"],
            "expected_delivery": date_part(shipping["expectedDelivery"]),
            "pickup_scheduled_at": now,
            "dispatched_at": now,
        })
        OrderService.record_status_change(
            order,
            OrderStatus.READY_TO_DISPATCH.value,
            "Order marked ready to dispatch",
            {
                "shiprocket_order_id": shipping["shiprocketOrderId"],
                "shipment_id": shipping["shipmentId"],
                "awb_code": shipping["awbCode"],
                "courier_name": shipping["courierName"],
            },
        )
        NotificationService.dispatch(
            EmailType.READY_TO_DISPATCH.value,
            order.get("customer_email"),
            order_context(
                order,
                awb_code=shipping["awbCode"],
                courier_name=shipping["courierName"],
                tracking_url=shipping["trackingUrl"],
                expected_delivery=shipping["expectedDelivery"],
            ),
            order_id=order["id"],
        )

        return {
            "success": True,
            "message": "Order ready to dispatch",
            "newStatus": OrderStatus.READY_TO_DISPATCH.value,
            "shipping": shipping,
        }

    @staticmethod
    def update_status(
        order: dict[str, Any],
        new_status: str | None,
        reason: str | None = None,
        notes: str | None = None,
    ) -> dict[str, Any]:
        if not new_status:
            raise BadRequestError("newStatus is required")
        if new_status not in {s.value for s in OrderStatus}:
            raise BadRequestError(f"Invalid status: {new_status}")

        updates: dict[str, Any] = {
            "status": new_status,
            "admin_notes": notes or order.get("admin_notes"),
        }
        if new_status == OrderStatus.SHIPPED.value and not order.get("shipped_at"):
            updates["shipped_at"] = utc_now_iso()
        if new_status == OrderStatus.DELIVERED.value and not order.get("delivered_at"):
            updates["delivered_at"] = utc_now_iso()

        OrderService._update(order["id"], updates)
        OrderService.record_status_change(
            order,
            new_status,
            reason or f"Status updated to {new_status}",
            {"notes": notes},
        )
        if new_status != order.get("status"):
            NotificationService.notify_status_change(order, new_status, reason=reason)

        return {
            "success": True,
            "message": f"Order status updated to {new_status}",
            "newStatus": new_status,
        }

    # -------------------------------------------------------------------------
    # Returns
    # -------------------------------------------------------------------------

    @staticmethod
    def request_return(order_id: str, reason: str | None, notes: str | None = None) -> dict[str, Any]:
        """
        Record a customer return for a delivered order.

        A courier return pickup is booked when the order has an AWB and a
        courier order id; otherwise, or if booking fails, the return is
        recorded for manual handling.

        Raises:
            BadRequestError: Bad reason, not delivered, or outside the window
            OrderNotFoundError: Unknown order
        """
        valid_reasons = {r.value for r in ReturnReason}
        if not reason or reason not in valid_reasons:
            raise BadRequestError("Invalid return reason. Must be 'wrong_item' or 'damaged'")

        order = OrderService.get_order(order_id)
        window = settings.RETURN_WINDOW_DAYS

        if order.get("status") != OrderStatus.DELIVERED.value:
            raise BadRequestError("Return can only be initiated for delivered orders")
        elapsed = days_since(order.get("delivered_at"))
        if elapsed is None:
            raise BadRequestError("Delivery date not recorded for this order")
        if elapsed > window:
            raise BadRequestError(f"Return window has expired ({window} days from delivery)")

        label = RETURN_REASON_LABELS[reason]
        base_update = {
            "status": OrderStatus.RETURN_REQUESTED.value,
            "return_reason": label,
            "return_notes": notes,
            "return_requested_at": utc_now_iso(),
        }

        if not order.get("awb_code") or not order.get("shiprocket_order_id"):
            OrderService._update(order["id"], base_update)
            OrderService.record_status_change(order, OrderStatus.RETURN_REQUESTED.value, f"Return requested: {label}")
            logger.info(f"Manual return recorded for {order.get('order_number')}")
            return {
                "success": True,
                "message": "Return request recorded. Please process manually.",
                "shiprocketReturn": False,
            }

        try:
            courier_return = ShiprocketClient.create_return_order(ShiprocketClient.build_return_order(order))
        except ShiprocketError as e:
            logger.error(f"Courier return failed for {order.get('order_number')}: {e.message}")
            OrderService._update(order["id"], {
                **base_update,
                "return_notes": f"{notes or ''} [Shiprocket error: {e.message}]",
            })
            OrderService.record_status_change(order, OrderStatus.RETURN_REQUESTED.value, f"Return requested: {label}")
            return {
                "success": True,
                "message": "Return request recorded. Shiprocket return failed - please process manually.",
                "shiprocketReturn": False,
                "shiprocketError": e.message,
            }

        return_order_id = courier_return.get("order_id")
        return_awb = courier_return.get("awb_code")
        OrderService._update(order["id"], {
            **base_update,
            "return_shiprocket_order_id": str(return_order_id) if return_order_id else None,
            "return_awb_code": return_awb,
        })
        OrderService.record_status_change(order, OrderStatus.RETURN_REQUESTED.value, f"Return requested: {label}")

        client = SupabaseClient.get_client()
        try:
            client.table("shipment_tracking").insert({
                "order_id": order["id"],
                "awb_code": order.get("awb_code"),
                "status": "RETURN_INITIATED",
                "activity": f"Return initiated: {label}",
                "location": order.get("shipping_city"),
                "timestamp": utc_now_iso(),
                "raw_data": {"reason": reason, "notes": notes, "shiprocket_response": courier_return},
            }).execute()
        except Exception as e:
            logger.warning(f"Failed to log return tracking for {order.get('order_number')}: {e}")

        logger.info(f"Courier return {return_order_id} created for {order.get('order_number')}")
        return {
            "success": True,
            "message": "Return initiated successfully",
            "shiprocketReturn": True,
            "returnOrderId": return_order_id,
            "returnAwb": return_awb,
        }

    @staticmethod
    def return_eligibility(order_id: str) -> dict[str, Any]:
        order = OrderService.get_order(order_id)
        window = settings.RETURN_WINDOW_DAYS

        if order.get("return_requested_at"):
            return {
                "eligible": False,
                "reason": "Return already requested",
                "returnRequestedAt": order.get("return_requested_at"),
                "returnReason": order.get("return_reason"),
            }
        if order.get("status") != OrderStatus.DELIVERED.value:
            return {"eligible": False, "reason": "Order not delivered yet"}

        elapsed = days_since(order.get("delivered_at"))
        if elapsed is None:
            return {"eligible": False, "reason": "Delivery date not recorded"}
        if elapsed > window:
            return {"eligible": False, "reason": "Return window expired", "daysSinceDelivery": elapsed}

        return {
            "eligible": True,
            "daysRemaining": max(0, window - elapsed),
            "daysSinceDelivery": elapsed,
            "deliveredAt": order.get("delivered_at"),
            "validReasons": [
                {"value": value, "label": label} for value, label in RETURN_REASON_LABELS.items()
            ],
        }
