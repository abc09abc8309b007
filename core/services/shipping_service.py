# =============================================================================
# core/services/shipping_service.py - Shipping Business Logic
# =============================================================================
# Everything between a paid order and a delivered parcel:
# - rate checks for the storefront (check / calculate)
# - pushing paid orders to the courier aggregator (create_shipment)
# - tracking (live, with local history as fallback)
# - admin courier actions
# - the status webhook, which moves orders forward as scans come in
#
# Webhook rule: a status only moves forward. A scan that maps to a lower
# priority than the order's current status is recorded in shipment_tracking
# but does not touch orders.status. Cancellation always applies.
# =============================================================================

import logging
import math
import re
from typing import Any

from pydantic import ValidationError

from app.config import settings
from app.exceptions import BadRequestError, ExternalServiceError, OrderNotFoundError
from lib.shiprocket_client import (
    ShiprocketClient,
    ShiprocketError,
    map_to_order_status,
    parse_etd_days,
)
from lib.supabase_client import SupabaseClient
from lib.utils import (
    date_part,
    full_state_name,
    parse_courier_date,
    parse_items,
    utc_now_iso,
)
from core.models.order import OrderStatus, PaymentStatus
from core.models.shipping import AdminShippingAction, ShiprocketWebhookPayload
from core.services.notification_service import NotificationService

logger = logging.getLogger(__name__)

PINCODE_PATTERN = re.compile(r"^\d{6}$")
MAX_PARCEL_WEIGHT_KG = 50
BULK_TRACK_LIMIT = 10

# Webhook ordering; statuses missing here count as 0
STATUS_PRIORITY: dict[str, int] = {
    OrderStatus.PENDING.value: 0,
    OrderStatus.PENDING_REVIEW.value: 0,
    OrderStatus.CONFIRMED.value: 1,
    OrderStatus.PROCESSING.value: 2,
    OrderStatus.READY_TO_DISPATCH.value: 2,
    OrderStatus.SHIPPED.value: 3,
    OrderStatus.IN_TRANSIT.value: 3,
    OrderStatus.OUT_FOR_DELIVERY.value: 4,
    OrderStatus.UNDELIVERED.value: 4,
    OrderStatus.DELIVERED.value: 5,
    OrderStatus.CANCELLED.value: 6,
    OrderStatus.RTO_INITIATED.value: 6,
    OrderStatus.RTO_DELIVERED.value: 6,
}

SHIPPED_SCANS = {"SHIPPED", "PICKED UP"}

ADMIN_SHIPPING_COLUMNS = (
    "id, order_number, status, awb_code, shiprocket_order_id, shiprocket_shipment_id, "
    "courier_name, shipping_provider, label_url, manifest_url, pickup_scheduled_at, "
    "shipped_at, delivered_at, expected_delivery"
)


def should_apply_status(current: str | None, new: str) -> bool:
    """Forward-only rule for courier status updates."""
    if new == OrderStatus.CANCELLED.value:
        return True
    return STATUS_PRIORITY.get(new, 0) > STATUS_PRIORITY.get(current or "", 0)


def format_live_tracking(awb: str, tracking_data: dict[str, Any]) -> dict[str, Any]:
    """Shape the courier's tracking_data for the storefront."""
    shipment_track = (tracking_data.get("shipment_track") or [{}])[0] or {}
    activities = tracking_data.get("shipment_track_activities") or []
    return {
        "status": shipment_track.get("current_status") or "unknown",
        "awb": awb,
        "courier": shipment_track.get("courier_name"),
        "estimatedDelivery": tracking_data.get("etd") or shipment_track.get("edd"),
        "trackingUrl": tracking_data.get("track_url"),
        "deliveredDate": shipment_track.get("delivered_date"),
        "activities": [
            {
                "date": a.get("date"),
                "status": a.get("sr_status_label") or a.get("status"),
                "activity": a.get("activity"),
                "location": a.get("location"),
            }
            for a in activities
        ],
        "source": "shiprocket",
    }


class ShippingService:
    """
    Service for rates, shipments, tracking and courier webhooks.
    """

    # -------------------------------------------------------------------------
    # Rates
    # -------------------------------------------------------------------------

    @staticmethod
    def check_rates(
        pincode: str | None,
        weight: float = 0.5,
        cod: bool = False,
        declared_value: float | None = None,
    ) -> dict[str, Any]:
        """
        Courier options for a pincode.

        Unserviceable pincodes get defaultShipping (the flat fallback rate).

        Raises:
            BadRequestError: Bad pincode or weight
        """
        if not pincode or not PINCODE_PATTERN.match(pincode.strip()):
            raise BadRequestError("Valid 6-digit pincode required")
        weight = weight or 0.5
        if weight <= 0 or weight > MAX_PARCEL_WEIGHT_KG:
            raise BadRequestError("Weight must be between 0.1 and 50 kg")

        result = ShiprocketClient.get_shipping_rates(pincode.strip(), weight, cod, declared_value)
        return {
            **result,
            "pincode": pincode.strip(),
            "weight": weight,
            "cod": cod,
            "defaultShipping": None if result.get("serviceable") else settings.FALLBACK_SHIPPING_COST,
        }

    @staticmethod
    def calculate_shipping(
        delivery_pincode: str | None,
        weight: float = 0.5,
        cod: bool = False,
        declared_value: float = 0,
    ) -> dict[str, Any]:
        """
        Recommended (cheapest) and fastest courier, plus the free shipping check.

        Raises:
            BadRequestError: Missing pincode or courier rejected the lookup
        """
        if not delivery_pincode:
            raise BadRequestError("Delivery pincode is required")

        try:
            response = ShiprocketClient.check_serviceability(
                pickup_pincode=settings.WAREHOUSE_PINCODE,
                delivery_pincode=delivery_pincode,
                weight=weight,
                cod=cod,
            )
        except ShiprocketError as e:
            raise BadRequestError(
                "Unable to calculate shipping",
                details={"serviceable": False, "message": e.message or "Delivery not available to this pincode"},
            )

        couriers = ((response or {}).get("data") or {}).get("available_courier_companies") or []
        if not couriers:
            return {
                "serviceable": False,
                "message": "Delivery not available to this pincode",
                "shipping_cost": 0,
            }

        couriers = sorted(couriers, key=lambda c: float(c.get("rate") or 0))
        cheapest = couriers[0]
        fastest = min(couriers, key=lambda c: parse_etd_days(c.get("estimated_delivery_days")))

        threshold = settings.FREE_SHIPPING_THRESHOLD
        qualifies = declared_value >= threshold
        cheapest_rate = math.ceil(float(cheapest.get("rate") or 0))

        return {
            "serviceable": True,
            "pickup_pincode": settings.WAREHOUSE_PINCODE,
            "delivery_pincode": delivery_pincode,
            "recommended": {
                "courier_name": cheapest.get("courier_name"),
                "shipping_cost": 0 if qualifies else cheapest_rate,
                "original_cost": cheapest_rate,
                "estimated_days": cheapest.get("estimated_delivery_days"),
                "free_shipping_applied": qualifies,
            },
            "fastest": {
                "courier_name": fastest.get("courier_name"),
                "shipping_cost": math.ceil(float(fastest.get("rate") or 0)),
                "estimated_days": fastest.get("estimated_delivery_days"),
            },
            "options": [
                {
                    "courier_id": c.get("courier_company_id"),
                    "courier_name": c.get("courier_name"),
                    "rate": math.ceil(float(c.get("rate") or 0)),
                    "estimated_days": c.get("estimated_delivery_days"),
                    "cod_available": c.get("cod") == 1,
                    "rating": c.get("rating"),
                }
                for c in couriers[:5]
            ],
            "free_shipping": {
                "threshold": threshold,
                "qualifies": qualifies,
                "amount_needed": 0 if qualifies else threshold - declared_value,
            },
        }

    # -------------------------------------------------------------------------
    # Shipments
    # -------------------------------------------------------------------------

    @staticmethod
    def create_shipment(order_id: str | None) -> dict[str, Any]:
        """
        Push a paid order to the courier aggregator.

        AWB, pickup and label steps are best-effort; whatever succeeded is
        stored on the order.

        Raises:
            BadRequestError: No order id
            OrderNotFoundError: Unknown order
            ExternalServiceError: Courier order creation failed
        """
        if not order_id:
            raise BadRequestError("Order ID required")

        order = SupabaseClient.fetch_order(order_id)
        if not order:
            raise OrderNotFoundError(str(order_id))

        if order.get("shiprocket_order_id"):
            return {
                "success": False,
                "error": "Shipment already created for this order",
                "shiprocketOrderId": order["shiprocket_order_id"],
            }
        if order.get("payment_status") != PaymentStatus.PAID.value:
            return {"success": False, "error": "Order payment not completed"}

        items = parse_items(order.get("items"))
        total_units = sum(item.get("quantity") or 1 for item in items)
        weight = max(0.5, total_units * 0.3)

        payload = ShiprocketClient.build_adhoc_order(
            {
                **order,
                "items": items,
                "shipping_state": full_state_name(order.get("shipping_state")) or "Delhi",
            },
            parcel={"weight": weight},
        )
        payload["order_date"] = date_part(order.get("created_at")) or payload["order_date"]
        payload["payment_method"] = "Prepaid"
        payload["sub_total"] = order.get("total_amount") or 0

        try:
            courier_order = ShiprocketClient.create_order(payload)
        except ShiprocketError as e:
            logger.error(f"Courier order failed for {order.get('order_number')}: {e.message}")
            raise ExternalServiceError(e.message or "Failed to create shipment", service="shiprocket")

        shipment_id = courier_order.get("shipment_id")
        updates: dict[str, Any] = {
            "shiprocket_order_id": str(courier_order["order_id"]) if courier_order.get("order_id") else None,
            "shiprocket_shipment_id": str(shipment_id) if shipment_id else None,
            "status": OrderStatus.PROCESSING.value,
            "updated_at": utc_now_iso(),
        }

        awb_assigned = False
        if shipment_id:
            try:
                awb_result = ShiprocketClient.assign_awb(shipment_id)
                awb_data = (awb_result.get("response") or {}).get("data")
                if awb_result.get("awb_assign_status") == 1 and awb_data:
                    updates["awb_code"] = awb_data.get("awb_code")
                    updates["courier_name"] = awb_data.get("courier_name")
                    awb_assigned = True
            except ShiprocketError as e:
                logger.info(f"AWB assignment failed for {order.get('order_number')} (assign manually): {e.message}")

        if awb_assigned:
            try:
                ShiprocketClient.schedule_pickup([shipment_id])
                updates["pickup_scheduled_at"] = utc_now_iso()
            except ShiprocketError as e:
                logger.info(f"Pickup scheduling failed for {order.get('order_number')}: {e.message}")
            try:
                label = ShiprocketClient.generate_label([shipment_id])
                if label.get("label_url"):
                    updates["label_url"] = label["label_url"]
            except ShiprocketError as e:
                logger.info(f"Label generation failed for {order.get('order_number')}: {e.message}")

        client = SupabaseClient.get_client()
        try:
            client.table("orders").update(updates).eq("id", order["id"]).execute()
        except Exception as e:
            logger.error(f"Failed to store shipment on order {order.get('order_number')}: {e}")

        return {
            "success": True,
            "message": "Shipment created and AWB assigned" if awb_assigned else "Shipment created (assign AWB manually)",
            "shiprocketOrderId": courier_order.get("order_id"),
            "shipmentId": shipment_id,
            "awbCode": updates.get("awb_code"),
            "courierName": updates.get("courier_name"),
        }

    # -------------------------------------------------------------------------
    # Tracking
    # -------------------------------------------------------------------------

    @staticmethod
    def local_tracking(awb: str) -> list[dict[str, Any]]:
        client = SupabaseClient.get_client()
        response = (
            client.table("shipment_tracking")
            .select("*")
            .eq("awb_code", awb)
            .order("timestamp", desc=True)
            .execute()
        )
        return response.data or []

    @staticmethod
    def track(
        awb: str | None = None,
        order_number: str | None = None,
        shiprocket_order_id: str | None = None,
    ) -> dict[str, Any]:
        """
        Track a parcel by AWB, store order number or courier order id.

        Falls back to the webhook history in shipment_tracking when the
        courier has nothing yet.

        Raises:
            BadRequestError: None of the three identifiers given
        """
        if order_number and not awb:
            order = SupabaseClient.fetch_one("orders", "order_number", order_number, columns="awb_code, courier_name")
            if not order or not order.get("awb_code"):
                return {"status": "pending", "message": "Shipment not yet created for this order"}
            awb = order["awb_code"]

        if not awb and shiprocket_order_id:
            try:
                response = ShiprocketClient.track_by_shiprocket_order_id(shiprocket_order_id)
            except ShiprocketError as e:
                raise ExternalServiceError("Unable to fetch tracking information", service="shiprocket",
                                           details={"message": e.message, "activities": []})
            entries = response if isinstance(response, list) else [response]
            tracking_data = (entries[0] or {}).get("tracking_data") if entries else None
            if not tracking_data:
                return {"status": "pending", "message": "Tracking information not yet available", "activities": []}
            return format_live_tracking(tracking_data.get("awb_code") or "", tracking_data)

        if not awb:
            raise BadRequestError("AWB code or order number required")

        tracking_data = None
        try:
            tracking_data = ShiprocketClient.track_by_awb(awb).get("tracking_data")
        except ShiprocketError as e:
            logger.info(f"Live tracking unavailable for {awb}: {e.message}")

        if tracking_data and tracking_data.get("track_status") != 0:
            return format_live_tracking(awb, tracking_data)

        history = ShippingService.local_tracking(awb)
        if history:
            return {
                "status": history[0].get("status"),
                "awb": awb,
                "courier": None,
                "estimatedDelivery": None,
                "trackingUrl": None,
                "activities": [
                    {
                        "date": t.get("timestamp"),
                        "status": t.get("status"),
                        "activity": t.get("activity"),
                        "location": t.get("location"),
                    }
                    for t in history
                ],
                "source": "local",
            }

        return {"status": "awaiting_pickup", "awb": awb, "message": "Tracking information not yet available"}

    @staticmethod
    def _track_summary(awb: str) -> dict[str, Any]:
        try:
            tracking_data = ShiprocketClient.track_by_awb(awb).get("tracking_data") or {}
        except ShiprocketError:
            return {"status": "error"}
        if tracking_data.get("track_status") != 1:
            return {"status": "not_found"}
        shipment_track = (tracking_data.get("shipment_track") or [{}])[0] or {}
        return {
            "status": shipment_track.get("current_status") or "unknown",
            "courier": shipment_track.get("courier_name"),
            "estimatedDelivery": tracking_data.get("etd"),
            "activities": (tracking_data.get("shipment_track_activities") or [])[:5],
        }

    @staticmethod
    def track_bulk(awbs: list[str], order_numbers: list[str]) -> dict[str, Any]:
        """Track up to ten AWBs and ten order numbers; per-key results."""
        results: dict[str, Any] = {}

        for awb in awbs[:BULK_TRACK_LIMIT]:
            results[awb] = ShippingService._track_summary(awb)

        for order_number in order_numbers[:BULK_TRACK_LIMIT]:
            order = SupabaseClient.fetch_one("orders", "order_number", order_number, columns="awb_code")
            if not order or not order.get("awb_code"):
                results[order_number] = {"status": "no_shipment"}
                continue
            summary = ShippingService._track_summary(order["awb_code"])
            summary.pop("activities", None)
            results[order_number] = {"awb": order["awb_code"], **summary}

        return {"results": results}

    # -------------------------------------------------------------------------
    # Admin Courier Actions
    # -------------------------------------------------------------------------

    @staticmethod
    def admin_action(
        action: str | None,
        order_id: str | None = None,
        shipment_id: str | int | None = None,
        awb_code: str | None = None,
        courier_id: int | None = None,
    ) -> dict[str, Any]:
        """
        Run a courier action for an order (or for raw shipment/AWB ids).

        Raises:
            BadRequestError: Missing action/ids or unknown action
            OrderNotFoundError: orderId given but unknown
            ExternalServiceError: Courier API failed
        """
        if not action:
            raise BadRequestError("Action is required")

        order = None
        if order_id:
            order = SupabaseClient.fetch_order(order_id)
            if not order:
                raise OrderNotFoundError(str(order_id))

        target_shipment = shipment_id or (order or {}).get("shiprocket_shipment_id")
        target_awb = awb_code or (order or {}).get("awb_code")
        client = SupabaseClient.get_client()

        def update_order(values: dict[str, Any]) -> None:
            if order:
                client.table("orders").update({**values, "updated_at": utc_now_iso()}).eq("id", order["id"]).execute()

        def require_shipment() -> int:
            if not target_shipment:
                raise BadRequestError("Shipment ID required")
            return int(target_shipment)

        def require_awb() -> str:
            if not target_awb:
                raise BadRequestError("AWB code required")
            return target_awb

        try:
            if action == AdminShippingAction.ASSIGN_AWB.value:
                result = ShiprocketClient.assign_awb(require_shipment(), courier_id)
                awb_data = (result.get("response") or {}).get("data") or {}
                if awb_data:
                    update_order({
                        "awb_code": awb_data.get("awb_code"),
                        "courier_name": awb_data.get("courier_name"),
                        "status": OrderStatus.PROCESSING.value,
                    })
                return {
                    "success": True,
                    "awbCode": awb_data.get("awb_code"),
                    "courierName": awb_data.get("courier_name"),
                    "data": result,
                }

            if action == AdminShippingAction.SCHEDULE_PICKUP.value:
                result = ShiprocketClient.schedule_pickup([require_shipment()])
                update_order({"pickup_scheduled_at": utc_now_iso()})
                return {"success": True, "message": "Pickup scheduled successfully", "data": result}

            if action == AdminShippingAction.GENERATE_LABEL.value:
                result = ShiprocketClient.generate_label([require_shipment()])
                if result.get("label_url"):
                    update_order({"label_url": result["label_url"]})
                return {"success": True, "labelUrl": result.get("label_url"), "data": result}

            if action == AdminShippingAction.GENERATE_MANIFEST.value:
                result = ShiprocketClient.generate_manifest([require_shipment()])
                if result.get("manifest_url"):
                    update_order({"manifest_url": result["manifest_url"]})
                return {"success": True, "manifestUrl": result.get("manifest_url"), "data": result}

            if action == AdminShippingAction.CANCEL_SHIPMENT.value:
                result = ShiprocketClient.cancel_shipment([require_awb()])
                update_order({
                    "status": OrderStatus.CANCELLED.value,
                    "cancel_reason": "Shipment cancelled via admin",
                })
                return {"success": True, "message": "Shipment cancelled", "data": result}

            if action == AdminShippingAction.TRACK.value:
                result = ShiprocketClient.track_by_awb(require_awb())
                return {"success": True, "tracking": result.get("tracking_data")}

            if action == AdminShippingAction.GET_PICKUP_LOCATIONS.value:
                result = ShiprocketClient.get_pickup_locations()
                return {"success": True, "locations": (result.get("data") or {}).get("shipping_address") or []}

        except ShiprocketError as e:
            logger.error(f"Admin shipping action {action} failed: {e.message}")
            raise ExternalServiceError("Operation failed", service="shiprocket", details={"message": e.message})

        raise BadRequestError(f"Unknown action: {action}")

    @staticmethod
    def admin_shipping_details(order_id: str | None) -> dict[str, Any]:
        """Shipping columns, recent tracking history and live tracking for an order."""
        if not order_id:
            raise BadRequestError("Order ID required")

        order = SupabaseClient.fetch_one("orders", "id", order_id, columns=ADMIN_SHIPPING_COLUMNS)
        if not order:
            raise OrderNotFoundError(str(order_id))

        client = SupabaseClient.get_client()
        history = (
            client.table("shipment_tracking")
            .select("*")
            .eq("order_id", order_id)
            .order("timestamp", desc=True)
            .limit(20)
            .execute()
        )

        live_tracking = None
        if order.get("awb_code"):
            try:
                live_tracking = ShiprocketClient.track_by_awb(order["awb_code"]).get("tracking_data")
            except ShiprocketError:
                logger.info(f"Live tracking not available for {order['awb_code']}")

        return {
            "success": True,
            "order": order,
            "trackingHistory": history.data or [],
            "liveTracking": live_tracking,
        }

    # -------------------------------------------------------------------------
    # Webhook
    # -------------------------------------------------------------------------

    @staticmethod
    def handle_webhook(raw_payload: Any, api_key: str | None = None) -> dict[str, Any]:
        """
        Apply a courier status push.

        Never raises: the courier retries on non-2xx, so internal errors are
        logged and reported in the body instead.
        """
        try:
            return ShippingService._apply_webhook(raw_payload, api_key)
        except Exception as e:
            logger.exception(f"Webhook processing error: {e}")
            return {"received": True, "error": "Processing error"}

    @staticmethod
    def _apply_webhook(raw_payload: Any, api_key: str | None) -> dict[str, Any]:
        token = settings.SHIPROCKET_WEBHOOK_TOKEN
        if token and api_key != token:
            logger.warning("Invalid webhook token received")

        try:
            payload = ShiprocketWebhookPayload.model_validate(raw_payload)
        except ValidationError as e:
            logger.warning(f"Unreadable webhook payload: {e}")
            return {"received": True, "error": "Processing error"}

        logger.debug(f"Shiprocket webhook payload: {raw_payload}")

        columns = "id, status, customer_email, customer_name, order_number, shipped_at"
        if payload.awb:
            order = SupabaseClient.fetch_one("orders", "awb_code", str(payload.awb), columns=columns)
        elif payload.sr_order_id:
            order = SupabaseClient.fetch_one("orders", "shiprocket_order_id", str(payload.sr_order_id), columns=columns)
        else:
            logger.info("No AWB or SR Order ID in webhook payload")
            return {"received": True}

        if not order:
            logger.info(f"Order not found for webhook: awb={payload.awb} sr_order_id={payload.sr_order_id}")
            return {"received": True, "found": False}

        status_id = payload.current_status_id or payload.shipment_status_id
        mapped = map_to_order_status(status_id)
        updates: dict[str, Any] = {"updated_at": utc_now_iso()}

        if should_apply_status(order.get("status"), mapped):
            updates["status"] = mapped

        scan_time = parse_courier_date(payload.current_timestamp)
        if "DELIVERED" in (payload.current_status, payload.shipment_status):
            updates["delivered_at"] = scan_time
            updates["status"] = OrderStatus.DELIVERED.value

        if payload.current_status in SHIPPED_SCANS or payload.shipment_status == "SHIPPED":
            if not order.get("shipped_at"):
                updates["shipped_at"] = scan_time

        if payload.etd:
            updates["expected_delivery"] = payload.etd.split(" ")[0]
        if payload.courier_name:
            updates["courier_name"] = payload.courier_name
        if payload.is_return == 1:
            updates["status"] = OrderStatus.CANCELLED.value
            updates["cancel_reason"] = "RTO - Return to Origin"

        client = SupabaseClient.get_client()
        try:
            client.table("orders").update(updates).eq("id", order["id"]).execute()
        except Exception as e:
            logger.error(f"Order update error for {order.get('order_number')}: {e}")

        status_text = payload.current_status or payload.shipment_status
        latest_scan = payload.scans[-1] if payload.scans else None
        client.table("shipment_tracking").insert({
            "order_id": order["id"],
            "awb_code": str(payload.awb) if payload.awb else None,
            "status": status_text,
            "status_code": str(status_id) if status_id is not None else None,
            "activity": latest_scan.get("activity") if latest_scan else status_text,
            "location": latest_scan.get("location") if latest_scan else None,
            "timestamp": parse_courier_date(latest_scan.get("date")) if latest_scan else scan_time,
            "raw_data": raw_payload,
        }).execute()

        new_status = updates.get("status") or order.get("status")
        if new_status != order.get("status"):
            NotificationService.notify_status_change(
                order,
                new_status,
                awb_code=str(payload.awb) if payload.awb else None,
                courier_name=payload.courier_name,
                expected_delivery=updates.get("expected_delivery"),
                reason=updates.get("cancel_reason"),
            )

        logger.info(f"Order {order.get('order_number')} webhook update: {order.get('status')} -> {new_status}")
        return {
            "received": True,
            "orderId": order["id"],
            "orderNumber": order.get("order_number"),
            "previousStatus": order.get("status"),
            "newStatus": new_status,
        }
