# =============================================================================
# lib/shiprocket_client.py - Shiprocket Shipping Aggregator Wrapper
# =============================================================================
# Typed wrapper over the Shiprocket external API. Covers:
# - authentication (token cached for 9 days)
# - serviceability and rate lookup
# - order creation/cancellation, AWB assignment, pickup, label, manifest
# - tracking by AWB or Shiprocket order id
# - return orders
# - the ready-to-dispatch composite used by the admin "RTD" action
#
# Also holds the pure mapping helpers shared by the webhook and tracking
# endpoints (status id -> order status, status labels, courier tracking URLs).
#
# Usage:
#   from lib.shiprocket_client import ShiprocketClient
#   rates = ShiprocketClient.get_shipping_rates("400001", weight=0.5)
# =============================================================================

from __future__ import annotations

import logging
import re
import time
from typing import Any

import httpx

from app.config import settings
from lib.utils import ApplicationError, last_ten_digits, utc_now

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT = 30
TOKEN_TTL_SECONDS = 9 * 24 * 60 * 60

# Default parcel used when products don't carry dimensions
DEFAULT_PARCEL = {"length": 20, "breadth": 15, "height": 10, "weight": 0.5}


class ShiprocketError(ApplicationError):
    """Error talking to the Shiprocket API."""

    def __init__(self, message: str, code: str = "SHIPROCKET_ERROR", **kwargs):
        super().__init__(message, code=code, **kwargs)


# =============================================================================
# Status Mapping
# =============================================================================

# Shiprocket status id -> Shiprocket status name
SHIPROCKET_STATUS_NAMES: dict[int, str] = {
    1: "awb_assigned",
    2: "label_generated",
    3: "pickup_scheduled",
    4: "pickup_queued",
    5: "manifest_generated",
    6: "shipped",
    7: "delivered",
    8: "cancelled",
    9: "rto_initiated",
    10: "rto_delivered",
    17: "out_for_delivery",
    18: "in_transit",
    19: "out_for_pickup",
    20: "pickup_exception",
    21: "undelivered",
    38: "reached_destination",
    42: "picked_up",
}

# Shiprocket status id -> our order status
SHIPROCKET_TO_ORDER_STATUS: dict[int, str] = {
    1: "processing",
    2: "processing",
    3: "processing",
    4: "processing",
    5: "processing",
    6: "shipped",
    7: "delivered",
    8: "cancelled",
    9: "rto_initiated",
    10: "rto_delivered",
    17: "out_for_delivery",
    18: "shipped",
    19: "processing",
    20: "processing",
    21: "undelivered",
    38: "shipped",
    42: "shipped",
}

STATUS_LABELS: dict[str, str] = {
    "pending": "Pending Payment",
    "pending_review": "Awaiting Review",
    "confirmed": "Order Confirmed",
    "processing": "Processing",
    "ready_to_dispatch": "Ready to Dispatch",
    "shipped": "Shipped",
    "in_transit": "In Transit",
    "out_for_delivery": "Out for Delivery",
    "delivered": "Delivered",
    "cancelled": "Cancelled",
    "rto_initiated": "Return Initiated",
    "rto_delivered": "Returned to Seller",
    "undelivered": "Delivery Failed",
    "return_requested": "Return Requested",
}

# Substring of courier name -> public tracking page
COURIER_TRACKING_URLS: list[tuple[str, str]] = [
    ("delhivery", "https://www.delhivery.com/track/package/{awb}"),
    ("bluedart", "https://www.bluedart.com/tracking/{awb}"),
    ("ecom", "https://ecomexpress.in/tracking/?awb_field={awb}"),
    ("xpressbees", "https://www.xpressbees.com/track?awb={awb}"),
    ("shadowfax", "https://tracker.shadowfax.in/#/track/{awb}"),
    ("dtdc", "https://www.dtdc.in/tracking.asp?strCnno={awb}"),
]


def map_to_order_status(status_id: int | str | None) -> str:
    """Map a Shiprocket status id to an order status; unknown ids mean processing."""
    try:
        return SHIPROCKET_TO_ORDER_STATUS.get(int(status_id), "processing")
    except (TypeError, ValueError):
        return "processing"


def get_status_label(status: str) -> str:
    """Human-readable label for an order status."""
    if status in STATUS_LABELS:
        return STATUS_LABELS[status]
    return status.replace("_", " ").title()


def courier_tracking_url(courier_name: str | None, awb: str | None) -> str | None:
    """Public tracking page for known couriers, else None."""
    if not courier_name or not awb:
        return None
    name = courier_name.lower()
    for key, template in COURIER_TRACKING_URLS:
        if key in name:
            return template.format(awb=awb)
    return None


def parse_etd_days(etd: Any) -> int:
    """Leading integer of an ETD like "3 days"; 99 when absent."""
    match = re.match(r"\s*(\d+)", str(etd or ""))
    return int(match.group(1)) if match else 99


# =============================================================================
# Client
# =============================================================================

class ShiprocketClient:
    """
    Class-level Shiprocket client with a cached bearer token.

    The token is fetched from /auth/login on first use and reused for
    TOKEN_TTL_SECONDS. The HTTP transport can be swapped with
    `set_transport` for tests.
    """

    _token: str | None = None
    _token_expires_at: float = 0
    _transport: httpx.BaseTransport | None = None

    @classmethod
    def set_transport(cls, transport: httpx.BaseTransport | None) -> None:
        cls._transport = transport
        cls.reset_token()

    @classmethod
    def reset_token(cls) -> None:
        cls._token = None
        cls._token_expires_at = 0

    @classmethod
    def _http(cls) -> httpx.Client:
        return httpx.Client(
            base_url=settings.SHIPROCKET_API_URL,
            timeout=REQUEST_TIMEOUT,
            transport=cls._transport,
        )

    # -------------------------------------------------------------------------
    # Transport
    # -------------------------------------------------------------------------

    @classmethod
    def get_auth_token(cls) -> str:
        """
        Get a cached bearer token, logging in when missing or expired.

        Raises:
            ShiprocketError: If credentials are missing or login fails
        """
        if cls._token and time.time() < cls._token_expires_at:
            return cls._token

        if not settings.SHIPROCKET_EMAIL or not settings.SHIPROCKET_PASSWORD:
            raise ShiprocketError(
                message="Shiprocket credentials are not configured",
                code="SHIPROCKET_NOT_CONFIGURED",
                suggestion="Set SHIPROCKET_EMAIL and SHIPROCKET_PASSWORD in your .env file",
            )

        try:
            with cls._http() as http:
                response = http.post(
                    "/auth/login",
                    json={"email": settings.SHIPROCKET_EMAIL, "password": settings.SHIPROCKET_PASSWORD},
                )
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPError as e:
            logger.error(f"Shiprocket auth error: {e}")
            raise ShiprocketError(
                message="Failed to authenticate with Shiprocket",
                code="SHIPROCKET_AUTH_FAILED",
                suggestion="Check the Shiprocket API user credentials",
            )

        token = data.get("token")
        if not token:
            raise ShiprocketError(message="No token received from Shiprocket", code="SHIPROCKET_AUTH_FAILED")

        cls._token = token
        cls._token_expires_at = time.time() + TOKEN_TTL_SECONDS
        logger.info("Shiprocket token refreshed")
        return token

    @classmethod
    def api_request(
        cls,
        method: str,
        endpoint: str,
        json: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
    ) -> Any:
        """
        Make an authenticated request and return the decoded JSON body.

        Raises:
            ShiprocketError: On transport errors or non-2xx responses, using
                the API's own message when it sends one
        """
        token = cls.get_auth_token()

        try:
            with cls._http() as http:
                response = http.request(
                    method,
                    endpoint,
                    json=json,
                    params=params,
                    headers={"Authorization": f"Bearer {token}"},
                )
        except httpx.HTTPError as e:
            logger.error(f"Shiprocket request {method} {endpoint} failed: {e}")
            raise ShiprocketError(message=f"Failed to reach Shiprocket: {e}", code="SHIPROCKET_UNAVAILABLE")

        try:
            data = response.json()
        except ValueError:
            data = {}

        if response.is_error:
            message = data.get("message") if isinstance(data, dict) else None
            logger.error(f"Shiprocket API error on {endpoint}: {data}")
            raise ShiprocketError(
                message=message or f"Shiprocket API error: {response.status_code}",
                details={"endpoint": endpoint, "status": response.status_code},
            )

        return data

    # -------------------------------------------------------------------------
    # Serviceability & Rates
    # -------------------------------------------------------------------------

    @classmethod
    def check_serviceability(
        cls,
        pickup_pincode: str,
        delivery_pincode: str,
        weight: float,
        cod: bool = False,
        declared_value: float | None = None,
        dimensions: dict[str, float] | None = None,
    ) -> dict[str, Any]:
        params: dict[str, Any] = {
            "pickup_postcode": pickup_pincode,
            "delivery_postcode": delivery_pincode,
            "weight": weight,
            "cod": 1 if cod else 0,
        }
        if declared_value:
            params["declared_value"] = declared_value
        if dimensions and all(dimensions.get(k) for k in ("length", "breadth", "height")):
            params.update({k: dimensions[k] for k in ("length", "breadth", "height")})

        return cls.api_request("GET", "/courier/serviceability/", params=params)

    @classmethod
    def get_shipping_rates(
        cls,
        delivery_pincode: str,
        weight: float = 0.5,
        cod: bool = False,
        declared_value: float | None = None,
    ) -> dict[str, Any]:
        """
        Courier options for a pincode, cheapest first.

        Never raises: courier errors are logged and reported as unserviceable.

        Returns:
            {"serviceable": bool, "couriers": [...], "cheapest": {...}, "fastest": {...}}
        """
        try:
            result = cls.check_serviceability(
                pickup_pincode=settings.WAREHOUSE_PINCODE,
                delivery_pincode=delivery_pincode,
                weight=weight,
                cod=cod,
                declared_value=declared_value,
            )
        except ShiprocketError as e:
            logger.error(f"Error getting shipping rates for {delivery_pincode}: {e.message}")
            return {"serviceable": False, "couriers": []}

        companies = ((result or {}).get("data") or {}).get("available_courier_companies") or []
        if not companies:
            return {"serviceable": False, "couriers": []}

        couriers = [
            {
                "id": c.get("courier_company_id"),
                "name": c.get("courier_name"),
                "rate": round(float(c.get("rate") or 0)),
                "etd": c.get("etd"),
                "cod": c.get("cod") == 1,
                "codCharges": c.get("cod_charges") or 0,
                "minWeight": c.get("min_weight"),
            }
            for c in companies
        ]
        couriers.sort(key=lambda c: c["rate"])
        fastest = min(couriers, key=lambda c: parse_etd_days(c["etd"]))

        return {
            "serviceable": True,
            "couriers": couriers,
            "cheapest": couriers[0],
            "fastest": fastest,
        }

    # -------------------------------------------------------------------------
    # Orders & Shipments
    # -------------------------------------------------------------------------

    @classmethod
    def create_order(cls, order_data: dict[str, Any]) -> dict[str, Any]:
        return cls.api_request("POST", "/orders/create/adhoc", json=order_data)

    @classmethod
    def cancel_order(cls, order_ids: list[int | str]) -> dict[str, Any]:
        return cls.api_request("POST", "/orders/cancel", json={"ids": order_ids})

    @classmethod
    def cancel_shipment(cls, awbs: list[str]) -> dict[str, Any]:
        """Cancel shipments by AWB (only before pickup)."""
        return cls.api_request("POST", "/orders/cancel/shipment/awbs", json={"awbs": awbs})

    @classmethod
    def assign_awb(cls, shipment_id: int | str, courier_id: int | None = None) -> dict[str, Any]:
        """Assign an AWB; Shiprocket picks the courier when courier_id is omitted."""
        body: dict[str, Any] = {"shipment_id": shipment_id}
        if courier_id:
            body["courier_id"] = courier_id
        return cls.api_request("POST", "/courier/assign/awb", json=body)

    @classmethod
    def schedule_pickup(cls, shipment_ids: list[int | str]) -> dict[str, Any]:
        return cls.api_request("POST", "/courier/generate/pickup", json={"shipment_id": shipment_ids})

    @classmethod
    def generate_label(cls, shipment_ids: list[int | str]) -> dict[str, Any]:
        return cls.api_request("POST", "/courier/generate/label", json={"shipment_id": shipment_ids})

    @classmethod
    def generate_manifest(cls, shipment_ids: list[int | str]) -> dict[str, Any]:
        return cls.api_request("POST", "/manifests/generate", json={"shipment_id": shipment_ids})

    @classmethod
    def create_return_order(cls, return_data: dict[str, Any]) -> dict[str, Any]:
        return cls.api_request("POST", "/orders/create/return", json=return_data)

    # -------------------------------------------------------------------------
    # Tracking
    # -------------------------------------------------------------------------

    @classmethod
    def track_by_awb(cls, awb_code: str) -> dict[str, Any]:
        return cls.api_request("GET", f"/courier/track/awb/{awb_code}")

    @classmethod
    def track_by_shiprocket_order_id(cls, order_id: str | int) -> Any:
        return cls.api_request("GET", "/courier/track", params={"order_id": order_id})

    @classmethod
    def get_pickup_locations(cls) -> dict[str, Any]:
        return cls.api_request("GET", "/settings/company/pickup")

    # -------------------------------------------------------------------------
    # Payload Builders
    # -------------------------------------------------------------------------

    @staticmethod
    def build_order_items(items: list[dict[str, Any]], qc_enable: bool = False) -> list[dict[str, Any]]:
        order_items = []
        for item in items or []:
            line = {
                "name": item.get("name"),
                "sku": item.get("sku") or f"SKU-{item.get('id')}",
                "units": item.get("quantity", 1),
                "selling_price": item.get("price", 0),
            }
            if qc_enable:
                line["qc_enable"] = True
            order_items.append(line)
        return order_items

    @classmethod
    def build_adhoc_order(cls, order: dict[str, Any], parcel: dict[str, float] | None = None) -> dict[str, Any]:
        """
        Shape a stored order row into a /orders/create/adhoc payload.

        The street address is split on the first comma into line 1 and 2,
        and the customer name into first and last name.
        """
        address = order.get("shipping_address") or ""
        address_parts = [part.strip() for part in address.split(",")]
        name_parts = (order.get("customer_name") or "").strip().split(" ")
        dimensions = {**DEFAULT_PARCEL, **(parcel or {})}

        return {
            "order_id": order.get("order_number"),
            "order_date": utc_now().date().isoformat(),
            "pickup_location": settings.SHIPROCKET_PICKUP_LOCATION,
            "billing_customer_name": name_parts[0],
            "billing_last_name": " ".join(name_parts[1:]),
            "billing_address": address_parts[0] or address,
            "billing_address_2": ", ".join(address_parts[1:]),
            "billing_city": order.get("shipping_city") or "Unknown",
            "billing_pincode": order.get("shipping_pincode") or "000000",
            "billing_state": order.get("shipping_state") or "Unknown",
            "billing_country": order.get("shipping_country") or "India",
            "billing_email": order.get("customer_email"),
            "billing_phone": last_ten_digits(order.get("customer_phone")),
            "shipping_is_billing": True,
            "order_items": cls.build_order_items(order.get("items") or []),
            "payment_method": "Prepaid" if order.get("payment_status") == "paid" else "COD",
            "sub_total": order.get("subtotal") or order.get("total") or 0,
            **dimensions,
        }

    @classmethod
    def build_return_order(cls, order: dict[str, Any]) -> dict[str, Any]:
        """Return pickup from the customer's address back to the warehouse."""
        return {
            "order_id": order.get("shiprocket_order_id"),
            "order_date": utc_now().date().isoformat(),
            "pickup_customer_name": order.get("customer_name"),
            "pickup_address": order.get("shipping_address"),
            "pickup_city": order.get("shipping_city"),
            "pickup_state": order.get("shipping_state"),
            "pickup_country": "India",
            "pickup_pincode": order.get("shipping_pincode"),
            "pickup_email": order.get("customer_email"),
            "pickup_phone": order.get("customer_phone"),
            "pickup_isd_code": "91",
            "shipping_customer_name": settings.WAREHOUSE_NAME,
            "shipping_address": settings.WAREHOUSE_ADDRESS or "Warehouse Address",
            "shipping_city": settings.WAREHOUSE_CITY,
            "shipping_state": settings.WAREHOUSE_STATE,
            "shipping_country": "India",
            "shipping_pincode": settings.WAREHOUSE_PINCODE,
            "shipping_email": settings.SHIPROCKET_EMAIL,
            "shipping_phone": settings.WAREHOUSE_PHONE or "9999999999",
            "order_items": cls.build_order_items(order.get("items") or [], qc_enable=True),
            "payment_method": "Prepaid",
            "sub_total": order.get("total_amount") or order.get("total") or 0,
            **DEFAULT_PARCEL,
        }

    # -------------------------------------------------------------------------
    # Ready To Dispatch
    # -------------------------------------------------------------------------

    @classmethod
    def process_ready_to_dispatch(cls, order: dict[str, Any]) -> dict[str, Any]:
        """
        Create the courier order, assign an AWB, schedule pickup and print a label.

        Tracking lookup at the end is best-effort. Never raises; failures
        come back as {"success": False, "error": "..."}.
        """
        order_number = order.get("order_number")
        logger.info(f"Starting ready-to-dispatch for order {order_number}")

        try:
            shiprocket_order = cls.create_order(cls.build_adhoc_order(order))
            shipment_id = shiprocket_order.get("shipment_id")
            logger.info(f"Shiprocket order created: {shiprocket_order.get('order_id')}")

            awb_result = cls.assign_awb(shipment_id)
            if awb_result.get("awb_assign_status") != 1:
                raise ShiprocketError(
                    message="Failed to assign AWB - courier may not be available",
                    code="AWB_NOT_ASSIGNED",
                )
            awb_data = (awb_result.get("response") or {}).get("data") or {}
            awb_code = awb_data.get("awb_code")
            courier_name = awb_data.get("courier_name")
            logger.info(f"AWB assigned for {order_number}: {awb_code} ({courier_name})")

            cls.schedule_pickup([shipment_id])
            label_result = cls.generate_label([shipment_id])
            label_url = label_result.get("label_url")

        except ShiprocketError as e:
            logger.error(f"Ready-to-dispatch failed for {order_number}: {e.message}")
            return {"success": False, "error": e.message}

        tracking_url = None
        expected_delivery = None
        try:
            tracking = cls.track_by_awb(awb_code).get("tracking_data") or {}
            tracking_url = tracking.get("track_url")
            expected_delivery = tracking.get("etd")
        except ShiprocketError:
            logger.info(f"Tracking not available yet for {awb_code}")

        logger.info(f"Ready-to-dispatch complete for order {order_number}")
        return {
            "success": True,
            "shiprocketOrderId": shiprocket_order.get("order_id"),
            "shipmentId": shipment_id,
            "awbCode": awb_code,
            "courierName": courier_name,
            "labelUrl": label_url,
            "trackingUrl": tracking_url or courier_tracking_url(courier_name, awb_code),
            "expectedDelivery": expected_delivery,
        }
