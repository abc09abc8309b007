# =============================================================================
# app/routers/shipping.py - Rates, Shipments, Tracking and Courier Webhook
# =============================================================================
# - router (/shipping): storefront rates and tracking, shipment creation
# - admin_router (/admin/shipping): back-office courier actions
# - webhook_router (/webhooks): courier status pushes
# =============================================================================

import logging
from typing import Annotated

from fastapi import APIRouter, Header, Query, Request
from fastapi.responses import JSONResponse

from app.config import settings
from app.dependencies import AdminUser
from app.exceptions import StoreException
from core.models.shipping import (
    AdminShippingRequest,
    CreateShipmentRequest,
    ShippingCalculateRequest,
    ShippingCheckRequest,
    TrackBulkRequest,
)
from core.services.shipping_service import ShippingService
from lib.utils import utc_now_iso

logger = logging.getLogger(__name__)

router = APIRouter()
admin_router = APIRouter()
webhook_router = APIRouter()


# =============================================================================
# Rates
# =============================================================================

@router.post("/check")
async def check_shipping(request: ShippingCheckRequest):
    """
    Courier options for a pincode.

    Unexpected failures still return the flat fallback rate so the cart
    can show a shipping charge.
    """
    try:
        return ShippingService.check_rates(request.pincode, request.weight, request.cod, request.declared_value)
    except StoreException:
        raise
    except Exception as e:
        logger.exception(f"Shipping check failed for {request.pincode}: {e}")
        return JSONResponse(
            status_code=500,
            content={
                "error": "Failed to check shipping availability",
                "message": str(e),
                "serviceable": False,
                "couriers": [],
                "defaultShipping": settings.FALLBACK_SHIPPING_COST,
            },
        )


@router.get("/check")
async def check_shipping_query(
    pincode: Annotated[str | None, Query()] = None,
    weight: Annotated[float, Query()] = 0.5,
    cod: Annotated[str | None, Query(description="'true' for cash on delivery")] = None,
):
    return ShippingService.check_rates(pincode, weight, cod == "true")


@router.post("/calculate")
async def calculate_shipping(request: ShippingCalculateRequest):
    """Recommended and fastest courier, with the free shipping check."""
    try:
        return ShippingService.calculate_shipping(
            request.delivery_pincode,
            weight=request.weight,
            cod=request.cod,
            declared_value=request.declared_value,
        )
    except StoreException:
        raise
    except Exception as e:
        logger.exception(f"Shipping calculation failed: {e}")
        return JSONResponse(
            status_code=500,
            content={"error": "Failed to calculate shipping rates", "message": str(e)},
        )


# =============================================================================
# Shipments and Tracking
# =============================================================================

@router.post("/create-shipment")
async def create_shipment(request: CreateShipmentRequest, admin: AdminUser):
    """Push a paid order to the courier aggregator."""
    return ShippingService.create_shipment(request.order_id)


@router.get("/track")
async def track_shipment(
    awb: Annotated[str | None, Query()] = None,
    order_id: Annotated[str | None, Query(description="Courier order id")] = None,
    order_number: Annotated[str | None, Query(alias="orderNumber")] = None,
):
    return ShippingService.track(awb=awb, order_number=order_number, shiprocket_order_id=order_id)


@router.post("/track")
async def track_bulk(request: TrackBulkRequest):
    """Track up to ten AWBs and ten order numbers."""
    return ShippingService.track_bulk(request.awbs, request.order_numbers)


# =============================================================================
# Admin
# =============================================================================

@admin_router.post("")
async def admin_shipping_action(request: AdminShippingRequest, admin: AdminUser):
    """
    Courier actions: assign_awb, schedule_pickup, generate_label,
    generate_manifest, cancel_shipment, track, get_pickup_locations.
    """
    return ShippingService.admin_action(
        request.action,
        order_id=request.order_id,
        shipment_id=request.shipment_id,
        awb_code=request.awb_code,
        courier_id=request.courier_id,
    )


@admin_router.get("")
async def admin_shipping_details(
    admin: AdminUser,
    order_id: Annotated[str | None, Query(alias="orderId")] = None,
):
    return ShippingService.admin_shipping_details(order_id)


# =============================================================================
# Webhook
# =============================================================================

@webhook_router.post("/shiprocket")
async def shiprocket_webhook(
    request: Request,
    x_api_key: Annotated[str | None, Header()] = None,
):
    """
    Courier status push.

    Always 200: errors are reported in the body so the courier doesn't
    retry indefinitely.
    """
    try:
        payload = await request.json()
    except ValueError:
        logger.warning("Webhook body is not JSON")
        return {"received": True, "error": "Processing error"}

    return ShippingService.handle_webhook(payload, api_key=x_api_key)


@webhook_router.get("/shiprocket")
async def shiprocket_webhook_health():
    return {
        "status": "ok",
        "message": "Shiprocket webhook endpoint is active",
        "timestamp": utc_now_iso(),
    }
