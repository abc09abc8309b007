# =============================================================================
# core/models/shipping.py - Shipping Schemas
# =============================================================================
# These models define the API contract for couriers and tracking:
# - ShippingCheckRequest / ShippingCalculateRequest: Rates for a pincode
# - CreateShipmentRequest: Push a paid order to the courier aggregator
# - AdminShippingRequest: Back-office courier actions
# - TrackBulkRequest: Track up to ten AWBs or order numbers at once
# - ShiprocketWebhookPayload: Status push from the courier aggregator
# =============================================================================

from enum import Enum

from pydantic import BaseModel, Field


class AdminShippingAction(str, Enum):
    ASSIGN_AWB = "assign_awb"
    SCHEDULE_PICKUP = "schedule_pickup"
    GENERATE_LABEL = "generate_label"
    GENERATE_MANIFEST = "generate_manifest"
    CANCEL_SHIPMENT = "cancel_shipment"
    TRACK = "track"
    GET_PICKUP_LOCATIONS = "get_pickup_locations"


class ShippingCheckRequest(BaseModel):
    """
    Schema for POST /shipping/check.

    Example:
        {"pincode": "411001", "weight": 0.5, "cod": false}
    """

    pincode: str | None = Field(default=None, description="6-digit delivery pincode")
    weight: float = Field(default=0.5, description="Parcel weight in kg")
    cod: bool = Field(default=False, description="Cash on delivery")
    declared_value: float | None = Field(default=None, alias="declaredValue", description="Order value for insurance")

    model_config = {"populate_by_name": True}


class ShippingCalculateRequest(BaseModel):
    """Schema for POST /shipping/calculate."""

    delivery_pincode: str | None = None
    weight: float = 0.5
    cod: bool = False
    declared_value: float = Field(default=0, ge=0, description="Cart value, used for the free shipping check")


class CreateShipmentRequest(BaseModel):
    order_id: str | None = Field(default=None, alias="orderId")

    model_config = {"populate_by_name": True}


class AdminShippingRequest(BaseModel):
    """
    Schema for POST /admin/shipping.

    Example:
        {"action": "assign_awb", "orderId": "o-1", "shipmentId": 123456}
    """

    action: str | None = None
    order_id: str | None = Field(default=None, alias="orderId")
    shipment_id: str | int | None = Field(default=None, alias="shipmentId")
    awb_code: str | None = Field(default=None, alias="awbCode")
    courier_id: int | None = Field(default=None, alias="courierId")

    model_config = {"populate_by_name": True}


class TrackBulkRequest(BaseModel):
    awbs: list[str] = Field(default_factory=list)
    order_numbers: list[str] = Field(default_factory=list, alias="orderNumbers")

    model_config = {"populate_by_name": True}


class ShiprocketWebhookPayload(BaseModel):
    """
    Status push from the courier aggregator.

    Only the fields the store reads are declared; the full payload is kept
    as raw_data on the tracking row.

    Example:
        {"awb": "1234567890", "current_status": "DELIVERED",
         "current_status_id": 7, "current_timestamp": "15 01 2024 10:30:00",
         "scans": [{"date": "...", "activity": "Delivered", "location": "Pune"}]}
    """

    awb: str | int | None = None
    sr_order_id: str | int | None = None
    current_status: str | None = None
    current_status_id: int | str | None = None
    shipment_status: str | None = None
    shipment_status_id: int | str | None = None
    current_timestamp: str | None = None
    etd: str | None = None
    courier_name: str | None = None
    is_return: int | None = None
    scans: list[dict] | None = None

    model_config = {"extra": "allow"}
