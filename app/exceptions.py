# =============================================================================
# app/exceptions.py - Custom Exception Handlers
# =============================================================================
# Centralized exception handling for the API.
# Every error leaves the API as a JSON body of the form:
#   {"error": "<message>", "code": "<CODE>", ...extra fields}
# =============================================================================

import logging
from typing import Any

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class StoreException(Exception):
    """
    Base exception for the store API.

    All custom exceptions inherit from this class. `details` are merged
    into the top level of the response body so callers can read fields
    like `available` or `existingOrder` directly.
    """

    def __init__(
        self,
        message: str,
        code: str = "STORE_ERROR",
        status_code: int = 500,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to API response dict."""
        result: dict[str, Any] = {
            "error": self.message,
            "code": self.code,
        }
        result.update(self.details)
        return result


class BadRequestError(StoreException):
    """Raised when a request body is missing fields or fails a business rule."""

    def __init__(self, message: str, code: str = "BAD_REQUEST", details: dict[str, Any] | None = None):
        super().__init__(message=message, code=code, status_code=400, details=details)


class ConflictError(StoreException):
    """Raised when a write would duplicate a unique value (category slug, coupon code)."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message=message, code="CONFLICT", status_code=400, details=details)


class ExternalServiceError(StoreException):
    """Raised when a payment, courier or email call fails and the caller must know."""

    def __init__(self, message: str, service: str, status_code: int = 500, details: dict[str, Any] | None = None):
        super().__init__(
            message=message,
            code=f"{service.upper()}_ERROR",
            status_code=status_code,
            details=details,
        )


# =============================================================================
# Not Found Exceptions
# =============================================================================

class OrderNotFoundError(StoreException):
    """Raised when an order id or order number doesn't exist."""

    def __init__(self, order_ref: str):
        super().__init__(
            message="Order not found",
            code="ORDER_NOT_FOUND",
            status_code=404,
            details={"orderId": order_ref},
        )


class ProductNotFoundError(StoreException):
    """Raised when a product id doesn't exist."""

    def __init__(self, product_id: str):
        super().__init__(
            message="Product not found",
            code="PRODUCT_NOT_FOUND",
            status_code=404,
            details={"productId": product_id},
        )


class CategoryNotFoundError(StoreException):
    def __init__(self, category_id: str):
        super().__init__(
            message="Category not found",
            code="CATEGORY_NOT_FOUND",
            status_code=404,
            details={"categoryId": category_id},
        )


class PackedOrderNotFoundError(StoreException):
    def __init__(self, packed_id: str):
        super().__init__(
            message="Packed order not found",
            code="PACKED_ORDER_NOT_FOUND",
            status_code=404,
            details={"id": packed_id},
        )


class RecordNotFoundError(StoreException):
    """Generic 404 for back-office records (finance entries, invoices, coupons)."""

    def __init__(self, label: str, record_id: str):
        super().__init__(
            message=f"{label} not found",
            code=f"{label.upper().replace(' ', '_')}_NOT_FOUND",
            status_code=404,
            details={"id": record_id},
        )


# =============================================================================
# Checkout Exceptions
# =============================================================================

class InvalidPaymentSignatureError(StoreException):
    """Raised when the gateway signature does not match HMAC(orderId|paymentId)."""

    def __init__(self):
        super().__init__(
            message="Invalid payment signature",
            code="INVALID_SIGNATURE",
            status_code=400,
        )


# =============================================================================
# Inventory Exceptions
# =============================================================================

class DuplicateSuborderError(StoreException):
    """Raised when a suborder id has already been packed."""

    def __init__(self, suborder_id: str, existing: dict[str, Any] | None = None):
        existing_order = None
        if existing:
            existing_order = {
                "suborder_id": existing.get("suborder_id", suborder_id),
                "product_name": existing.get("product_name"),
                "quantity": existing.get("quantity"),
                "packed_at": existing.get("packed_at"),
            }
        super().__init__(
            message="This Suborder ID already exists!",
            code="DUPLICATE_SUBORDER",
            status_code=409,
            details={"existingOrder": existing_order} if existing_order else None,
        )


class InsufficientStockError(StoreException):
    """Raised when a pack would take stock below zero."""

    def __init__(self, available: int, requested: int):
        super().__init__(
            message=f"Insufficient stock. Available: {available}, Requested: {requested}",
            code="INSUFFICIENT_STOCK",
            status_code=400,
            details={"available": available},
        )


# =============================================================================
# Order Lifecycle Exceptions
# =============================================================================

class OrderActionError(StoreException):
    """Raised when an admin action is not allowed from the order's current state."""

    def __init__(self, message: str, current_status: str | None = None):
        super().__init__(
            message=message,
            code="INVALID_ORDER_ACTION",
            status_code=400,
            details={"currentStatus": current_status} if current_status else None,
        )


# =============================================================================
# Exception Handlers
# =============================================================================

async def store_exception_handler(
    request: Request,
    exc: StoreException
) -> JSONResponse:
    """Convert StoreException to JSON response."""
    if exc.status_code >= 500:
        logger.error(f"{exc.code} on {request.method} {request.url.path}: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_dict()
    )


async def http_exception_handler(
    request: Request,
    exc: StarletteHTTPException
) -> JSONResponse:
    """Render HTTPException with the same {error} body as StoreException."""
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail},
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(
    request: Request,
    exc: RequestValidationError
) -> JSONResponse:
    """
    Handle Pydantic validation errors.

    Request bodies that fail validation are a client error (400), with the
    first failing field in the message.
    """
    errors = exc.errors()
    message = "Invalid request body"
    if errors:
        location = ".".join(str(part) for part in errors[0].get("loc", ()) if part != "body")
        message = f"{location}: {errors[0].get('msg')}" if location else errors[0].get("msg", message)

    return JSONResponse(
        status_code=400,
        content={
            "error": message,
            "code": "VALIDATION_ERROR",
            "errors": [
                {"loc": list(err.get("loc", ())), "msg": err.get("msg")}
                for err in errors
            ],
        }
    )
