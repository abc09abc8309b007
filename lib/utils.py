# =============================================================================
# lib/utils.py - Shared Utilities
# =============================================================================
# Common utilities used across the application: identifiers, slugs,
# timestamps, courier date parsing and the base error class for lib/.
# =============================================================================

import json
import random
import re
import string
import time
from datetime import date, datetime, time as dt_time, timedelta, timezone
from typing import Any

from pydantic import TypeAdapter, ValidationError


# =============================================================================
# Identifiers
# =============================================================================

BASE36_ALPHABET = string.digits + string.ascii_uppercase


def to_base36(value: int) -> str:
    """Encode a non-negative integer in upper-case base 36."""
    if value < 0:
        raise ValueError("to_base36 expects a non-negative integer")
    if value == 0:
        return "0"
    digits = []
    while value:
        value, remainder = divmod(value, 36)
        digits.append(BASE36_ALPHABET[remainder])
    return "".join(reversed(digits))


def generate_order_number(prefix: str = "AKU", now_ms: int | None = None) -> str:
    """
    Generate a human-readable order number.

    Format: <prefix>-<base36 millisecond timestamp>-<4 random base36 chars>

    Example:
        generate_order_number()  # "AKU-LZ8K2M1Q-7F3A"
    """
    timestamp = now_ms if now_ms is not None else int(time.time() * 1000)
    suffix = "".join(random.choices(BASE36_ALPHABET, k=4))
    return f"{prefix}-{to_base36(timestamp)}-{suffix}"


def normalize_suborder_id(value: str) -> str:
    """Suborder ids are typed by hand at the packing desk: trim and upper-case."""
    return value.strip().upper()


def slugify(name: str) -> str:
    """
    Build a URL slug from a product or category name.

    Example:
        slugify("Naruto: Sage Mode Figure!")  # "naruto-sage-mode-figure"
    """
    slug = re.sub(r"[^a-z0-9]+", "-", name.lower())
    return slug.strip("-")


# =============================================================================
# Time Utilities
# =============================================================================

# Store reporting days run midnight to midnight India time
IST = timezone(timedelta(hours=5, minutes=30))


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def utc_now_iso() -> str:
    """Current UTC time in ISO-8601, the format stored in timestamp columns."""
    return utc_now().isoformat()


def ist_day_bounds(day: date) -> tuple[str, str]:
    """UTC start (inclusive) and end (exclusive) of an IST calendar day."""
    start = datetime.combine(day, dt_time.min, tzinfo=IST).astimezone(timezone.utc)
    end = start + timedelta(days=1)
    return start.strftime("%Y-%m-%dT%H:%M:%S.000Z"), end.strftime("%Y-%m-%dT%H:%M:%S.000Z")


_DATETIME = TypeAdapter(datetime)


def parse_timestamp(value: str | None) -> datetime | None:
    """
    Parse an ISO timestamp from the database.

    Accepts any fractional-second precision PostgREST emits. Naive values
    are treated as UTC. Returns None for empty or unparseable input.
    """
    if not value:
        return None
    try:
        parsed = _DATETIME.validate_python(value)
    except ValidationError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def date_part(value: str | None) -> str | None:
    """YYYY-MM-DD of a courier or ISO timestamp, or None if it can't be read."""
    if not value:
        return None
    parsed = parse_timestamp(value.strip())
    if parsed:
        return parsed.date().isoformat()
    return parse_courier_date(value)[:10] if re.match(r"^\d{2} \d{2} \d{4}", value.strip()) else None


def parse_courier_date(value: str | None) -> str:
    """
    Parse a date sent by the courier aggregator into an ISO string.

    Accepts ISO-8601 ("2024-01-15 10:30:00") and the tracking format
    "DD MM YYYY HH:mm:ss" ("15 01 2024 10:30:00"). Anything else falls back
    to the current time.
    """
    if not value:
        return utc_now_iso()

    parsed = parse_timestamp(value.strip())
    if parsed:
        return parsed.isoformat()

    match = re.match(r"^(\d{2}) (\d{2}) (\d{4}) (\d{2}):(\d{2}):(\d{2})$", value.strip())
    if match:
        day, month, year, hour, minute, second = (int(part) for part in match.groups())
        try:
            return datetime(year, month, day, hour, minute, second, tzinfo=timezone.utc).isoformat()
        except ValueError:
            pass

    return utc_now_iso()


def to_float(value: Any, default: float = 0.0) -> float:
    """Coerce numeric columns (which may arrive as strings) to float."""
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def parse_items(value: Any) -> list[dict[str, Any]]:
    """Order items are JSONB, but older rows stored them as a JSON string."""
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except ValueError:
            return []
    return value if isinstance(value, list) else []


# =============================================================================
# Address Utilities
# =============================================================================

INDIAN_STATE_NAMES: dict[str, str] = {
    "AN": "Andaman and Nicobar Islands",
    "AP": "Andhra Pradesh",
    "AR": "Arunachal Pradesh",
    "AS": "Assam",
    "BR": "Bihar",
    "CH": "Chandigarh",
    "CT": "Chhattisgarh",
    "DN": "Dadra and Nagar Haveli and Daman and Diu",
    "DL": "Delhi",
    "GA": "Goa",
    "GJ": "Gujarat",
    "HR": "Haryana",
    "HP": "Himachal Pradesh",
    "JK": "Jammu and Kashmir",
    "JH": "Jharkhand",
    "KA": "Karnataka",
    "KL": "Kerala",
    "LA": "Ladakh",
    "LD": "Lakshadweep",
    "MP": "Madhya Pradesh",
    "MH": "Maharashtra",
    "MN": "Manipur",
    "ML": "Meghalaya",
    "MZ": "Mizoram",
    "NL": "Nagaland",
    "OR": "Odisha",
    "PY": "Puducherry",
    "PB": "Punjab",
    "RJ": "Rajasthan",
    "SK": "Sikkim",
    "TN": "Tamil Nadu",
    "TG": "Telangana",
    "TR": "Tripura",
    "UP": "Uttar Pradesh",
    "UK": "Uttarakhand",
    "WB": "West Bengal",
}


def full_state_name(state: str | None) -> str:
    """Expand a two-letter state code; full names pass through unchanged."""
    if not state:
        return ""
    return INDIAN_STATE_NAMES.get(state.strip().upper(), state.strip())


def last_ten_digits(phone: str | None) -> str:
    """Courier APIs want a bare 10-digit mobile number."""
    digits = re.sub(r"\D", "", phone or "")
    return digits[-10:]


# =============================================================================
# Base Error Class
# =============================================================================

class ApplicationError(Exception):
    """
    Base error class for errors raised by the lib/ API wrappers.

    Attributes:
        code: Error code for categorization
        message: Human-readable error message
        suggestion: Actionable suggestion for fixing the error
        details: Additional context for debugging

    Example:
        class RazorpayError(ApplicationError):
            def __init__(self, message: str, **kwargs):
                super().__init__(message, code="RAZORPAY_ERROR", **kwargs)
    """

    def __init__(
        self,
        message: str,
        code: str = "APPLICATION_ERROR",
        suggestion: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.code = code
        self.message = message
        self.suggestion = suggestion
        self.details = details or {}

    def __str__(self) -> str:
        result = f"[{self.code}] {self.message}"
        if self.suggestion:
            result += f"\n  Suggestion: {self.suggestion}"
        return result

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for API responses."""
        return {
            "code": self.code,
            "message": self.message,
            "suggestion": self.suggestion,
            "details": self.details,
        }
