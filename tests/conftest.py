# =============================================================================
# tests/conftest.py - Pytest Configuration
# =============================================================================
# This module provides pytest fixtures and configuration for all tests.
#
# Key features:
# - Sets up mock environment variables before any imports
# - An in-memory fake of the Supabase query builder (fake_db), installed
#   with SupabaseClient.set_client
# - Sample order / product / coupon rows
# - A TestClient with auth dependencies overridden
# =============================================================================

import os
import re
from typing import Any

# =============================================================================
# Set up test environment BEFORE any imports
# =============================================================================
# This must happen before importing app.config which loads settings immediately

os.environ.setdefault("SUPABASE_URL", "https://test-project.supabase.co")
os.environ.setdefault("SUPABASE_ANON_KEY", "test-anon-key")
os.environ.setdefault("SUPABASE_SERVICE_KEY", "test-service-key")
os.environ.setdefault("SUPABASE_JWT_SECRET", "test-jwt-secret")
os.environ.setdefault("RAZORPAY_KEY_ID", "rzp_test_key")
os.environ.setdefault("RAZORPAY_KEY_SECRET", "test-razorpay-secret")
os.environ.setdefault("SHIPROCKET_EMAIL", "ops@akusho.test")
os.environ.setdefault("SHIPROCKET_PASSWORD", "test-password")
os.environ.setdefault("SHIPROCKET_WEBHOOK_TOKEN", "test-webhook-token")
os.environ.setdefault("RESEND_API_KEY", "re_test_key")
os.environ.setdefault("EMAIL_DISPATCH_MODE", "inline")
os.environ.setdefault("ENVIRONMENT", "development")
os.environ.setdefault("DEBUG", "true")

from uuid import UUID

import pytest

import httpx

from lib.supabase_client import NO_ROWS_CODE, UNIQUE_VIOLATION_CODE, SupabaseClient


# =============================================================================
# In-memory Supabase fake
# =============================================================================

class FakeAPIError(Exception):
    """Stands in for postgrest.APIError: carries a PostgREST/Postgres code."""

    def __init__(self, message: str, code: str | None = None):
        super().__init__(f"{code}: {message}" if code else message)
        self.code = code


class FakeResponse:
    def __init__(self, data: Any, count: int | None = None):
        self.data = data
        self.count = count


def _same(a: Any, b: Any) -> bool:
    if a is None or b is None:
        return a is b
    return str(a) == str(b)


def _compare(a: Any, b: Any) -> tuple[Any, Any]:
    if isinstance(a, (int, float)) and isinstance(b, (int, float)):
        return a, b
    return str(a), str(b)


class FakeQuery:
    """Chainable query over one table, executed against FakeSupabase.tables."""

    def __init__(self, db: "FakeSupabase", table: str):
        self.db = db
        self.table = table
        self.op = "select"
        self.payload: Any = None
        self.on_conflict: str | None = None
        self.filters: list = []
        self.count_mode: str | None = None
        self.order_by: list[tuple[str, bool]] = []
        self.row_range: tuple[int, int] | None = None
        self.row_limit: int | None = None
        self.is_single = False

    # -- operations -----------------------------------------------------------

    def select(self, columns: str = "*", count: str | None = None) -> "FakeQuery":
        self.count_mode = count
        return self

    def insert(self, payload: Any) -> "FakeQuery":
        self.op, self.payload = "insert", payload
        return self

    def update(self, payload: dict[str, Any]) -> "FakeQuery":
        self.op, self.payload = "update", payload
        return self

    def upsert(self, payload: Any, on_conflict: str | None = None) -> "FakeQuery":
        self.op, self.payload, self.on_conflict = "upsert", payload, on_conflict
        return self

    def delete(self) -> "FakeQuery":
        self.op = "delete"
        return self

    # -- filters --------------------------------------------------------------

    def eq(self, column: str, value: Any) -> "FakeQuery":
        self.filters.append(lambda row: _same(row.get(column), value))
        return self

    def neq(self, column: str, value: Any) -> "FakeQuery":
        self.filters.append(lambda row: not _same(row.get(column), value))
        return self

    def in_(self, column: str, values: list[Any]) -> "FakeQuery":
        self.filters.append(lambda row: any(_same(row.get(column), v) for v in values))
        return self

    def gte(self, column: str, value: Any) -> "FakeQuery":
        self.filters.append(lambda row: row.get(column) is not None and _compare(row[column], value)[0] >= _compare(row[column], value)[1])
        return self

    def lte(self, column: str, value: Any) -> "FakeQuery":
        self.filters.append(lambda row: row.get(column) is not None and _compare(row[column], value)[0] <= _compare(row[column], value)[1])
        return self

    def lt(self, column: str, value: Any) -> "FakeQuery":
        self.filters.append(lambda row: row.get(column) is not None and _compare(row[column], value)[0] < _compare(row[column], value)[1])
        return self

    def like(self, column: str, pattern: str) -> "FakeQuery":
        regex = re.compile("^" + re.escape(pattern).replace("%", ".*") + "$")
        self.filters.append(lambda row: bool(regex.match(str(row.get(column) or ""))))
        return self

    def or_(self, expression: str) -> "FakeQuery":
        # Only the "col.ilike.%term%" form is used by the services
        clauses = []
        for clause in expression.split(","):
            column, _, pattern = clause.split(".", 2)
            clauses.append((column, pattern.strip("%").lower()))
        self.filters.append(
            lambda row: any(term in str(row.get(column) or "").lower() for column, term in clauses)
        )
        return self

    # -- modifiers ------------------------------------------------------------

    def order(self, column: str, desc: bool = False) -> "FakeQuery":
        self.order_by.append((column, desc))
        return self

    def range(self, start: int, end: int) -> "FakeQuery":
        self.row_range = (start, end)
        return self

    def limit(self, count: int) -> "FakeQuery":
        self.row_limit = count
        return self

    def single(self) -> "FakeQuery":
        self.is_single = True
        return self

    # -- execution ------------------------------------------------------------

    def _matches(self, row: dict[str, Any]) -> bool:
        return all(f(row) for f in self.filters)

    def execute(self) -> FakeResponse:
        self.db.calls.append((self.table, self.op, self.payload))
        error = self.db.failures.get((self.table, self.op))
        if error is not None:
            raise error

        rows = self.db.tables.setdefault(self.table, [])
        handler = getattr(self, f"_execute_{self.op}")
        return handler(rows)

    def _execute_select(self, rows: list[dict[str, Any]]) -> FakeResponse:
        result = [dict(r) for r in rows if self._matches(r)]
        for column, desc in reversed(self.order_by):
            result.sort(key=lambda r: (r.get(column) is None, str(r.get(column) or "")), reverse=desc)
        total = len(result)
        if self.row_range:
            result = result[self.row_range[0]:self.row_range[1] + 1]
        if self.row_limit is not None:
            result = result[:self.row_limit]

        if self.is_single:
            if len(result) != 1:
                raise FakeAPIError("JSON object requested, multiple (or no) rows returned", NO_ROWS_CODE)
            return FakeResponse(result[0], total if self.count_mode else None)
        return FakeResponse(result, total if self.count_mode else None)

    def _insert_one(self, rows: list[dict[str, Any]], values: dict[str, Any]) -> dict[str, Any]:
        row = dict(values)
        for column in self.db.unique.get(self.table, []):
            if any(_same(r.get(column), row.get(column)) for r in rows):
                raise FakeAPIError(f"duplicate key value violates unique constraint on {column}", UNIQUE_VIOLATION_CODE)
        row.setdefault("id", self.db.next_id(self.table))
        rows.append(row)
        return dict(row)

    def _execute_insert(self, rows: list[dict[str, Any]]) -> FakeResponse:
        payload = self.payload if isinstance(self.payload, list) else [self.payload]
        return FakeResponse([self._insert_one(rows, values) for values in payload])

    def _execute_upsert(self, rows: list[dict[str, Any]]) -> FakeResponse:
        payload = self.payload if isinstance(self.payload, list) else [self.payload]
        key = self.on_conflict or "id"
        result = []
        for values in payload:
            existing = next((r for r in rows if _same(r.get(key), values.get(key))), None)
            if existing is not None:
                existing.update(values)
                result.append(dict(existing))
            else:
                result.append(self._insert_one(rows, values))
        return FakeResponse(result)

    def _execute_update(self, rows: list[dict[str, Any]]) -> FakeResponse:
        updated = []
        for row in rows:
            if self._matches(row):
                row.update(self.payload)
                updated.append(dict(row))
        return FakeResponse(updated)

    def _execute_delete(self, rows: list[dict[str, Any]]) -> FakeResponse:
        removed = [r for r in rows if self._matches(r)]
        self.db.tables[self.table] = [r for r in rows if not self._matches(r)]
        return FakeResponse([dict(r) for r in removed])


class FakeSupabase:
    """
    Minimal stand-in for supabase.Client.

    tables:   table name -> list of row dicts
    unique:   table name -> columns with a unique constraint
    failures: (table, op) -> exception raised by execute()
    calls:    (table, op, payload) for every executed query
    """

    def __init__(self):
        self.tables: dict[str, list[dict[str, Any]]] = {}
        self.unique: dict[str, list[str]] = {"packed_orders": ["suborder_id"]}
        self.failures: dict[tuple[str, str], Exception] = {}
        self.calls: list[tuple[str, str, Any]] = []
        self._ids: dict[str, int] = {}

    def table(self, name: str) -> FakeQuery:
        return FakeQuery(self, name)

    def next_id(self, table: str) -> str:
        self._ids[table] = self._ids.get(table, 0) + 1
        return f"{table}-{self._ids[table]}"

    def seed(self, table: str, *rows: dict[str, Any]) -> None:
        self.tables.setdefault(table, []).extend(dict(r) for r in rows)

    def rows(self, table: str) -> list[dict[str, Any]]:
        return self.tables.get(table, [])

    def fail(self, table: str, op: str, error: Exception | None = None) -> None:
        self.failures[(table, op)] = error or FakeAPIError(f"{op} on {table} failed")


# =============================================================================
# Courier API fake
# =============================================================================

class FakeShiprocket:
    """
    httpx.MockTransport handler for the Shiprocket REST API.

    Routes are keyed by (method, path suffix); login always succeeds.
    Unrouted requests get a 404 with a Shiprocket-style message.
    """

    def __init__(self):
        self.routes: dict[tuple[str, str], tuple[int, Any]] = {}
        self.requests: list[httpx.Request] = []

    def add(self, method: str, path: str, payload: Any, status: int = 200) -> None:
        self.routes[(method.upper(), path)] = (status, payload)

    def paths(self) -> list[str]:
        return [r.url.path for r in self.requests]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.path.endswith("/auth/login"):
            return httpx.Response(200, json={"token": "sr-test-token"})

        for (method, path), (status, payload) in self.routes.items():
            if request.method == method and request.url.path.endswith(path):
                return httpx.Response(status, json=payload)
        return httpx.Response(404, json={"message": "Not found"})


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def fake_db():
    """Install a fresh in-memory database for one test."""
    db = FakeSupabase()
    SupabaseClient.set_client(db)
    yield db
    SupabaseClient.set_client(None)


@pytest.fixture
def sample_product():
    return {
        "id": "prod-1",
        "name": "Gojo Satoru Figure",
        "slug": "gojo-satoru-figure",
        "price": 1499,
        "stock": 10,
        "category": "Figures",
        "is_active": True,
        "is_featured": True,
        "created_at": "2025-01-10T10:00:00+00:00",
    }


@pytest.fixture
def sample_order():
    return {
        "id": "order-1",
        "order_number": "AKU-M5K2J9-AB12",
        "status": "processing",
        "payment_status": "paid",
        "customer_name": "Asha Rao",
        "customer_email": "asha@example.com",
        "customer_phone": "+91 98765 43210",
        "shipping_address": "12 MG Road",
        "shipping_city": "Pune",
        "shipping_state": "MH",
        "shipping_pincode": "411001",
        "items": [{"id": "prod-1", "name": "Gojo Satoru Figure", "price": 1499, "quantity": 1}],
        "subtotal": 1499,
        "shipping_cost": 70,
        "discount": 0,
        "total": 1569,
        "total_amount": 1569,
        "coupon_code": None,
        "created_at": "2025-01-15T09:30:00+00:00",
    }


@pytest.fixture
def sample_coupon():
    return {
        "id": "coupon-1",
        "code": "OTAKU10",
        "description": "10% off",
        "discount_type": "percentage",
        "discount_value": 10,
        "min_purchase_amount": 500,
        "max_uses": 100,
        "uses_count": 3,
        "is_active": True,
        "free_shipping": False,
        "valid_from": "2024-01-01T00:00:00+00:00",
        "valid_until": "2099-12-31T23:59:59+00:00",
    }


ADMIN_ID = UUID("11111111-1111-1111-1111-111111111111")


@pytest.fixture
def api_client(fake_db):
    """
    TestClient with auth overridden: every request is an admin.

    Emails are patched out so route tests never reach the provider.
    """
    from unittest.mock import patch

    from fastapi.testclient import TestClient

    from app.auth import AuthUser, get_current_user, get_current_user_optional, require_admin
    from app.main import app

    admin = AuthUser(id=ADMIN_ID, email="admin@akusho.test")
    app.dependency_overrides[require_admin] = lambda: admin
    app.dependency_overrides[get_current_user] = lambda: admin
    app.dependency_overrides[get_current_user_optional] = lambda: None

    with patch("lib.email_client.EmailClient.send", return_value="email-123"):
        yield TestClient(app)

    app.dependency_overrides.clear()


@pytest.fixture
def shiprocket():
    """Route Shiprocket calls to an in-memory fake."""
    from lib.shiprocket_client import ShiprocketClient

    fake = FakeShiprocket()
    ShiprocketClient.set_transport(httpx.MockTransport(fake.handler))
    yield fake
    ShiprocketClient.set_transport(None)


@pytest.fixture
def sent_emails():
    """Capture outgoing emails instead of calling Resend."""
    from unittest.mock import patch

    with patch("lib.email_client.EmailClient.send", return_value="email-123") as send:
        yield send


@pytest.fixture
def anon_client(fake_db):
    """TestClient with the real auth dependencies."""
    from fastapi.testclient import TestClient

    from app.main import app

    app.dependency_overrides.clear()
    return TestClient(app)
