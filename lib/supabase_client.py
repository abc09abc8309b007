# =============================================================================
# lib/supabase_client.py - Supabase Client Wrapper
# =============================================================================
# This module provides a typed wrapper for Supabase database operations.
# It implements the singleton pattern to reuse a single client connection
# and provides the lookups that every service needs:
# - single-row fetch by column (maps "no rows" to None)
# - order lookup by id or order number
# - product lookup by id
#
# Usage:
#   from lib.supabase_client import SupabaseClient
#   order = SupabaseClient.fetch_order("42")
# =============================================================================

from __future__ import annotations

import logging
from typing import Any

from supabase import create_client, Client

from app.config import settings
from lib.utils import ApplicationError

# Set up logging for this module
logger = logging.getLogger(__name__)

# PostgREST code returned by .single() when no row matches
NO_ROWS_CODE = "PGRST116"

# Postgres unique_violation
UNIQUE_VIOLATION_CODE = "23505"


class SupabaseClientError(ApplicationError):
    """Error during Supabase operations."""

    def __init__(self, message: str, code: str = "SUPABASE_ERROR", **kwargs):
        super().__init__(message, code=code, **kwargs)


def is_no_rows_error(error: Exception) -> bool:
    """True when a .single() query failed only because nothing matched."""
    return NO_ROWS_CODE in str(error) or getattr(error, "code", None) == NO_ROWS_CODE


def is_unique_violation(error: Exception) -> bool:
    """True when an insert hit a unique constraint."""
    return getattr(error, "code", None) == UNIQUE_VIOLATION_CODE or UNIQUE_VIOLATION_CODE in str(error)


class SupabaseClient:
    """
    Typed wrapper for Supabase database operations.

    Implements singleton pattern - one client instance is shared across
    the application. All methods are class methods for easy access without
    instantiation.

    Example:
        order = SupabaseClient.fetch_order(order_id)
        if order is None:
            raise OrderNotFoundError(order_id)
    """

    _instance: Client | None = None

    @classmethod
    def get_client(cls) -> Client:
        """
        Get or create the singleton Supabase client.

        Uses service_role key which bypasses Row Level Security (RLS).
        This is appropriate for server-side operations.

        Raises:
            SupabaseClientError: If client creation fails
        """
        if cls._instance is None:
            try:
                cls._instance = create_client(
                    settings.SUPABASE_URL,
                    settings.SUPABASE_SERVICE_KEY
                )
                logger.info("Supabase client initialized successfully")
            except Exception as e:
                raise SupabaseClientError(
                    message=f"Failed to create Supabase client: {e}",
                    code="CLIENT_INIT_FAILED",
                    suggestion="Check SUPABASE_URL and SUPABASE_SERVICE_KEY in your .env file"
                )
        return cls._instance

    @classmethod
    def set_client(cls, client: Client | None) -> None:
        """Replace the singleton (used by tests to install an in-memory fake)."""
        cls._instance = client

    # -------------------------------------------------------------------------
    # Generic Lookups
    # -------------------------------------------------------------------------

    @classmethod
    def fetch_one(
        cls,
        table: str,
        column: str,
        value: Any,
        columns: str = "*",
    ) -> dict[str, Any] | None:
        """
        Fetch a single row where `column == value`.

        Returns:
            Row dict, or None if no row matches

        Raises:
            SupabaseClientError: If the query fails for any other reason
        """
        client = cls.get_client()

        try:
            response = (
                client.table(table)
                .select(columns)
                .eq(column, value)
                .single()
                .execute()
            )
            return response.data

        except Exception as e:
            if is_no_rows_error(e):
                return None
            raise SupabaseClientError(
                message=f"Failed to fetch from {table}: {e}",
                code="FETCH_FAILED",
                suggestion=f"Check that the {table} table is accessible",
                details={"table": table, "column": column, "value": str(value)}
            )

    # -------------------------------------------------------------------------
    # Orders
    # -------------------------------------------------------------------------

    @classmethod
    def fetch_order(cls, order_id: str | int) -> dict[str, Any] | None:
        """Fetch an order by its primary key."""
        return cls.fetch_one("orders", "id", order_id)

    @classmethod
    def fetch_order_by_number(cls, order_number: str) -> dict[str, Any] | None:
        """Fetch an order by its customer-facing AKU-... number."""
        return cls.fetch_one("orders", "order_number", order_number)

    # -------------------------------------------------------------------------
    # Products
    # -------------------------------------------------------------------------

    @classmethod
    def fetch_product(cls, product_id: str | int) -> dict[str, Any] | None:
        """Fetch a product by its primary key."""
        return cls.fetch_one("products", "id", product_id)

    # -------------------------------------------------------------------------
    # Profiles
    # -------------------------------------------------------------------------

    @classmethod
    def fetch_profile(cls, user_id: str) -> dict[str, Any] | None:
        """Fetch the public profile row for an auth user."""
        return cls.fetch_one("profiles", "id", user_id)
