# =============================================================================
# core/models/finance.py - Back-office Finance Schemas
# =============================================================================
# - EntryType: profit / expense / asset ledger lines
# - FinancialEntryCreate / FinancialEntryUpdate: Monthly ledger entries
# - InvoiceCreate / InvoiceEmailRequest: Offline (stall / event) invoices
# =============================================================================

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class EntryType(str, Enum):
    """
    Ledger line kind.

    netBalance for a month is total profit minus total expense; assets are
    reported separately.
    """
    PROFIT = "profit"
    EXPENSE = "expense"
    ASSET = "asset"


class FinancialEntryCreate(BaseModel):
    """
    Schema for POST /admin/finance.

    Example:
        {"month": "2025-12", "type": "expense", "name": "Packaging", "amount": 1200}
    """

    month: str | None = Field(default=None, description="YYYY-MM")
    type: str | None = None
    name: str | None = None
    amount: float | str | None = None
    date: str | None = Field(default=None, description="YYYY-MM-DD, defaults to today")
    notes: str | None = None


class FinancialEntryUpdate(BaseModel):
    type: str | None = None
    name: str | None = None
    amount: float | str | None = None
    date: str | None = None
    notes: str | None = None


class InvoiceCreate(BaseModel):
    """
    Schema for POST /admin/invoices.

    Totals are computed by the back-office UI and stored as sent.
    """

    customer_name: str | None = None
    customer_email: str | None = None
    customer_phone: str | None = None
    items: list[dict[str, Any]] = Field(default_factory=list)
    subtotal: float | str | None = None
    discount: float | str = 0
    tax: float | str = 0
    total: float | str | None = None
    payment_method: str = "cash"
    payment_status: str = "paid"
    stall_location: str | None = None
    notes: str | None = None
    invoice_date: str | None = None


class InvoiceEmailRequest(BaseModel):
    invoice_id: str | int | None = Field(default=None, alias="invoiceId")

    model_config = {"populate_by_name": True}
