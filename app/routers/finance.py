# =============================================================================
# app/routers/finance.py - Back-office Ledger and Offline Invoices
# =============================================================================

from typing import Annotated

from fastapi import APIRouter, Query

from app.dependencies import AdminUser
from core.models.finance import (
    FinancialEntryCreate,
    FinancialEntryUpdate,
    InvoiceCreate,
    InvoiceEmailRequest,
)
from core.services.finance_service import FinanceService

router = APIRouter()
invoices_router = APIRouter()


# =============================================================================
# Ledger
# =============================================================================

@router.get("")
async def list_entries(
    admin: AdminUser,
    month: Annotated[str | None, Query(description="YYYY-MM, defaults to the current month")] = None,
):
    """Entries for a month with profit / expense / asset totals."""
    return FinanceService.list_entries(month)


@router.post("")
async def create_entry(request: FinancialEntryCreate, admin: AdminUser):
    return FinanceService.create_entry(request)


@router.get("/{entry_id}")
async def get_entry(entry_id: str, admin: AdminUser):
    return FinanceService.get_entry(entry_id)


@router.put("/{entry_id}")
async def update_entry(entry_id: str, request: FinancialEntryUpdate, admin: AdminUser):
    return FinanceService.update_entry(entry_id, request)


@router.delete("/{entry_id}")
async def delete_entry(entry_id: str, admin: AdminUser):
    return FinanceService.delete_entry(entry_id)


# =============================================================================
# Offline Invoices
# =============================================================================

@invoices_router.get("")
async def list_invoices(
    admin: AdminUser,
    limit: Annotated[int, Query(ge=1, le=500)] = 50,
    offset: Annotated[int, Query(ge=0)] = 0,
):
    return FinanceService.list_invoices(limit=limit, offset=offset)


@invoices_router.post("")
async def create_invoice(request: InvoiceCreate, admin: AdminUser):
    """Create an AKU-OFF-NNNN invoice for a stall / event sale."""
    return FinanceService.create_invoice(request)


@invoices_router.post("/send-email")
async def send_invoice_email(request: InvoiceEmailRequest, admin: AdminUser):
    return FinanceService.send_invoice_email(request.invoice_id)
