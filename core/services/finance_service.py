# =============================================================================
# core/services/finance_service.py - Back-office Ledger and Offline Invoices
# =============================================================================

import logging
import re
from typing import Any

from app.exceptions import BadRequestError, RecordNotFoundError, StoreException
from lib.supabase_client import SupabaseClient
from lib.utils import to_float, utc_now, utc_now_iso
from core.models.email import EmailType
from core.models.finance import (
    EntryType,
    FinancialEntryCreate,
    FinancialEntryUpdate,
    InvoiceCreate,
)
from core.services.notification_service import NotificationService

logger = logging.getLogger(__name__)

INVOICE_PREFIX = "AKU-OFF-"
MONTH_PATTERN = re.compile(r"^\d{4}-\d{2}$")
ENTRY_TYPES = {t.value for t in EntryType}


def summarize_entries(entries: list[dict[str, Any]]) -> dict[str, Any]:
    """Per-type totals and counts; netBalance = profit - expense."""
    summary = {
        "totalProfit": 0.0,
        "totalExpense": 0.0,
        "totalAssets": 0.0,
        "netBalance": 0.0,
        "profitCount": 0,
        "expenseCount": 0,
        "assetCount": 0,
    }
    for entry in entries:
        amount = to_float(entry.get("amount"))
        if entry.get("type") == EntryType.PROFIT.value:
            summary["totalProfit"] += amount
            summary["profitCount"] += 1
        elif entry.get("type") == EntryType.EXPENSE.value:
            summary["totalExpense"] += amount
            summary["expenseCount"] += 1
        elif entry.get("type") == EntryType.ASSET.value:
            summary["totalAssets"] += amount
            summary["assetCount"] += 1

    summary["netBalance"] = summary["totalProfit"] - summary["totalExpense"]
    return summary


def next_invoice_number(last_number: str | None) -> str:
    """
    AKU-OFF-0001, AKU-OFF-0002, ...

    Example:
        next_invoice_number("AKU-OFF-0041")  # "AKU-OFF-0042"
    """
    next_num = 1
    if last_number:
        try:
            next_num = int(last_number.replace(INVOICE_PREFIX, "")) + 1
        except ValueError:
            logger.warning(f"Unexpected invoice number format: {last_number}")
    return f"{INVOICE_PREFIX}{next_num:04d}"


def _strip(value: str | None) -> str | None:
    return value.strip() or None if value else None


class FinanceService:
    """
    Service for the monthly ledger and offline (stall) invoices.
    """

    # -------------------------------------------------------------------------
    # Ledger
    # -------------------------------------------------------------------------

    @staticmethod
    def list_entries(month: str | None = None) -> dict[str, Any]:
        """Entries for a month (YYYY-MM, default current), newest date first."""
        month = month or utc_now().strftime("%Y-%m")
        if not MONTH_PATTERN.match(month):
            raise BadRequestError("Month must be in YYYY-MM format")

        client = SupabaseClient.get_client()
        response = (
            client.table("financial_entries")
            .select("*")
            .eq("month", month)
            .order("date", desc=True)
            .execute()
        )
        entries = response.data or []
        return {"entries": entries, "summary": summarize_entries(entries), "month": month}

    @staticmethod
    def create_entry(request: FinancialEntryCreate) -> dict[str, Any]:
        """
        Raises:
            BadRequestError: Missing fields or unknown type
        """
        if not request.month or not request.type or not request.name or request.amount is None:
            raise BadRequestError(
                "Missing required fields",
                details={"received": request.model_dump(include={"month", "type", "name", "amount"})},
            )
        if request.type not in ENTRY_TYPES:
            raise BadRequestError("Invalid type")

        client = SupabaseClient.get_client()
        response = client.table("financial_entries").insert({
            "month": request.month,
            "type": request.type,
            "name": request.name.strip(),
            "amount": to_float(request.amount),
            "date": request.date or utc_now().date().isoformat(),
            "notes": _strip(request.notes),
        }).execute()

        entry = response.data[0]
        logger.info(f"Created {entry.get('type')} entry {entry.get('id')} for {entry.get('month')}")
        return {"success": True, "entry": entry}

    @staticmethod
    def get_entry(entry_id: str) -> dict[str, Any]:
        entry = SupabaseClient.fetch_one("financial_entries", "id", entry_id)
        if not entry:
            raise RecordNotFoundError("Entry", str(entry_id))
        return {"entry": entry}

    @staticmethod
    def update_entry(entry_id: str, request: FinancialEntryUpdate) -> dict[str, Any]:
        fields = request.model_dump(exclude_unset=True)
        updates: dict[str, Any] = {}

        if "type" in fields:
            if fields["type"] not in ENTRY_TYPES:
                raise BadRequestError("Invalid type")
            updates["type"] = fields["type"]
        if fields.get("name") is not None:
            updates["name"] = fields["name"].strip()
        if "amount" in fields:
            updates["amount"] = to_float(fields["amount"])
        if "date" in fields:
            updates["date"] = fields["date"]
        if "notes" in fields:
            updates["notes"] = _strip(fields["notes"])

        client = SupabaseClient.get_client()
        response = client.table("financial_entries").update(updates).eq("id", entry_id).execute()
        if not response.data:
            raise RecordNotFoundError("Entry", str(entry_id))
        return {"success": True, "entry": response.data[0]}

    @staticmethod
    def delete_entry(entry_id: str) -> dict[str, Any]:
        client = SupabaseClient.get_client()
        client.table("financial_entries").delete().eq("id", entry_id).execute()
        logger.info(f"Deleted finance entry {entry_id}")
        return {"success": True}

    # -------------------------------------------------------------------------
    # Offline Invoices
    # -------------------------------------------------------------------------

    @staticmethod
    def generate_invoice_number() -> str:
        client = SupabaseClient.get_client()
        response = (
            client.table("offline_invoices")
            .select("invoice_number")
            .like("invoice_number", f"{INVOICE_PREFIX}%")
            .order("invoice_number", desc=True)
            .limit(1)
            .execute()
        )
        last = response.data[0]["invoice_number"] if response.data else None
        return next_invoice_number(last)

    @staticmethod
    def list_invoices(limit: int = 50, offset: int = 0) -> dict[str, Any]:
        """Invoices newest first, with revenue / paid / pending stats over all invoices."""
        client = SupabaseClient.get_client()
        response = (
            client.table("offline_invoices")
            .select("*", count="exact")
            .order("created_at", desc=True)
            .range(offset, offset + limit - 1)
            .execute()
        )

        totals = client.table("offline_invoices").select("total, payment_status").execute().data or []
        stats = {
            "totalInvoices": response.count or 0,
            "totalRevenue": sum(to_float(inv.get("total")) for inv in totals),
            "paidCount": sum(1 for inv in totals if inv.get("payment_status") == "paid"),
            "pendingCount": sum(1 for inv in totals if inv.get("payment_status") != "paid"),
        }

        return {
            "invoices": response.data or [],
            "stats": stats,
            "pagination": {"limit": limit, "offset": offset, "total": response.count},
        }

    @staticmethod
    def create_invoice(request: InvoiceCreate) -> dict[str, Any]:
        """
        Raises:
            BadRequestError: Missing customer name/email or no items
        """
        if not request.customer_name or not request.customer_email or not request.items:
            raise BadRequestError("Missing required fields: customer_name, customer_email, items")

        invoice_number = FinanceService.generate_invoice_number()
        client = SupabaseClient.get_client()
        try:
            response = client.table("offline_invoices").insert({
                "invoice_number": invoice_number,
                "customer_name": request.customer_name.strip(),
                "customer_email": request.customer_email.strip().lower(),
                "customer_phone": _strip(request.customer_phone),
                "items": request.items,
                "subtotal": to_float(request.subtotal),
                "discount": to_float(request.discount),
                "tax": to_float(request.tax),
                "total": to_float(request.total),
                "payment_method": request.payment_method,
                "payment_status": request.payment_status,
                "stall_location": _strip(request.stall_location),
                "notes": _strip(request.notes),
                "invoice_date": request.invoice_date or utc_now().date().isoformat(),
            }).execute()
        except Exception as e:
            logger.error(f"Failed to create invoice {invoice_number}: {e}")
            raise StoreException("Failed to create invoice", code="INVOICE_CREATE_FAILED")

        logger.info(f"Invoice created: {invoice_number}")
        return {"success": True, "invoice": response.data[0]}

    @staticmethod
    def send_invoice_email(invoice_id: str | int | None) -> dict[str, Any]:
        """
        Email an invoice to its customer and mark it sent.

        Raises:
            BadRequestError: No invoice id
            RecordNotFoundError: Unknown invoice
            ExternalServiceError: Email provider rejected the send
        """
        if not invoice_id:
            raise BadRequestError("Invoice ID required")

        invoice = SupabaseClient.fetch_one("offline_invoices", "id", invoice_id)
        if not invoice:
            raise RecordNotFoundError("Invoice", str(invoice_id))

        result = NotificationService.send_or_raise(
            EmailType.OFFLINE_INVOICE.value,
            invoice["customer_email"],
            {
                **invoice,
                "total": to_float(invoice.get("total")),
                "subtotal": to_float(invoice.get("subtotal")),
                "discount": to_float(invoice.get("discount")),
                "shipping": 0,
            },
            "Failed to send email",
        )

        client = SupabaseClient.get_client()
        client.table("offline_invoices").update({
            "email_sent": True,
            "email_sent_at": utc_now_iso(),
        }).eq("id", invoice_id).execute()

        logger.info(f"Invoice {invoice.get('invoice_number')} emailed to {invoice['customer_email']}")
        return {"success": True, "message": "Invoice sent successfully!", "emailId": result.get("id")}
