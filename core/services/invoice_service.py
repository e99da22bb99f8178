"""
Invoice service: numbering, GST totals and persistence for tax invoices.

Subtotal, tax and total are always recomputed from the line items on create
and update; values supplied by the client are never trusted.

Invoices have no degraded mode. When the database is unreachable every read
and write raises StorageUnavailableError rather than serving or accepting
data that would not be durably stored. The one exception is the next-number
hint, which falls back to the first number of the year.
"""

import logging
from uuid import UUID

from core.audit import AuditLogger
from core.exceptions import NotFoundError, StorageUnavailableError, ValidationError
from core.fiscal import compute_totals
from core.models import (
    DEFAULT_TAX_RATE,
    DEFAULT_TITLE,
    Invoice,
    InvoiceDraft,
    InvoicePatch,
    LineItem,
)
from core.numbering import first_invoice_number
from core.repositories import InvoiceRepository
from core.repositories.invoice_repository import parse_id
from utils.timezone import now_utc, current_year

logger = logging.getLogger(__name__)

# Fields that can't be cleared by an explicit null in a patch.
_NON_NULLABLE = {
    "invoice_number", "title", "issue_date", "business_name", "abn",
    "client_name", "items", "tax_rate", "status",
}

_REQUIRED_TEXT = {
    "business_name": "businessName",
    "abn": "abn",
    "client_name": "clientName",
}


def _serialize_items(items: list[LineItem]) -> list[dict]:
    return [item.model_dump(mode="json") for item in items]


class InvoiceService:
    """Service for invoice operations."""

    def __init__(self, repository: InvoiceRepository, audit: AuditLogger):
        self.repository = repository
        self.audit = audit

    def _require_storage(self, action: str) -> None:
        if not self.repository.storage.available:
            raise StorageUnavailableError(f"Database not connected. Cannot {action}.")

    def create(self, draft: InvoiceDraft) -> Invoice:
        """
        Create an invoice from a draft.

        Assigns the next invoice number if the draft has none, defaults the
        title and tax rate, and computes totals from the line items.

        Raises:
            StorageUnavailableError: If the database is not connected.
            ValidationError: If business name, ABN, client name or line items
                are missing.
            DuplicateInvoiceNumberError: If the invoice number is taken.
        """
        self._require_storage("create invoice")

        missing = [
            label for field, label in _REQUIRED_TEXT.items()
            if not (getattr(draft, field) or "").strip()
        ]
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")
        if not draft.items:
            raise ValidationError("At least one line item is required")

        tax_rate = draft.tax_rate if draft.tax_rate is not None else DEFAULT_TAX_RATE
        totals = compute_totals(draft.items, tax_rate)

        invoice_number = (draft.invoice_number or "").strip()
        if not invoice_number:
            invoice_number = self.repository.next_invoice_number()

        invoice = self.repository.create({
            "invoice_number": invoice_number,
            "title": (draft.title or "").strip() or DEFAULT_TITLE,
            "issue_date": draft.issue_date or now_utc().date(),
            "due_date": draft.due_date,
            "business_name": draft.business_name.strip(),
            "abn": draft.abn.strip(),
            "business_address": draft.business_address,
            "client_id": draft.client_id,
            "client_name": draft.client_name.strip(),
            "client_address": draft.client_address,
            "client_email": draft.client_email,
            "items": _serialize_items(draft.items),
            "tax_rate": tax_rate,
            "subtotal": totals.subtotal,
            "tax_amount": totals.tax_amount,
            "total": totals.total,
            "payment_terms": draft.payment_terms,
            "notes": draft.notes,
            "status": draft.status.value,
        })

        self.audit.record_created(invoice)
        logger.info("Created invoice %s (total %s)", invoice.invoice_number, invoice.total)

        return invoice

    def update(self, invoice_id: str | UUID, patch: InvoicePatch) -> Invoice:
        """
        Apply a partial update and recompute totals.

        Line items and tax rate fall back to the stored values when the patch
        omits them, so a patch touching only notes or status still yields
        consistent totals.

        Raises:
            StorageUnavailableError: If the database is not connected.
            NotFoundError: If the invoice doesn't exist.
            ValidationError: If the patch blanks a required field or empties
                the line items.
            DuplicateInvoiceNumberError: If a new invoice number is taken.
        """
        self._require_storage("update invoice")

        current = self.repository.get_by_id(invoice_id)
        if current is None:
            raise NotFoundError("Invoice not found")

        provided = {
            field: getattr(patch, field)
            for field in patch.model_fields_set
            if not (field in _NON_NULLABLE and getattr(patch, field) is None)
        }

        blanked = [
            label for field, label in _REQUIRED_TEXT.items()
            if field in provided and not provided[field].strip()
        ]
        if blanked:
            raise ValidationError(f"Missing required fields: {', '.join(blanked)}")

        items = provided.pop("items", None)
        if items is None:
            items = current.items
        elif not items:
            raise ValidationError("At least one line item is required")

        tax_rate = provided.pop("tax_rate", None)
        if tax_rate is None:
            tax_rate = current.tax_rate

        totals = compute_totals(items, tax_rate)

        if "status" in provided:
            provided["status"] = provided["status"].value
        if "invoice_number" in provided:
            provided["invoice_number"] = provided["invoice_number"].strip() or current.invoice_number

        updated = self.repository.update(current.id, {
            **provided,
            "items": _serialize_items(items),
            "tax_rate": tax_rate,
            "subtotal": totals.subtotal,
            "tax_amount": totals.tax_amount,
            "total": totals.total,
        })
        if updated is None:
            raise NotFoundError("Invoice not found")

        self.audit.record_updated(current, updated)

        return updated

    def delete(self, invoice_id: str | UUID) -> None:
        """
        Permanently delete an invoice.

        Raises:
            StorageUnavailableError: If the database is not connected.
            NotFoundError: If the invoice doesn't exist (including when it was
                already deleted).
        """
        self._require_storage("delete invoice")

        current = self.repository.get_by_id(invoice_id)
        if current is None or not self.repository.delete(current.id):
            raise NotFoundError("Invoice not found")

        self.audit.record_deleted(current)
        logger.info("Deleted invoice %s", current.invoice_number)

    def get_by_id(self, invoice_id: str | UUID) -> Invoice:
        """
        Get invoice by id.

        Raises:
            StorageUnavailableError: If the database is not connected.
            NotFoundError: If absent or the id is malformed.
        """
        self._require_storage("load invoice")

        invoice = self.repository.get_by_id(invoice_id)
        if invoice is None:
            raise NotFoundError("Invoice not found")
        return invoice

    def list_all(self) -> list[Invoice]:
        """All invoices, newest issue date first."""
        self._require_storage("list invoices")
        return self.repository.list_all()

    def list_for_client(self, client_id: str | UUID) -> list[Invoice]:
        """Invoices for one client, newest issue date first."""
        self._require_storage("list invoices")
        return self.repository.list_for_client(client_id)

    def get_history(self, invoice_id: str | UUID) -> list[dict]:
        """
        Audit entries for an invoice, newest first.

        Deleted invoices keep their history, so this doesn't require the
        invoice to still exist.

        Raises:
            StorageUnavailableError: If the database is not connected.
            NotFoundError: If the id is malformed.
        """
        self._require_storage("load invoice history")

        uid = parse_id(invoice_id)
        if uid is None:
            raise NotFoundError("Invoice not found")
        return self.audit.invoice_history(uid)

    def get_next_invoice_number(self) -> str:
        """
        Suggested number for the next invoice.

        Never raises for an unavailable database: the admin UI always gets a
        value to prefill, falling back to the first number of the year.
        """
        if not self.repository.storage.available:
            return first_invoice_number(current_year())

        try:
            return self.repository.next_invoice_number()
        except StorageUnavailableError:
            logger.warning("Database unavailable; using first invoice number of the year")
            return first_invoice_number(current_year())
