"""
Invoice persistence.

Line items are stored as a JSONB array on the invoice row. invoice_number
carries a UNIQUE constraint; a colliding write raises
DuplicateInvoiceNumberError and leaves the existing row untouched.

Lookups with an id that is not a valid UUID behave as "not found".
"""

import logging
from typing import Any
from uuid import UUID, uuid4

from psycopg2 import errors as pg_errors

from core.exceptions import DuplicateInvoiceNumberError
from core.models import Invoice
from core.numbering import next_invoice_number
from core.storage import PersistentStorage
from utils.timezone import now_utc, current_year

logger = logging.getLogger(__name__)

_COLUMNS = (
    "invoice_number", "title", "issue_date", "due_date",
    "business_name", "abn", "business_address",
    "client_id", "client_name", "client_address", "client_email",
    "items", "tax_rate", "subtotal", "tax_amount", "total",
    "payment_terms", "notes", "status",
)
_UPDATABLE_COLUMNS = set(_COLUMNS)


def parse_id(value: str | UUID) -> UUID | None:
    """UUID for ``value``, or None if it isn't one."""
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except ValueError:
        return None


class InvoiceRepository:
    """CRUD over the invoices table."""

    def __init__(self, storage: PersistentStorage):
        self.storage = storage

    def _write(self, query: str, params: tuple, invoice_number: str | None) -> list[dict[str, Any]]:
        try:
            return self.storage.execute_returning(query, params)
        except pg_errors.UniqueViolation as e:
            logger.warning("Duplicate invoice number rejected: %s", invoice_number)
            raise DuplicateInvoiceNumberError(invoice_number or "") from e

    def create(self, fields: dict[str, Any]) -> Invoice:
        """
        Insert a new invoice.

        Args:
            fields: Column values keyed by column name. ``items`` must be a
                JSON-compatible list.

        Raises:
            DuplicateInvoiceNumberError: If the invoice number is taken.
        """
        now = now_utc()
        columns = ["id", *_COLUMNS, "created_at", "updated_at"]
        values = [uuid4(), *(fields.get(c) for c in _COLUMNS), now, now]

        row = self._write(
            f"""
            INSERT INTO invoices ({", ".join(columns)})
            VALUES ({", ".join(["%s"] * len(columns))})
            RETURNING *
            """,
            tuple(values),
            fields.get("invoice_number"),
        )[0]

        return Invoice.model_validate(row)

    def get_by_id(self, invoice_id: str | UUID) -> Invoice | None:
        """Invoice by id, or None if absent or the id is malformed."""
        uid = parse_id(invoice_id)
        if uid is None:
            return None

        row = self.storage.execute_single(
            "SELECT * FROM invoices WHERE id = %s",
            (uid,)
        )
        if row is None:
            return None

        return Invoice.model_validate(row)

    def list_all(self) -> list[Invoice]:
        """All invoices, newest issue date first."""
        rows = self.storage.execute(
            "SELECT * FROM invoices ORDER BY issue_date DESC, created_at DESC"
        )
        return [Invoice.model_validate(row) for row in rows]

    def list_for_client(self, client_id: str | UUID) -> list[Invoice]:
        """Invoices billed to a client, newest issue date first."""
        uid = parse_id(client_id)
        if uid is None:
            return []

        rows = self.storage.execute(
            """
            SELECT * FROM invoices
            WHERE client_id = %s
            ORDER BY issue_date DESC, created_at DESC
            """,
            (uid,)
        )
        return [Invoice.model_validate(row) for row in rows]

    def update(self, invoice_id: str | UUID, fields: dict[str, Any]) -> Invoice | None:
        """
        Set the given columns on an invoice.

        Returns:
            The updated invoice, or None if it doesn't exist.

        Raises:
            DuplicateInvoiceNumberError: If a new invoice number is taken.
        """
        uid = parse_id(invoice_id)
        if uid is None:
            return None

        for field in fields:
            if field not in _UPDATABLE_COLUMNS:
                logger.warning(f"Attempted to update unknown field '{field}' on invoice {uid}")

        valid_updates = {k: v for k, v in fields.items() if k in _UPDATABLE_COLUMNS}

        set_parts = [f"{field} = %s" for field in valid_updates]
        params = list(valid_updates.values())
        set_parts.append("updated_at = %s")
        params.append(now_utc())
        params.append(uid)

        rows = self._write(
            f"""
            UPDATE invoices
            SET {", ".join(set_parts)}
            WHERE id = %s
            RETURNING *
            """,
            tuple(params),
            valid_updates.get("invoice_number"),
        )
        if not rows:
            return None

        return Invoice.model_validate(rows[0])

    def delete(self, invoice_id: str | UUID) -> bool:
        """
        Hard-delete an invoice.

        Returns:
            True if a row was deleted, False if none matched.
        """
        uid = parse_id(invoice_id)
        if uid is None:
            return False

        rows = self.storage.execute_returning(
            "DELETE FROM invoices WHERE id = %s RETURNING id",
            (uid,)
        )
        return len(rows) > 0

    def latest_invoice_number(self) -> str | None:
        """invoice_number of the most recently created invoice."""
        row = self.storage.execute_single(
            "SELECT invoice_number FROM invoices ORDER BY created_at DESC LIMIT 1"
        )
        return row["invoice_number"] if row else None

    def next_invoice_number(self, year: int | None = None) -> str:
        """Next number in the current year's sequence."""
        return next_invoice_number(self.latest_invoice_number(), year or current_year())
