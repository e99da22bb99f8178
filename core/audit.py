"""
Invoice audit trail.

Tax invoices are financial records, so every create, update and delete is
appended to the audit_log table along with the admin who made it. Entries
are never modified or deleted.

Snapshots are stored as ``model_dump(mode="json")`` output, which keeps the
JSONB column free of Decimals, UUIDs and dates.
"""

from enum import Enum
from typing import Any
from uuid import UUID, uuid4

from core.models import Invoice
from core.storage import PersistentStorage
from utils.timezone import now_utc
from utils.user_context import get_current_admin_or_none

ENTITY_INVOICE = "invoice"

# Bookkeeping columns that change on every write.
_IGNORED_FIELDS = frozenset({"updated_at"})


class AuditAction(Enum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


def compute_changes(
    old: dict[str, Any],
    new: dict[str, Any],
    exclude_fields: set[str] | frozenset[str] = _IGNORED_FIELDS,
) -> dict[str, dict[str, Any]]:
    """
    Field-level diff of two snapshots.

    Returns ``{field: {"old": ..., "new": ...}}`` for every field whose value
    differs, skipping ``exclude_fields``. A field present on only one side
    is reported with None on the other.
    """
    return {
        field: {"old": old.get(field), "new": new.get(field)}
        for field in sorted(old.keys() | new.keys())
        if field not in exclude_fields and old.get(field) != new.get(field)
    }


def _snapshot(invoice: Invoice) -> dict[str, Any]:
    return invoice.model_dump(mode="json")


class AuditLogger:
    """
    Writes invoice changes to audit_log.

    The actor is the email of the admin on the current request, or None for
    work done outside a request (scripts, migrations) unless given explicitly.
    """

    def __init__(self, storage: PersistentStorage):
        self.storage = storage

    def record_created(self, invoice: Invoice) -> None:
        self.log_change(ENTITY_INVOICE, invoice.id, AuditAction.CREATE, {"created": _snapshot(invoice)})

    def record_updated(self, before: Invoice, after: Invoice) -> dict[str, dict[str, Any]]:
        """
        Log the fields that changed between two versions of an invoice.

        Nothing is written when the update changed nothing.

        Returns:
            The field-level diff that was logged.
        """
        changes = compute_changes(_snapshot(before), _snapshot(after))
        if changes:
            self.log_change(ENTITY_INVOICE, after.id, AuditAction.UPDATE, changes)
        return changes

    def record_deleted(self, invoice: Invoice) -> None:
        self.log_change(ENTITY_INVOICE, invoice.id, AuditAction.DELETE, {"deleted": _snapshot(invoice)})

    def log_change(
        self,
        entity_type: str,
        entity_id: UUID,
        action: AuditAction,
        changes: dict[str, Any],
        actor: str | None = None,
    ) -> None:
        """
        Append one audit entry.

        Args:
            entity_type: Kind of record changed
            entity_id: Its id
            action: CREATE, UPDATE or DELETE
            changes: ``{"created": snapshot}``, a field diff, or
                ``{"deleted": snapshot}`` respectively
            actor: Overrides the admin taken from the request context
        """
        if actor is None:
            admin = get_current_admin_or_none()
            actor = admin.email if admin else None

        self.storage.execute(
            """
            INSERT INTO audit_log (id, actor, entity_type, entity_id, action, changes, created_at)
            VALUES (%s, %s, %s, %s, %s, %s, %s)
            """,
            (uuid4(), actor, entity_type, entity_id, action.value, changes, now_utc()),
        )

    def invoice_history(self, invoice_id: UUID) -> list[dict[str, Any]]:
        """Every audit entry for one invoice, newest first."""
        return self.storage.execute(
            """
            SELECT id, actor, entity_type, entity_id, action, changes, created_at
            FROM audit_log
            WHERE entity_type = %s AND entity_id = %s
            ORDER BY created_at DESC
            """,
            (ENTITY_INVOICE, invoice_id),
        )
