"""Core domain models."""

from core.models.invoice import (
    DEFAULT_TAX_RATE,
    DEFAULT_TITLE,
    Invoice,
    InvoiceDraft,
    InvoicePatch,
    InvoiceStatus,
    LineItem,
)

__all__ = [
    "DEFAULT_TAX_RATE", "DEFAULT_TITLE",
    "Invoice", "InvoiceDraft", "InvoicePatch", "InvoiceStatus",
    "LineItem",
]
