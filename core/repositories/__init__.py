"""Persistence of domain records."""

from core.repositories.invoice_repository import InvoiceRepository
