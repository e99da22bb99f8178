"""Typed domain errors.

Each error carries the HTTP status it maps to, so the API layer never has to
inspect message text to decide how to respond.
"""


class DomainError(Exception):
    """Base class for invoice-domain failures."""

    status_code = 500


class ValidationError(DomainError):
    """Input is missing required fields or is malformed. Nothing was persisted."""

    status_code = 400


class NotFoundError(DomainError):
    """The referenced record does not exist."""

    status_code = 404


class DuplicateInvoiceNumberError(DomainError):
    """
    Another invoice already holds this invoice number.

    Raised when the store's unique constraint rejects an insert or update;
    the existing record is left untouched.
    """

    status_code = 409

    def __init__(self, invoice_number: str):
        self.invoice_number = invoice_number
        super().__init__(f"Invoice number {invoice_number} is already in use")


class StorageUnavailableError(DomainError):
    """The persistent store is unreachable. The operation was not attempted."""

    status_code = 503
