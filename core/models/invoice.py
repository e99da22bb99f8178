"""Invoice domain models.

Money is held as Decimal and rounded half-up to the cent. The tax rate is a
fraction (0.10 = 10% GST) with at most four decimal places, the precision
the invoices table stores. Input accepts the camelCase keys posted by the
admin UI as well as snake_case.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Annotated
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, PlainSerializer, field_validator
from pydantic.alias_generators import to_camel

DEFAULT_TAX_RATE = Decimal("0.10")
DEFAULT_TITLE = "Tax Invoice"

# Serialized as a JSON number; Decimal inside Python.
Amount = Annotated[Decimal, PlainSerializer(float, return_type=float, when_used="json")]


class InvoiceStatus(str, Enum):
    """Invoice lifecycle status."""

    DRAFT = "draft"
    SENT = "sent"
    PAID = "paid"
    OVERDUE = "overdue"


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class LineItem(_CamelModel):
    """One row of an invoice. ``tax_included`` means the price already contains GST."""

    description: str = Field(..., max_length=500)
    quantity: Amount = Field(..., ge=0)
    unit_price: Amount = Field(..., ge=0, decimal_places=2)
    tax_included: bool = True

    @field_validator("description")
    @classmethod
    def description_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Line item description is required")
        return value


class InvoiceDraft(_CamelModel):
    """
    Data submitted to create an invoice.

    Required fields are checked by the service rather than the schema so that
    a missing business name or client surfaces as a domain ValidationError.
    Totals are never accepted from the client.
    """

    invoice_number: str | None = Field(None, max_length=50)
    title: str | None = Field(None, max_length=200)
    issue_date: date | None = None
    due_date: date | None = None
    business_name: str | None = Field(None, max_length=200)
    abn: str | None = Field(None, max_length=20)
    business_address: str | None = Field(None, max_length=500)
    client_id: UUID | None = None
    client_name: str | None = Field(None, max_length=200)
    client_address: str | None = Field(None, max_length=500)
    client_email: str | None = Field(None, max_length=320)
    items: list[LineItem] = Field(default_factory=list)
    tax_rate: Amount | None = Field(None, ge=0, le=1, decimal_places=4)
    payment_terms: str | None = Field(None, max_length=2000)
    notes: str | None = Field(None, max_length=2000)
    status: InvoiceStatus = InvoiceStatus.DRAFT


class InvoicePatch(_CamelModel):
    """Fields that can be changed on an existing invoice. All optional."""

    invoice_number: str | None = Field(None, max_length=50)
    title: str | None = Field(None, max_length=200)
    issue_date: date | None = None
    due_date: date | None = None
    business_name: str | None = Field(None, max_length=200)
    abn: str | None = Field(None, max_length=20)
    business_address: str | None = Field(None, max_length=500)
    client_id: UUID | None = None
    client_name: str | None = Field(None, max_length=200)
    client_address: str | None = Field(None, max_length=500)
    client_email: str | None = Field(None, max_length=320)
    items: list[LineItem] | None = None
    tax_rate: Amount | None = Field(None, ge=0, le=1, decimal_places=4)
    payment_terms: str | None = Field(None, max_length=2000)
    notes: str | None = Field(None, max_length=2000)
    status: InvoiceStatus | None = None


class Invoice(_CamelModel):
    """Full invoice entity as stored."""

    id: UUID
    invoice_number: str
    title: str = DEFAULT_TITLE
    issue_date: date
    due_date: date | None = None
    business_name: str
    abn: str
    business_address: str | None = None
    client_id: UUID | None = None
    client_name: str
    client_address: str | None = None
    client_email: str | None = None
    items: list[LineItem]
    tax_rate: Amount = DEFAULT_TAX_RATE
    subtotal: Amount
    tax_amount: Amount
    total: Amount
    payment_terms: str | None = None
    notes: str | None = None
    status: InvoiceStatus = InvoiceStatus.DRAFT
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )

    @property
    def tax_percent(self) -> str:
        """Tax rate as a percentage for display, without trailing zeros (0.10 -> "10", 0.125 -> "12.5")."""
        return format((self.tax_rate * 100).normalize(), "f")
