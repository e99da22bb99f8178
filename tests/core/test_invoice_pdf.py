"""Tests for tax invoice PDF rendering."""

from datetime import date, datetime, timezone
from decimal import Decimal
from io import BytesIO
from unittest.mock import Mock
from uuid import uuid4

import pytest
from reportlab.platypus import Paragraph

import core.invoice_pdf as invoice_pdf
from core.invoice_pdf import (
    FOOTER_TEXT,
    InvoiceRenderError,
    format_abn,
    format_currency,
    format_date,
    invoice_filename,
    layout_invoice,
    render_invoice_pdf,
)
from core.models import Invoice, LineItem


def make_invoice(**overrides) -> Invoice:
    now = datetime(2026, 3, 5, tzinfo=timezone.utc)
    fields = dict(
        id=uuid4(),
        invoice_number="INV-2026-1001",
        issue_date=date(2026, 3, 5),
        due_date=date(2026, 3, 19),
        business_name="Encore Entertainment",
        abn="51824753556",
        business_address="1 Stage Door Lane, Sydney NSW 2000",
        client_name="Jordan Lee",
        client_email="jordan@example.com",
        items=[LineItem(description="Ceremony set", quantity=Decimal("1"), unit_price=Decimal("110.00"))],
        subtotal=Decimal("100.00"),
        tax_amount=Decimal("10.00"),
        total=Decimal("110.00"),
        payment_terms="Payment due within 14 days",
        notes="Thank you!",
        created_at=now,
        updated_at=now,
    )
    fields.update(overrides)
    return Invoice(**fields)


def story_text(story) -> list[str]:
    return [f.getPlainText() for f in story if isinstance(f, Paragraph)]


class TestFormatting:
    """Display helpers."""

    def test_format_abn_groups_digits(self):
        assert format_abn("51824753556") == "51 824 753 556"

    def test_format_abn_normalises_existing_spacing(self):
        assert format_abn("51 824 753 556") == "51 824 753 556"

    def test_format_abn_leaves_invalid_length_alone(self):
        assert format_abn(" 12345 ") == "12345"

    def test_invoice_filename_hyphenates_whitespace(self):
        assert invoice_filename("INV-2026-1001") == "Tax-Invoice-INV-2026-1001.pdf"
        assert invoice_filename("INV 2026  7") == "Tax-Invoice-INV-2026-7.pdf"

    def test_format_currency(self):
        assert format_currency(Decimal("1234.5")) == "$1,234.50"
        assert format_currency(Decimal("-3")) == "-$3.00"

    def test_format_date(self):
        assert format_date(date(2026, 3, 5)) == "5 March 2026"
        assert format_date(None) == "-"


class TestLayoutInvoice:
    """Story content."""

    def test_includes_title_footer_and_totals(self):
        story = layout_invoice(make_invoice())
        text = story_text(story)

        assert text[0] == "Tax Invoice"
        assert FOOTER_TEXT in text

    def test_buyer_identity_omitted_below_threshold(self):
        text = story_text(layout_invoice(make_invoice()))

        assert "Buyer Identity" not in text

    def test_buyer_identity_shown_at_threshold(self):
        invoice = make_invoice(
            subtotal=Decimal("909.09"), tax_amount=Decimal("90.91"), total=Decimal("1000.00")
        )

        text = story_text(layout_invoice(invoice))

        assert "Buyer Identity" in text

    def test_optional_sections_skipped_when_empty(self):
        text = story_text(layout_invoice(make_invoice(payment_terms=None, notes=None)))

        assert "Payment Terms" not in text
        assert "Notes" not in text

    def test_escapes_markup_in_free_text(self):
        """Client text containing < or & must not break the paragraph parser."""
        invoice = make_invoice(notes="Fees < $500 & travel extra")

        text = story_text(layout_invoice(invoice))

        assert "Fees < $500 & travel extra" in text


class TestRenderInvoicePdf:
    """PDF output and teardown."""

    def test_returns_pdf_bytes(self):
        pdf = render_invoice_pdf(make_invoice())

        assert pdf.startswith(b"%PDF")

    def test_long_invoice_still_renders(self):
        items = [
            LineItem(description=f"Rehearsal hour {n}", quantity=Decimal("1"), unit_price=Decimal("55.00"))
            for n in range(80)
        ]

        pdf = render_invoice_pdf(make_invoice(items=items))

        assert pdf.startswith(b"%PDF")

    def test_layout_failure_raises_and_closes_buffer(self, monkeypatch):
        buffers = []

        class TrackingBuffer(BytesIO):
            def __init__(self):
                super().__init__()
                buffers.append(self)

        monkeypatch.setattr(invoice_pdf, "BytesIO", TrackingBuffer)
        monkeypatch.setattr(invoice_pdf, "layout_invoice", Mock(side_effect=ValueError("template failed")))

        with pytest.raises(InvoiceRenderError, match="INV-2026-1001"):
            render_invoice_pdf(make_invoice())

        assert len(buffers) == 1
        assert buffers[0].closed

    def test_buffer_closed_after_success(self, monkeypatch):
        buffers = []

        class TrackingBuffer(BytesIO):
            def __init__(self):
                super().__init__()
                buffers.append(self)

        monkeypatch.setattr(invoice_pdf, "BytesIO", TrackingBuffer)

        render_invoice_pdf(make_invoice())

        assert buffers[0].closed
