"""
Tax invoice PDF rendering.

Rendering happens in two phases:

1. layout_invoice() turns an Invoice into a ReportLab story (flowables) for
   an A4 portrait page.
2. render_invoice_pdf() places that story in a shrink-to-fit frame anchored
   at the top of the page and builds the PDF into an in-memory buffer.

SimpleDocTemplate.build() is synchronous; when it returns the layout has
settled and the buffer holds the complete document.
"""

import logging
import re
from datetime import date
from decimal import Decimal
from io import BytesIO
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.enums import TA_CENTER, TA_RIGHT
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import mm
from reportlab.platypus import (
    KeepInFrame,
    Paragraph,
    SimpleDocTemplate,
    Spacer,
    Table,
    TableStyle,
)

from core.fiscal import line_total, round_money
from core.models import Invoice

logger = logging.getLogger(__name__)

# Tax invoices of this total or more must identify the buyer.
BUYER_IDENTITY_THRESHOLD = Decimal("1000")

ABN_NOTE = "Australian Business Number (ABN) required for GST credit claims"
FOOTER_TEXT = (
    "This tax invoice is valid for GST purposes. "
    "Total price includes GST where applicable. Issued in Australia."
)

_BORDER = colors.HexColor("#d1d5db")
_HEADER_BG = colors.HexColor("#f3f4f6")


class InvoiceRenderError(Exception):
    """The invoice layout could not be produced."""


def format_abn(abn: str) -> str:
    """Format an 11-digit ABN as ``NN NNN NNN NNN``; anything else is returned stripped."""
    digits = re.sub(r"\D", "", abn or "")
    if len(digits) != 11:
        return (abn or "").strip()
    return f"{digits[:2]} {digits[2:5]} {digits[5:8]} {digits[8:]}"


def invoice_filename(invoice_number: str) -> str:
    """Download filename, with whitespace runs in the number replaced by hyphens."""
    slug = re.sub(r"\s+", "-", invoice_number)
    return f"Tax-Invoice-{slug}.pdf"


def format_currency(amount: Decimal) -> str:
    """en-AU currency, e.g. ``$1,234.50``."""
    value = round_money(Decimal(amount))
    sign = "-" if value < 0 else ""
    return f"{sign}${abs(value):,.2f}"


def format_date(value: date | None) -> str:
    """en-AU long date, e.g. ``5 March 2026``."""
    if value is None:
        return "-"
    return f"{value.day} {value.strftime('%B %Y')}"


def _styles() -> dict[str, ParagraphStyle]:
    base = getSampleStyleSheet()
    return {
        "title": ParagraphStyle("InvoiceTitle", parent=base["Title"], fontSize=20, spaceAfter=2 * mm),
        "note": ParagraphStyle("InvoiceNote", parent=base["Normal"], fontSize=8,
                               textColor=colors.HexColor("#6b7280"), alignment=TA_CENTER),
        "heading": ParagraphStyle("InvoiceHeading", parent=base["Heading4"], spaceBefore=0, spaceAfter=1 * mm),
        "body": ParagraphStyle("InvoiceBody", parent=base["Normal"], fontSize=9, leading=12),
        "cell": ParagraphStyle("InvoiceCell", parent=base["Normal"], fontSize=9, leading=11),
        "cell_right": ParagraphStyle("InvoiceCellRight", parent=base["Normal"], fontSize=9,
                                     leading=11, alignment=TA_RIGHT),
        "footer": ParagraphStyle("InvoiceFooter", parent=base["Italic"], fontSize=8,
                                 textColor=colors.HexColor("#6b7280"), alignment=TA_CENTER),
    }


def _lines(*values: str | None) -> str:
    return "<br/>".join(escape(v) for v in values if v)


def _party_blocks(invoice: Invoice, styles: dict[str, ParagraphStyle]) -> Table:
    seller = [
        Paragraph("From", styles["heading"]),
        Paragraph(_lines(invoice.business_name, f"ABN: {format_abn(invoice.abn)}",
                         invoice.business_address), styles["body"]),
    ]
    buyer = [
        Paragraph("Bill To", styles["heading"]),
        Paragraph(_lines(invoice.client_name, invoice.client_address,
                         invoice.client_email), styles["body"]),
    ]
    meta = [
        Paragraph(f"<b>Invoice No:</b> {escape(invoice.invoice_number)}", styles["body"]),
        Paragraph(f"<b>Issue Date:</b> {format_date(invoice.issue_date)}", styles["body"]),
    ]
    if invoice.due_date:
        meta.append(Paragraph(f"<b>Due Date:</b> {format_date(invoice.due_date)}", styles["body"]))

    table = Table([[seller, buyer, meta]], colWidths=[62 * mm, 62 * mm, 50 * mm])
    table.setStyle(TableStyle([
        ("VALIGN", (0, 0), (-1, -1), "TOP"),
        ("LEFTPADDING", (0, 0), (0, -1), 0),
    ]))
    return table


def _items_table(invoice: Invoice, styles: dict[str, ParagraphStyle]) -> Table:
    rows = [["Description", "Qty", "Unit Price", "Amount (inc GST)"]]
    for item in invoice.items:
        amount = line_total(item)
        if not item.tax_included:
            amount = amount * (1 + invoice.tax_rate)
        rows.append([
            Paragraph(escape(item.description), styles["cell"]),
            Paragraph(f"{item.quantity.normalize():f}", styles["cell_right"]),
            Paragraph(format_currency(item.unit_price), styles["cell_right"]),
            Paragraph(format_currency(amount), styles["cell_right"]),
        ])

    table = Table(rows, colWidths=[86 * mm, 18 * mm, 32 * mm, 38 * mm], repeatRows=1)
    table.setStyle(TableStyle([
        ("BACKGROUND", (0, 0), (-1, 0), _HEADER_BG),
        ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
        ("FONTSIZE", (0, 0), (-1, 0), 9),
        ("ALIGN", (1, 0), (-1, 0), "RIGHT"),
        ("GRID", (0, 0), (-1, -1), 0.5, _BORDER),
        ("VALIGN", (0, 0), (-1, -1), "MIDDLE"),
    ]))
    return table


def _totals_table(invoice: Invoice) -> Table:
    rows = [
        ["Subtotal (ex GST)", format_currency(invoice.subtotal)],
        [f"GST ({invoice.tax_percent}%)", format_currency(invoice.tax_amount)],
        ["Total (inc GST)", format_currency(invoice.total)],
    ]
    table = Table(rows, colWidths=[44 * mm, 38 * mm], hAlign="RIGHT")
    table.setStyle(TableStyle([
        ("ALIGN", (0, 0), (-1, -1), "RIGHT"),
        ("FONTSIZE", (0, 0), (-1, -1), 9),
        ("FONTNAME", (0, -1), (-1, -1), "Helvetica-Bold"),
        ("LINEABOVE", (0, -1), (-1, -1), 1, colors.black),
    ]))
    return table


def layout_invoice(invoice: Invoice) -> list:
    """
    Build the A4 story for a tax invoice.

    Includes a buyer identity disclosure when the total reaches
    BUYER_IDENTITY_THRESHOLD.
    """
    styles = _styles()

    story = [
        Paragraph(escape(invoice.title), styles["title"]),
        Paragraph(ABN_NOTE, styles["note"]),
        Spacer(1, 6 * mm),
        _party_blocks(invoice, styles),
        Spacer(1, 6 * mm),
        _items_table(invoice, styles),
        Spacer(1, 4 * mm),
        _totals_table(invoice),
    ]

    if invoice.total >= BUYER_IDENTITY_THRESHOLD:
        story += [
            Spacer(1, 4 * mm),
            Paragraph("Buyer Identity", styles["heading"]),
            Paragraph(_lines(invoice.client_name, invoice.client_address,
                             invoice.client_email), styles["body"]),
        ]

    if invoice.payment_terms:
        story += [
            Spacer(1, 4 * mm),
            Paragraph("Payment Terms", styles["heading"]),
            Paragraph(escape(invoice.payment_terms).replace("\n", "<br/>"), styles["body"]),
        ]

    if invoice.notes:
        story += [
            Spacer(1, 4 * mm),
            Paragraph("Notes", styles["heading"]),
            Paragraph(escape(invoice.notes).replace("\n", "<br/>"), styles["body"]),
        ]

    story += [Spacer(1, 8 * mm), Paragraph(FOOTER_TEXT, styles["footer"])]
    return story


def render_invoice_pdf(invoice: Invoice) -> bytes:
    """
    Render an invoice to PDF bytes.

    The laid-out story is scaled down if needed to fit one A4 page,
    preserving aspect ratio and anchored at the top.

    Raises:
        InvoiceRenderError: If the layout can't be built.
    """
    buffer = BytesIO()
    try:
        story = layout_invoice(invoice)

        doc = SimpleDocTemplate(
            buffer,
            pagesize=A4,
            leftMargin=18 * mm,
            rightMargin=18 * mm,
            topMargin=16 * mm,
            bottomMargin=16 * mm,
            title=f"{invoice.title} {invoice.invoice_number}",
            author=invoice.business_name,
        )
        doc.build([
            KeepInFrame(doc.width, doc.height, story, mode="shrink", vAlign="TOP")
        ])
        return buffer.getvalue()
    except Exception as e:
        logger.error("Failed to render invoice %s: %s", invoice.invoice_number, e, exc_info=True)
        raise InvoiceRenderError(f"Could not render invoice {invoice.invoice_number}") from e
    finally:
        buffer.close()
