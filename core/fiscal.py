"""
GST arithmetic for invoices.

Pure functions, no I/O. Callers validate quantities and prices before
calling; negative values are not rejected here.
"""

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable

from core.models import LineItem

CENT = Decimal("0.01")
ZERO = Decimal("0.00")


def round_money(value: Decimal) -> Decimal:
    """Round half-up to the cent."""
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class Totals:
    """Derived monetary fields of an invoice."""

    subtotal: Decimal
    tax_amount: Decimal
    total: Decimal


def line_total(item: LineItem) -> Decimal:
    """Quantity times unit price, unrounded."""
    return Decimal(item.quantity) * Decimal(item.unit_price)


def compute_totals(items: Iterable[LineItem], tax_rate: Decimal) -> Totals:
    """
    Compute subtotal (ex tax), tax and total (inc tax) for a set of line items.

    A tax-included line contributes ``line_total / (1 + rate)`` to the
    subtotal; a tax-exclusive line contributes its full line total. Tax is
    then charged once on the aggregate subtotal.

    Intermediate values are kept at full precision; only the three outputs
    are rounded.
    """
    rate = Decimal(tax_rate)
    divisor = 1 + rate
    subtotal = Decimal(0)

    for item in items:
        amount = line_total(item)
        subtotal += amount / divisor if item.tax_included else amount

    tax_amount = subtotal * rate
    total = subtotal + tax_amount

    return Totals(
        subtotal=round_money(subtotal),
        tax_amount=round_money(tax_amount),
        total=round_money(total),
    )
