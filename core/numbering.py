"""
Invoice number sequencing.

Format: INV-<year>-<sequence>. The sequence starts at 1001 each calendar year
and is derived from the most recently created invoice, not from a count.

Best-effort only: two concurrent creates can compute the same number. The
store's unique constraint on invoice_number is the final arbiter.
"""

import re

FIRST_SEQUENCE = 1001

_LEADING_DIGITS = re.compile(r"\s*\d+")


def invoice_prefix(year: int) -> str:
    """Prefix shared by every invoice issued in ``year``."""
    return f"INV-{year}-"


def first_invoice_number(year: int) -> str:
    """Number for the first invoice of a year."""
    return f"{invoice_prefix(year)}{FIRST_SEQUENCE}"


def next_invoice_number(latest: str | None, year: int) -> str:
    """
    Derive the next invoice number from the latest one on record.

    Args:
        latest: invoice_number of the most recently created invoice, or None
        year: current calendar year

    Returns:
        ``INV-<year>-1001`` if there is no prior invoice or it belongs to
        another year, otherwise the prior sequence plus one. The sequence is
        the run of digits the suffix starts with (``1005-A`` -> 1005); a
        suffix with no leading digits counts as 0.
    """
    prefix = invoice_prefix(year)

    if not latest or not latest.startswith(prefix):
        return first_invoice_number(year)

    digits = _LEADING_DIGITS.match(latest[len(prefix):])
    sequence = int(digits.group()) if digits else 0

    return f"{prefix}{sequence + 1}"
