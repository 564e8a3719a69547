"""Statement boilerplate detection.

AI parsers regularly return summary rows (balances, totals, fees, limits)
as if they were purchases. A phantom "Total Purchases $1,532.00" line would
silently double a user's spending, while a dropped real purchase is still
visible on the PDF, so this filter is deliberately blunt and errs on the
side of excluding lines.
"""

from __future__ import annotations

from collections.abc import Iterable

from statement_import.schemas.internal import RawParsedTransaction

# Matched case-insensitively as substrings of description and original text.
SUMMARY_PHRASES: tuple[str, ...] = (
    # Totals
    "total purchases",
    "total this period",
    "total fees",
    "total interest",
    "total credits",
    "total payments",
    "subtotal",
    # Balances
    "previous balance",
    "new balance",
    "closing balance",
    "opening balance",
    "statement balance",
    # Payment terms
    "minimum payment",
    "payment due",
    # Charges
    "finance charge",
    "interest charge",
    "late fee",
    "annual fee",
    # Limits
    "credit limit",
    "available credit",
    "cash advance limit",
    # Year-to-date
    "year-to-date",
    "year to date",
    "ytd",
    # Payments
    "payment received",
    "payment - thank you",
    "payment thank you",
    "autopay",
)


def is_summary_row(transaction: RawParsedTransaction) -> bool:
    """Return True if the candidate looks like statement boilerplate.

    A match in either the description or the original source text is
    enough to exclude the line.
    """
    fields = (transaction.description, transaction.original_text)
    for text in fields:
        if not text:
            continue
        lowered = text.lower()
        if any(phrase in lowered for phrase in SUMMARY_PHRASES):
            return True
    return False


def filter_summary_rows(
    transactions: Iterable[RawParsedTransaction],
) -> list[RawParsedTransaction]:
    """Drop boilerplate rows, preserving the order of the remaining lines."""
    return [t for t in transactions if not is_summary_row(t)]
