"""Invoice total and expiration computation.

Pure functions over the request values. Amounts are plain floats and are
never rounded here; rounding to two decimals happens only when an invoice
is rendered.
"""

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any

from services.invoices.schema import (
    LineItem,
    coerce_amount,
    coerce_optional_amount,
    parse_line_item,
)

LATEST_EXPIRE_AT = datetime.max.replace(tzinfo=UTC)


@dataclass(frozen=True)
class InvoiceTotals:
    """Server-computed invoice amounts.

    Attributes:
        subtotal: Sum of line contributions before tax
        tax_amount: Absolute tax in currency (stored in the record's `tax` field)
        total: subtotal + tax_amount
        expire_at: Instant the invoice link expires, or None if it never does
    """

    subtotal: float
    tax_amount: float
    total: float
    expire_at: datetime | None


def compute_subtotal(expense_type: str, items: Iterable[Any]) -> float:
    """Sum line contributions for the given expense type.

    Leasing lines contribute their monthly_rent, marketing lines
    duration * rate. Raw mappings are parsed into the matching line-item
    variant first; missing or non-numeric fields count as 0.

    Args:
        expense_type: 'leasing' or 'marketing'
        items: Raw item mappings or parsed LineItem instances

    Returns:
        Subtotal before tax
    """
    subtotal = 0.0
    for item in items:
        line = item if isinstance(item, LineItem) else parse_line_item(expense_type, item)
        subtotal += line.contribution()
    return subtotal


def compute_tax_amount(subtotal: float, tax_percent: Any) -> float:
    """Convert a tax percentage into an absolute amount (18 -> 18% of subtotal)."""
    return coerce_amount(tax_percent) * subtotal / 100


def compute_expire_at(created_at: datetime, expire_hours: Any) -> datetime | None:
    """Expiration instant, only when expire_hours is a positive number."""
    hours = coerce_optional_amount(expire_hours)
    if hours is None or hours <= 0:
        return None
    try:
        return created_at + timedelta(hours=hours)
    except OverflowError:
        # Past year 9999; pin to the latest representable instant
        return LATEST_EXPIRE_AT


def compute_invoice_totals(
    expense_type: str,
    items: Iterable[Any],
    tax_percent: Any = None,
    expire_hours: Any = None,
    created_at: datetime | None = None,
) -> InvoiceTotals:
    """Compute subtotal, tax, total and expiration for a new invoice.

    Args:
        expense_type: 'leasing' or 'marketing'
        items: Raw item mappings or parsed LineItem instances
        tax_percent: Tax rate in percent; absent means no tax
        expire_hours: Link lifetime in hours; absent or <= 0 means no expiry
        created_at: Creation instant (defaults to now, UTC)

    Returns:
        InvoiceTotals for the invoice
    """
    if created_at is None:
        created_at = datetime.now(UTC)

    subtotal = compute_subtotal(expense_type, items)
    tax_amount = compute_tax_amount(subtotal, tax_percent)

    return InvoiceTotals(
        subtotal=subtotal,
        tax_amount=tax_amount,
        total=subtotal + tax_amount,
        expire_at=compute_expire_at(created_at, expire_hours),
    )


def format_timestamp(value: datetime | None) -> str | None:
    """Format an instant as ISO-8601 UTC with millisecond precision ('...000Z')."""
    if value is None:
        return None
    return value.astimezone(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")
