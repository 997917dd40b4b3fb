"""Read-time derivations for displaying an invoice.

Everything here is computed from an immutable stored record and the
current instant; nothing is written back. In particular `is_overdue` is
the caller-asserted flag stored at creation and is never recomputed from
the due date. The overdue day count and severity tier only affect how an
overdue invoice is emphasised.
"""

import logging
import math
from datetime import UTC, date, datetime, timedelta
from typing import Literal

from pydantic import BaseModel

from services.invoices.schema import InvoiceRecord
from services.shared.config import Settings
from services.storage.base import InvoiceStore

logger = logging.getLogger(__name__)

SEVERE_OVERDUE_DAYS = 7

ViewState = Literal["rendered", "expired", "not_found"]
Severity = Literal["mild", "severe"]


def is_expired(expire_at: datetime | None, now: datetime) -> bool:
    """An invoice is expired once now is past its expire_at."""
    return expire_at is not None and expire_at < now


def parse_due_date(value: str | None) -> datetime | None:
    """Parse a stored due date into a UTC instant.

    Accepts ISO dates ('2024-01-01', taken as midnight UTC) and ISO
    datetimes (naive values are taken as UTC).

    Args:
        value: Stored due_date string

    Returns:
        Aware datetime, or None if absent or unparseable
    """
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        try:
            parsed = datetime.combine(date.fromisoformat(value[:10]), datetime.min.time())
        except ValueError:
            logger.debug(f"Unparseable due date: {value!r}")
            return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def overdue_days(due_date: str | None, now: datetime) -> int | None:
    """Whole days past the due date, rounded up.

    Example: due 2024-01-01, now 2024-01-10T00:00Z -> 9.

    Returns:
        ceil((now - due_date) / 1 day), or None without a parseable due date
    """
    due = parse_due_date(due_date)
    if due is None:
        return None
    return math.ceil((now - due) / timedelta(days=1))


def overdue_severity(days: int | None) -> Severity:
    """Presentation tier for an overdue invoice."""
    if days is not None and days >= SEVERE_OVERDUE_DAYS:
        return "severe"
    return "mild"


class InvoiceStatus(BaseModel):
    """Display facts derived from a stored invoice.

    Attributes:
        expired: Whether the invoice link has expired
        is_overdue: Stored caller-asserted overdue flag, unchanged
        overdue_days: Days past due (only when is_overdue and due_date are set)
        severity: 'mild' or 'severe' (only when is_overdue)
    """

    expired: bool
    is_overdue: bool
    overdue_days: int | None = None
    severity: Severity | None = None


def derive_invoice_status(record: InvoiceRecord, now: datetime) -> InvoiceStatus:
    """Derive expiry and overdue display facts for a stored invoice.

    Args:
        record: Stored invoice
        now: Current instant (aware)

    Returns:
        InvoiceStatus for the invoice at `now`
    """
    days: int | None = None
    severity: Severity | None = None
    if record.is_overdue:
        days = overdue_days(record.due_date, now)
        severity = overdue_severity(days)

    return InvoiceStatus(
        expired=is_expired(record.expire_at, now),
        is_overdue=record.is_overdue,
        overdue_days=days,
        severity=severity,
    )


def format_money(amount: float, currency_symbol: str) -> str:
    """Two-decimal amount with currency symbol, e.g. '944.00 ₾'."""
    return f"{amount:.2f} {currency_symbol}".rstrip()


class DisplayLine(BaseModel):
    """One rendered line item."""

    description: str
    quantity: float
    unit_price: str
    line_total: str


class RenderedInvoice(BaseModel):
    """Invoice content shown to someone holding the link.

    `tax` is None when the invoice carries no tax, so the tax row is hidden.
    """

    id: str
    invoice_number: str
    expense_type: str
    client_name: str
    client_address: str | None = None
    client_tax_id: str | None = None
    issue_date: str
    due_date: str | None = None
    lines: list[DisplayLine]
    subtotal: str
    tax: str | None = None
    total: str
    notes: str | None = None
    is_overdue: bool
    overdue_days: int | None = None
    severity: Severity | None = None


class InvoiceView(BaseModel):
    """Outcome of opening an invoice link.

    Attributes:
        state: 'rendered', 'expired' or 'not_found'
        invoice: Rendered content, only when state is 'rendered'
    """

    state: ViewState
    invoice: RenderedInvoice | None = None


def render_invoice(
    record: InvoiceRecord, status: InvoiceStatus, currency_symbol: str
) -> RenderedInvoice:
    """Build display content for a stored invoice."""
    lines = [
        DisplayLine(
            description=item.label(),
            quantity=item.quantity(),
            unit_price=format_money(item.unit_price(), currency_symbol),
            line_total=format_money(item.contribution(), currency_symbol),
        )
        for item in record.line_items()
    ]

    return RenderedInvoice(
        id=record.id,
        invoice_number=record.invoice_number,
        expense_type=record.expense_type,
        client_name=record.client_name,
        client_address=record.client_address,
        client_tax_id=record.client_tax_id,
        issue_date=record.issue_date,
        due_date=record.due_date,
        lines=lines,
        subtotal=format_money(record.subtotal, currency_symbol),
        tax=format_money(record.tax, currency_symbol) if record.tax > 0 else None,
        total=format_money(record.total, currency_symbol),
        notes=record.notes,
        is_overdue=status.is_overdue,
        overdue_days=status.overdue_days,
        severity=status.severity,
    )


def present_invoice(
    record: InvoiceRecord | None, now: datetime, currency_symbol: str = "₾"
) -> InvoiceView:
    """Resolve a fetched record into one of the three view outcomes.

    Expired invoices withhold their content whatever their overdue flag.

    Args:
        record: Stored invoice, or None if it could not be found
        now: Current instant (aware)
        currency_symbol: Symbol appended to rendered amounts

    Returns:
        InvoiceView in state 'not_found', 'expired' or 'rendered'
    """
    if record is None:
        return InvoiceView(state="not_found")

    status = derive_invoice_status(record, now)
    if status.expired:
        return InvoiceView(state="expired")

    return InvoiceView(state="rendered", invoice=render_invoice(record, status, currency_symbol))


class InvoiceViewer:
    """Read path behind shareable invoice links.

    Store errors and missing records both surface as 'not_found'; the
    store error is only logged.
    """

    def __init__(self, settings: Settings, store: InvoiceStore) -> None:
        self.settings = settings
        self.store = store

    def view(self, invoice_id: str, now: datetime | None = None) -> InvoiceView:
        """Fetch an invoice by id and present it.

        Args:
            invoice_id: Invoice identifier from the link
            now: Current instant; read once from the clock if omitted

        Returns:
            InvoiceView for the invoice
        """
        if now is None:
            now = datetime.now(UTC)

        result = self.store.fetch_invoice(invoice_id)
        if not result.success:
            logger.error(f"Error fetching invoice {invoice_id}: {result.error}")
            return InvoiceView(state="not_found")

        return present_invoice(result.record, now, self.settings.currency_symbol)
