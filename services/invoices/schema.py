"""Invoice data models.

Line items are a tagged union keyed by the invoice's expense type:
leasing invoices carry LeasingLineItem rows, marketing invoices carry
MarketingLineItem rows. Both expose the same small interface used by
the computation and presentation modules.

Numeric item fields are read leniently: anything that is not a finite
number counts as 0 instead of failing the request.
"""

import math
from abc import ABC, abstractmethod
from datetime import UTC, datetime
from typing import Annotated, Any, Literal

from pydantic import AfterValidator, BaseModel, BeforeValidator, ConfigDict, Field

ExpenseType = Literal["leasing", "marketing"]

EXPENSE_TYPES: tuple[str, ...] = ("leasing", "marketing")


def coerce_amount(value: Any) -> float:
    """Coerce a caller-supplied numeric value, counting non-numbers as 0.

    Args:
        value: Raw JSON value

    Returns:
        Float value, or 0.0 for missing, boolean, string or non-finite input
    """
    number = coerce_optional_amount(value)
    return 0.0 if number is None else number


def coerce_optional_amount(value: Any) -> float | None:
    """Coerce a caller-supplied numeric value, returning None for non-numbers."""
    if isinstance(value, bool) or not isinstance(value, int | float):
        return None
    try:
        number = float(value)
    except OverflowError:
        return None
    return number if math.isfinite(number) else None


def coerce_text(value: Any) -> str | None:
    """Stringify free-text values, keeping None as absent."""
    if value is None or isinstance(value, str):
        return value
    return str(value)


def _ensure_utc(value: datetime | None) -> datetime | None:
    # Naive timestamps from the store are UTC
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


def _as_item_list(value: Any) -> list[Any]:
    return value if isinstance(value, list) else []


Amount = Annotated[float, BeforeValidator(coerce_amount)]
Text = Annotated[str | None, BeforeValidator(coerce_text)]
UtcDatetime = Annotated[datetime, AfterValidator(_ensure_utc)]


class LineItem(BaseModel, ABC):
    """Common interface for invoice line items.

    Attributes:
        description: Optional free-text description supplied by the caller
    """

    model_config = ConfigDict(extra="ignore")

    description: Text = None

    @abstractmethod
    def contribution(self) -> float:
        """Amount this line adds to the invoice subtotal."""

    @abstractmethod
    def quantity(self) -> float:
        """Quantity shown on the rendered invoice."""

    @abstractmethod
    def unit_price(self) -> float:
        """Unit price shown on the rendered invoice."""

    @abstractmethod
    def label_parts(self) -> list[str | None]:
        pass

    def label(self) -> str:
        """Description shown on the rendered invoice.

        Returns:
            Caller description if given, else the descriptive fields joined
        """
        if self.description:
            return self.description
        return " / ".join(part for part in self.label_parts() if part)


class LeasingLineItem(LineItem):
    """Property rental line. One line is one monthly rent.

    area_sqm and lease_period are descriptive and never affect totals.
    """

    property_address: Text = None
    lease_period: Text = None
    area_sqm: Amount = 0.0
    monthly_rent: Amount = 0.0

    def contribution(self) -> float:
        return self.monthly_rent

    def quantity(self) -> float:
        return 1.0

    def unit_price(self) -> float:
        return self.monthly_rent

    def label_parts(self) -> list[str | None]:
        return [self.property_address, self.lease_period]


class MarketingLineItem(LineItem):
    """Marketing service line billed as duration x rate."""

    campaign_name: Text = None
    service_type: Text = None
    duration: Amount = 0.0
    rate: Amount = 0.0

    def contribution(self) -> float:
        return self.duration * self.rate

    def quantity(self) -> float:
        return self.duration

    def unit_price(self) -> float:
        return self.rate

    def label_parts(self) -> list[str | None]:
        return [self.campaign_name, self.service_type]


LINE_ITEM_TYPES: dict[str, type[LineItem]] = {
    "leasing": LeasingLineItem,
    "marketing": MarketingLineItem,
}


def parse_line_item(expense_type: str, raw: Any) -> LineItem:
    """Parse one raw item into the line-item variant for the expense type.

    Args:
        expense_type: Invoice expense type ('leasing' or 'marketing')
        raw: Raw item as received from the caller

    Returns:
        Parsed line item; non-mapping input yields an all-zero item

    Raises:
        KeyError: If expense_type is not a known expense type
    """
    item_class = LINE_ITEM_TYPES[expense_type]
    if not isinstance(raw, dict):
        return item_class()
    return item_class.model_validate(raw)


class InvoiceRequest(BaseModel):
    """Validated generation request.

    `tax` is a percentage here (18 means 18%). It is converted to an
    absolute amount before the invoice is stored.
    """

    user_id: str
    invoice_number: str
    expense_type: ExpenseType
    client_name: str
    client_address: str | None = None
    client_tax_id: str | None = None
    items: list[Any]
    tax: float | None = Field(None, description="Tax rate in percent")
    notes: str | None = None
    issue_date: str
    due_date: str | None = None
    is_overdue: bool = Field(False, description="Caller-asserted overdue flag")
    expire_hours: float | None = None

    def line_items(self) -> list[LineItem]:
        """Parse raw items into line items for this invoice's expense type."""
        return [parse_line_item(self.expense_type, raw) for raw in self.items]


class InvoiceRow(BaseModel):
    """Invoice fields written to the store.

    Attributes:
        tax: Absolute tax amount in currency, not the request's percentage
        expire_at: Instant after which the invoice link stops working
        created_at: Creation instant
    """

    model_config = ConfigDict(extra="ignore")

    user_id: str
    invoice_number: str
    expense_type: ExpenseType
    client_name: str
    client_address: str | None = None
    client_tax_id: str | None = None
    items: Annotated[list[Any], BeforeValidator(_as_item_list)] = Field(default_factory=list)
    subtotal: float
    tax: float
    total: float
    notes: str | None = None
    issue_date: str
    due_date: str | None = None
    is_overdue: bool = False
    expire_at: UtcDatetime | None = None
    created_at: UtcDatetime


class InvoiceRecord(InvoiceRow):
    """Persisted invoice as read back from the store."""

    id: Annotated[str, BeforeValidator(str)]

    def line_items(self) -> list[LineItem]:
        """Parse stored items into line items for this invoice's expense type."""
        return [parse_line_item(self.expense_type, raw) for raw in self.items]
