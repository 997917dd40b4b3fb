"""Validation of raw invoice generation requests.

Checks only what the generation flow depends on: required fields,
the items container and the expense type. Individual line items are
not validated; malformed numeric fields contribute 0 to the totals.
"""

from datetime import UTC, datetime
from typing import Any

from services.invoices.errors import ValidationError
from services.invoices.schema import (
    EXPENSE_TYPES,
    InvoiceRequest,
    coerce_optional_amount,
    coerce_text,
)

REQUIRED_FIELDS: tuple[str, ...] = ("user_id", "invoice_number", "expense_type", "client_name")

OPTIONAL_FIELDS: tuple[str, ...] = (
    "client_address",
    "client_tax_id",
    "tax",
    "notes",
    "issue_date",
    "due_date",
    "is_overdue",
    "expire_hours",
)


def find_missing_fields(payload: dict[str, Any]) -> list[str]:
    """List required fields that are absent or empty.

    Args:
        payload: Raw request body

    Returns:
        Names of missing fields in declaration order, `items` last
    """
    missing = [name for name in REQUIRED_FIELDS if not payload.get(name)]
    # An empty list is accepted; only absent or non-list items are rejected
    if not isinstance(payload.get("items"), list):
        missing.append("items")
    return missing


def validate_invoice_request(payload: Any, today: str | None = None) -> InvoiceRequest:
    """Validate a raw request body and normalise it into an InvoiceRequest.

    Args:
        payload: Decoded JSON request body
        today: Default issue date (YYYY-MM-DD); current UTC date if omitted

    Returns:
        Normalised InvoiceRequest

    Raises:
        ValidationError: If required fields are missing, items is not a list,
            or the expense type is unknown
    """
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object")

    missing = find_missing_fields(payload)
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    expense_type = payload["expense_type"]
    if expense_type not in EXPENSE_TYPES:
        raise ValidationError('expense_type must be either "leasing" or "marketing"')

    if today is None:
        today = datetime.now(UTC).date().isoformat()

    return InvoiceRequest(
        user_id=str(payload["user_id"]),
        invoice_number=str(payload["invoice_number"]),
        expense_type=expense_type,
        client_name=str(payload["client_name"]),
        client_address=coerce_text(payload.get("client_address")),
        client_tax_id=coerce_text(payload.get("client_tax_id")),
        items=payload["items"],
        tax=coerce_optional_amount(payload.get("tax")),
        notes=coerce_text(payload.get("notes")),
        issue_date=coerce_text(payload.get("issue_date")) or today,
        due_date=coerce_text(payload.get("due_date")),
        is_overdue=payload.get("is_overdue") is True,
        expire_hours=coerce_optional_amount(payload.get("expire_hours")),
    )
