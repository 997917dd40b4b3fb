"""Invoice generation service.

Orchestrates one generation request:
1. Validate the raw request body
2. Compute subtotal, tax, total and expiration
3. Persist exactly one invoice record
4. Build the shareable invoice link

Failures never raise out of `generate`; they are returned as a
GenerationResult carrying the HTTP status to report.
"""

import logging
from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel

from services.invoices.computation import compute_invoice_totals, format_timestamp
from services.invoices.errors import PersistenceError, ValidationError
from services.invoices.schema import InvoiceRecord, InvoiceRequest, InvoiceRow
from services.invoices.validation import validate_invoice_request
from services.shared.config import Settings
from services.storage.base import InvoiceStore

logger = logging.getLogger(__name__)

UNKNOWN_ERROR_MESSAGE = "Unknown error occurred"


class GenerationResult(BaseModel):
    """Outcome of a generation request.

    Attributes:
        status_code: HTTP status to report (200, 400 or 500)
        success: Whether an invoice was created
        invoice_id: Generated invoice identifier
        invoice_url: Shareable link to the invoice
        expires_at: ISO-8601 expiration instant, None if the link never expires
        expense_type: Expense type of the created invoice
        subtotal: Computed subtotal of the created invoice
        error: Error message if generation failed
    """

    status_code: int
    success: bool
    invoice_id: str | None = None
    invoice_url: str | None = None
    expires_at: str | None = None
    expense_type: str | None = None
    subtotal: float | None = None
    error: str | None = None

    def to_response(self) -> dict[str, Any]:
        """Response body sent to the caller."""
        if not self.success:
            return {"error": self.error}
        return {
            "success": True,
            "invoice_id": self.invoice_id,
            "invoice_url": self.invoice_url,
            "expires_at": self.expires_at,
        }


class InvoiceGenerationService:
    """Creates invoices and returns shareable links.

    Stateless apart from the injected store; concurrent calls are
    independent. Duplicate submissions create duplicate invoices.
    """

    def __init__(self, settings: Settings, store: InvoiceStore) -> None:
        """Initialize generation service.

        Args:
            settings: Application settings
            store: Invoice store used for the single insert per request
        """
        self.settings = settings
        self.store = store

    def generate(self, payload: Any, origin: str | None = None) -> GenerationResult:
        """Validate, compute, persist and link one invoice.

        Args:
            payload: Decoded JSON request body
            origin: Caller's Origin header, if any

        Returns:
            GenerationResult with status 200 on success, 400 on validation
            failure and 500 on store or unexpected failure
        """
        try:
            request = validate_invoice_request(payload)
            logger.info(
                f"Generating invoice: number={request.invoice_number}, "
                f"client={request.client_name}, type={request.expense_type}"
            )

            now = datetime.now(UTC)
            record = self._persist(self._build_row(request, now))
            invoice_url = self.build_invoice_url(record.id, origin)

            logger.info(f"Invoice created successfully: {record.id}")

            return GenerationResult(
                status_code=200,
                success=True,
                invoice_id=record.id,
                invoice_url=invoice_url,
                expires_at=format_timestamp(record.expire_at),
                expense_type=record.expense_type,
                subtotal=record.subtotal,
            )

        except ValidationError as e:
            logger.info(f"Rejected invoice request: {e}")
            return GenerationResult(status_code=400, success=False, error=str(e))

        except PersistenceError as e:
            return GenerationResult(status_code=500, success=False, error=str(e))

        except Exception as e:
            logger.exception("Error in invoice generation")
            return GenerationResult(
                status_code=500, success=False, error=str(e) or UNKNOWN_ERROR_MESSAGE
            )

    def _build_row(self, request: InvoiceRequest, now: datetime) -> InvoiceRow:
        totals = compute_invoice_totals(
            expense_type=request.expense_type,
            items=request.line_items(),
            tax_percent=request.tax,
            expire_hours=request.expire_hours,
            created_at=now,
        )

        return InvoiceRow(
            user_id=request.user_id,
            invoice_number=request.invoice_number,
            expense_type=request.expense_type,
            client_name=request.client_name,
            client_address=request.client_address,
            client_tax_id=request.client_tax_id,
            items=request.items,
            subtotal=totals.subtotal,
            tax=totals.tax_amount,
            total=totals.total,
            notes=request.notes,
            issue_date=request.issue_date,
            due_date=request.due_date,
            is_overdue=request.is_overdue,
            expire_at=totals.expire_at,
            created_at=now,
        )

    def _persist(self, row: InvoiceRow) -> InvoiceRecord:
        """Insert the row, raising PersistenceError if the store rejects it."""
        result = self.store.insert_invoice(row.model_dump(mode="json"))

        if not result.success or result.record is None:
            logger.error(f"Error creating invoice: {result.error}")
            raise PersistenceError(result.error or UNKNOWN_ERROR_MESSAGE)

        return result.record

    def build_invoice_url(self, invoice_id: str, origin: str | None = None) -> str:
        """Build the shareable link for an invoice.

        The configured public base URL is used unless trust_request_origin is
        enabled and the caller sent an Origin header. The Origin header is
        caller-controlled, so links built from it are advisory only.

        Args:
            invoice_id: Generated invoice identifier
            origin: Caller's Origin header, if any

        Returns:
            URL of the form <base>/invoice/<invoice_id>
        """
        base = self.settings.public_base_url
        if self.settings.trust_request_origin and origin:
            base = origin
        return f"{base.rstrip('/')}/invoice/{invoice_id}"
