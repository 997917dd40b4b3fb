"""PostgREST-backed invoice store.

Talks to a PostgREST endpoint (e.g. a Supabase project's REST API) over
HTTP. One request per operation; no retries and no transactions.

PostgREST API reference:
https://postgrest.org/en/stable/references/api/tables_views.html
"""

import logging
from typing import Any

import httpx
from pydantic import ValidationError as ModelValidationError

from services.invoices.schema import InvoiceRecord
from services.shared.config import Settings
from services.storage.base import InvoiceStore, StoreResult

logger = logging.getLogger(__name__)


class PostgRESTInvoiceStore(InvoiceStore):
    """Invoice store backed by a PostgREST table.

    Authenticates with a service key sent both as `apikey` and as a bearer
    token, which is what Supabase expects from server-side callers.
    """

    def __init__(self, settings: Settings) -> None:
        """Initialize PostgREST store.

        Args:
            settings: Application settings with postgrest_* configuration
        """
        super().__init__(settings)
        self._table_url = f"{settings.postgrest_url.rstrip('/')}/rest/v1/{settings.postgrest_table}"
        headers = {"Content-Type": "application/json", "Accept": "application/json"}
        if settings.postgrest_api_key:
            headers["apikey"] = settings.postgrest_api_key
            headers["Authorization"] = f"Bearer {settings.postgrest_api_key}"
        self._client = httpx.Client(headers=headers, timeout=settings.postgrest_timeout)

    @property
    def backend_name(self) -> str:
        return "postgrest"

    def is_available(self) -> bool:
        """Check if the store is configured.

        Returns:
            True if a URL and API key are set
        """
        return bool(self.settings.postgrest_url and self.settings.postgrest_api_key)

    def insert_invoice(self, row: dict[str, Any]) -> StoreResult:
        """Insert one row and read back the stored representation.

        Args:
            row: JSON-compatible invoice fields without an id

        Returns:
            StoreResult with the stored record, or the store's error message
        """
        try:
            response = self._client.post(
                self._table_url,
                json=row,
                headers={"Prefer": "return=representation"},
            )
        except httpx.HTTPError as e:
            logger.error(f"PostgREST insert failed: {e}")
            return self._failure(str(e) or type(e).__name__)

        if response.is_error:
            message = self._error_message(response)
            logger.error(f"PostgREST rejected insert ({response.status_code}): {message}")
            return self._failure(message)

        return self._first_record(response, required=True)

    def fetch_invoice(self, invoice_id: str) -> StoreResult:
        """Select the row whose id equals invoice_id.

        Args:
            invoice_id: Generated invoice identifier

        Returns:
            StoreResult; record is None when no row matched
        """
        try:
            response = self._client.get(
                self._table_url,
                params={"select": "*", "id": f"eq.{invoice_id}"},
            )
        except httpx.HTTPError as e:
            logger.error(f"PostgREST fetch failed for {invoice_id}: {e}")
            return self._failure(str(e) or type(e).__name__)

        if response.is_error:
            message = self._error_message(response)
            logger.error(f"PostgREST rejected fetch ({response.status_code}): {message}")
            return self._failure(message)

        return self._first_record(response, required=False)

    def _first_record(self, response: httpx.Response, required: bool) -> StoreResult:
        try:
            payload = response.json()
        except ValueError:
            return self._failure("Store returned a non-JSON response")

        rows = payload if isinstance(payload, list) else [payload]
        if not rows:
            if required:
                return self._failure("Store returned no row for inserted invoice")
            return StoreResult(success=True, record=None, backend=self.backend_name)

        try:
            record = InvoiceRecord.model_validate(rows[0])
        except ModelValidationError as e:
            logger.error(f"Unexpected invoice row shape from PostgREST: {e}")
            return self._failure(f"Invalid invoice row: {e.error_count()} field error(s)")

        return StoreResult(success=True, record=record, backend=self.backend_name)

    def _failure(self, message: str) -> StoreResult:
        return StoreResult(success=False, error=message, backend=self.backend_name)

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        """Extract the error message from a PostgREST error response.

        PostgREST error bodies look like
        {"code": "23505", "message": "...", "details": ..., "hint": ...}.
        """
        try:
            body = response.json()
        except ValueError:
            body = None
        if isinstance(body, dict) and body.get("message"):
            return str(body["message"])
        return response.text or f"HTTP {response.status_code}"

    def close(self) -> None:
        """Close the underlying HTTP client."""
        self._client.close()
