"""In-process invoice store.

Keeps invoices in a dict for the lifetime of the process. Used for local
development and tests; data does not survive a restart.
"""

import logging
import threading
import uuid
from typing import Any

from pydantic import ValidationError as ModelValidationError

from services.invoices.schema import InvoiceRecord
from services.shared.config import Settings
from services.storage.base import InvoiceStore, StoreResult

logger = logging.getLogger(__name__)


class MemoryInvoiceStore(InvoiceStore):
    """Dict-backed invoice store with UUID4 identifiers."""

    def __init__(self, settings: Settings) -> None:
        super().__init__(settings)
        self._records: dict[str, InvoiceRecord] = {}
        self._lock = threading.Lock()

    @property
    def backend_name(self) -> str:
        return "memory"

    def is_available(self) -> bool:
        return True

    def insert_invoice(self, row: dict[str, Any]) -> StoreResult:
        invoice_id = str(uuid.uuid4())

        try:
            record = InvoiceRecord.model_validate({**row, "id": invoice_id})
        except ModelValidationError as e:
            logger.error(f"Rejected invoice row: {e}")
            return StoreResult(success=False, error=str(e), backend=self.backend_name)

        with self._lock:
            self._records[invoice_id] = record

        logger.debug(f"Stored invoice {invoice_id}")
        return StoreResult(success=True, record=record, backend=self.backend_name)

    def fetch_invoice(self, invoice_id: str) -> StoreResult:
        with self._lock:
            record = self._records.get(invoice_id)
        return StoreResult(success=True, record=record, backend=self.backend_name)

    def count(self) -> int:
        """Number of stored invoices."""
        with self._lock:
            return len(self._records)
