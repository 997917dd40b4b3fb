"""Abstract base class for invoice stores.

Enables switching between store backends (in-process memory, PostgREST)
while keeping one interface for the generation and viewing paths.

Design follows existing patterns:
- Pydantic BaseModel for type-safe results
- ABC for interface enforcement
- Settings injection
"""

from abc import ABC, abstractmethod
from typing import Any

from pydantic import BaseModel

from services.invoices.schema import InvoiceRecord
from services.shared.config import Settings


class StoreResult(BaseModel):
    """Result of a store operation.

    Attributes:
        success: Whether the operation reached the store and succeeded
        record: Inserted or fetched invoice; None on failure or when no row matched
        error: Error message reported by the store if the operation failed
        backend: Name of the backend that served the operation
    """

    success: bool
    record: InvoiceRecord | None = None
    error: str | None = None
    backend: str


class InvoiceStore(ABC):
    """Abstract base class for invoice persistence.

    Stores return StoreResult objects instead of raising, so callers can
    decide how a failure is reported. Both operations are single,
    non-transactional calls; nothing is retried.
    """

    def __init__(self, settings: Settings) -> None:
        """Initialize store with settings.

        Args:
            settings: Application settings
        """
        self.settings = settings

    @abstractmethod
    def insert_invoice(self, row: dict[str, Any]) -> StoreResult:
        """Persist a new invoice.

        Args:
            row: JSON-compatible invoice fields without an id

        Returns:
            StoreResult with the stored record (including generated id) or error
        """
        pass

    @abstractmethod
    def fetch_invoice(self, invoice_id: str) -> StoreResult:
        """Look up an invoice by id.

        Args:
            invoice_id: Generated invoice identifier

        Returns:
            StoreResult; record is None when no invoice has this id
        """
        pass

    @abstractmethod
    def is_available(self) -> bool:
        """Check if this store is configured and usable.

        Returns:
            True if the store can serve requests, False otherwise
        """
        pass

    @property
    @abstractmethod
    def backend_name(self) -> str:
        """Get backend name for logging/metrics.

        Returns:
            Backend identifier (e.g., 'memory', 'postgrest')
        """
        pass

    def close(self) -> None:
        """Release connections held by the store. No-op by default."""
