"""Invoice store selection from settings.store_backend."""

import logging

from services.shared.config import Settings
from services.storage.base import InvoiceStore
from services.storage.memory_store import MemoryInvoiceStore
from services.storage.postgrest_store import PostgRESTInvoiceStore

logger = logging.getLogger(__name__)

STORE_BACKENDS: dict[str, type[InvoiceStore]] = {
    "memory": MemoryInvoiceStore,
    "postgrest": PostgRESTInvoiceStore,
}


def create_invoice_store(settings: Settings) -> InvoiceStore:
    """Create the invoice store named by APP_STORE_BACKEND.

    An unconfigured store is still returned so the API can start and report
    itself as not ready; writes then fail with the store's own error.

    Args:
        settings: Application settings

    Returns:
        Invoice store instance

    Raises:
        ValueError: If store_backend names no known store
    """
    try:
        store_class = STORE_BACKENDS[settings.store_backend]
    except KeyError:
        raise ValueError(
            f"APP_STORE_BACKEND={settings.store_backend!r} is not supported; "
            f"use one of: {', '.join(STORE_BACKENDS)}"
        ) from None

    store = store_class(settings)
    if not store.is_available():
        logger.warning(
            f"Invoice store '{store.backend_name}' is missing connection settings; "
            f"set APP_POSTGREST_URL and APP_POSTGREST_API_KEY"
        )
    else:
        logger.info(f"Using invoice store: {store.backend_name}")
    return store
