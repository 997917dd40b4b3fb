"""Unit tests for PostgRESTInvoiceStore.

Tests the PostgREST-backed store with mocked HTTP calls.
"""

from typing import Any
from unittest.mock import patch

import httpx
import pytest

from services.shared.config import Settings
from services.storage.postgrest_store import PostgRESTInvoiceStore

TABLE_URL = "https://project.supabase.co/rest/v1/invoices"


@pytest.fixture
def settings() -> Settings:
    """Create test settings with the PostgREST backend."""
    return Settings(
        store_backend="postgrest",
        postgrest_url="https://project.supabase.co/",
        postgrest_api_key="service-key",
        postgrest_table="invoices",
    )


@pytest.fixture
def store(settings: Settings) -> PostgRESTInvoiceStore:
    """Create PostgREST store instance."""
    return PostgRESTInvoiceStore(settings)


@pytest.fixture
def row() -> dict[str, Any]:
    """JSON row as produced by the generation service."""
    return {
        "user_id": "user-1",
        "invoice_number": "INV-001",
        "expense_type": "leasing",
        "client_name": "ACME",
        "items": [{"monthly_rent": 500}, {"monthly_rent": 300}],
        "subtotal": 800.0,
        "tax": 144.0,
        "total": 944.0,
        "issue_date": "2024-01-01",
        "is_overdue": False,
        "expire_at": "2024-01-03T12:00:00Z",
        "created_at": "2024-01-01T12:00:00Z",
    }


def make_response(
    method: str, status_code: int, json: Any = None, text: str | None = None
) -> httpx.Response:
    """Build an httpx response bound to a request."""
    request = httpx.Request(method, TABLE_URL)
    if text is not None:
        return httpx.Response(status_code, text=text, request=request)
    return httpx.Response(status_code, json=json, request=request)


class TestPostgRESTStoreProperties:
    """Test configuration and availability."""

    def test_backend_name(self, store: PostgRESTInvoiceStore) -> None:
        """Backend name should be 'postgrest'."""
        assert store.backend_name == "postgrest"

    def test_is_available_with_key(self, store: PostgRESTInvoiceStore) -> None:
        """Configured URL and key make the store available."""
        assert store.is_available() is True

    def test_is_not_available_without_key(self) -> None:
        """A missing service key makes the store unavailable."""
        store = PostgRESTInvoiceStore(Settings(postgrest_api_key=""))
        assert store.is_available() is False

    def test_auth_headers(self, store: PostgRESTInvoiceStore) -> None:
        """Service key is sent as apikey and bearer token."""
        assert store._client.headers["apikey"] == "service-key"
        assert store._client.headers["Authorization"] == "Bearer service-key"

    def test_close_closes_http_client(self, store: PostgRESTInvoiceStore) -> None:
        """close() releases the underlying HTTP client."""
        store.close()

        assert store._client.is_closed is True


class TestPostgRESTInsert:
    """Test inserting invoices."""

    def test_insert_success(self, store: PostgRESTInvoiceStore, row: dict[str, Any]) -> None:
        """Should return the stored representation with its generated id."""
        stored = {**row, "id": "b7e1c2d4-0000-4000-8000-000000000001"}
        response = make_response("POST", 201, json=[stored])

        with patch.object(store._client, "post", return_value=response) as mock_post:
            result = store.insert_invoice(row)

        assert result.success is True
        assert result.record is not None
        assert result.record.id == "b7e1c2d4-0000-4000-8000-000000000001"
        assert result.record.tax == 144.0

        mock_post.assert_called_once_with(
            TABLE_URL,
            json=row,
            headers={"Prefer": "return=representation"},
        )

    def test_insert_forwards_store_error_message(
        self, store: PostgRESTInvoiceStore, row: dict[str, Any]
    ) -> None:
        """PostgREST error messages are passed through."""
        response = make_response(
            "POST",
            409,
            json={
                "code": "23505",
                "message": 'duplicate key value violates unique constraint "invoices_pkey"',
                "details": None,
                "hint": None,
            },
        )

        with patch.object(store._client, "post", return_value=response):
            result = store.insert_invoice(row)

        assert result.success is False
        assert result.error == 'duplicate key value violates unique constraint "invoices_pkey"'

    def test_insert_non_json_error(self, store: PostgRESTInvoiceStore, row: dict[str, Any]) -> None:
        """Errors without a JSON body fall back to the response text."""
        response = make_response("POST", 502, text="Bad Gateway")

        with patch.object(store._client, "post", return_value=response):
            result = store.insert_invoice(row)

        assert result.success is False
        assert result.error == "Bad Gateway"

    def test_insert_connection_error(
        self, store: PostgRESTInvoiceStore, row: dict[str, Any]
    ) -> None:
        """Transport failures become failed results, without retries."""
        with patch.object(
            store._client, "post", side_effect=httpx.ConnectError("Connection refused")
        ) as mock_post:
            result = store.insert_invoice(row)

        assert result.success is False
        assert result.error == "Connection refused"
        assert mock_post.call_count == 1

    def test_insert_empty_representation(
        self, store: PostgRESTInvoiceStore, row: dict[str, Any]
    ) -> None:
        """An insert that returns no row is a failure."""
        response = make_response("POST", 201, json=[])

        with patch.object(store._client, "post", return_value=response):
            result = store.insert_invoice(row)

        assert result.success is False
        assert result.error == "Store returned no row for inserted invoice"

    def test_insert_unexpected_row_shape(
        self, store: PostgRESTInvoiceStore, row: dict[str, Any]
    ) -> None:
        """Rows that do not parse as invoices are reported as errors."""
        response = make_response("POST", 201, json=[{"id": "x"}])

        with patch.object(store._client, "post", return_value=response):
            result = store.insert_invoice(row)

        assert result.success is False
        assert result.error is not None
        assert result.error.startswith("Invalid invoice row")


class TestPostgRESTFetch:
    """Test fetching invoices by id."""

    def test_fetch_found(self, store: PostgRESTInvoiceStore, row: dict[str, Any]) -> None:
        """Should return the matching row."""
        response = make_response("GET", 200, json=[{**row, "id": "inv-1"}])

        with patch.object(store._client, "get", return_value=response) as mock_get:
            result = store.fetch_invoice("inv-1")

        assert result.success is True
        assert result.record is not None
        assert result.record.id == "inv-1"

        mock_get.assert_called_once_with(
            TABLE_URL,
            params={"select": "*", "id": "eq.inv-1"},
        )

    def test_fetch_missing(self, store: PostgRESTInvoiceStore) -> None:
        """No matching row succeeds with no record."""
        response = make_response("GET", 200, json=[])

        with patch.object(store._client, "get", return_value=response):
            result = store.fetch_invoice("missing")

        assert result.success is True
        assert result.record is None

    def test_fetch_invalid_id_error(self, store: PostgRESTInvoiceStore) -> None:
        """Store errors (e.g. malformed uuid) are failed results."""
        response = make_response(
            "GET",
            400,
            json={"code": "22P02", "message": 'invalid input syntax for type uuid: "abc"'},
        )

        with patch.object(store._client, "get", return_value=response):
            result = store.fetch_invoice("abc")

        assert result.success is False
        assert result.error == 'invalid input syntax for type uuid: "abc"'

    def test_fetch_timeout(self, store: PostgRESTInvoiceStore) -> None:
        """Timeouts become failed results."""
        with patch.object(store._client, "get", side_effect=httpx.ReadTimeout("timed out")):
            result = store.fetch_invoice("inv-1")

        assert result.success is False
        assert result.error == "timed out"
