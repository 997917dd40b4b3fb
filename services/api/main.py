"""FastAPI application for invoice generation and shareable invoice links.

Production-ready API with:
- Invoice generation endpoint (validate, compute, persist, link)
- Invoice link viewing with expiry handling
- Dashboard data for signed-in accounts
- Health and readiness checks for Kubernetes
- Prometheus metrics for monitoring

Based on FastAPI best practices:
https://fastapi.tiangolo.com/
"""

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from fastapi import Depends, FastAPI, Header, HTTPException, Request, Response, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from services.api import metrics
from services.invoices.presentation import InvoiceView, InvoiceViewer
from services.invoices.schema import LeasingLineItem, MarketingLineItem
from services.invoices.service import InvoiceGenerationService
from services.invoices.validation import OPTIONAL_FIELDS, REQUIRED_FIELDS
from services.shared.config import get_settings
from services.storage.factory import create_invoice_store

settings = get_settings()

# Configure logging
logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

logger = logging.getLogger(__name__)

GENERATE_PATH = "/api/v1/invoices/generate"

CORS_ALLOW_HEADERS = ["authorization", "x-client-info", "apikey", "content-type"]

VIEW_STATUS_CODES = {
    "rendered": status.HTTP_200_OK,
    "expired": status.HTTP_410_GONE,
    "not_found": status.HTTP_404_NOT_FOUND,
}

invoice_store = create_invoice_store(settings)
generation_service = InvoiceGenerationService(settings, invoice_store)
invoice_viewer = InvoiceViewer(settings, invoice_store)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Close the invoice store when the application shuts down."""
    yield
    invoice_store.close()
    logger.info(f"Closed invoice store: {invoice_store.backend_name}")


app = FastAPI(
    title="Invoice Link Service",
    description="Generate leasing and marketing invoices with shareable, expiring links",
    version=settings.service_version,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_allow_origins,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=CORS_ALLOW_HEADERS,
)


def cors_response_headers(request: Request) -> dict[str, str]:
    """CORS headers for OPTIONS on the generate endpoint, from APP_CORS_ALLOW_ORIGINS."""
    headers = {"Access-Control-Allow-Headers": ", ".join(CORS_ALLOW_HEADERS)}
    origin = request.headers.get("origin")
    if "*" in settings.cors_allow_origins:
        headers["Access-Control-Allow-Origin"] = "*"
    elif origin is not None and origin in settings.cors_allow_origins:
        headers["Access-Control-Allow-Origin"] = origin
        headers["Vary"] = "Origin"
    return headers


@app.middleware("http")
async def generate_options_middleware(request: Request, call_next):  # type: ignore[no-untyped-def]
    """Answer every OPTIONS on the generate endpoint with an empty 200.

    Runs outside CORSMiddleware, so browser pre-flights get the same empty
    body as plain OPTIONS requests, whatever headers they ask for.
    """
    if request.method == "OPTIONS" and request.url.path == GENERATE_PATH:
        return Response(status_code=status.HTTP_200_OK, headers=cors_response_headers(request))
    return await call_next(request)


def _endpoint_label(request: Request) -> str:
    # Route template keeps invoice ids out of metric labels
    route = request.scope.get("route")
    return getattr(route, "path", request.url.path)


@app.middleware("http")
async def metrics_middleware(request: Request, call_next):  # type: ignore[no-untyped-def]
    """Middleware to collect request metrics.

    Tracks:
    - Request count by method, endpoint, and status
    - Request duration by method and endpoint
    """
    # Skip metrics for /metrics endpoint itself
    if request.url.path == "/metrics":
        return await call_next(request)

    start_time = time.time()
    response = await call_next(request)
    duration = time.time() - start_time

    endpoint = _endpoint_label(request)

    # Record metrics
    metrics.http_requests_total.labels(
        method=request.method,
        endpoint=endpoint,
        status=response.status_code,
    ).inc()

    metrics.http_request_duration_seconds.labels(
        method=request.method,
        endpoint=endpoint,
    ).observe(duration)

    return response


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    version: str
    service: str


class ReadinessResponse(BaseModel):
    """Readiness check response."""

    ready: bool
    store: str


class DashboardResponse(BaseModel):
    """API usage information for a signed-in account."""

    user_id: str
    generate_endpoint: str
    required_fields: list[str]
    optional_fields: list[str]
    item_fields: dict[str, list[str]]
    example_requests: dict[str, dict[str, Any]]
    example_response: dict[str, Any]


def get_current_user_id(x_user_id: str | None = Header(default=None)) -> str | None:
    """Account id forwarded by the upstream auth provider."""
    return x_user_id


@app.get("/health", response_model=HealthResponse, tags=["Health"])
def health_check() -> HealthResponse:
    """Health check endpoint for liveness probe.

    Returns:
        Health status information
    """
    return HealthResponse(
        status="healthy", version=settings.service_version, service=settings.service_name
    )


@app.get("/ready", response_model=ReadinessResponse, tags=["Health"])
def readiness_check() -> ReadinessResponse:
    """Readiness check endpoint for Kubernetes readiness probe.

    Returns:
        Readiness status, false when the invoice store is not configured
    """
    return ReadinessResponse(ready=invoice_store.is_available(), store=invoice_store.backend_name)


@app.get("/metrics", tags=["Monitoring"])
def get_metrics() -> Response:
    """Prometheus metrics endpoint.

    Returns:
        Prometheus metrics in text format
    """
    metrics_data, content_type = metrics.get_metrics()
    return Response(content=metrics_data, media_type=content_type)


@app.post(GENERATE_PATH, tags=["Invoices"])
async def generate_invoice(request: Request) -> JSONResponse:
    """Generate an invoice and return its shareable link.

    ## Usage Example

    ```bash
    curl -X POST "http://localhost:8000/api/v1/invoices/generate" \\
      -H "Content-Type: application/json" \\
      -d '{"user_id": "u-1", "invoice_number": "INV-001", "expense_type": "leasing",
           "client_name": "ACME", "items": [{"monthly_rent": 500}], "tax": 18,
           "expire_hours": 48}'
    ```

    ## Response

    - 200: `{"success": true, "invoice_id", "invoice_url", "expires_at"}`
    - 400: `{"error"}` when required fields are missing or expense_type is invalid
    - 500: `{"error"}` when the invoice store rejects the write or anything else fails

    The body is validated by the service rather than by FastAPI, so client
    errors are reported as 400 with an `error` message instead of 422.
    """
    try:
        payload = await request.json()
    except ValueError:
        metrics.invoices_generated_total.labels(status="validation_error").inc()
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"error": "Request body must be valid JSON"},
        )

    result = generation_service.generate(payload, origin=request.headers.get("origin"))

    if result.success:
        metrics.invoices_generated_total.labels(status="success").inc()
        if result.expense_type is not None and result.subtotal is not None:
            metrics.invoice_subtotal_amount.labels(expense_type=result.expense_type).observe(
                result.subtotal
            )
    elif result.status_code == status.HTTP_400_BAD_REQUEST:
        metrics.invoices_generated_total.labels(status="validation_error").inc()
    else:
        metrics.invoices_generated_total.labels(status="failed").inc()

    return JSONResponse(status_code=result.status_code, content=result.to_response())


@app.get("/invoice/{invoice_id}", response_model=InvoiceView, tags=["Invoices"])
def view_invoice(invoice_id: str, response: Response) -> InvoiceView:
    """Resolve a shareable invoice link.

    Returns one of three outcomes: the rendered invoice (200), expired (410)
    or not found (404). Store errors are reported as not found.
    """
    view = invoice_viewer.view(invoice_id)
    metrics.invoice_views_total.labels(state=view.state).inc()
    response.status_code = VIEW_STATUS_CODES[view.state]
    return view


@app.get("/api/v1/dashboard", response_model=DashboardResponse, tags=["Dashboard"])
def dashboard(
    current_user: str | None = Depends(get_current_user_id),  # noqa: B008
) -> DashboardResponse:
    """API usage information for the signed-in account.

    Authentication is handled upstream; the auth provider forwards the
    account id in the `x-user-id` header.

    Raises:
        HTTPException: 401 if no account id was forwarded
    """
    if current_user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing x-user-id header"
        )

    return DashboardResponse(
        user_id=current_user,
        generate_endpoint=f"{settings.public_base_url.rstrip('/')}{GENERATE_PATH}",
        required_fields=[*REQUIRED_FIELDS, "items"],
        optional_fields=list(OPTIONAL_FIELDS),
        item_fields={
            "leasing": list(LeasingLineItem.model_fields),
            "marketing": list(MarketingLineItem.model_fields),
        },
        example_requests={
            "leasing": {
                "user_id": current_user,
                "invoice_number": "INV-001",
                "expense_type": "leasing",
                "client_name": "Client LLC",
                "client_address": "Tbilisi, Georgia",
                "client_tax_id": "123456789",
                "items": [
                    {
                        "property_address": "12 Rustaveli Ave",
                        "lease_period": "2024-01",
                        "area_sqm": 120,
                        "monthly_rent": 500,
                    }
                ],
                "tax": 18,
                "notes": "Payment by bank transfer",
                "expire_hours": 48,
            },
            "marketing": {
                "user_id": current_user,
                "invoice_number": "INV-002",
                "expense_type": "marketing",
                "client_name": "Client LLC",
                "items": [
                    {
                        "campaign_name": "Spring launch",
                        "service_type": "Social media",
                        "duration": 3,
                        "rate": 250,
                    }
                ],
                "due_date": "2024-02-01",
            },
        },
        example_response={
            "success": True,
            "invoice_id": "uuid",
            "invoice_url": f"{settings.public_base_url.rstrip('/')}/invoice/uuid",
            "expires_at": "2024-01-03T12:00:00.000Z",
        },
    )
