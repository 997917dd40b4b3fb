"""Prometheus metrics for API service.

Exposes key metrics for monitoring:
- Request counts by endpoint and status
- Request duration histograms
- Invoice generation outcomes and amounts
- Invoice link views by outcome

Based on Prometheus best practices:
https://prometheus.io/docs/practices/naming/
"""

from prometheus_client import Counter, Histogram, generate_latest
from prometheus_client.openmetrics.exposition import CONTENT_TYPE_LATEST

# Request metrics
http_requests_total = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status"],
)

http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"],
    buckets=(0.01, 0.05, 0.1, 0.5, 1.0, 2.5, 5.0, 10.0),
)

# Invoice generation metrics
invoices_generated_total = Counter(
    "invoices_generated_total",
    "Total invoice generation requests",
    ["status"],  # success, validation_error, failed
)

invoice_subtotal_amount = Histogram(
    "invoice_subtotal_amount",
    "Subtotal of generated invoices",
    ["expense_type"],
    buckets=(100, 500, 1000, 5000, 10000, 50000, 100000),
)

# Invoice view metrics
invoice_views_total = Counter(
    "invoice_views_total",
    "Total invoice link views",
    ["state"],  # rendered, expired, not_found
)


def get_metrics() -> tuple[bytes, str]:
    """Generate Prometheus metrics in text format.

    Returns:
        Tuple of (metrics bytes, content type)
    """
    return generate_latest(), CONTENT_TYPE_LATEST
