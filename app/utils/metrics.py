"""
Prometheus-based metrics for production monitoring.
Provides /metrics endpoint for scraping.
"""
from prometheus_client import Counter, Histogram, Gauge, generate_latest, CONTENT_TYPE_LATEST
from fastapi import APIRouter, Response


# Counters
generations_dispatched_total = Counter(
    "generations_dispatched_total",
    "Total number of generation jobs accepted by a provider",
    ["mode"],
)

generations_completed_total = Counter(
    "generations_completed_total",
    "Total number of generation jobs completed with a GIF",
    ["mode"],
)

generations_failed_total = Counter(
    "generations_failed_total",
    "Total number of generation jobs that ended in failed",
    ["mode", "reason"],
)

reconcile_noop_total = Counter(
    "reconcile_noop_total",
    "Notifications that lost the transition race or arrived for a terminal job",
    ["source"],
)

credit_operations_total = Counter(
    "credit_operations_total",
    "Total credit ledger operations",
    ["operation"],  # DEBIT, REFUND, PURCHASE, GRANT
)

balance_rejected_total = Counter(
    "balance_rejected_total",
    "Total debits rejected for insufficient credits",
)

refunds_issued_total = Counter(
    "refunds_issued_total",
    "Total refunds issued for failed generation jobs",
    ["reason"],
)

webhooks_rejected_total = Counter(
    "webhooks_rejected_total",
    "Inbound provider webhooks rejected by signature check",
    ["provider"],
)

provider_requests_total = Counter(
    "provider_requests_total",
    "Total video provider API requests",
    ["provider", "operation", "status"],
)

circuit_breaker_state = Gauge(
    "circuit_breaker_state",
    "Circuit breaker state (0=closed, 1=open)",
    ["name"],
)

# Histograms
transcode_duration_seconds = Histogram(
    "transcode_duration_seconds",
    "Video to GIF transcoding duration (submit to upload)",
    buckets=[5, 10, 30, 60, 120, 300],
)

sweep_duration_seconds = Histogram(
    "sweep_duration_seconds",
    "Duration of one polling sweep tick",
    buckets=[0.5, 1, 5, 10, 30, 60, 300],
)

# Gauges
processing_jobs = Gauge(
    "processing_jobs",
    "Jobs seen in processing by the last sweep tick",
)


# Metrics endpoint router
router = APIRouter()


@router.get("/metrics")
def metrics_endpoint() -> Response:
    """Prometheus metrics endpoint for scraping."""
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST,
    )
