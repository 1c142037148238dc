"""
Prometheus metrics collection module.

Metrics Categories:
- RED Metrics: Rate, Errors, Duration of the HTTP surface
- Governance Metrics: approval gate decisions, pending requests created
- Provider Metrics: attempts per outcome, attempt latency, current rank
- Resource Metrics: CPU, memory

All metrics follow Prometheus naming conventions:
- Counters: _total suffix
- Histograms: _seconds suffix for duration
- Gauges: No special suffix

Label values are category strings only (decision, reason path, provider,
outcome kind). Tenant and user identifiers are never used as labels.
"""
import psutil
from prometheus_client import (
    Counter,
    Histogram,
    Gauge,
    generate_latest,
    REGISTRY,
    CONTENT_TYPE_LATEST,
)

from app.core.logging import get_logger

logger = get_logger(__name__)

registry = REGISTRY

# ============================================================================
# RED METRICS - Rate, Errors, Duration
# ============================================================================

http_requests_total = Counter(
    "http_requests_total",
    "Total number of HTTP requests",
    ["method", "endpoint", "status"],
    registry=registry,
)

http_errors_total = Counter(
    "http_errors_total",
    "Total number of HTTP errors",
    ["method", "endpoint", "status_code"],
    registry=registry,
)

http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency in seconds",
    ["method", "endpoint"],
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
    registry=registry,
)

# ============================================================================
# GOVERNANCE METRICS
# ============================================================================

approval_gate_decisions_total = Counter(
    "approval_gate_decisions_total",
    "Total number of approval gate decisions",
    ["path", "decision"],  # path: fresh | retry; decision: allowed | admin_bypass | deferred | blocked
    registry=registry,
)

pending_requests_created_total = Counter(
    "pending_requests_created_total",
    "Total number of pending approval requests created",
    ["feature"],
    registry=registry,
)

pending_store_errors_total = Counter(
    "pending_store_errors_total",
    "Total number of pending request store failures",
    ["operation"],  # insert | lookup
    registry=registry,
)

# ============================================================================
# PROVIDER METRICS
# ============================================================================

provider_attempts_total = Counter(
    "provider_attempts_total",
    "Total number of provider attempts by outcome",
    ["provider", "outcome"],
    registry=registry,
)

provider_attempt_latency_seconds = Histogram(
    "provider_attempt_latency_seconds",
    "Provider attempt latency in seconds",
    ["provider"],
    buckets=[0.25, 0.5, 1.0, 2.0, 4.0, 6.0, 8.0, 10.0, 15.0, 30.0],
    registry=registry,
)

provider_rank = Gauge(
    "provider_rank",
    "Current relative rank of each provider (ordering only, not a probability)",
    ["provider"],
    registry=registry,
)

provider_orchestration_exhausted_total = Counter(
    "provider_orchestration_exhausted_total",
    "Total number of logical requests for which every provider failed",
    registry=registry,
)

# ============================================================================
# RESOURCE METRICS
# ============================================================================

system_cpu_usage_percent = Gauge(
    "system_cpu_usage_percent",
    "System CPU usage percentage",
    registry=registry,
)

system_memory_usage_bytes = Gauge(
    "system_memory_usage_bytes",
    "System memory usage in bytes",
    registry=registry,
)


# ============================================================================
# HELPER FUNCTIONS
# ============================================================================

def normalize_endpoint(path: str) -> str:
    """
    Normalize endpoint path for metrics.

    Drops query parameters so that resolve lookups with different model names
    share one series.

    Examples:
        /governance/providers/resolve?provider=openai -> /governance/providers/resolve
        /health -> /health
    """
    if "?" in path:
        path = path.split("?")[0]
    return path


def record_http_request(
    method: str,
    endpoint: str,
    status_code: int,
    duration_seconds: float,
) -> None:
    """
    Record HTTP request metrics (RED metrics).

    Args:
        method: HTTP method (GET, POST, etc.)
        endpoint: Request path
        status_code: HTTP status code
        duration_seconds: Request duration in seconds
    """
    normalized_endpoint = normalize_endpoint(endpoint)

    http_requests_total.labels(
        method=method,
        endpoint=normalized_endpoint,
        status=str(status_code),
    ).inc()

    if status_code >= 400:
        http_errors_total.labels(
            method=method,
            endpoint=normalized_endpoint,
            status_code=str(status_code),
        ).inc()

    http_request_duration_seconds.labels(
        method=method,
        endpoint=normalized_endpoint,
    ).observe(duration_seconds)


def record_approval_decision(path: str, decision: str) -> None:
    """
    Record an approval gate decision.

    Args:
        path: "fresh" or "retry"
        decision: "allowed", "admin_bypass", "deferred" or "blocked"
    """
    approval_gate_decisions_total.labels(path=path, decision=decision).inc()


def record_pending_request_created(feature: str) -> None:
    """Record creation of a pending approval request."""
    pending_requests_created_total.labels(feature=feature).inc()


def record_pending_store_error(operation: str) -> None:
    """Record a pending store failure ("insert" or "lookup")."""
    pending_store_errors_total.labels(operation=operation).inc()


def record_provider_attempt(provider: str, outcome: str, latency_ms: float) -> None:
    """
    Record one provider attempt.

    Args:
        provider: Provider name
        outcome: Outcome kind (success, schema_invalid, timeout, provider_error)
        latency_ms: Attempt latency in milliseconds
    """
    provider_attempts_total.labels(provider=provider, outcome=outcome).inc()
    provider_attempt_latency_seconds.labels(provider=provider).observe(
        max(latency_ms, 0.0) / 1000.0
    )


def update_provider_rank(provider: str, rank: float) -> None:
    """Publish the current rank of a provider."""
    provider_rank.labels(provider=provider).set(rank)


def record_orchestration_exhausted() -> None:
    """Record a logical request for which every provider failed."""
    provider_orchestration_exhausted_total.inc()


def update_resource_metrics() -> None:
    """
    Update system resource metrics (CPU, memory).

    Called on demand when metrics are scraped.
    """
    try:
        cpu_percent = psutil.cpu_percent(interval=0.1)
        system_cpu_usage_percent.set(cpu_percent)

        memory = psutil.virtual_memory()
        system_memory_usage_bytes.set(memory.used)

    except Exception as e:
        logger.warning(
            "metrics_resource_update_failed",
            error=str(e),
            error_type=type(e).__name__,
        )


def get_metrics() -> bytes:
    """Get Prometheus metrics in text format."""
    update_resource_metrics()

    return generate_latest(registry)


def get_metrics_content_type() -> str:
    """Get content type for metrics endpoint."""
    return CONTENT_TYPE_LATEST
