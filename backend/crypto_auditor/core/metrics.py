"""
Prometheus metrics collection module.

Metrics Categories:
- RED Metrics: Rate, Errors, Duration
- Agent Metrics: query classifications, branch outcomes and latency
- Resource Metrics: CPU, memory

All metrics follow Prometheus naming conventions:
- Counters: _total suffix
- Histograms: _seconds suffix for duration
- Gauges: No special suffix
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

from crypto_auditor.core.logging import get_logger

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
# AGENT METRICS
# ============================================================================

agent_queries_total = Counter(
    "agent_queries_total",
    "Total number of agent queries by classifier category",
    ["classification"],
    registry=registry,
)

agent_branch_requests_total = Counter(
    "agent_branch_requests_total",
    "Total number of dispatched agent branch calls",
    ["branch", "status"],  # branch: "kb" | "price", status: "success" | "error"
    registry=registry,
)

agent_branch_latency_seconds = Histogram(
    "agent_branch_latency_seconds",
    "Agent branch call latency in seconds",
    ["branch"],
    buckets=[0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
    registry=registry,
)

agent_branch_results_total = Counter(
    "agent_branch_results_total",
    "Total number of results returned by agent branches",
    ["branch"],
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

    Strips query parameters and trailing slashes to keep label cardinality low.

    Examples:
        /api/agent/query?x=1 -> /api/agent/query
        /health/ -> /health
    """
    if "?" in path:
        path = path.split("?")[0]
    if len(path) > 1:
        path = path.rstrip("/")
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


def record_agent_query(classification: str) -> None:
    """Record one classified agent query."""
    agent_queries_total.labels(classification=classification).inc()


def record_branch_call(branch: str, success: bool, duration_ms: int, results_count: int = 0) -> None:
    """
    Record the outcome of one dispatched branch call.

    Args:
        branch: "kb" or "price"
        success: False when the provider call failed
        duration_ms: Elapsed branch time in milliseconds
        results_count: Number of normalized results returned
    """
    agent_branch_requests_total.labels(
        branch=branch,
        status="success" if success else "error",
    ).inc()
    agent_branch_latency_seconds.labels(branch=branch).observe(duration_ms / 1000.0)
    if results_count:
        agent_branch_results_total.labels(branch=branch).inc(results_count)


def update_resource_metrics() -> None:
    """
    Update system resource metrics (CPU, memory).

    Called on-demand when metrics are scraped.
    """
    try:
        system_cpu_usage_percent.set(psutil.cpu_percent(interval=None))
        system_memory_usage_bytes.set(psutil.virtual_memory().used)
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
