"""
Prometheus Metrics Registration.

Tool dispatch and rate limiter admission metrics. Exposed over HTTP only when
METRICS_PORT is set (see start_metrics_server).
"""

from prometheus_client import Counter, Gauge, Histogram, start_http_server

from mq_config.settings import Settings

# ============================================================================
# COUNTERS
# ============================================================================

tool_executions_total = Counter(
    "tool_executions_total",
    "Total tool executions",
    ["tool_name", "status"],  # success, validation_error, error
)

rate_limiter_rejections_total = Counter(
    "rate_limiter_rejections_total",
    "Requests failed by the rate limiter before dispatch",
    ["reason"],  # queue_full, queue_cleared
)

# ============================================================================
# GAUGES
# ============================================================================

rate_limiter_queue_depth = Gauge(
    "rate_limiter_queue_depth",
    "Requests waiting in the rate limiter queue",
)

rate_limiter_in_flight = Gauge(
    "rate_limiter_in_flight",
    "Requests dispatched by the rate limiter and not yet settled",
)

# ============================================================================
# HISTOGRAMS
# ============================================================================

tool_execution_duration = Histogram(
    "tool_execution_duration_seconds",
    "Tool execution duration",
    ["tool_name"],
    buckets=(0.1, 0.5, 1.0, 2.0, 5.0, 10.0, 30.0),
)

rate_limiter_wait_duration = Histogram(
    "rate_limiter_wait_seconds",
    "Time a request spent queued before dispatch",
    buckets=(0.01, 0.1, 0.5, 1.0, 2.0, 5.0, 10.0),
)


def start_metrics_server(settings: Settings) -> bool:
    """Start the Prometheus exporter if METRICS_PORT is set."""
    if settings.METRICS_PORT <= 0:
        return False

    start_http_server(settings.METRICS_PORT)
    return True
