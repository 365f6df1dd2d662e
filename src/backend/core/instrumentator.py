"""
HTTP request metrics for Prometheus.

The instrumentator records latency and counts per handler; domain
metrics live in core.metrics and share the same default registry.
"""

from prometheus_fastapi_instrumentator import Instrumentator, metrics

from core.config import settings

instrumentator = Instrumentator(
    should_group_status_codes=True,
    should_ignore_untemplated=True,
    excluded_handlers=["/metrics", "/health"],
)

instrumentator.add(metrics.default())


def setup_instrumentation(app) -> None:
    """Instrument the app and expose /metrics when metrics are enabled."""
    if not settings.monitoring.enable_metrics:
        return
    instrumentator.instrument(app)
    instrumentator.expose(app, endpoint="/metrics", include_in_schema=False)
