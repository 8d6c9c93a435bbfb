"""
Prometheus metrics blueprint.

Exposes /metrics with HTTP request metrics and order lifecycle counters.
The endpoint is not authenticated; restrict it to the monitoring network.
"""
import os
import time

from flask import Blueprint, Response, request, g
from prometheus_client import Counter, Histogram, Gauge, generate_latest, CollectorRegistry, CONTENT_TYPE_LATEST
from prometheus_client import multiprocess, REGISTRY

metrics_bp = Blueprint('metrics', __name__)

# Multi-process mode under Gunicorn
MULTIPROCESS_MODE = os.environ.get('PROMETHEUS_MULTIPROC_DIR') is not None

http_requests_total = Counter(
    'http_requests_total',
    'Total HTTP requests',
    ['method', 'endpoint', 'http_status']
)

http_request_duration_seconds = Histogram(
    'http_request_duration_seconds',
    'HTTP request latency in seconds',
    ['method', 'endpoint'],
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0)
)

http_requests_in_flight = Gauge(
    'http_requests_in_flight',
    'Number of HTTP requests currently being processed',
    multiprocess_mode='livesum'
)

# Order lifecycle
sales_events_total = Counter(
    'pdv_sales_events_total',
    'Order lifecycle transitions',
    ['event']
)

sales_completed_value = Counter(
    'pdv_sales_completed_value',
    'Sum of completed sale totals (currency units)'
)

sales_rejected_total = Counter(
    'pdv_sales_rejected_total',
    'Order operations refused by the core',
    ['error']
)


def record_sale_event(event: str, total=None) -> None:
    """Count a lifecycle transition (budget, pending, completed, cancelled)."""
    sales_events_total.labels(event=event).inc()
    if event == 'completed' and total is not None:
        sales_completed_value.inc(float(total))


def record_rejection(error) -> None:
    sales_rejected_total.labels(error=type(error).__name__).inc()


def setup_metrics_instrumentation(app):
    """Register before/after request hooks that time every request."""

    @app.before_request
    def before_request_metrics():
        g._prometheus_metrics_start_time = time.time()
        http_requests_in_flight.inc()

    @app.after_request
    def after_request_metrics(response):
        if hasattr(g, '_prometheus_metrics_start_time'):
            duration = time.time() - g._prometheus_metrics_start_time
            endpoint = request.endpoint or 'unknown'

            http_request_duration_seconds.labels(method=request.method, endpoint=endpoint).observe(duration)
            http_requests_total.labels(
                method=request.method,
                endpoint=endpoint,
                http_status=response.status_code
            ).inc()
            http_requests_in_flight.dec()
        return response


@metrics_bp.route('/metrics')
def metrics():
    """Prometheus metrics endpoint (text exposition format)."""
    if MULTIPROCESS_MODE:
        registry = CollectorRegistry()
        multiprocess.MultiProcessCollector(registry)
        data = generate_latest(registry)
    else:
        data = generate_latest(REGISTRY)

    return Response(data, mimetype=CONTENT_TYPE_LATEST)
