"""
Prometheus metrics for the Fundraising Service
"""
import time
from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
import structlog

logger = structlog.get_logger(__name__)

http_requests_total = Counter(
    'http_requests_total',
    'Total number of HTTP requests',
    ['method', 'endpoint', 'status']
)

http_request_duration_seconds = Histogram(
    'http_request_duration_seconds',
    'HTTP request duration in seconds',
    ['method', 'endpoint']
)

# Totals bookkeeping
donation_status_transitions_total = Counter(
    'donation_status_transitions_total',
    'Donation status transitions processed by the totals maintainer',
    ['new_status', 'outcome']
)

# Analytics reports
analytics_reports_total = Counter(
    'analytics_reports_total',
    'Analytics reports computed',
    ['report', 'status']
)

analytics_report_duration_seconds = Histogram(
    'analytics_report_duration_seconds',
    'Analytics report duration in seconds',
    ['report']
)


class MetricsMiddleware(BaseHTTPMiddleware):
    """Middleware to collect Prometheus metrics for HTTP requests"""

    async def dispatch(self, request: Request, call_next):
        # Skip metrics endpoint itself
        if request.url.path == "/metrics":
            return await call_next(request)

        start_time = time.time()
        response = await call_next(request)
        duration = time.time() - start_time

        # Route template keeps label cardinality bounded
        endpoint = request.url.path
        route = request.scope.get('route')
        if route is not None and hasattr(route, 'path'):
            endpoint = route.path

        http_requests_total.labels(
            method=request.method,
            endpoint=endpoint,
            status=str(response.status_code)
        ).inc()

        http_request_duration_seconds.labels(
            method=request.method,
            endpoint=endpoint
        ).observe(duration)

        return response


async def metrics_endpoint(request: Request):
    """Endpoint to expose Prometheus metrics"""
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST
    )
