# itasks/middleware/monitoring.py
"""Prometheus metrics: per-route request timing plus helpdesk domain counters"""
import time
from typing import Callable

from fastapi import Request
from prometheus_client import Counter, Histogram, Gauge
from starlette.middleware.base import BaseHTTPMiddleware

from itasks.core.events import DomainEvent

REQUEST_COUNT = Counter(
    'itasks_http_requests_total',
    'Total HTTP requests',
    ['method', 'endpoint', 'status']
)

REQUEST_DURATION = Histogram(
    'itasks_http_request_duration_seconds',
    'HTTP request duration',
    ['method', 'endpoint']
)

ACTIVE_REQUESTS = Gauge(
    'itasks_http_requests_active',
    'Active HTTP requests'
)

DOMAIN_EVENTS = Counter(
    'itasks_domain_events_total',
    'Domain events published after a committed mutation',
    ['event']
)

RECURRING_RUNS = Counter(
    'itasks_recurring_configs_total',
    'Recurring config evaluations by outcome',
    ['outcome']
)


def _endpoint(request: Request) -> str:
    # Route template keeps label cardinality bounded
    route = request.scope.get("route")
    return getattr(route, "path", request.url.path)


class MonitoringMiddleware(BaseHTTPMiddleware):
    """
    Prometheus monitoring middleware for metrics collection
    """

    async def dispatch(self, request: Request, call_next: Callable):
        method = request.method
        ACTIVE_REQUESTS.inc()
        start_time = time.time()
        status = 500

        try:
            response = await call_next(request)
            status = response.status_code
            return response
        finally:
            endpoint = _endpoint(request)
            REQUEST_COUNT.labels(method=method, endpoint=endpoint, status=status).inc()
            REQUEST_DURATION.labels(method=method, endpoint=endpoint).observe(time.time() - start_time)
            ACTIVE_REQUESTS.dec()


def record_event(event: DomainEvent) -> None:
    """Event bus subscriber counting published domain events"""
    DOMAIN_EVENTS.labels(event=event.name).inc()


def record_generation(result) -> None:
    RECURRING_RUNS.labels(outcome="generated").inc(len(result.generated))
    RECURRING_RUNS.labels(outcome="failed").inc(len(result.failures))
