"""Prometheus metrics for the HTTP surface, authentication and the notification pipeline"""
import time
import uuid
from typing import Callable

from fastapi import Request, Response
from prometheus_client import Counter, Gauge, Histogram
from starlette.middleware.base import BaseHTTPMiddleware

from worship_api.utils.logger import logger


# HTTP
http_requests_total = Counter(
    "worship_http_requests_total",
    "HTTP requests by route and status",
    ["method", "route", "status"],
)

http_request_duration_seconds = Histogram(
    "worship_http_request_duration_seconds",
    "HTTP request latency by route",
    ["method", "route"]
)

http_errors_total = Counter(
    "worship_http_errors_total",
    "HTTP responses with status >= 400",
    ["method", "route", "status"],
)

# Sessions
authentication_failures_total = Counter(
    "worship_authentication_failures_total",
    "Rejected logins and sessions by error code",
    ["code"]
)

# Audit and notifications
audited_actions_total = Counter(
    "worship_audited_actions_total",
    "Total user actions written to the activity log"
)

notification_lines_total = Counter(
    "worship_notification_lines_total",
    "Total admin notification records persisted"
)

notification_pushes_total = Counter(
    "worship_notification_pushes_total",
    "Live notification pushes by outcome",
    ["outcome"]  # delivered, failed
)

live_connections_gauge = Gauge(
    "worship_admin_live_connections",
    "Number of open admin notification websockets"
)


def _endpoint_label(request: Request) -> str:
    """Route template (``/api/admin/users/{username}``) so usernames never become label values"""
    route = request.scope.get("route")
    return getattr(route, "path", None) or "unmatched"


class MonitoringMiddleware(BaseHTTPMiddleware):
    """Counts and times every HTTP request, tagging responses with a request id.

    Websocket traffic never passes through here; the live channel reports
    through :func:`set_live_connections` instead.
    """

    slow_request_seconds = 1.5

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get("x-request-id") or uuid.uuid4().hex
        request.state.request_id = request_id
        started = time.perf_counter()

        try:
            response = await call_next(request)
        except Exception:
            endpoint = _endpoint_label(request)
            http_errors_total.labels(method=request.method, route=endpoint, status=500).inc()
            logger.error(
                f"Request failed: {request.method} {endpoint}",
                extra={"request_id": request_id, "method": request.method, "path": request.url.path},
                exc_info=True,
            )
            raise

        elapsed = time.perf_counter() - started
        endpoint = _endpoint_label(request)
        http_requests_total.labels(method=request.method, route=endpoint, status=response.status_code).inc()
        http_request_duration_seconds.labels(method=request.method, route=endpoint).observe(elapsed)
        if response.status_code >= 400:
            http_errors_total.labels(method=request.method, route=endpoint, status=response.status_code).inc()

        if elapsed > self.slow_request_seconds:
            logger.warning(
                f"Slow request: {request.method} {endpoint} took {elapsed:.2f}s",
                extra={"request_id": request_id, "method": request.method, "path": request.url.path},
            )

        response.headers["X-Request-ID"] = request_id
        response.headers["X-Response-Time"] = f"{elapsed:.3f}s"
        return response


def record_auth_failure(code: str):
    """Count a rejected login or session by its error code"""
    authentication_failures_total.labels(code=code).inc()


def record_audited_action():
    audited_actions_total.inc()


def record_notifications_persisted(count: int):
    notification_lines_total.inc(count)


def record_notification_push(outcome: str):
    notification_pushes_total.labels(outcome=outcome).inc()


def set_live_connections(count: int):
    live_connections_gauge.set(count)
