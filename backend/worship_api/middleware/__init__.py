"""Middleware modules for production-ready features"""
from worship_api.middleware.monitoring import (
    MonitoringMiddleware,
    record_audited_action,
    record_auth_failure,
    record_notification_push,
    record_notifications_persisted,
    set_live_connections,
)
from worship_api.middleware.rate_limit import limiter, login_rate_limit

__all__ = [
    "MonitoringMiddleware",
    "record_audited_action",
    "record_auth_failure",
    "record_notification_push",
    "record_notifications_persisted",
    "set_live_connections",
    "limiter",
    "login_rate_limit",
]
