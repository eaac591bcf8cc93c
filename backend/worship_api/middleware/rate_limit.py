"""Rate limiting for credential endpoints"""
from fastapi import Request
from slowapi import Limiter
from slowapi.util import get_remote_address

from worship_api.config import settings


def get_identifier(request: Request) -> str:
    """
    Get identifier for rate limiting

    Login attempts are unauthenticated by definition, so the client address
    is the only stable key. Forwarded headers are honoured only when the
    application's own settings trust the proxy.
    """
    app_settings = request.app.state.container.settings
    if app_settings.TRUST_PROXY_HEADERS:
        forwarded = request.headers.get("x-forwarded-for", "")
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    return get_remote_address(request)


# Storage is fixed at import time; the enabled flag is set per app by create_app
limiter = Limiter(
    key_func=get_identifier,
    storage_uri=settings.RATE_LIMIT_STORAGE_URI,
    strategy="fixed-window",
    enabled=settings.RATE_LIMIT_ENABLED,
)


def login_rate_limit() -> str:
    """Limit string for login attempts, read lazily so tests can override it"""
    return settings.LOGIN_RATE_LIMIT
