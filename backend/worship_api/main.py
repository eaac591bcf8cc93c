"""FastAPI application entry point"""
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from starlette.exceptions import HTTPException as StarletteHTTPException

from worship_api import __version__
from worship_api.api import activity, admin, auth, health, notifications_ws, two_factor
from worship_api.config import Settings, settings as default_settings
from worship_api.container import build_container
from worship_api.middleware.rate_limit import limiter
from worship_api.utils.errors import AppError, ErrorCode, ErrorKind, status_for
from worship_api.utils.logger import logger, setup_logging

PROBE_PATHS = ["/api/health", "/api/health/ready", "/api/health/live"]


def error_response(status_code: int, code: ErrorCode, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": {"code": code.value, "message": message}})


def register_exception_handlers(app: FastAPI) -> None:
    """The only place where an error code becomes an HTTP status"""

    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError):
        if exc.kind == ErrorKind.INTERNAL:
            logger.error(
                f"Server error {exc.code.value}: {exc.message}",
                extra={"code": exc.code.value, "path": request.url.path, "method": request.method},
                exc_info=exc,
            )
            # Internal detail stays in the log
            return error_response(status_for(exc.code), exc.code, "An unexpected error occurred.")
        return error_response(status_for(exc.code), exc.code, exc.message)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        return error_response(400, ErrorCode.VALIDATION_ERROR, "Request payload is invalid.")

    @app.exception_handler(RateLimitExceeded)
    async def rate_limit_handler(request: Request, exc: RateLimitExceeded):
        client = request.client.host if request.client else "unknown"
        logger.warning(
            f"Rate limit exceeded on {request.url.path}",
            extra={"path": request.url.path, "method": request.method, "client": client},
        )
        return error_response(429, ErrorCode.RATE_LIMITED, "Too many requests. Please try again later.")

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        if exc.status_code == 404:
            return error_response(404, ErrorCode.ROUTE_NOT_FOUND, "Route not found.")
        code = ErrorCode.INTERNAL_ERROR if exc.status_code >= 500 else ErrorCode.VALIDATION_ERROR
        return error_response(exc.status_code, code, str(exc.detail))

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.error(
            f"Unhandled {type(exc).__name__} on {request.method} {request.url.path}",
            extra={"path": request.url.path, "method": request.method},
            exc_info=exc,
        )
        return error_response(500, ErrorCode.INTERNAL_ERROR, "An unexpected error occurred.")


def install_metrics(app: FastAPI, settings: Settings) -> None:
    """Request counters plus the Prometheus scrape endpoint"""
    from prometheus_fastapi_instrumentator import Instrumentator

    from worship_api.middleware.monitoring import MonitoringMiddleware

    app.add_middleware(MonitoringMiddleware)
    Instrumentator(
        should_group_status_codes=True,
        should_ignore_untemplated=True,
        should_respect_env_var=False,
        should_instrument_requests_inprogress=True,
        excluded_handlers=[settings.METRICS_PATH, *PROBE_PATHS],
        inprogress_name="worship_requests_inprogress",
        inprogress_labels=True,
    ).instrument(app).expose(app, endpoint=settings.METRICS_PATH, include_in_schema=False)


def build_lifespan(settings: Settings):
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if settings.is_production and settings.uses_default_jwt_secret:
            logger.warning("JWT_SECRET is the built-in default; set a strong secret in production")

        # One container per process: a single write queue and connection registry
        container = build_container(settings)
        await container.initialize()
        app.state.container = container
        logger.info(f"Worship tracker API ready, data in {settings.DATA_DIR}")

        yield

        await container.notifications.wait_for_pushes()
        logger.info("Worship tracker API stopped")

    return lifespan


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or default_settings
    setup_logging(settings.LOG_LEVEL, settings.LOG_FORMAT)

    app = FastAPI(
        title="Worship Tracker API",
        description="Accounts, sessions, admin two-factor authentication, audit log and admin notifications",
        version=__version__,
        lifespan=build_lifespan(settings),
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    if settings.METRICS_ENABLED:
        install_metrics(app, settings)

    limiter.enabled = settings.RATE_LIMIT_ENABLED
    app.state.limiter = limiter

    register_exception_handlers(app)

    for module in (health, auth, admin, two_factor, activity, notifications_ws):
        app.include_router(module.router)

    @app.get("/")
    def root():
        return {
            "service": "Worship Tracker API",
            "version": __version__,
            "docs": "/docs",
            "health": "/api/health",
            "metrics": settings.METRICS_PATH if settings.METRICS_ENABLED else None,
        }

    return app


app = create_app()
