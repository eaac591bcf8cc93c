"""Health check endpoints"""
import os
import time
from datetime import datetime, timezone
from typing import Any, Dict

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from worship_api.api.deps import get_container
from worship_api.container import ServiceContainer

router = APIRouter(prefix="/api/health", tags=["health"])

# Track startup time
STARTUP_TIME = time.time()


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


@router.get("")
def health_check():
    """Basic health check: 200 while the process serves requests"""
    return {"status": "ok", "at": _now()}


@router.get("/live")
def liveness_check():
    """
    Liveness check - verifies service is alive

    Used by Kubernetes liveness probe
    """
    return {
        "status": "alive",
        "uptime_seconds": round(time.time() - STARTUP_TIME, 2),
        "timestamp": _now(),
    }


@router.get("/ready")
def readiness_check(container: ServiceContainer = Depends(get_container)):
    """
    Readiness check - verifies the flat-file store is usable

    Checks:
    - Data directory exists and is writable
    - Every store file exists

    Returns 200 if ready to serve traffic, 503 if not ready
    """
    data_dir = container.settings.DATA_DIR
    store_files = [
        *container.credentials.paths,
        container.two_factor.path,
        container.activity_log.path,
        container.notifications.path,
    ]
    checks: Dict[str, Any] = {
        "data_dir": data_dir.is_dir() and os.access(data_dir, os.W_OK),
        "store_files": all(path.exists() for path in store_files),
        "pending_writes": container.write_queue.pending,
        "live_connections": container.registry.connection_count,
    }

    if not (checks["data_dir"] and checks["store_files"]):
        return JSONResponse(
            status_code=503,
            content={"status": "unhealthy", "checks": checks, "timestamp": _now()},
        )

    return {"status": "ready", "checks": checks, "timestamp": _now()}
