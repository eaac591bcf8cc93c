"""Live admin notification channel"""
import json

from fastapi import APIRouter, WebSocket, WebSocketDisconnect, status

from worship_api.api.deps import enforce_admin_two_factor, resolve_connection
from worship_api.middleware.monitoring import set_live_connections
from worship_api.models.audit_log import format_log_timestamp
from worship_api.utils.errors import AppError, ErrorCode
from worship_api.utils.logger import logger

router = APIRouter(tags=["notifications"])


@router.websocket("/ws/admin-notifications")
async def admin_notifications_socket(websocket: WebSocket):
    """
    Push channel for admin notifications.

    The handshake is authenticated on its own (session cookie, then Bearer
    header) and restricted to admin-class roles; a rejected handshake is
    closed with 1008 before it is accepted. Incoming messages are ignored.
    """
    container = websocket.app.state.container

    try:
        user = await resolve_connection(container, websocket)
        if not user.is_admin:
            raise AppError(ErrorCode.FORBIDDEN, "Insufficient permissions.")
        await enforce_admin_two_factor(container, user)
    except AppError as exc:
        logger.info(
            f"Notification channel rejected: {exc.code.value}",
            extra={"code": exc.code.value, "path": websocket.url.path},
        )
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason=exc.message)
        return

    await websocket.accept()
    container.registry.register(user.username, websocket)
    set_live_connections(container.registry.connection_count)
    try:
        await websocket.send_text(json.dumps({"type": "connected", "timestamp": format_log_timestamp()}))
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        pass
    finally:
        container.registry.unregister(user.username, websocket)
        set_live_connections(container.registry.connection_count)
