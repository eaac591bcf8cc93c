"""Admin notification fan-out: durable per-recipient records plus live pushes"""
import asyncio
import json
from datetime import datetime
from pathlib import Path
from typing import Any, Awaitable, Callable, List, Optional, Set

from worship_api.config import Settings
from worship_api.middleware.monitoring import record_notification_push, record_notifications_persisted
from worship_api.models.audit_log import (
    AdminNotification,
    format_log_timestamp,
    parse_log_timestamp,
    sanitize_segment,
)
from worship_api.services.connections import ConnectionRegistry
from worship_api.utils.file_store import append_lines, ensure_file
from worship_api.utils.logger import logger
from worship_api.utils.tail import ReverseChunkReader

ADMIN_NOTIFICATIONS_FILE = "admin_notifications.txt"


class NotificationService:
    """Multiplies each audited action into one notification per active admin.

    The notification log is the source of truth; live pushes over the
    :class:`ConnectionRegistry` are best-effort and fire-and-forget, so a
    slow or broken socket never delays or fails the audited action.
    """

    def __init__(
        self,
        settings: Settings,
        registry: ConnectionRegistry,
        list_recipients: Callable[[], Awaitable[List[str]]],
    ) -> None:
        self._registry = registry
        self._list_recipients = list_recipients
        self._push_tasks: Set[asyncio.Task] = set()
        self.path = Path(settings.DATA_DIR) / ADMIN_NOTIFICATIONS_FILE

    async def initialize(self) -> None:
        await ensure_file(self.path)

    async def persist(
        self,
        username: str,
        action: str,
        timestamp: Optional[datetime] = None,
    ) -> List[AdminNotification]:
        """Write one line per active admin in a single append.

        Callers must hold the write queue; the recipient list is read under
        it so the fan-out matches the accounts at write time.
        """
        recipients = await self._list_recipients()
        if not recipients:
            return []

        formatted = format_log_timestamp(timestamp)
        notifications = [
            AdminNotification(
                timestamp=formatted,
                username=sanitize_segment(username),
                action=sanitize_segment(action),
                admin=sanitize_segment(admin),
            )
            for admin in recipients
        ]
        await append_lines(self.path, [item.to_line() for item in notifications])
        record_notifications_persisted(len(notifications))
        return notifications

    def push_live(self, notifications: List[AdminNotification]) -> None:
        """Schedule a push to every open socket of each recipient"""
        for notification in notifications:
            payload = json.dumps({"type": "activity", "notification": notification.to_payload()})
            for websocket in self._registry.connections_for(notification.admin):
                self._schedule_push(notification.admin, websocket, payload)

    def _schedule_push(self, admin: str, websocket: Any, payload: str) -> None:
        task = asyncio.create_task(self._push(admin, websocket, payload))
        self._push_tasks.add(task)
        task.add_done_callback(self._push_tasks.discard)

    async def _push(self, admin: str, websocket: Any, payload: str) -> None:
        try:
            await websocket.send_text(payload)
            record_notification_push("delivered")
        except Exception as exc:  # pylint: disable=broad-except
            record_notification_push("failed")
            logger.warning(f"Live notification to {admin} failed: {exc}", extra={"username": admin})
            self._registry.unregister(admin, websocket)

    async def wait_for_pushes(self) -> None:
        """Wait until every scheduled push has finished"""
        if self._push_tasks:
            await asyncio.gather(*list(self._push_tasks), return_exceptions=True)

    # ------------------------------------------------------------------
    # Polling fallback
    # ------------------------------------------------------------------

    def _read_for_admin(self, admin: str, limit: int, since: Optional[datetime]) -> List[AdminNotification]:
        results: List[AdminNotification] = []
        if not self.path.exists():
            return results

        with ReverseChunkReader.open(self.path, max_bytes=None) as reader:
            for line in reader.iter_lines():
                notification = AdminNotification.from_line(line)
                if notification is None:
                    continue
                if since is not None:
                    when = parse_log_timestamp(notification.timestamp)
                    # Lines are in append order, so everything further back is older
                    if when is not None and when <= since:
                        break
                if notification.admin != admin:
                    continue
                results.append(notification)
                if len(results) >= limit:
                    break
        return results

    async def get_notifications_for_admin(
        self,
        admin_username: str,
        limit: int = 100,
        since: Optional[str] = None,
    ) -> List[AdminNotification]:
        """Newest-first notifications addressed to ``admin_username``"""
        since_date = parse_log_timestamp(since) if since else None
        return await asyncio.to_thread(self._read_for_admin, admin_username.lower(), max(limit, 1), since_date)
