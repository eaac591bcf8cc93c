"""Single entry point for audited actions"""
from datetime import datetime
from typing import List, Optional, Tuple

from worship_api.middleware.monitoring import record_audited_action
from worship_api.models.audit_log import ActivityLogEntry, AdminNotification
from worship_api.services.activity_log import ActivityLog
from worship_api.services.notifications import NotificationService
from worship_api.utils.file_store import SerialWriteQueue
from worship_api.utils.logger import logger


class AuditService:
    def __init__(
        self,
        write_queue: SerialWriteQueue,
        activity_log: ActivityLog,
        notifications: NotificationService,
    ) -> None:
        self._queue = write_queue
        self._activity_log = activity_log
        self._notifications = notifications

    async def record_user_action(
        self,
        username: str,
        action: str,
        ip_address: Optional[str] = None,
    ) -> ActivityLogEntry:
        """Append one activity line, then fan the same event out to every active admin.

        Both appends run as one queued task under one timestamp, so the
        activity log and the notification log always hold events in the
        same relative order. Live pushes are scheduled once the task settles.
        """

        async def _write() -> Tuple[ActivityLogEntry, List[AdminNotification]]:
            timestamp = datetime.now()
            entry = await self._activity_log.append(username, action, ip_address, timestamp=timestamp)
            notifications = await self._notifications.persist(username, action, timestamp=timestamp)
            return entry, notifications

        entry, notifications = await self._queue.run(_write)
        self._notifications.push_live(notifications)

        record_audited_action()
        logger.info(
            f"Audited action {entry.action} by {entry.username}",
            extra={"username": entry.username, "action": entry.action, "client": entry.ip_address},
        )
        return entry
