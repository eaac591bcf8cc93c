"""Append-only user activity log (``user_activity_log.txt``)"""
from datetime import datetime
from pathlib import Path
from typing import Optional

from worship_api.config import Settings
from worship_api.models.audit_log import ActivityLogEntry, format_log_timestamp
from worship_api.utils.file_store import append_lines, ensure_file

USER_ACTIVITY_LOG_FILE = "user_activity_log.txt"


class ActivityLog:
    def __init__(self, settings: Settings) -> None:
        self.path = Path(settings.DATA_DIR) / USER_ACTIVITY_LOG_FILE

    async def initialize(self) -> None:
        await ensure_file(self.path)

    async def append(
        self,
        username: str,
        action: str,
        ip_address: Optional[str],
        timestamp: Optional[datetime] = None,
    ) -> ActivityLogEntry:
        """Write one activity line. Callers must hold the write queue."""
        entry = ActivityLogEntry(
            timestamp=format_log_timestamp(timestamp),
            username=username,
            action=action,
            ip_address=ip_address or "unknown",
        )
        await append_lines(self.path, [entry.to_line()])
        return entry
