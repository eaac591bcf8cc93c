"""Activity log and admin notification records.

Both logs share one line layout: ``YYYY-MM-DD HH:MM:SS, actor, action, fourth``
where the fourth field is the origin IP (activity log) or the recipient
admin username (notification log).
"""
import re
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional

LOG_TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"

_UNSAFE_SEGMENT = re.compile(r"[\r\n,]+")


def sanitize_segment(value: Any) -> str:
    """Strip commas and line breaks so a record always stays on one line"""
    return _UNSAFE_SEGMENT.sub(" ", "" if value is None else str(value)).strip()


def format_log_timestamp(when: Optional[datetime] = None) -> str:
    """Local wall-clock timestamp with second precision"""
    return (when or datetime.now()).strftime(LOG_TIMESTAMP_FORMAT)


def parse_log_timestamp(raw: Optional[str]) -> Optional[datetime]:
    """Parse a stored timestamp or an ISO 8601 filter value into naive local time"""
    value = (raw or "").strip()
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone().replace(tzinfo=None)
    return parsed


def split_segments(line: str, expected: int = 4) -> Optional[List[str]]:
    """Split a stored line into ``expected`` fields, folding extras into the last"""
    parts = [part.strip() for part in line.split(",")]
    parts = [part for part in parts if part]
    if len(parts) < expected:
        return None
    if len(parts) == expected:
        return parts
    return parts[: expected - 1] + [" ".join(parts[expected - 1:])]


@dataclass(frozen=True)
class ActivityLogEntry:
    timestamp: str
    username: str
    action: str
    ip_address: str

    def to_line(self) -> str:
        return ", ".join(
            [
                self.timestamp,
                sanitize_segment(self.username),
                sanitize_segment(self.action),
                sanitize_segment(self.ip_address or "unknown"),
            ]
        )


@dataclass(frozen=True)
class AdminNotification:
    """One (activity x admin recipient) record of the fan-out"""

    timestamp: str
    username: str
    action: str
    admin: str

    @property
    def id(self) -> str:
        return f"{self.timestamp}-{self.username}-{self.admin}"

    def to_line(self) -> str:
        return ", ".join(
            [
                self.timestamp,
                sanitize_segment(self.username),
                sanitize_segment(self.action),
                sanitize_segment(self.admin),
            ]
        )

    @classmethod
    def from_line(cls, line: str) -> Optional["AdminNotification"]:
        segments = split_segments(line)
        if segments is None:
            return None
        timestamp, username, action, admin = segments
        return cls(timestamp=timestamp, username=username, action=action, admin=admin.lower())

    def to_payload(self) -> Dict[str, str]:
        return {
            "id": self.id,
            "timestamp": self.timestamp,
            "username": self.username,
            "action": self.action,
            "admin": self.admin,
        }
