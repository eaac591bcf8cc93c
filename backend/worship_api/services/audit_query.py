"""Bounded, reverse-chronological queries over the audit logs.

Only the tail of a log is ever read: ``scan_limit`` caps the number of raw
lines taken from the end of the file and ``AUDIT_MAX_SCAN_BYTES`` caps the
bytes read to find them, so query cost does not grow with the log.
"""
import asyncio
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from worship_api.config import Settings
from worship_api.models.audit_log import parse_log_timestamp, split_segments
from worship_api.utils.errors import AppError, ErrorCode
from worship_api.utils.tail import tail_lines

USER_ACTIVITY = "user_activity"
ADMIN_NOTIFICATIONS = "admin_notifications"
AUDIT_TYPES = (USER_ACTIVITY, ADMIN_NOTIFICATIONS)

DEFAULT_LIMIT = 200
MAX_LIMIT = 1000
MAX_SCAN_LIMIT = 20000


def clamp_positive(value: Optional[int], fallback: int, maximum: int) -> int:
    """Fallback for missing or non-positive values, otherwise capped at ``maximum``"""
    if value is None or value <= 0:
        return fallback
    return min(int(value), maximum)


def _clip(value: str, max_length: int) -> str:
    return value.replace("\r", " ").replace("\n", " ").strip()[:max_length]


@dataclass
class AuditQuery:
    type: Optional[str]
    limit: Optional[int] = None
    scan_limit: Optional[int] = None
    username: Optional[str] = None
    action_contains: Optional[str] = None
    from_: Optional[str] = None
    to: Optional[str] = None
    before: Optional[str] = None


@dataclass
class AuditPage:
    entries: List[Dict[str, Any]] = field(default_factory=list)
    next_before: Optional[str] = None


class AuditQueryService:
    def __init__(self, settings: Settings, activity_path: Path, notifications_path: Path) -> None:
        self._max_scan_bytes = settings.AUDIT_MAX_SCAN_BYTES
        self._paths = {USER_ACTIVITY: activity_path, ADMIN_NOTIFICATIONS: notifications_path}

    async def query(self, query: AuditQuery) -> AuditPage:
        log_type = (query.type or "").strip()
        if log_type not in AUDIT_TYPES:
            raise AppError(ErrorCode.INVALID_AUDIT_TYPE, "Invalid audit log type.")

        limit = clamp_positive(query.limit, DEFAULT_LIMIT, MAX_LIMIT)
        scan_limit = clamp_positive(query.scan_limit, max(500, limit * 5), MAX_SCAN_LIMIT)

        lines = await asyncio.to_thread(tail_lines, self._paths[log_type], scan_limit, self._max_scan_bytes)
        return self._filter(log_type, lines, query, limit)

    def _filter(self, log_type: str, lines: List[str], query: AuditQuery, limit: int) -> AuditPage:
        username_filter = _clip(query.username or "", 100).lower()
        action_filter = _clip(query.action_contains or "", 200).lower()
        from_date = parse_log_timestamp(query.from_)
        to_date = parse_log_timestamp(query.to)
        before_date, boundary_keep = parse_cursor(query.before)
        boundary_seen = 0

        matches: List[tuple] = []
        for index, line in enumerate(lines):
            segments = split_segments(line)
            if segments is None:
                continue
            timestamp, actor, action, fourth = segments
            when = parse_log_timestamp(timestamp)
            if when is None:
                continue
            if before_date is not None and when > before_date:
                continue
            if before_date is not None and when == before_date and boundary_keep is None:
                continue
            if from_date is not None and when < from_date:
                continue
            if to_date is not None and when > to_date:
                continue

            actor = _clip(actor, 100).lower()
            action = _clip(action, 400)
            if username_filter and actor != username_filter:
                continue
            if action_filter and action_filter not in action.lower():
                continue
            if before_date is not None and when == before_date:
                # Only the oldest unread entries of the boundary second remain
                if boundary_seen >= boundary_keep:
                    continue
                boundary_seen += 1

            if log_type == USER_ACTIVITY:
                entry = {
                    "id": f"ua_{timestamp}_{actor}_{index}",
                    "type": log_type,
                    "timestamp": timestamp,
                    "username": actor,
                    "action": action,
                    "ipAddress": _clip(fourth, 120),
                }
            else:
                entry = {
                    "id": f"an_{timestamp}_{actor}_{index}",
                    "type": log_type,
                    "timestamp": timestamp,
                    "username": actor,
                    "action": action,
                    "admin": _clip(fourth, 100).lower(),
                }
            matches.append((when, index, entry))

        # Newest first; file position breaks ties within the same second
        matches.sort(key=lambda item: (item[0], item[1]), reverse=True)
        entries = [entry for _, _, entry in matches[:limit]]

        next_before = None
        if len(matches) > limit and entries:
            last_when = matches[limit - 1][0]
            unread = sum(1 for when, _, _ in matches[limit:] if when == last_when)
            next_before = format_cursor(last_when, unread)
        return AuditPage(entries=entries, next_before=next_before)


def format_cursor(when: datetime, unread: int) -> str:
    """``<iso>`` alone, or ``<iso>|<n>`` while ``n`` entries of that second are still unread"""
    return f"{when.isoformat()}|{unread}" if unread else when.isoformat()


def parse_cursor(value: Optional[str]) -> Tuple[Optional[datetime], Optional[int]]:
    """Split a ``before`` cursor into its timestamp and the unread count of that second"""
    if not value:
        return None, None
    stamp, _, unread = value.partition("|")
    when = parse_log_timestamp(stamp.strip())
    if when is None or not unread.strip().isdigit():
        return when, None
    return when, int(unread)
