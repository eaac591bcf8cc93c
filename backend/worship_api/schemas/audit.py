"""Audit, activity and notification schemas"""
from typing import Any, Dict, List, Optional

from pydantic import Field

from worship_api.schemas.base import CamelModel


class ActionRequest(CamelModel):
    action: Optional[str] = None


class PageAccessRequest(CamelModel):
    path: Optional[str] = None


class NotificationResponse(CamelModel):
    id: str
    timestamp: str
    username: str
    action: str
    admin: str


class NotificationListResponse(CamelModel):
    notifications: List[NotificationResponse] = Field(default_factory=list)


class AuditLogPage(CamelModel):
    # Entries are already camelCase dicts; the two shapes differ by log type
    entries: List[Dict[str, Any]] = Field(default_factory=list)
    next_before: Optional[str] = None
