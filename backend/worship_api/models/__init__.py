"""Domain models"""
from worship_api.models.account import ADMIN_ROLES, Account, Role
from worship_api.models.audit_log import ActivityLogEntry, AdminNotification
from worship_api.models.two_factor import TwoFactorRecord, TwoFactorStatus

__all__ = [
    "ADMIN_ROLES",
    "Account",
    "ActivityLogEntry",
    "AdminNotification",
    "Role",
    "TwoFactorRecord",
    "TwoFactorStatus",
]
