"""Domain services over the flat-file store"""
from worship_api.services.audit import AuditService
from worship_api.services.credential_store import CredentialStore
from worship_api.services.notifications import NotificationService
from worship_api.services.session import AuthenticatedUser, AuthFailure, SessionService
from worship_api.services.two_factor import TwoFactorService

__all__ = [
    "AuditService",
    "AuthenticatedUser",
    "AuthFailure",
    "CredentialStore",
    "NotificationService",
    "SessionService",
    "TwoFactorService",
]
