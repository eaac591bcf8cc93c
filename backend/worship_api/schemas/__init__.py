"""Pydantic schemas for request/response validation"""
from worship_api.schemas.admin import UserCreate, UserUpdate
from worship_api.schemas.audit import (
    ActionRequest,
    AuditLogPage,
    NotificationListResponse,
    NotificationResponse,
    PageAccessRequest,
)
from worship_api.schemas.auth import LoginRequest, UserEnvelope, UserListResponse, UserResponse
from worship_api.schemas.two_factor import (
    OtpRequest,
    TwoFactorDisableRequest,
    TwoFactorSetupResponse,
    TwoFactorStatusResponse,
)

__all__ = [
    "ActionRequest",
    "AuditLogPage",
    "LoginRequest",
    "NotificationListResponse",
    "NotificationResponse",
    "OtpRequest",
    "PageAccessRequest",
    "TwoFactorDisableRequest",
    "TwoFactorSetupResponse",
    "TwoFactorStatusResponse",
    "UserCreate",
    "UserEnvelope",
    "UserListResponse",
    "UserResponse",
]
