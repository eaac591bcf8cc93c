"""Account management, notification polling and audit log endpoints (admin-class only)"""
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, Response, status

from worship_api.api.deps import get_client_ip, get_container, require_admin, require_primary_admin
from worship_api.container import ServiceContainer
from worship_api.models.account import Role
from worship_api.schemas.admin import UserCreate, UserUpdate
from worship_api.schemas.audit import AuditLogPage, NotificationListResponse
from worship_api.schemas.auth import UserEnvelope, UserListResponse, UserResponse
from worship_api.services.audit_query import AuditQuery
from worship_api.services.credential_store import UNSET
from worship_api.services.session import AuthenticatedUser
from worship_api.utils.errors import AppError, ErrorCode

router = APIRouter(prefix="/api/admin", tags=["admin"])

NOTIFICATIONS_DEFAULT_LIMIT = 100
NOTIFICATIONS_MAX_LIMIT = 500


def _parse_role(raw: Optional[str]) -> Role:
    value = (raw or Role.USER.value).strip().lower()
    if value == Role.USER.value:
        return Role.USER
    if value == Role.ADMIN.value:
        return Role.ADMIN
    raise AppError(ErrorCode.INVALID_ROLE, "Role must be user or admin.")


# ===== Accounts =====

@router.get("/users", response_model=UserListResponse, response_model_exclude_none=True)
async def list_users(
    _: AuthenticatedUser = Depends(require_admin),
    container: ServiceContainer = Depends(get_container),
):
    """List every account, primary admin first, then admins, then users"""
    accounts = await container.credentials.list_accounts()
    return {"users": [UserResponse.from_account(account) for account in accounts]}


@router.post(
    "/users",
    response_model=UserEnvelope,
    response_model_exclude_none=True,
    status_code=status.HTTP_201_CREATED,
)
async def create_user(
    payload: UserCreate,
    request: Request,
    user: AuthenticatedUser = Depends(require_primary_admin),
    container: ServiceContainer = Depends(get_container),
):
    role = _parse_role(payload.role)
    account = await container.credentials.create_account(payload.username, payload.password, role=role)

    await container.audit.record_user_action(
        user.username,
        f"admin_create_user:{account.username}:{role.value}",
        get_client_ip(request),
    )
    return {"user": UserResponse.from_account(account)}


@router.patch("/users/{username}", response_model=UserEnvelope, response_model_exclude_none=True)
async def update_user(
    username: str,
    payload: UserUpdate,
    request: Request,
    user: AuthenticatedUser = Depends(require_primary_admin),
    container: ServiceContainer = Depends(get_container),
):
    """Change a password and/or the active flag. The primary admin is not manageable here."""
    account = await container.credentials.update_account(
        username,
        password=payload.password if payload.password is not None else UNSET,
        is_active=payload.is_active if payload.is_active is not None else UNSET,
    )

    await container.audit.record_user_action(
        user.username,
        f"admin_update_user:{account.username}",
        get_client_ip(request),
    )
    return {"user": UserResponse.from_account(account)}


@router.delete("/users/{username}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_user(
    username: str,
    request: Request,
    user: AuthenticatedUser = Depends(require_primary_admin),
    container: ServiceContainer = Depends(get_container),
):
    account = await container.credentials.delete_account(username)

    await container.audit.record_user_action(
        user.username,
        f"admin_delete_user:{account.username}",
        get_client_ip(request),
    )
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/users/{username}/promote", response_model=UserEnvelope, response_model_exclude_none=True)
async def promote_user(
    username: str,
    request: Request,
    user: AuthenticatedUser = Depends(require_primary_admin),
    container: ServiceContainer = Depends(get_container),
):
    account = await container.credentials.promote_to_admin(username)

    await container.audit.record_user_action(
        user.username,
        f"admin_promote_user:{account.username}",
        get_client_ip(request),
    )
    return {"user": UserResponse.from_account(account)}


# ===== Notifications =====

@router.get("/notifications", response_model=NotificationListResponse)
async def list_notifications(
    limit: Optional[int] = Query(None, description="Max notifications (default 100, max 500)"),
    since: Optional[str] = Query(None, description="Only notifications after this timestamp"),
    user: AuthenticatedUser = Depends(require_admin),
    container: ServiceContainer = Depends(get_container),
):
    """Polling fallback for the live channel: the caller's notifications, newest first"""
    if limit is None or limit <= 0:
        limit = NOTIFICATIONS_DEFAULT_LIMIT
    notifications = await container.notifications.get_notifications_for_admin(
        user.username,
        limit=min(limit, NOTIFICATIONS_MAX_LIMIT),
        since=since,
    )
    return {"notifications": [item.to_payload() for item in notifications]}


# ===== Audit logs =====

@router.get("/audit-logs", response_model=AuditLogPage)
async def query_audit_logs(
    type: Optional[str] = Query(None, description="user_activity | admin_notifications"),
    limit: Optional[int] = Query(None),
    scan_limit: Optional[int] = Query(None, alias="scanLimit"),
    username: Optional[str] = Query(None),
    action: Optional[str] = Query(None, description="Case-insensitive substring of the action"),
    from_: Optional[str] = Query(None, alias="from"),
    to: Optional[str] = Query(None),
    before: Optional[str] = Query(
        None, description="Page cursor from nextBefore, or an ISO timestamp for entries strictly older than it"
    ),
    _: AuthenticatedUser = Depends(require_admin),
    container: ServiceContainer = Depends(get_container),
):
    page = await container.audit_query.query(
        AuditQuery(
            type=type,
            limit=limit,
            scan_limit=scan_limit,
            username=username,
            action_contains=action,
            from_=from_,
            to=to,
            before=before,
        )
    )
    return {"entries": page.entries, "nextBefore": page.next_before}
