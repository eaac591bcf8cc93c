"""API dependencies for authentication and authorization.

Every protected route resolves the caller from the ``session_token`` cookie
(or ``Authorization: Bearer <JWT>`` as a fallback) through
:class:`SessionService`, which re-reads role and active status from the
credential store on each request.

Guards
------
:func:`authenticate_request`  resolves the caller or fails with 401.
:func:`optional_authenticate` resolves the caller or yields ``None``.
:func:`require_roles`         401 without a caller, 403 ``FORBIDDEN`` for a
                              role outside the allowed set, plus the admin
                              2FA enforcement gate when ``ADMIN_2FA_ENFORCE``
                              is on.
"""
from typing import Callable, Optional

from fastapi import Depends, Request
from starlette.requests import HTTPConnection

from worship_api.container import ServiceContainer
from worship_api.middleware.monitoring import record_auth_failure
from worship_api.models.account import Role
from worship_api.services.session import AuthenticatedUser, AuthFailure
from worship_api.utils.errors import AppError, ErrorCode
from worship_api.utils.logger import logger

REJECTED_SESSION_ACTION = "session_rejected:user_not_available"


def get_container(request: Request) -> ServiceContainer:
    return request.app.state.container


def get_client_ip(connection: HTTPConnection) -> str:
    """Origin IP of the caller; ``X-Forwarded-For`` only behind a trusted proxy"""
    settings = connection.app.state.container.settings
    if settings.TRUST_PROXY_HEADERS:
        first = connection.headers.get("x-forwarded-for", "").split(",")[0].strip()
        if first:
            return first
    if connection.client and connection.client.host:
        return connection.client.host
    return "unknown"


async def audit_rejected_session(container: ServiceContainer, failure: AuthFailure, connection: HTTPConnection) -> None:
    """Best-effort audit of a signed token whose account is gone or deactivated"""
    if failure.code != ErrorCode.USER_NOT_AVAILABLE or not failure.username:
        return
    try:
        await container.audit.record_user_action(
            username=failure.username,
            action=REJECTED_SESSION_ACTION,
            ip_address=get_client_ip(connection),
        )
    except Exception as exc:  # pylint: disable=broad-except
        logger.warning(
            f"Could not audit rejected session for {failure.username}: {exc}",
            extra={"username": failure.username, "code": failure.code.value},
        )


async def resolve_connection(container: ServiceContainer, connection: HTTPConnection) -> AuthenticatedUser:
    """Resolve the caller of an HTTP request or websocket handshake, raising on failure"""
    result = await container.sessions.resolve(container.sessions.extract_token(connection))
    if isinstance(result, AuthFailure):
        record_auth_failure(result.code.value)
        await audit_rejected_session(container, result, connection)
        raise result.to_error()
    return result


# ---------------------------------------------------------------------------
# authenticate_request / optional_authenticate
# ---------------------------------------------------------------------------

async def authenticate_request(
    request: Request,
    container: ServiceContainer = Depends(get_container),
) -> AuthenticatedUser:
    """Require a valid session; the user is re-resolved against the credential store"""
    user = await resolve_connection(container, request)
    request.state.user = user
    return user


async def optional_authenticate(
    request: Request,
    container: ServiceContainer = Depends(get_container),
) -> Optional[AuthenticatedUser]:
    """Same resolution as :func:`authenticate_request`, but failures yield ``None``"""
    try:
        user = await container.sessions.authenticate_token(container.sessions.extract_token(request))
    except AppError:
        return None
    request.state.user = user
    return user


# ---------------------------------------------------------------------------
# require_roles factory
# ---------------------------------------------------------------------------

async def enforce_admin_two_factor(container: ServiceContainer, user: AuthenticatedUser) -> None:
    """Global admin 2FA gate: enrolled, and the current session passed a TOTP challenge"""
    if not container.settings.ADMIN_2FA_ENFORCE or not user.is_admin:
        return
    if not await container.two_factor.is_enabled(user.username):
        raise AppError(
            ErrorCode.ADMIN_2FA_SETUP_REQUIRED,
            "Two-factor authentication must be set up for admin accounts.",
        )
    if not user.mfa_verified:
        raise AppError(ErrorCode.MFA_REQUIRED, "Please sign in again with your two-factor code.")


def require_roles(*roles: Role, enforce_mfa: bool = True) -> Callable:
    """Return a FastAPI dependency that admits only the given roles.

    Usage::

        @router.delete("/users/{username}")
        async def endpoint(user: AuthenticatedUser = Depends(require_roles(Role.PRIMARY_ADMIN))):
            ...

    Args:
        roles:       Roles allowed through.
        enforce_mfa: Apply the admin 2FA gate. The 2FA enrolment routes turn
                     it off so an admin can still complete setup.
    """
    allowed = frozenset(roles)

    async def _role_dep(
        user: AuthenticatedUser = Depends(authenticate_request),
        container: ServiceContainer = Depends(get_container),
    ) -> AuthenticatedUser:
        if user.role not in allowed:
            raise AppError(ErrorCode.FORBIDDEN, "Insufficient permissions.")
        if enforce_mfa:
            await enforce_admin_two_factor(container, user)
        return user

    # Give FastAPI a unique name so it doesn't collapse distinct dependencies
    suffix = "_".join(sorted(role.value for role in allowed))
    _role_dep.__name__ = f"require_roles_{suffix}{'' if enforce_mfa else '_no_mfa'}"
    return _role_dep


require_admin = require_roles(Role.PRIMARY_ADMIN, Role.ADMIN)
require_primary_admin = require_roles(Role.PRIMARY_ADMIN)
