"""Admin TOTP enrolment endpoints.

These routes are open to every admin-class account without the 2FA
enforcement gate, otherwise an admin could never complete the setup the
gate demands.
"""
from fastapi import APIRouter, Depends, Request, Response

from worship_api.api.deps import get_client_ip, get_container, require_roles
from worship_api.container import ServiceContainer
from worship_api.models.account import Role
from worship_api.models.two_factor import TwoFactorStatus
from worship_api.schemas.two_factor import (
    OtpRequest,
    TwoFactorDisableRequest,
    TwoFactorSetupResponse,
    TwoFactorStatusResponse,
)
from worship_api.services.session import AuthenticatedUser
from worship_api.services.two_factor import TwoFactorState
from worship_api.utils.errors import AppError, ErrorCode

router = APIRouter(prefix="/api/admin/2fa", tags=["two-factor"])

admin_enrolment = require_roles(Role.PRIMARY_ADMIN, Role.ADMIN, enforce_mfa=False)
primary_enrolment = require_roles(Role.PRIMARY_ADMIN, enforce_mfa=False)


def _status_body(state: TwoFactorState, container: ServiceContainer) -> TwoFactorStatusResponse:
    return TwoFactorStatusResponse(
        status=state.status,
        enabled=state.status == TwoFactorStatus.ENABLED,
        enabled_at=state.enabled_at,
        enforced=container.settings.ADMIN_2FA_ENFORCE,
    )


@router.get("/status", response_model=TwoFactorStatusResponse)
async def get_status(
    user: AuthenticatedUser = Depends(admin_enrolment),
    container: ServiceContainer = Depends(get_container),
):
    return _status_body(await container.two_factor.status(user.username), container)


@router.post("/setup", response_model=TwoFactorSetupResponse)
async def begin_setup(
    request: Request,
    user: AuthenticatedUser = Depends(admin_enrolment),
    container: ServiceContainer = Depends(get_container),
):
    """Start enrolment; the secret is shown once so an authenticator app can import it"""
    setup = await container.two_factor.begin_setup(user.username)
    await container.audit.record_user_action(user.username, "admin_2fa_setup_started", get_client_ip(request))
    return TwoFactorSetupResponse(secret=setup.secret, otpauth_url=setup.otpauth_url, issuer=setup.issuer)


@router.post("/verify", response_model=TwoFactorStatusResponse)
async def verify_setup(
    payload: OtpRequest,
    request: Request,
    response: Response,
    user: AuthenticatedUser = Depends(admin_enrolment),
    container: ServiceContainer = Depends(get_container),
):
    """Confirm a pending setup and upgrade the current session to MFA-verified"""
    state = await container.two_factor.confirm_enable(user.username, payload.otp)

    token = container.sessions.create_session_token(user.username, mfa_verified=True)
    container.sessions.set_session_cookie(response, token)

    await container.audit.record_user_action(user.username, "admin_2fa_enabled", get_client_ip(request))
    return _status_body(state, container)


@router.post("/cancel", response_model=TwoFactorStatusResponse)
async def cancel_setup(
    request: Request,
    user: AuthenticatedUser = Depends(admin_enrolment),
    container: ServiceContainer = Depends(get_container),
):
    state = await container.two_factor.cancel_pending_setup(user.username)
    await container.audit.record_user_action(user.username, "admin_2fa_setup_cancelled", get_client_ip(request))
    return _status_body(state, container)


@router.post("/disable", response_model=TwoFactorStatusResponse)
async def disable(
    payload: TwoFactorDisableRequest,
    request: Request,
    response: Response,
    user: AuthenticatedUser = Depends(admin_enrolment),
    container: ServiceContainer = Depends(get_container),
):
    """Turn 2FA off; needs the account password and a current code"""
    if not payload.password:
        raise AppError(ErrorCode.MISSING_CREDENTIALS, "Password is required.")
    if await container.credentials.authenticate(user.username, payload.password) is None:
        raise AppError(ErrorCode.INVALID_CREDENTIALS, "Invalid username or password.")

    state = await container.two_factor.disable(user.username, payload.otp)

    token = container.sessions.create_session_token(user.username, mfa_verified=False)
    container.sessions.set_session_cookie(response, token)

    await container.audit.record_user_action(user.username, "admin_2fa_disabled", get_client_ip(request))
    return _status_body(state, container)


@router.post("/reset/{username}", response_model=TwoFactorStatusResponse)
async def reset_for_user(
    username: str,
    request: Request,
    user: AuthenticatedUser = Depends(primary_enrolment),
    container: ServiceContainer = Depends(get_container),
):
    """Device-loss recovery: drop another admin's 2FA record"""
    target = await container.credentials.get_account(username)
    if target is None:
        raise AppError(ErrorCode.USER_NOT_FOUND, "User not found.")

    state = await container.two_factor.reset_for_user(target.username)
    await container.audit.record_user_action(
        user.username,
        f"admin_2fa_reset:{target.username}",
        get_client_ip(request),
    )
    return _status_body(state, container)
