"""Login, logout and current-user endpoints"""
from typing import Optional

from fastapi import APIRouter, Depends, Request, Response, status

from worship_api.api.deps import authenticate_request, get_client_ip, get_container, optional_authenticate
from worship_api.container import ServiceContainer
from worship_api.middleware.monitoring import record_auth_failure
from worship_api.middleware.rate_limit import limiter, login_rate_limit
from worship_api.schemas.auth import LoginRequest, UserEnvelope, UserResponse
from worship_api.services.session import AuthenticatedUser
from worship_api.utils.errors import AppError, ErrorCode
from worship_api.utils.logger import logger

router = APIRouter(prefix="/api/auth", tags=["auth"])


@router.post("/login", response_model=UserEnvelope)
@limiter.limit(login_rate_limit)
async def login(
    request: Request,
    response: Response,
    payload: LoginRequest,
    container: ServiceContainer = Depends(get_container),
):
    """
    Exchange username + password (+ TOTP code for enrolled admins) for a session cookie.

    Unknown usernames, wrong passwords and deactivated accounts all fail
    with the same ``INVALID_CREDENTIALS`` so usernames cannot be probed.
    """
    username = (payload.username or "").strip()
    password = payload.password or ""
    if not username or not password:
        raise AppError(ErrorCode.MISSING_CREDENTIALS, "Username and password are required.")

    account = await container.credentials.authenticate(username, password)
    if account is None:
        record_auth_failure(ErrorCode.INVALID_CREDENTIALS.value)
        logger.info("Login rejected", extra={"username": username.lower(), "code": ErrorCode.INVALID_CREDENTIALS.value})
        raise AppError(ErrorCode.INVALID_CREDENTIALS, "Invalid username or password.")

    mfa_verified = False
    if account.is_admin and await container.two_factor.is_enabled(account.username):
        otp = (payload.otp or "").strip()
        if not otp:
            record_auth_failure(ErrorCode.TOTP_REQUIRED.value)
            raise AppError(ErrorCode.TOTP_REQUIRED, "Two-factor code is required.")
        try:
            await container.two_factor.verify_for_login(account.username, otp)
        except AppError as exc:
            record_auth_failure(exc.code.value)
            raise
        mfa_verified = True

    token = container.sessions.create_session_token(account.username, mfa_verified=mfa_verified)
    container.sessions.set_session_cookie(response, token)

    await container.audit.record_user_action(account.username, "login", get_client_ip(request))

    return {
        "user": UserResponse(
            username=account.username,
            role=account.role,
            is_active=account.is_active,
            mfa_verified=mfa_verified,
        )
    }


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
async def logout(
    request: Request,
    user: Optional[AuthenticatedUser] = Depends(optional_authenticate),
    container: ServiceContainer = Depends(get_container),
):
    """Clear the session cookie; succeeds even for a stale or invalid session"""
    response = Response(status_code=status.HTTP_204_NO_CONTENT)
    container.sessions.clear_session_cookie(response)

    if user is not None:
        await container.audit.record_user_action(user.username, "logout", get_client_ip(request))

    return response


@router.get("/me", response_model=UserEnvelope)
async def me(user: AuthenticatedUser = Depends(authenticate_request)):
    return {"user": UserResponse(username=user.username, role=user.role, mfa_verified=user.mfa_verified)}
