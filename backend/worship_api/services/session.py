"""Session tokens: issuing, verification and cookie lifecycle.

A token only proves identity and whether the login passed a TOTP challenge.
Role and active status are re-read from the credential store on every
verification, so deactivation, demotion or deletion applies to the very
next request regardless of token age.
"""
from dataclasses import dataclass
from typing import NamedTuple, Optional, Union

from starlette.requests import HTTPConnection
from starlette.responses import Response

from worship_api.config import Settings
from worship_api.models.account import Role
from worship_api.services.credential_store import CredentialStore
from worship_api.utils.errors import AppError, ErrorCode
from worship_api.utils.jwt_utils import SESSION_TOKEN_TYPE, create_access_token, decode_access_token

AUTH_COOKIE_NAME = "session_token"


class AuthenticatedUser(NamedTuple):
    """Identity resolved for the lifetime of one request or connection"""

    username: str
    role: Role
    mfa_verified: bool

    @property
    def is_admin(self) -> bool:
        return self.role in (Role.PRIMARY_ADMIN, Role.ADMIN)


@dataclass(frozen=True)
class AuthFailure:
    """Why a token did not resolve to a usable identity"""

    code: ErrorCode
    message: str
    username: Optional[str] = None  # set when the token itself was valid

    def to_error(self) -> AppError:
        return AppError(self.code, self.message)


AuthResult = Union[AuthenticatedUser, AuthFailure]


def parse_bearer_token(header_value: Optional[str]) -> Optional[str]:
    if not header_value:
        return None
    prefix, _, token = header_value.strip().partition(" ")
    if prefix.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


class SessionService:
    def __init__(self, settings: Settings, credentials: CredentialStore) -> None:
        self._settings = settings
        self._credentials = credentials

    def create_session_token(self, username: str, mfa_verified: bool = False) -> str:
        return create_access_token(
            self._settings,
            subject=username,
            token_type=SESSION_TOKEN_TYPE,
            extra_claims={"mfa": bool(mfa_verified)},
        )

    @staticmethod
    def extract_token(connection: HTTPConnection) -> Optional[str]:
        """Cookie first, then ``Authorization: Bearer``; works for HTTP and websockets"""
        cookie_token = connection.cookies.get(AUTH_COOKIE_NAME)
        if cookie_token:
            return cookie_token
        return parse_bearer_token(connection.headers.get("authorization"))

    async def resolve(self, token: Optional[str]) -> AuthResult:
        if not token:
            return AuthFailure(ErrorCode.MISSING_TOKEN, "Authentication token is missing.")

        payload = decode_access_token(self._settings, token)
        if payload is None or payload.get("typ") != SESSION_TOKEN_TYPE:
            return AuthFailure(ErrorCode.INVALID_TOKEN, "Session is invalid or expired.")

        username = str(payload.get("sub") or "").strip().lower()
        if not username:
            return AuthFailure(ErrorCode.INVALID_TOKEN_PAYLOAD, "Session payload is invalid.")

        account = await self._credentials.get_account(username)
        if account is None or not account.is_active:
            return AuthFailure(ErrorCode.USER_NOT_AVAILABLE, "User is inactive or does not exist.", username)

        return AuthenticatedUser(
            username=account.username,
            role=account.role,
            mfa_verified=bool(payload.get("mfa")),
        )

    async def authenticate_token(self, token: Optional[str]) -> AuthenticatedUser:
        result = await self.resolve(token)
        if isinstance(result, AuthFailure):
            raise result.to_error()
        return result

    # ------------------------------------------------------------------
    # Cookie lifecycle
    # ------------------------------------------------------------------

    def set_session_cookie(self, response: Response, token: str) -> None:
        response.set_cookie(
            AUTH_COOKIE_NAME,
            token,
            max_age=self._settings.SESSION_MAX_AGE_SECONDS,
            path="/",
            httponly=True,
            secure=self._settings.is_production,
            samesite="lax",
        )

    def clear_session_cookie(self, response: Response) -> None:
        response.delete_cookie(
            AUTH_COOKIE_NAME,
            path="/",
            httponly=True,
            secure=self._settings.is_production,
            samesite="lax",
        )
