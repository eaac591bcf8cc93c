"""Error taxonomy shared by services and the HTTP layer.

Services raise :class:`AppError` with a stable machine-readable ``code``.
Only the exception handlers in ``main.py`` translate a code into an HTTP
status (via :func:`status_for`) and decide the client-visible message.
"""
from enum import Enum
from typing import Dict


class ErrorKind(Enum):
    """Error classes of the taxonomy, each bound to an HTTP status"""

    VALIDATION = 400
    AUTHENTICATION = 401
    AUTHORIZATION = 403
    NOT_FOUND = 404
    CONFLICT = 409
    RATE_LIMITED = 429
    INTERNAL = 500

    @property
    def status_code(self) -> int:
        return self.value


class ErrorCode(str, Enum):
    """Stable error codes surfaced to clients"""

    # Input validation
    MISSING_CREDENTIALS = "MISSING_CREDENTIALS"
    INVALID_USERNAME = "INVALID_USERNAME"
    WEAK_PASSWORD = "WEAK_PASSWORD"
    INVALID_ROLE = "INVALID_ROLE"
    NO_UPDATES = "NO_UPDATES"
    INVALID_OTP = "INVALID_OTP"
    TOTP_NOT_ENABLED = "TOTP_NOT_ENABLED"
    NO_PENDING_2FA = "NO_PENDING_2FA"
    MISSING_ACTION = "MISSING_ACTION"
    MISSING_PATH = "MISSING_PATH"
    INVALID_AUDIT_TYPE = "INVALID_AUDIT_TYPE"
    VALIDATION_ERROR = "VALIDATION_ERROR"

    # Authentication
    INVALID_CREDENTIALS = "INVALID_CREDENTIALS"
    TOTP_REQUIRED = "TOTP_REQUIRED"
    TOTP_INVALID = "TOTP_INVALID"
    MISSING_TOKEN = "MISSING_TOKEN"
    INVALID_TOKEN = "INVALID_TOKEN"
    INVALID_TOKEN_PAYLOAD = "INVALID_TOKEN_PAYLOAD"
    USER_NOT_AVAILABLE = "USER_NOT_AVAILABLE"
    AUTH_REQUIRED = "AUTH_REQUIRED"
    MFA_REQUIRED = "MFA_REQUIRED"

    # Authorization
    FORBIDDEN = "FORBIDDEN"
    PRIMARY_ADMIN_PROTECTED = "PRIMARY_ADMIN_PROTECTED"
    ADMIN_2FA_SETUP_REQUIRED = "ADMIN_2FA_SETUP_REQUIRED"

    # Lookup / state
    USER_NOT_FOUND = "USER_NOT_FOUND"
    ROUTE_NOT_FOUND = "ROUTE_NOT_FOUND"
    USER_EXISTS = "USER_EXISTS"
    ALREADY_ADMIN = "ALREADY_ADMIN"

    RATE_LIMITED = "RATE_LIMITED"

    # Server side
    TOTP_SECRET_INVALID = "TOTP_SECRET_INVALID"
    INTERNAL_ERROR = "INTERNAL_ERROR"


_KINDS: Dict[ErrorCode, ErrorKind] = {
    ErrorCode.MISSING_CREDENTIALS: ErrorKind.VALIDATION,
    ErrorCode.INVALID_USERNAME: ErrorKind.VALIDATION,
    ErrorCode.WEAK_PASSWORD: ErrorKind.VALIDATION,
    ErrorCode.INVALID_ROLE: ErrorKind.VALIDATION,
    ErrorCode.NO_UPDATES: ErrorKind.VALIDATION,
    ErrorCode.INVALID_OTP: ErrorKind.VALIDATION,
    ErrorCode.TOTP_NOT_ENABLED: ErrorKind.VALIDATION,
    ErrorCode.NO_PENDING_2FA: ErrorKind.VALIDATION,
    ErrorCode.MISSING_ACTION: ErrorKind.VALIDATION,
    ErrorCode.MISSING_PATH: ErrorKind.VALIDATION,
    ErrorCode.INVALID_AUDIT_TYPE: ErrorKind.VALIDATION,
    ErrorCode.VALIDATION_ERROR: ErrorKind.VALIDATION,
    ErrorCode.INVALID_CREDENTIALS: ErrorKind.AUTHENTICATION,
    ErrorCode.TOTP_REQUIRED: ErrorKind.AUTHENTICATION,
    ErrorCode.TOTP_INVALID: ErrorKind.AUTHENTICATION,
    ErrorCode.MISSING_TOKEN: ErrorKind.AUTHENTICATION,
    ErrorCode.INVALID_TOKEN: ErrorKind.AUTHENTICATION,
    ErrorCode.INVALID_TOKEN_PAYLOAD: ErrorKind.AUTHENTICATION,
    ErrorCode.USER_NOT_AVAILABLE: ErrorKind.AUTHENTICATION,
    ErrorCode.AUTH_REQUIRED: ErrorKind.AUTHENTICATION,
    ErrorCode.MFA_REQUIRED: ErrorKind.AUTHENTICATION,
    ErrorCode.FORBIDDEN: ErrorKind.AUTHORIZATION,
    ErrorCode.PRIMARY_ADMIN_PROTECTED: ErrorKind.AUTHORIZATION,
    ErrorCode.ADMIN_2FA_SETUP_REQUIRED: ErrorKind.AUTHORIZATION,
    ErrorCode.USER_NOT_FOUND: ErrorKind.NOT_FOUND,
    ErrorCode.ROUTE_NOT_FOUND: ErrorKind.NOT_FOUND,
    ErrorCode.USER_EXISTS: ErrorKind.CONFLICT,
    ErrorCode.ALREADY_ADMIN: ErrorKind.CONFLICT,
    ErrorCode.RATE_LIMITED: ErrorKind.RATE_LIMITED,
    ErrorCode.TOTP_SECRET_INVALID: ErrorKind.INTERNAL,
    ErrorCode.INTERNAL_ERROR: ErrorKind.INTERNAL,
}


def kind_of(code: ErrorCode) -> ErrorKind:
    return _KINDS.get(code, ErrorKind.INTERNAL)


def status_for(code: ErrorCode) -> int:
    """Map an error code to its HTTP status"""
    return kind_of(code).status_code


class AppError(Exception):
    """Domain error carrying a stable code and a client-safe message"""

    def __init__(self, code: ErrorCode, message: str) -> None:
        super().__init__(message)
        self.code = code
        self.message = message

    @property
    def kind(self) -> ErrorKind:
        return kind_of(self.code)

    def __repr__(self) -> str:
        return f"AppError({self.code.value}, {self.message!r})"
