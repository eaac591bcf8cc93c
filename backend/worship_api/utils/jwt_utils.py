"""JWT utilities: session token signing and verification"""
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from jose import JWTError, jwt

from worship_api.config import Settings
from worship_api.utils.logger import logger

TOKEN_ISSUER = "worship-tracker"
SESSION_TOKEN_TYPE = "session"


def create_access_token(
    settings: Settings,
    subject: str,
    token_type: str = SESSION_TOKEN_TYPE,
    extra_claims: Optional[Dict[str, Any]] = None,
) -> str:
    """Sign and return a JWT access token.

    Args:
        settings:     Provides the signing secret, algorithm and TTL.
        subject:      Value for the 'sub' claim (the username).
        token_type:   Stored as the 'typ' claim; only session tokens are accepted.
        extra_claims: Additional claims to embed (the 'mfa' flag).

    Returns:
        Signed JWT string.
    """
    now = int(datetime.now(timezone.utc).timestamp())

    payload: Dict[str, Any] = {
        "sub": subject,
        "typ": token_type,
        "jti": str(uuid.uuid4()),
        "iat": now,
        "exp": now + settings.JWT_EXPIRE_SECONDS,
        "iss": TOKEN_ISSUER,
        **(extra_claims or {}),
    }

    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def decode_access_token(settings: Settings, token: str) -> Optional[Dict[str, Any]]:
    """Verify signature, expiry and issuer; return the payload or ``None``"""
    try:
        return jwt.decode(
            token,
            settings.JWT_SECRET,
            algorithms=[settings.JWT_ALGORITHM],
            issuer=TOKEN_ISSUER,
        )
    except JWTError as exc:
        logger.debug(f"JWT decode failed: {exc}")
        return None
