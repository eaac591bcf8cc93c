"""TwoFactorRecord model: one TOTP enrolment per admin username"""
import json
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional


class TwoFactorStatus(str, Enum):
    DISABLED = "disabled"
    PENDING = "pending"
    ENABLED = "enabled"


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


@dataclass
class TwoFactorRecord:
    """Persisted as one JSON object per line in the 2FA store.

    ``secret`` holds the encrypted (versioned) TOTP secret. A record with
    ``enabled=False`` is a pending setup awaiting its first correct code.
    """

    username: str
    secret: str
    enabled: bool
    created_at: str
    enabled_at: Optional[str] = None

    @property
    def status(self) -> TwoFactorStatus:
        return TwoFactorStatus.ENABLED if self.enabled else TwoFactorStatus.PENDING

    def to_line(self) -> str:
        return json.dumps(
            {
                "username": self.username,
                "secret": self.secret,
                "enabled": self.enabled,
                "createdAt": self.created_at,
                "enabledAt": self.enabled_at,
            },
            separators=(",", ":"),
        )

    @classmethod
    def from_line(cls, line: str) -> Optional["TwoFactorRecord"]:
        """Parse a stored line, ignoring anything malformed"""
        try:
            raw: Dict[str, Any] = json.loads(line)
        except json.JSONDecodeError:
            return None
        if not isinstance(raw, dict):
            return None

        username = str(raw.get("username") or "").strip().lower()
        if not username:
            return None

        secret = raw.get("secret")
        created_at = raw.get("createdAt")
        enabled_at = raw.get("enabledAt")
        return cls(
            username=username,
            secret=secret if isinstance(secret, str) else "",
            enabled=bool(raw.get("enabled")),
            created_at=created_at if isinstance(created_at, str) else utc_now_iso(),
            enabled_at=enabled_at if isinstance(enabled_at, str) else None,
        )
