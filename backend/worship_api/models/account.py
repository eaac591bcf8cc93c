"""Account model: roles derived from credential-set membership"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


class Role(str, Enum):
    PRIMARY_ADMIN = "primary_admin"
    ADMIN = "admin"
    USER = "user"


ADMIN_ROLES = (Role.PRIMARY_ADMIN, Role.ADMIN)

# Sort order used when listing accounts
ROLE_PRIORITY = {Role.PRIMARY_ADMIN: 0, Role.ADMIN: 1, Role.USER: 2}


@dataclass(frozen=True)
class Account:
    """A user or admin account as resolved from the credential files.

    ``role`` is never stored: it is derived on every lookup from which of
    the users / admins / primary-admins sets contain the username.
    """

    username: str
    role: Role
    is_active: bool
    password_hash: Optional[str] = field(default=None, repr=False)

    @property
    def is_admin(self) -> bool:
        return self.role in ADMIN_ROLES


def resolve_role(username: str, admins, primary_admins, users) -> Optional[Role]:
    """Derive the role of ``username`` from set membership (``None`` when unknown)"""
    if username in admins and username in primary_admins:
        return Role.PRIMARY_ADMIN
    if username in admins:
        return Role.ADMIN
    if username in users:
        return Role.USER
    return None
