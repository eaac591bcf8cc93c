"""Authentication schemas"""
from typing import Optional

from pydantic import Field

from worship_api.models.account import Account, Role
from worship_api.schemas.base import CamelModel


class LoginRequest(CamelModel):
    # Optional so that missing fields surface as MISSING_CREDENTIALS, not a schema error
    username: Optional[str] = None
    password: Optional[str] = None
    otp: Optional[str] = None


class UserResponse(CamelModel):
    username: str
    role: Role
    is_active: bool = True
    mfa_verified: Optional[bool] = None

    @classmethod
    def from_account(cls, account: Account) -> "UserResponse":
        return cls(username=account.username, role=account.role, is_active=account.is_active)


class UserEnvelope(CamelModel):
    user: UserResponse


class UserListResponse(CamelModel):
    users: list[UserResponse] = Field(default_factory=list)
