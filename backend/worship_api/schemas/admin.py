"""Account management schemas"""
from typing import Optional

from worship_api.schemas.base import CamelModel


class UserCreate(CamelModel):
    username: Optional[str] = None
    password: Optional[str] = None
    role: Optional[str] = None


class UserUpdate(CamelModel):
    password: Optional[str] = None
    is_active: Optional[bool] = None
