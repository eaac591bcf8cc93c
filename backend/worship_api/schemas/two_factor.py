"""Two-factor enrolment schemas"""
from typing import Optional

from worship_api.models.two_factor import TwoFactorStatus
from worship_api.schemas.base import CamelModel


class TwoFactorStatusResponse(CamelModel):
    status: TwoFactorStatus
    enabled: bool
    enabled_at: Optional[str] = None
    enforced: bool = False


class TwoFactorSetupResponse(CamelModel):
    secret: str
    otpauth_url: str
    issuer: str


class OtpRequest(CamelModel):
    otp: Optional[str] = None


class TwoFactorDisableRequest(CamelModel):
    password: Optional[str] = None
    otp: Optional[str] = None
