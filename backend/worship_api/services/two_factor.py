"""TOTP two-factor enrolment for admin accounts"""
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional

import pyotp

from worship_api.config import Settings
from worship_api.models.two_factor import TwoFactorRecord, TwoFactorStatus, utc_now_iso
from worship_api.services.credential_store import normalize_username
from worship_api.utils.crypto import SecretBox
from worship_api.utils.errors import AppError, ErrorCode
from worship_api.utils.file_store import SerialWriteQueue, ensure_file, read_lines, write_lines_atomic
from worship_api.utils.logger import logger

TWO_FACTOR_FILE = "admin_2fa.txt"

TOTP_DIGITS = 6
TOTP_PERIOD_SECONDS = 30
TOTP_VALID_WINDOW = 1  # accept the previous and next period as well

_OTP_PATTERN = re.compile(r"^\d{6}$")


@dataclass(frozen=True)
class TwoFactorState:
    status: TwoFactorStatus
    enabled_at: Optional[str] = None


@dataclass(frozen=True)
class TwoFactorSetup:
    secret: str
    otpauth_url: str
    issuer: str


def validate_otp(raw_otp) -> str:
    otp = str(raw_otp if raw_otp is not None else "").strip()
    if not _OTP_PATTERN.match(otp):
        raise AppError(ErrorCode.INVALID_OTP, "OTP code must be a 6-digit number.")
    return otp


class TwoFactorService:
    """Pending / enabled TOTP records keyed by username.

    Secrets are stored encrypted with a :class:`SecretBox`. A secret that can
    no longer be decrypted counts as unusable: status queries still answer,
    but any code verification fails with ``TOTP_SECRET_INVALID``.
    """

    def __init__(self, settings: Settings, write_queue: SerialWriteQueue) -> None:
        self._issuer = settings.TOTP_ISSUER
        self._box = SecretBox(settings.totp_key_material)
        self._queue = write_queue
        self.path = Path(settings.DATA_DIR) / TWO_FACTOR_FILE

    async def initialize(self) -> None:
        await ensure_file(self.path)

    async def _read_records(self) -> Dict[str, TwoFactorRecord]:
        records: Dict[str, TwoFactorRecord] = {}
        for line in await read_lines(self.path):
            record = TwoFactorRecord.from_line(line)
            if record is not None:
                records[record.username] = record
        return records

    async def _write_records(self, records: Dict[str, TwoFactorRecord]) -> None:
        await write_lines_atomic(self.path, [records[name].to_line() for name in sorted(records)])

    def _verify_code(self, record: TwoFactorRecord, otp: str) -> None:
        secret = self._box.decrypt(record.secret)
        if not secret:
            logger.error(
                f"Stored 2FA secret for {record.username} cannot be decrypted",
                extra={"username": record.username, "code": ErrorCode.TOTP_SECRET_INVALID.value},
            )
            raise AppError(ErrorCode.TOTP_SECRET_INVALID, "Failed to read 2FA secret.")

        totp = pyotp.TOTP(secret, digits=TOTP_DIGITS, interval=TOTP_PERIOD_SECONDS)
        if not totp.verify(otp, valid_window=TOTP_VALID_WINDOW):
            raise AppError(ErrorCode.TOTP_INVALID, "Invalid OTP code.")

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def status(self, raw_username: Optional[str]) -> TwoFactorState:
        username = normalize_username(raw_username)
        if not username:
            return TwoFactorState(TwoFactorStatus.DISABLED)

        record = (await self._read_records()).get(username)
        if record is None:
            return TwoFactorState(TwoFactorStatus.DISABLED)
        return TwoFactorState(record.status, record.enabled_at if record.enabled else None)

    async def is_enabled(self, raw_username: Optional[str]) -> bool:
        return (await self.status(raw_username)).status == TwoFactorStatus.ENABLED

    # ------------------------------------------------------------------
    # Enrolment lifecycle
    # ------------------------------------------------------------------

    async def begin_setup(self, raw_username: Optional[str]) -> TwoFactorSetup:
        """Generate a fresh secret, replacing any earlier pending or stale record"""
        username = normalize_username(raw_username)
        if not username:
            raise AppError(ErrorCode.VALIDATION_ERROR, "Username is required.")

        secret = pyotp.random_base32()
        otpauth_url = pyotp.TOTP(secret, digits=TOTP_DIGITS, interval=TOTP_PERIOD_SECONDS).provisioning_uri(
            name=username, issuer_name=self._issuer
        )
        record = TwoFactorRecord(
            username=username,
            secret=self._box.encrypt(secret),
            enabled=False,
            created_at=utc_now_iso(),
        )

        async def _task() -> None:
            records = await self._read_records()
            records[username] = record
            await self._write_records(records)

        await self._queue.run(_task)
        return TwoFactorSetup(secret=secret, otpauth_url=otpauth_url, issuer=self._issuer)

    async def confirm_enable(self, raw_username: Optional[str], raw_otp) -> TwoFactorState:
        username = normalize_username(raw_username)
        otp = validate_otp(raw_otp)

        async def _task() -> TwoFactorState:
            records = await self._read_records()
            record = records.get(username)
            if record is None or record.enabled:
                raise AppError(ErrorCode.NO_PENDING_2FA, "No pending 2FA setup exists.")

            self._verify_code(record, otp)
            record.enabled = True
            record.enabled_at = utc_now_iso()
            await self._write_records(records)
            return TwoFactorState(TwoFactorStatus.ENABLED, record.enabled_at)

        state = await self._queue.run(_task)
        logger.info(f"2FA enabled for {username}", extra={"username": username, "action": "2fa_enable"})
        return state

    async def verify_for_login(self, raw_username: Optional[str], raw_otp) -> bool:
        username = normalize_username(raw_username)
        otp = validate_otp(raw_otp)

        record = (await self._read_records()).get(username)
        if record is None or not record.enabled:
            raise AppError(ErrorCode.TOTP_NOT_ENABLED, "Two-factor authentication is not enabled.")

        self._verify_code(record, otp)
        return True

    async def disable(self, raw_username: Optional[str], raw_otp) -> TwoFactorState:
        username = normalize_username(raw_username)
        otp = validate_otp(raw_otp)

        async def _task() -> TwoFactorState:
            records = await self._read_records()
            record = records.get(username)
            if record is None or not record.enabled:
                raise AppError(ErrorCode.TOTP_NOT_ENABLED, "Two-factor authentication is not enabled.")

            self._verify_code(record, otp)
            del records[username]
            await self._write_records(records)
            return TwoFactorState(TwoFactorStatus.DISABLED)

        state = await self._queue.run(_task)
        logger.info(f"2FA disabled for {username}", extra={"username": username, "action": "2fa_disable"})
        return state

    async def cancel_pending_setup(self, raw_username: Optional[str]) -> TwoFactorState:
        """Drop an unconfirmed setup; an enabled record is left untouched"""
        username = normalize_username(raw_username)
        if not username:
            raise AppError(ErrorCode.VALIDATION_ERROR, "Username is required.")

        async def _task() -> TwoFactorState:
            records = await self._read_records()
            record = records.get(username)
            if record is not None and not record.enabled:
                del records[username]
                await self._write_records(records)
                return TwoFactorState(TwoFactorStatus.DISABLED)
            if record is not None:
                return TwoFactorState(TwoFactorStatus.ENABLED, record.enabled_at)
            return TwoFactorState(TwoFactorStatus.DISABLED)

        return await self._queue.run(_task)

    async def reset_for_user(self, raw_username: Optional[str]) -> TwoFactorState:
        """Remove any record unconditionally (device-loss recovery)"""
        username = normalize_username(raw_username)
        if not username:
            raise AppError(ErrorCode.VALIDATION_ERROR, "Username is required.")

        async def _task() -> None:
            records = await self._read_records()
            if records.pop(username, None) is not None:
                await self._write_records(records)

        await self._queue.run(_task)
        logger.info(f"2FA reset for {username}", extra={"username": username, "action": "2fa_reset"})
        return TwoFactorState(TwoFactorStatus.DISABLED)
