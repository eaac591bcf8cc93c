"""Tests for admin TOTP enrolment"""
import json
import time

import pyotp
import pytest

from conftest import PRIMARY_ADMIN, make_container, read_data_lines
from worship_api.models.two_factor import TwoFactorStatus
from worship_api.utils.crypto import SecretBox
from worship_api.utils.errors import AppError, ErrorCode


def wrong_code(totp: pyotp.TOTP) -> str:
    """A well-formed code outside the accepted clock-skew window"""
    now = time.time()
    valid = {totp.at(now + offset) for offset in (-60, -30, 0, 30, 60)}
    candidate = 123456
    while f"{candidate:06d}" in valid:
        candidate += 1
    return f"{candidate:06d}"


@pytest.mark.asyncio
async def test_setup_then_confirm_enables(settings):
    container = await make_container(settings)
    service = container.two_factor

    assert (await service.status(PRIMARY_ADMIN)).status == TwoFactorStatus.DISABLED

    setup = await service.begin_setup(PRIMARY_ADMIN)
    assert setup.otpauth_url.startswith("otpauth://totp/")
    assert "Worship%20Tracker" in setup.otpauth_url
    assert (await service.status(PRIMARY_ADMIN)).status == TwoFactorStatus.PENDING

    totp = pyotp.TOTP(setup.secret)
    with pytest.raises(AppError) as exc:
        await service.confirm_enable(PRIMARY_ADMIN, wrong_code(totp))
    assert exc.value.code == ErrorCode.TOTP_INVALID
    assert (await service.status(PRIMARY_ADMIN)).status == TwoFactorStatus.PENDING

    state = await service.confirm_enable(PRIMARY_ADMIN, totp.now())
    assert state.status == TwoFactorStatus.ENABLED
    assert state.enabled_at
    assert await service.is_enabled(PRIMARY_ADMIN)
    assert await service.verify_for_login(PRIMARY_ADMIN, totp.now())


@pytest.mark.asyncio
async def test_secret_is_encrypted_at_rest(settings):
    container = await make_container(settings)
    setup = await container.two_factor.begin_setup(PRIMARY_ADMIN)

    [line] = read_data_lines(settings, "admin_2fa.txt")
    record = json.loads(line)
    assert record["username"] == PRIMARY_ADMIN
    assert record["enabled"] is False
    assert record["secret"].startswith("v1:")
    assert setup.secret not in line
    assert SecretBox(settings.JWT_SECRET).decrypt(record["secret"]) == setup.secret


@pytest.mark.asyncio
async def test_otp_format_and_missing_setup(settings):
    container = await make_container(settings)
    service = container.two_factor

    with pytest.raises(AppError) as exc:
        await service.confirm_enable(PRIMARY_ADMIN, "12345")
    assert exc.value.code == ErrorCode.INVALID_OTP

    with pytest.raises(AppError) as exc:
        await service.confirm_enable(PRIMARY_ADMIN, "123456")
    assert exc.value.code == ErrorCode.NO_PENDING_2FA

    with pytest.raises(AppError) as exc:
        await service.verify_for_login(PRIMARY_ADMIN, "123456")
    assert exc.value.code == ErrorCode.TOTP_NOT_ENABLED


@pytest.mark.asyncio
async def test_legacy_plaintext_secret_still_verifies(settings):
    container = await make_container(settings)
    secret = pyotp.random_base32()
    container.two_factor.path.write_text(
        json.dumps({"username": PRIMARY_ADMIN, "secret": secret, "enabled": True,
                    "createdAt": "2025-01-01T00:00:00.000Z", "enabledAt": "2025-01-01T00:00:00.000Z"}) + "\n",
        encoding="utf-8",
    )

    assert await container.two_factor.verify_for_login(PRIMARY_ADMIN, pyotp.TOTP(secret).now())


@pytest.mark.asyncio
async def test_undecryptable_secret_is_a_server_error(settings):
    container = await make_container(settings)
    await container.two_factor.begin_setup(PRIMARY_ADMIN)

    # Same store, different key material
    other = await make_container(settings.model_copy(update={"JWT_SECRET": "another-secret"}))
    assert (await other.two_factor.status(PRIMARY_ADMIN)).status == TwoFactorStatus.PENDING
    with pytest.raises(AppError) as exc:
        await other.two_factor.confirm_enable(PRIMARY_ADMIN, "123456")
    assert exc.value.code == ErrorCode.TOTP_SECRET_INVALID
    assert exc.value.kind.status_code == 500


@pytest.mark.asyncio
async def test_cancel_disable_and_reset(settings):
    container = await make_container(settings)
    service = container.two_factor

    await service.begin_setup(PRIMARY_ADMIN)
    assert (await service.cancel_pending_setup(PRIMARY_ADMIN)).status == TwoFactorStatus.DISABLED
    assert read_data_lines(settings, "admin_2fa.txt") == []

    totp = pyotp.TOTP((await service.begin_setup(PRIMARY_ADMIN)).secret)
    await service.confirm_enable(PRIMARY_ADMIN, totp.now())

    # Cancelling never touches an enabled record
    assert (await service.cancel_pending_setup(PRIMARY_ADMIN)).status == TwoFactorStatus.ENABLED

    with pytest.raises(AppError) as exc:
        await service.disable(PRIMARY_ADMIN, wrong_code(totp))
    assert exc.value.code == ErrorCode.TOTP_INVALID
    assert await service.is_enabled(PRIMARY_ADMIN)

    assert (await service.disable(PRIMARY_ADMIN, totp.now())).status == TwoFactorStatus.DISABLED
    assert not await service.is_enabled(PRIMARY_ADMIN)

    totp = pyotp.TOTP((await service.begin_setup(PRIMARY_ADMIN)).secret)
    await service.confirm_enable(PRIMARY_ADMIN, totp.now())
    await service.reset_for_user(PRIMARY_ADMIN)
    assert (await service.status(PRIMARY_ADMIN)).status == TwoFactorStatus.DISABLED


def test_secret_box_rejects_tampered_payload():
    box = SecretBox("key-material")
    sealed = box.encrypt("JBSWY3DPEHPK3PXP")
    assert box.decrypt(sealed) == "JBSWY3DPEHPK3PXP"

    version, nonce, ciphertext, tag = sealed.split(":")
    assert box.decrypt(":".join([version, nonce, ciphertext, "AAAAAAAAAAAAAAAAAAAAAA=="])) == ""
    assert box.decrypt("v1:not-base64:x:y") == ""
    assert SecretBox("other-key").decrypt(sealed) == ""
