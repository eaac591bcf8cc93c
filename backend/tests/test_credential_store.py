"""Tests for the flat-file credential store"""
import asyncio

import pytest

from conftest import PRIMARY_ADMIN, PRIMARY_PASSWORD, make_container, read_data_lines
from worship_api.models.account import Role
from worship_api.utils.errors import AppError, ErrorCode


@pytest.mark.asyncio
async def test_bootstrap_creates_single_primary_admin(settings):
    """Starting twice on the same directory yields exactly one primary admin"""
    first = await make_container(settings)
    accounts = await first.credentials.list_accounts()
    assert [(a.username, a.role) for a in accounts] == [(PRIMARY_ADMIN, Role.PRIMARY_ADMIN)]

    second = await make_container(settings)
    accounts = await second.credentials.list_accounts()
    assert [(a.username, a.role) for a in accounts] == [(PRIMARY_ADMIN, Role.PRIMARY_ADMIN)]

    assert read_data_lines(settings, "primary_admins.txt") == [PRIMARY_ADMIN]
    assert len(read_data_lines(settings, "admin_credentials.txt")) == 1


@pytest.mark.asyncio
async def test_bootstrap_drops_stale_markers_and_moves_primary_out_of_users(settings):
    settings.DATA_DIR.mkdir(parents=True)
    (settings.DATA_DIR / "primary_admins.txt").write_text(f"ghost\n{PRIMARY_ADMIN}\n", encoding="utf-8")
    container = await make_container(settings)
    assert read_data_lines(settings, "primary_admins.txt") == [PRIMARY_ADMIN]

    # Move the configured admin into the regular-user file, then reconcile again
    password_hash = read_hash(container)
    (settings.DATA_DIR / "admin_credentials.txt").write_text("", encoding="utf-8")
    (settings.DATA_DIR / "users.txt").write_text(f"{PRIMARY_ADMIN}:{password_hash}\n", encoding="utf-8")

    container = await make_container(settings)

    assert read_data_lines(settings, "primary_admins.txt") == [PRIMARY_ADMIN]
    assert read_data_lines(settings, "users.txt") == []
    account = await container.credentials.get_account(PRIMARY_ADMIN)
    assert account.role == Role.PRIMARY_ADMIN
    assert await container.credentials.authenticate(PRIMARY_ADMIN, PRIMARY_PASSWORD) is not None


def read_hash(container) -> str:
    line = container.credentials.admins_path.read_text(encoding="utf-8").splitlines()[0]
    return line.split(":", 1)[1]


@pytest.mark.asyncio
async def test_authenticate_rejects_wrong_password_and_unknown_user(settings):
    container = await make_container(settings)
    assert await container.credentials.authenticate(PRIMARY_ADMIN, "wrong-password") is None
    assert await container.credentials.authenticate("ghost", "whatever123") is None

    account = await container.credentials.authenticate(PRIMARY_ADMIN.upper(), PRIMARY_PASSWORD)
    assert account.username == PRIMARY_ADMIN
    assert account.password_hash is None


@pytest.mark.asyncio
async def test_create_account_validation(settings):
    container = await make_container(settings)
    store = container.credentials

    with pytest.raises(AppError) as exc:
        await store.create_account("a", "StrongPass1!")
    assert exc.value.code == ErrorCode.INVALID_USERNAME

    with pytest.raises(AppError) as exc:
        await store.create_account("bob", "short")
    assert exc.value.code == ErrorCode.WEAK_PASSWORD

    with pytest.raises(AppError) as exc:
        await store.create_account("bob", "StrongPass1!", role=Role.PRIMARY_ADMIN)
    assert exc.value.code == ErrorCode.INVALID_ROLE

    await store.create_account("Bob", "StrongPass1!")
    with pytest.raises(AppError) as exc:
        await store.create_account("bob", "AnotherPass1!")
    assert exc.value.code == ErrorCode.USER_EXISTS


@pytest.mark.asyncio
async def test_concurrent_creates_lose_no_writes(settings):
    container = await make_container(settings)
    names = [f"user{i:02d}" for i in range(12)]

    await asyncio.gather(*(container.credentials.create_account(name, "StrongPass1!") for name in names))

    stored = {line.split(":", 1)[0] for line in read_data_lines(settings, "users.txt")}
    assert stored == set(names)
    assert container.write_queue.pending == 0


@pytest.mark.asyncio
async def test_promote_moves_hash_between_sets(settings):
    container = await make_container(settings)
    store = container.credentials
    await store.create_account("bob", "StrongPass1!")
    user_hash = read_data_lines(settings, "users.txt")[0].split(":", 1)[1]

    promoted = await store.promote_to_admin("bob")

    assert promoted.role == Role.ADMIN
    assert read_data_lines(settings, "users.txt") == []
    assert f"bob:{user_hash}" in read_data_lines(settings, "admin_credentials.txt")
    assert await store.authenticate("bob", "StrongPass1!") is not None

    with pytest.raises(AppError) as exc:
        await store.promote_to_admin("bob")
    assert exc.value.code == ErrorCode.ALREADY_ADMIN

    with pytest.raises(AppError) as exc:
        await store.promote_to_admin("nobody")
    assert exc.value.code == ErrorCode.USER_NOT_FOUND


@pytest.mark.asyncio
async def test_primary_admin_is_protected(settings):
    container = await make_container(settings)
    store = container.credentials

    with pytest.raises(AppError) as exc:
        await store.delete_account(PRIMARY_ADMIN)
    assert exc.value.code == ErrorCode.PRIMARY_ADMIN_PROTECTED

    with pytest.raises(AppError) as exc:
        await store.update_account(PRIMARY_ADMIN, is_active=False)
    assert exc.value.code == ErrorCode.PRIMARY_ADMIN_PROTECTED

    assert (await store.get_account(PRIMARY_ADMIN)).is_active


@pytest.mark.asyncio
async def test_update_and_deactivation(settings):
    container = await make_container(settings)
    store = container.credentials
    await store.create_account("carol", "StrongPass1!", role=Role.ADMIN)

    with pytest.raises(AppError) as exc:
        await store.update_account("carol")
    assert exc.value.code == ErrorCode.NO_UPDATES

    updated = await store.update_account("carol", is_active=False)
    assert not updated.is_active
    assert read_data_lines(settings, "deactivated_users.txt") == ["carol"]
    assert await store.authenticate("carol", "StrongPass1!") is None
    assert await store.list_admin_usernames() == [PRIMARY_ADMIN]

    await store.update_account("carol", password="BrandNewPass1!", is_active=True)
    assert await store.authenticate("carol", "BrandNewPass1!") is not None
    assert await store.list_admin_usernames() == ["carol", PRIMARY_ADMIN]


@pytest.mark.asyncio
async def test_delete_account(settings):
    container = await make_container(settings)
    store = container.credentials
    await store.create_account("dave", "StrongPass1!")
    await store.update_account("dave", is_active=False)

    deleted = await store.delete_account("dave")

    assert deleted.role == Role.USER
    assert await store.get_account("dave") is None
    assert read_data_lines(settings, "deactivated_users.txt") == []

    with pytest.raises(AppError) as exc:
        await store.delete_account("dave")
    assert exc.value.code == ErrorCode.USER_NOT_FOUND
