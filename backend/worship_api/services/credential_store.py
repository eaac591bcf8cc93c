"""Credential store backed by four flat files.

- ``users.txt`` / ``admin_credentials.txt``: one ``username:passwordHash`` per line
- ``primary_admins.txt`` / ``deactivated_users.txt``: one username per line

Roles are derived from set membership on every lookup. Every mutation runs
inside the shared :class:`SerialWriteQueue` and rewrites files atomically.
"""
import asyncio
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Set

from worship_api.config import Settings
from worship_api.models.account import ROLE_PRIORITY, Account, Role, resolve_role
from worship_api.utils.crypto import hash_password, verify_password
from worship_api.utils.errors import AppError, ErrorCode
from worship_api.utils.file_store import (
    SerialWriteQueue,
    ensure_dir,
    ensure_file,
    read_lines,
    write_lines_atomic,
)
from worship_api.utils.logger import logger

USERNAME_PATTERN = re.compile(r"^[a-zA-Z0-9_.@-]{3,80}$")
MIN_PASSWORD_LENGTH = 10

USERS_FILE = "users.txt"
ADMIN_CREDENTIALS_FILE = "admin_credentials.txt"
PRIMARY_ADMINS_FILE = "primary_admins.txt"
DEACTIVATED_USERS_FILE = "deactivated_users.txt"

UNSET = object()


def normalize_username(username: Optional[str]) -> str:
    return str(username or "").strip().lower()


def validate_username(raw: Optional[str]) -> str:
    username = normalize_username(raw)
    if not USERNAME_PATTERN.match(username):
        raise AppError(
            ErrorCode.INVALID_USERNAME,
            "Username must be 3-80 chars and only use letters, numbers, dot, underscore, @, or hyphen.",
        )
    return username


def validate_password(password: Optional[str]) -> str:
    value = password if isinstance(password, str) else ""
    if len(value) < MIN_PASSWORD_LENGTH:
        raise AppError(ErrorCode.WEAK_PASSWORD, f"Password must be at least {MIN_PASSWORD_LENGTH} characters.")
    return value


def parse_credential_lines(lines: List[str]) -> Dict[str, str]:
    """Map username -> password hash, skipping malformed lines"""
    credentials: Dict[str, str] = {}
    for line in lines:
        username, sep, password_hash = line.partition(":")
        username = normalize_username(username)
        password_hash = password_hash.strip()
        if not sep or not username or not password_hash:
            continue
        credentials[username] = password_hash
    return credentials


def serialize_credentials(credentials: Dict[str, str]) -> List[str]:
    return [f"{username}:{credentials[username]}" for username in sorted(credentials)]


def serialize_set(usernames: Set[str]) -> List[str]:
    return sorted(usernames)


@dataclass
class CredentialSnapshot:
    """The four backing sets as read at one point in time"""

    users: Dict[str, str]
    admins: Dict[str, str]
    primary_admins: Set[str]
    deactivated: Set[str]

    def role_of(self, username: str) -> Optional[Role]:
        return resolve_role(username, self.admins, self.primary_admins, self.users)


class CredentialStore:
    """Account lookups, authentication and account management"""

    def __init__(self, settings: Settings, write_queue: SerialWriteQueue) -> None:
        self._settings = settings
        self._queue = write_queue
        data_dir = Path(settings.DATA_DIR)
        self.users_path = data_dir / USERS_FILE
        self.admins_path = data_dir / ADMIN_CREDENTIALS_FILE
        self.primary_admins_path = data_dir / PRIMARY_ADMINS_FILE
        self.deactivated_path = data_dir / DEACTIVATED_USERS_FILE

    @property
    def paths(self) -> List[Path]:
        return [self.users_path, self.admins_path, self.primary_admins_path, self.deactivated_path]

    # ------------------------------------------------------------------
    # Reading
    # ------------------------------------------------------------------

    async def _read_credentials(self, path: Path) -> Dict[str, str]:
        return parse_credential_lines(await read_lines(path))

    async def _read_set(self, path: Path) -> Set[str]:
        return {normalize_username(line) for line in await read_lines(path) if normalize_username(line)}

    async def _snapshot(self) -> CredentialSnapshot:
        users, admins, primary_admins, deactivated = await asyncio.gather(
            self._read_credentials(self.users_path),
            self._read_credentials(self.admins_path),
            self._read_set(self.primary_admins_path),
            self._read_set(self.deactivated_path),
        )
        return CredentialSnapshot(users, admins, primary_admins, deactivated)

    async def _hash(self, password: str) -> str:
        return await asyncio.to_thread(hash_password, password, self._settings.BCRYPT_ROUNDS)

    # ------------------------------------------------------------------
    # Bootstrap
    # ------------------------------------------------------------------

    async def initialize(self) -> None:
        """Create the backing files and reconcile the primary-admin bootstrap account"""
        await ensure_dir(Path(self._settings.DATA_DIR))
        await asyncio.gather(*(ensure_file(path) for path in self.paths))
        await self._queue.run(self._ensure_primary_admin)

    async def _ensure_primary_admin(self) -> None:
        snapshot = await self._snapshot()
        admins, users, primary_admins = snapshot.admins, snapshot.users, snapshot.primary_admins
        configured = normalize_username(self._settings.PRIMARY_ADMIN_USERNAME)
        users_changed = False

        if not primary_admins:
            primary_admins.add(configured)

        for username in sorted(primary_admins):
            if username in admins:
                continue
            if username != configured:
                logger.warning(f"Dropping stale primary-admin marker: {username}", extra={"username": username})
                primary_admins.discard(username)
                continue
            if username in users:
                # Keep a username in at most one credential set
                admins[username] = users.pop(username)
                users_changed = True
            else:
                admins[username] = await self._hash(self._settings.PRIMARY_ADMIN_PASSWORD)
                logger.info(f"Created primary admin account: {username}", extra={"username": username})

        if not primary_admins:
            primary_admins.add(configured)
            if configured not in admins:
                admins[configured] = await self._hash(self._settings.PRIMARY_ADMIN_PASSWORD)

        writes = [
            write_lines_atomic(self.admins_path, serialize_credentials(admins)),
            write_lines_atomic(self.primary_admins_path, serialize_set(primary_admins)),
        ]
        if users_changed:
            writes.append(write_lines_atomic(self.users_path, serialize_credentials(users)))
        await asyncio.gather(*writes)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def get_account(self, raw_username: Optional[str]) -> Optional[Account]:
        username = normalize_username(raw_username)
        if not username:
            return None

        snapshot = await self._snapshot()
        role = snapshot.role_of(username)
        if role is None:
            return None

        source = snapshot.users if role == Role.USER else snapshot.admins
        return Account(
            username=username,
            role=role,
            is_active=username not in snapshot.deactivated,
            password_hash=source[username],
        )

    async def authenticate(self, raw_username: Optional[str], password: Optional[str]) -> Optional[Account]:
        """Return the account for valid credentials, ``None`` on any mismatch"""
        account = await self.get_account(raw_username)
        if account is None or not account.is_active or not account.password_hash:
            return None

        matches = await asyncio.to_thread(verify_password, str(password or ""), account.password_hash)
        if not matches:
            return None
        return Account(username=account.username, role=account.role, is_active=True)

    async def list_accounts(self) -> List[Account]:
        snapshot = await self._snapshot()
        accounts = [
            Account(username=username, role=Role.USER, is_active=username not in snapshot.deactivated)
            for username in snapshot.users
        ]
        accounts.extend(
            Account(
                username=username,
                role=Role.PRIMARY_ADMIN if username in snapshot.primary_admins else Role.ADMIN,
                is_active=username not in snapshot.deactivated,
            )
            for username in snapshot.admins
        )
        return sorted(accounts, key=lambda account: (ROLE_PRIORITY[account.role], account.username))

    async def list_admin_usernames(self) -> List[str]:
        """Active admin-class usernames, the notification recipients"""
        admins, deactivated = await asyncio.gather(
            self._read_credentials(self.admins_path),
            self._read_set(self.deactivated_path),
        )
        return sorted(username for username in admins if username not in deactivated)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def create_account(self, username: Optional[str], password: Optional[str], role: Role = Role.USER) -> Account:
        username = validate_username(username)
        password = validate_password(password)
        if role not in (Role.USER, Role.ADMIN):
            raise AppError(ErrorCode.INVALID_ROLE, "Role must be user or admin.")

        password_hash = await self._hash(password)

        async def _task() -> Account:
            snapshot = await self._snapshot()
            if username in snapshot.users or username in snapshot.admins:
                raise AppError(ErrorCode.USER_EXISTS, "Username already exists.")

            if role == Role.ADMIN:
                snapshot.admins[username] = password_hash
                await write_lines_atomic(self.admins_path, serialize_credentials(snapshot.admins))
            else:
                snapshot.users[username] = password_hash
                await write_lines_atomic(self.users_path, serialize_credentials(snapshot.users))

            if username in snapshot.deactivated:
                snapshot.deactivated.discard(username)
                await write_lines_atomic(self.deactivated_path, serialize_set(snapshot.deactivated))
            return Account(username=username, role=role, is_active=True)

        account = await self._queue.run(_task)
        logger.info(f"Created account: {username}", extra={"username": username, "action": "create_account"})
        return account

    async def update_account(self, username: Optional[str], password=UNSET, is_active=UNSET) -> Account:
        """Change the password and/or active flag; the role is never touched"""
        username = validate_username(username)
        new_password = password if isinstance(password, str) and password else None
        new_active = is_active if isinstance(is_active, bool) else None

        if new_password is None and new_active is None:
            raise AppError(ErrorCode.NO_UPDATES, "No updatable fields provided.")

        password_hash = await self._hash(validate_password(new_password)) if new_password is not None else None

        async def _task() -> Account:
            snapshot = await self._snapshot()
            role = snapshot.role_of(username)
            if role is None:
                raise AppError(ErrorCode.USER_NOT_FOUND, "User not found.")
            if role == Role.PRIMARY_ADMIN:
                raise AppError(ErrorCode.PRIMARY_ADMIN_PROTECTED, "Primary admin cannot be managed by this operation.")

            if password_hash is not None:
                if role == Role.USER:
                    snapshot.users[username] = password_hash
                    await write_lines_atomic(self.users_path, serialize_credentials(snapshot.users))
                else:
                    snapshot.admins[username] = password_hash
                    await write_lines_atomic(self.admins_path, serialize_credentials(snapshot.admins))

            if new_active is not None:
                if new_active:
                    snapshot.deactivated.discard(username)
                else:
                    snapshot.deactivated.add(username)
                await write_lines_atomic(self.deactivated_path, serialize_set(snapshot.deactivated))

            return Account(username=username, role=role, is_active=username not in snapshot.deactivated)

        account = await self._queue.run(_task)
        logger.info(f"Updated account: {username}", extra={"username": username, "action": "update_account"})
        return account

    async def delete_account(self, username: Optional[str]) -> Account:
        username = validate_username(username)

        async def _task() -> Account:
            snapshot = await self._snapshot()
            if username in snapshot.primary_admins:
                raise AppError(ErrorCode.PRIMARY_ADMIN_PROTECTED, "Primary admin cannot be deleted.")

            deleted_role: Optional[Role] = None
            if snapshot.users.pop(username, None) is not None:
                deleted_role = Role.USER
                await write_lines_atomic(self.users_path, serialize_credentials(snapshot.users))
            if snapshot.admins.pop(username, None) is not None:
                deleted_role = Role.ADMIN
                await write_lines_atomic(self.admins_path, serialize_credentials(snapshot.admins))

            if deleted_role is None:
                raise AppError(ErrorCode.USER_NOT_FOUND, "User not found.")

            if username in snapshot.deactivated:
                snapshot.deactivated.discard(username)
                await write_lines_atomic(self.deactivated_path, serialize_set(snapshot.deactivated))
            return Account(username=username, role=deleted_role, is_active=False)

        account = await self._queue.run(_task)
        logger.info(f"Deleted account: {username}", extra={"username": username, "action": "delete_account"})
        return account

    async def promote_to_admin(self, username: Optional[str]) -> Account:
        """Move a regular user into the admin set, keeping the password hash"""
        username = validate_username(username)

        async def _task() -> Account:
            snapshot = await self._snapshot()
            if username in snapshot.admins:
                raise AppError(ErrorCode.ALREADY_ADMIN, "User is already an admin.")

            password_hash = snapshot.users.pop(username, None)
            if password_hash is None:
                raise AppError(ErrorCode.USER_NOT_FOUND, "User not found in regular users.")

            snapshot.admins[username] = password_hash
            # Admins before users: an interrupted promote leaves a duplicate, not a lost account
            await write_lines_atomic(self.admins_path, serialize_credentials(snapshot.admins))
            await write_lines_atomic(self.users_path, serialize_credentials(snapshot.users))
            return Account(username=username, role=Role.ADMIN, is_active=username not in snapshot.deactivated)

        account = await self._queue.run(_task)
        logger.info(f"Promoted account to admin: {username}", extra={"username": username, "action": "promote"})
        return account
