"""Process-wide components, built once per application instance"""
import asyncio
from dataclasses import dataclass

from worship_api.config import Settings
from worship_api.services.activity_log import ActivityLog
from worship_api.services.audit import AuditService
from worship_api.services.audit_query import AuditQueryService
from worship_api.services.connections import ConnectionRegistry
from worship_api.services.credential_store import CredentialStore
from worship_api.services.notifications import NotificationService
from worship_api.services.session import SessionService
from worship_api.services.two_factor import TwoFactorService
from worship_api.utils.file_store import SerialWriteQueue


@dataclass
class ServiceContainer:
    settings: Settings
    write_queue: SerialWriteQueue
    registry: ConnectionRegistry
    credentials: CredentialStore
    two_factor: TwoFactorService
    sessions: SessionService
    activity_log: ActivityLog
    notifications: NotificationService
    audit: AuditService
    audit_query: AuditQueryService

    async def initialize(self) -> None:
        """Create missing store files and reconcile the bootstrap admin"""
        await self.credentials.initialize()
        await asyncio.gather(
            self.two_factor.initialize(),
            self.activity_log.initialize(),
            self.notifications.initialize(),
        )


def build_container(settings: Settings) -> ServiceContainer:
    # Every store shares the one write queue: at most one mutation in flight
    write_queue = SerialWriteQueue()
    registry = ConnectionRegistry()

    credentials = CredentialStore(settings, write_queue)
    two_factor = TwoFactorService(settings, write_queue)
    sessions = SessionService(settings, credentials)
    activity_log = ActivityLog(settings)
    notifications = NotificationService(settings, registry, credentials.list_admin_usernames)
    audit = AuditService(write_queue, activity_log, notifications)
    audit_query = AuditQueryService(settings, activity_log.path, notifications.path)

    return ServiceContainer(
        settings=settings,
        write_queue=write_queue,
        registry=registry,
        credentials=credentials,
        two_factor=two_factor,
        sessions=sessions,
        activity_log=activity_log,
        notifications=notifications,
        audit=audit,
        audit_query=audit_query,
    )
