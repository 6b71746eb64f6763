"""Composition root: wires settings, store, lock and engine together."""

from datetime import timedelta

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from .application.services import DispatchEngine, MessageSubmissionService, RecipientResolver
from .config import Settings, settings as default_settings
from .context import DaemonContext
from .infrastructure.adapters import ChannelGatewayFactory, SqlAlchemyDispatchRepository
from .infrastructure.liveness import FileLockManager


def build_context(settings: Settings | None = None) -> DaemonContext:
    """Build the daemon's dependencies once at process start."""
    settings = settings or default_settings

    engine = create_async_engine(settings.database_url, echo=False, pool_pre_ping=True)
    session_factory = async_sessionmaker(engine, class_=AsyncSession)

    repository = SqlAlchemyDispatchRepository(session_factory)
    gateway_factory = ChannelGatewayFactory(
        request_timeout=settings.request_timeout_seconds,
        broadcast_max_recipients=settings.broadcast_max_recipients,
        line_base_url=settings.line_api_base_url,
        telegram_base_url=settings.telegram_api_base_url,
    )
    dispatch_engine = DispatchEngine(
        repository=repository,
        resolver=RecipientResolver(repository),
        gateway_factory=gateway_factory,
        concurrent_channels=settings.concurrent_channel_attempts,
    )
    lock_manager = FileLockManager(
        pid_file=settings.pid_file,
        heartbeat_file=settings.heartbeat_file,
        stale_seconds=settings.lock_stale_seconds,
    )

    return DaemonContext(
        settings=settings,
        repository=repository,
        lock_manager=lock_manager,
        engine=dispatch_engine,
        dispose=engine.dispose,
    )


def build_submission_service(context: DaemonContext) -> MessageSubmissionService:
    """Send-request path for callers embedding the dispatcher (e.g. the admin API)."""
    return MessageSubmissionService(
        repository=context.repository,
        engine=context.engine,
        grace=timedelta(seconds=context.settings.schedule_grace_seconds),
    )
