"""
SQLAlchemy implementation of the DispatchRepository port.

SQL is kept in this adapter; the engine only sees domain entities. A short
session is opened per operation so a long-running daemon never holds a
connection between ticks.
"""

import json
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any

import structlog
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ...domain.entities import (
    Channel,
    ChannelSubscriber,
    Message,
    MessageStatus,
    SubscriberStatus,
)
from ...domain.exceptions import PersistenceError
from ...domain.ports import DispatchRepository
from ...domain.value_objects import ChannelType, DeliveryOptions, parse_channel_config

logger = structlog.get_logger()

SCHEDULER_ENABLED_KEY = "scheduler.enabled"
_TRUE_VALUES = {"1", "true", "yes", "on"}


def _load_json(value: Any, default: Any) -> Any:
    """JSON columns arrive decoded or as text depending on the driver."""
    if value is None:
        return default
    if isinstance(value, (str, bytes)):
        try:
            return json.loads(value)
        except ValueError:
            return default
    return value


class SqlAlchemyDispatchRepository(DispatchRepository):
    """
    SQLAlchemy implementation of DispatchRepository.

    Tables: messages, channels, channel_users, message_results,
    system_settings.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        """
        Initialize with a session factory.

        Args:
            session_factory: SQLAlchemy async session factory
        """
        self._session_factory = session_factory

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[AsyncSession]:
        try:
            async with self._session_factory() as session:
                yield session
        except (SQLAlchemyError, OSError) as e:
            raise PersistenceError(str(e)) from e

    async def ping(self) -> None:
        async with self._session() as session:
            await session.execute(text("SELECT 1"))

    async def find_due_scheduled_messages(self, now: datetime) -> list[Message]:
        """Retrieve scheduled messages whose scheduled_at has passed."""
        async with self._session() as session:
            result = await session.execute(
                text("""
                    SELECT id, title, content, status, channel_ids, channel_options,
                           scheduled_at, sent_at, created_at, user_id
                    FROM messages
                    WHERE status = :status
                      AND scheduled_at <= :now
                """),
                {"status": MessageStatus.SCHEDULED.value, "now": now},
            )
            rows = result.mappings().all()

        messages = []
        for row in rows:
            try:
                messages.append(self._to_message(row))
            except (AttributeError, KeyError, TypeError, ValueError) as e:
                # One unreadable row must not hold up the rest of the queue
                logger.error(
                    "Skipping malformed message row",
                    message_id=str(row.get("id")),
                    error=str(e),
                )
        return messages

    async def update_message_status(
        self,
        message_id: str,
        status: MessageStatus,
        sent_at: datetime | None = None,
        expected_status: MessageStatus | None = None,
    ) -> bool:
        """Update status (and sent_at) in one statement."""
        sql = "UPDATE messages SET status = :status"
        params: dict[str, Any] = {"id": str(message_id), "status": status.value}
        if sent_at is not None:
            sql += ", sent_at = :sent_at"
            params["sent_at"] = sent_at
        sql += " WHERE id = :id"
        if expected_status is not None:
            sql += " AND status = :expected_status"
            params["expected_status"] = expected_status.value

        async with self._session() as session:
            result = await session.execute(text(sql), params)
            await session.commit()

        updated = result.rowcount > 0
        logger.debug(
            "Message status updated",
            message_id=str(message_id),
            status=status.value,
            updated=updated,
        )
        return updated

    async def append_message_result(
        self,
        message_id: str,
        channel_id: str,
        success: bool,
        error: str | None = None,
    ) -> None:
        async with self._session() as session:
            await session.execute(
                text("""
                    INSERT INTO message_results (message_id, channel_id, success, error, sent_at)
                    VALUES (:message_id, :channel_id, :success, :error, NOW())
                """),
                {
                    "message_id": str(message_id),
                    "channel_id": str(channel_id),
                    "success": success,
                    "error": error,
                },
            )
            await session.commit()

    async def find_channel(self, channel_id: str, user_id: str | None = None) -> Channel | None:
        """Retrieve a channel by its ID, scoped to its owner when given."""
        sql = """
            SELECT id, user_id, type, name, enabled, config, created_at, updated_at
            FROM channels WHERE id = :id
        """
        params: dict[str, Any] = {"id": str(channel_id)}
        if user_id is not None:
            sql += " AND user_id = :user_id"
            params["user_id"] = str(user_id)

        async with self._session() as session:
            result = await session.execute(text(sql), params)
            row = result.mappings().first()

        if row is None:
            return None

        return Channel(
            id=str(row["id"]),
            user_id=str(row["user_id"]),
            type=ChannelType(row["type"]),
            name=row["name"],
            enabled=bool(row["enabled"]),
            config=parse_channel_config(row["type"], _load_json(row["config"], {})),
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    async def find_active_subscribers(self, channel_id: str) -> list[ChannelSubscriber]:
        async with self._session() as session:
            result = await session.execute(
                text("""
                    SELECT channel_id, provider_id, display_name, status
                    FROM channel_users
                    WHERE channel_id = :channel_id AND status = :status
                    ORDER BY created_at DESC
                """),
                {"channel_id": str(channel_id), "status": SubscriberStatus.ACTIVE.value},
            )
            rows = result.mappings().all()

        return [
            ChannelSubscriber(
                channel_id=str(row["channel_id"]),
                provider_id=str(row["provider_id"]),
                display_name=row["display_name"],
                status=SubscriberStatus(row["status"]),
            )
            for row in rows
        ]

    async def get_scheduler_enabled(self) -> bool:
        """A missing setting row means the scheduler is enabled."""
        async with self._session() as session:
            result = await session.execute(
                text("SELECT value FROM system_settings WHERE key = :key"),
                {"key": SCHEDULER_ENABLED_KEY},
            )
            value = result.scalar_one_or_none()

        if value is None:
            return True
        return str(value).strip().lower() in _TRUE_VALUES

    async def insert_message(self, message: Message) -> None:
        async with self._session() as session:
            await session.execute(
                text("""
                    INSERT INTO messages (id, title, content, status, channel_ids, channel_options,
                                          scheduled_at, created_at, user_id)
                    VALUES (:id, :title, :content, :status, :channel_ids, :channel_options,
                            :scheduled_at, :created_at, :user_id)
                """),
                {
                    "id": message.id,
                    "title": message.title,
                    "content": message.body,
                    "status": message.status.value,
                    "channel_ids": json.dumps(message.channel_ids),
                    "channel_options": json.dumps(
                        {k: v.to_dict() for k, v in message.channel_options.items()}
                    ),
                    "scheduled_at": message.scheduled_for,
                    "created_at": message.created_at,
                    "user_id": message.user_id,
                },
            )
            await session.commit()

        logger.info("Message created", message_id=message.id, status=message.status.value)

    async def count_messages(
        self,
        status: MessageStatus,
        due_before: datetime | None = None,
    ) -> int:
        sql = "SELECT COUNT(*) FROM messages WHERE status = :status"
        params: dict[str, Any] = {"status": status.value}
        if due_before is not None:
            sql += " AND COALESCE(scheduled_at, created_at) <= :due_before"
            params["due_before"] = due_before

        async with self._session() as session:
            result = await session.execute(text(sql), params)
            return int(result.scalar_one())

    @staticmethod
    def _to_message(row: Any) -> Message:
        raw_options = _load_json(row["channel_options"], {})
        if not isinstance(raw_options, dict):
            raw_options = {}
        channel_ids = _load_json(row["channel_ids"], [])
        if isinstance(channel_ids, (str, int)):
            channel_ids = [channel_ids]
        return Message(
            id=str(row["id"]),
            title=row["title"],
            body=row["content"],
            channel_ids=[str(c) for c in channel_ids],
            user_id=str(row["user_id"]),
            status=MessageStatus(row["status"]),
            channel_options={
                str(k): DeliveryOptions.from_dict(v) for k, v in raw_options.items()
            },
            scheduled_for=row["scheduled_at"],
            sent_at=row["sent_at"],
            created_at=row["created_at"],
        )
