"""
Outbound port for the message store.

The dispatch engine reads due messages, channels and subscribers through this
interface and is the only writer of message status and result rows.
Implementations live in the infrastructure layer.
"""

from abc import ABC, abstractmethod
from datetime import datetime

from ..entities import Channel, ChannelSubscriber, Message, MessageStatus


class DispatchRepository(ABC):
    """
    Outbound port for dispatch persistence.

    Implementations raise PersistenceError when the store cannot be reached.
    """

    @abstractmethod
    async def ping(self) -> None:
        """Verify the store is reachable."""
        ...

    @abstractmethod
    async def find_due_scheduled_messages(self, now: datetime) -> list[Message]:
        """
        Retrieve messages in ``scheduled`` status whose time has come.

        Args:
            now: Reference time; messages with scheduled_for <= now are due

        Returns:
            Due messages in no particular order
        """
        ...

    @abstractmethod
    async def update_message_status(
        self,
        message_id: str,
        status: MessageStatus,
        sent_at: datetime | None = None,
        expected_status: MessageStatus | None = None,
    ) -> bool:
        """
        Update the status of a message.

        Args:
            message_id: Message identifier
            status: New status
            sent_at: Completion time, written in the same statement as status
            expected_status: Only apply the update if the row is in this status

        Returns:
            True if a row was updated
        """
        ...

    @abstractmethod
    async def append_message_result(
        self,
        message_id: str,
        channel_id: str,
        success: bool,
        error: str | None = None,
    ) -> None:
        """
        Append one channel outcome to the message's audit trail.

        Args:
            message_id: Message identifier
            channel_id: Channel identifier
            success: Whether the channel attempt succeeded
            error: Failure reason
        """
        ...

    @abstractmethod
    async def find_channel(self, channel_id: str, user_id: str | None = None) -> Channel | None:
        """
        Retrieve a channel by its ID.

        Args:
            channel_id: Channel identifier
            user_id: When given, only a channel owned by this user matches
        """
        ...

    @abstractmethod
    async def find_active_subscribers(self, channel_id: str) -> list[ChannelSubscriber]:
        """Retrieve subscribers of a channel whose status is ``active``."""
        ...

    @abstractmethod
    async def get_scheduler_enabled(self) -> bool:
        """Read the live ``scheduler.enabled`` flag owned by the admin surface."""
        ...

    @abstractmethod
    async def insert_message(self, message: Message) -> None:
        """Persist a newly created message."""
        ...

    @abstractmethod
    async def count_messages(
        self,
        status: MessageStatus,
        due_before: datetime | None = None,
    ) -> int:
        """
        Count messages in a status.

        Args:
            status: Status to count
            due_before: If set, only count messages with scheduled_for <= due_before
        """
        ...
