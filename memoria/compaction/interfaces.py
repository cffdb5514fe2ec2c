"""Interfaces of the collaborators the memory engine consumes."""

from abc import ABC, abstractmethod
from datetime import datetime

from memoria.compaction.errors import DecodeError
from memoria.compaction.types import Message, SessionSnapshot


class MessageSource(ABC):
    """Read access to a session's message history."""

    @abstractmethod
    def find_messages_after(
        self, session_id: str, cutoff: datetime | None
    ) -> list[Message]:
        """
        Get messages created strictly after a cutoff.

        Args:
            session_id: Session to read.
            cutoff: Timestamp boundary, or None for the full history.

        Returns:
            Messages ordered by created_at ascending.
        """
        pass

    def count_messages(self, session_id: str, cutoff: datetime | None) -> int:
        """Count messages created strictly after a cutoff."""
        return len(self.find_messages_after(session_id, cutoff))

    def find_recent_messages(
        self,
        session_id: str,
        limit: int,
        cutoff: datetime | None = None,
    ) -> list[Message]:
        """
        Get the newest messages after a cutoff, oldest first.

        Args:
            session_id: Session to read.
            limit: Maximum number of messages.
            cutoff: Timestamp boundary, or None for the full history.

        Returns:
            Up to `limit` messages in chronological order.
        """
        if limit <= 0:
            return []
        return self.find_messages_after(session_id, cutoff)[-limit:]


class ParticipantDirectory(ABC):
    """Provides participant snapshots for name resolution."""

    @abstractmethod
    def get_participants(self, session_id: str) -> SessionSnapshot:
        pass


class BodyDecoder(ABC):
    """Turns a stored message body into plain text."""

    @abstractmethod
    def decode(self, body: str) -> str:
        """
        Decode a message body.

        Raises:
            DecodeError: If the body cannot be decoded.
        """
        pass


class PlainBodyDecoder(BodyDecoder):
    """Decoder for bodies stored as plain text."""

    def decode(self, body: str) -> str:
        if not isinstance(body, str):
            raise DecodeError(f"Expected str body, got {type(body).__name__}")
        return body


class SessionBookkeeper(ABC):
    """Receives the side effect of a successful compaction."""

    @abstractmethod
    def mark_memory_updated(self, session_id: str, timestamp: datetime) -> None:
        pass
