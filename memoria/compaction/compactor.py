"""Compaction of a session's uncompacted message tail into a memory record."""

import uuid
from datetime import datetime
from typing import Callable

from loguru import logger

from memoria.compaction.estimator import get_estimator
from memoria.compaction.interfaces import (
    BodyDecoder,
    MessageSource,
    ParticipantDirectory,
    PlainBodyDecoder,
    SessionBookkeeper,
)
from memoria.compaction.locks import SessionLocks
from memoria.compaction.names import NameResolver
from memoria.compaction.store import MemoryRecordStore
from memoria.compaction.summarizer import generate_memory
from memoria.compaction.transcript import render_transcript
from memoria.compaction.trigger import compaction_cutoff
from memoria.compaction.types import MemoryConfig, MemoryRecord, Message, SessionSnapshot
from memoria.providers.base import LLMProvider


def compaction_split(tail: list[Message], keep: int) -> int:
    """
    Number of leading tail messages to compact.

    The cutoff is a timestamp, so the split never separates two messages
    with the same created_at: the boundary moves back until the last
    compacted message is strictly older than the first retained one.

    Args:
        tail: Uncompacted messages, oldest first.
        keep: Messages to keep verbatim.

    Returns:
        Split index; 0 means nothing can be compacted.
    """
    split = max(len(tail) - keep, 0)
    while 0 < split < len(tail) and tail[split - 1].created_at >= tail[split].created_at:
        split -= 1
    return split


class Compactor:
    """
    Replaces the oldest uncompacted messages of a session with one summary.

    Everything except the last `recent_messages_count` messages after the
    current cutoff is compacted. The cutoff comes from persisted records
    only, so a failed attempt leaves nothing behind and the next attempt
    starts over from the same state.

    Runs at most once at a time per session.
    """

    def __init__(
        self,
        messages: MessageSource,
        participants: ParticipantDirectory,
        store: MemoryRecordStore,
        provider: LLMProvider,
        decoder: BodyDecoder | None = None,
        bookkeeper: SessionBookkeeper | None = None,
        config: MemoryConfig | None = None,
        locks: SessionLocks | None = None,
        estimator: Callable[[str], int] | None = None,
    ):
        self.messages = messages
        self.participants = participants
        self.store = store
        self.provider = provider
        self.decoder = decoder or PlainBodyDecoder()
        self.bookkeeper = bookkeeper
        self.config = config or MemoryConfig()
        self.locks = locks or SessionLocks()
        self.estimate = estimator or get_estimator(
            self.config.estimator, self.config.chars_per_token
        )

    async def compact(self, session_id: str) -> bool:
        """
        Compact a session if it has history beyond the recent window.

        Args:
            session_id: Session to compact.

        Returns:
            True if a new record was written, False if there was nothing to do.

        Raises:
            MemorySynthesisError: If the summary could not be generated.
            PersistenceError: If a store failed.
        """
        async with self.locks.hold(session_id):
            return await self._compact_locked(session_id)

    async def _compact_locked(self, session_id: str) -> bool:
        records = self.store.list_all(session_id)
        cutoff = compaction_cutoff(records[-1] if records else None)
        tail = self.messages.find_messages_after(session_id, cutoff)

        keep = self.config.recent_messages_count
        if len(tail) <= keep:
            logger.debug(
                f"Not enough messages to compact in {session_id}: "
                f"{len(tail)} uncompacted, {keep} kept verbatim"
            )
            return False

        split = compaction_split(tail, keep)
        if split == 0:
            logger.debug(
                f"Nothing to compact in {session_id}: oldest uncompacted messages "
                f"share a timestamp with the recent window"
            )
            return False

        to_compact = tail[:split]

        logger.info(
            f"Starting memory compaction for {session_id}: "
            f"{len(to_compact)} messages, {len(records)} prior record(s)"
        )

        resolver = NameResolver(self._get_snapshot(session_id))
        transcript = render_transcript(to_compact, resolver, self.decoder)

        memory = await generate_memory(
            self.provider,
            transcript,
            [r.summary for r in records],
            self.config,
            estimator=self.estimate,
        )

        record = MemoryRecord(
            id=uuid.uuid4().hex,
            session_id=session_id,
            summary=memory.summary,
            key_events=tuple(memory.key_events),
            message_count=len(to_compact),
            start_message_id=to_compact[0].id,
            end_message_id=to_compact[-1].id,
            end_message_at=to_compact[-1].created_at,
        )
        self.store.append(session_id, record)

        logger.info(
            f"Memory compaction completed for {session_id}: record {record.id}, "
            f"{record.message_count} messages, {len(record.key_events)} key events, "
            f"summary {len(record.summary)} chars"
        )

        self._mark_updated(session_id, record.created_at)
        return True

    def _get_snapshot(self, session_id: str) -> SessionSnapshot:
        """Fetch participants; names fall back to generic labels on failure."""
        try:
            return self.participants.get_participants(session_id)
        except Exception as e:
            logger.warning(f"Participant lookup failed for {session_id}, using generic names: {e}")
            return SessionSnapshot(session_id=session_id)

    def _mark_updated(self, session_id: str, timestamp: datetime) -> None:
        if self.bookkeeper is None:
            return
        try:
            self.bookkeeper.mark_memory_updated(session_id, timestamp)
        except Exception as e:
            # The record is already committed
            logger.error(f"Failed to update memory bookkeeping for {session_id}: {e}")
