"""Memory service wiring the trigger, compactor and context assembler."""

from loguru import logger

from memoria.compaction.assembler import ContextAssembler
from memoria.compaction.compactor import Compactor
from memoria.compaction.errors import MemoryEngineError
from memoria.compaction.estimator import get_estimator
from memoria.compaction.interfaces import (
    BodyDecoder,
    MessageSource,
    ParticipantDirectory,
    PlainBodyDecoder,
    SessionBookkeeper,
)
from memoria.compaction.locks import SessionLocks
from memoria.compaction.store import MemoryRecordStore
from memoria.compaction.trigger import CompactionTrigger
from memoria.compaction.types import ContextTokenStats, MemoryConfig, MemoryRecord
from memoria.providers.base import LLMProvider


class MemoryService:
    """
    Service for managing conversation memory.

    Handles:
    - Deciding when a session's context needs compaction
    - Compacting old messages into immutable memory records
    - Building the generation context from records and recent messages

    Holds no per-session state besides the compaction locks, so one
    instance can serve every session.
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
    ):
        """
        Initialize the memory service.

        Args:
            messages: Message history of all sessions.
            participants: Participant snapshots for name resolution.
            store: Memory record store.
            provider: LLM provider used for summarization.
            decoder: Message body decoder (plain text by default).
            bookkeeper: Notified after each successful compaction.
            config: Engine configuration.
            locks: Per-session compaction locks; share one instance between
                services that compact the same sessions.
        """
        self.config = config or MemoryConfig()
        self.store = store
        decoder = decoder or PlainBodyDecoder()
        estimator = get_estimator(self.config.estimator, self.config.chars_per_token)

        self.trigger = CompactionTrigger(messages, store, self.config, estimator)
        self.compactor = Compactor(
            messages,
            participants,
            store,
            provider,
            decoder=decoder,
            bookkeeper=bookkeeper,
            config=self.config,
            locks=locks,
            estimator=estimator,
        )
        self.assembler = ContextAssembler(
            messages, participants, store, decoder=decoder, config=self.config
        )

    def token_stats(self, session_id: str) -> ContextTokenStats:
        """Token usage of a session as seen by the trigger."""
        return self.trigger.token_stats(session_id)

    def should_compact(self, session_id: str) -> bool:
        """Check if a session has reached its context budget."""
        return self.trigger.should_compact(session_id)

    async def compact(self, session_id: str) -> bool:
        """
        Compact a session unconditionally (subject to the recent window).

        Returns:
            True if a new record was written.

        Raises:
            MemoryEngineError: If synthesis or persistence failed.
        """
        return await self.compactor.compact(session_id)

    async def compact_if_needed(self, session_id: str) -> bool:
        """
        Run the trigger and compact when it fires.

        Meant to be called by a background worker after new messages.
        Failures are logged and reported as False; the next call retries.

        Returns:
            True if a new record was written.
        """
        try:
            if not self.trigger.should_compact(session_id):
                return False

            logger.info(f"Context limit reached for {session_id}, compacting memory")
            return await self.compactor.compact(session_id)
        except MemoryEngineError as e:
            logger.error(f"Memory compaction failed for {session_id}: {e}")
            return False

    def build_context(self, session_id: str, recent_limit: int | None = None) -> str:
        """Build the generation context for a session. Never raises."""
        return self.assembler.build_context(session_id, recent_limit)

    def get_records(self, session_id: str) -> list[MemoryRecord]:
        """All memory records of a session, oldest first."""
        return self.store.list_all(session_id)
