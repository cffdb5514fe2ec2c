"""Decides when a session needs compaction."""

from datetime import datetime
from typing import Callable

from loguru import logger

from memoria.compaction.estimator import get_estimator
from memoria.compaction.interfaces import MessageSource
from memoria.compaction.store import MemoryRecordStore
from memoria.compaction.types import ContextTokenStats, MemoryConfig, MemoryRecord


def compaction_cutoff(latest: MemoryRecord | None) -> datetime | None:
    """
    Timestamp separating compacted history from the uncompacted tail.

    Args:
        latest: Most recent memory record of the session, if any.

    Returns:
        Created-at of the last compacted message, or None (session start).
    """
    return latest.end_message_at if latest is not None else None


class CompactionTrigger:
    """
    Checks a session's token usage against the context budget.

    Compaction is due when summaries plus the uncompacted tail reach
    `max_context_tokens` and the tail is longer than the recent window.
    """

    def __init__(
        self,
        messages: MessageSource,
        store: MemoryRecordStore,
        config: MemoryConfig | None = None,
        estimator: Callable[[str], int] | None = None,
    ):
        self.messages = messages
        self.store = store
        self.config = config or MemoryConfig()
        self.estimate = estimator or get_estimator(
            self.config.estimator, self.config.chars_per_token
        )

    def token_stats(self, session_id: str) -> ContextTokenStats:
        """
        Compute token usage of a session.

        Args:
            session_id: Session to inspect.

        Returns:
            Summary tokens, tail tokens and tail length.
        """
        records = self.store.list_all(session_id)
        cutoff = compaction_cutoff(records[-1] if records else None)
        tail = self.messages.find_messages_after(session_id, cutoff)

        compressed_tokens = sum(self.estimate(r.summary) for r in records)
        recent_tokens = sum(self.estimate(m.body) for m in tail)

        return ContextTokenStats(
            compressed_tokens=compressed_tokens,
            recent_messages_tokens=recent_tokens,
            total_tokens=compressed_tokens + recent_tokens,
            recent_message_count=len(tail),
        )

    def should_compact(self, session_id: str) -> bool:
        """
        Check if compaction should be triggered.

        Args:
            session_id: Session to inspect.

        Returns:
            True if compaction is needed.
        """
        stats = self.token_stats(session_id)

        logger.debug(
            f"Context token stats for {session_id}: "
            f"compressed={stats.compressed_tokens} recent={stats.recent_messages_tokens} "
            f"total={stats.total_tokens}/{self.config.max_context_tokens} "
            f"tail={stats.recent_message_count}"
        )

        return (
            stats.total_tokens >= self.config.max_context_tokens
            and stats.recent_message_count > self.config.recent_messages_count
        )
