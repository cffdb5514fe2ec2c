"""Assembly of the generation context: summaries plus recent messages."""

from loguru import logger

from memoria.compaction.interfaces import (
    BodyDecoder,
    MessageSource,
    ParticipantDirectory,
    PlainBodyDecoder,
)
from memoria.compaction.names import NameResolver
from memoria.compaction.store import MemoryRecordStore
from memoria.compaction.transcript import render_chat_lines
from memoria.compaction.trigger import compaction_cutoff
from memoria.compaction.types import (
    HISTORY_END_MARKER,
    HISTORY_START_MARKER,
    RECENT_START_MARKER,
    MemoryConfig,
    MemoryRecord,
)


def render_memory_history(records: list[MemoryRecord]) -> str:
    """
    Render memory records as one marked block.

    Args:
        records: Records in chronological order.

    Returns:
        The summarized-history block, or "" when there are no records.
    """
    if not records:
        return ""

    parts = [f"{HISTORY_START_MARKER}\n\n"]
    for index, record in enumerate(records, 1):
        parts.append(f"=== Summary {index} ({record.message_count} messages) ===\n")
        parts.append(f"{record.summary}\n\n")

        if record.key_events:
            parts.append("Key Events:\n")
            for event in record.key_events:
                parts.append(f"- {event.description} ({event.importance})\n")
            parts.append("\n")

    parts.append(f"{HISTORY_END_MARKER}\n\n")
    return "".join(parts)


class ContextAssembler:
    """
    Builds the text context handed to response generation.

    A pure read path: safe to run concurrently with itself and with an
    in-flight compaction. It never raises; when the full path fails it
    degrades to the most recent messages alone.
    """

    def __init__(
        self,
        messages: MessageSource,
        participants: ParticipantDirectory,
        store: MemoryRecordStore,
        decoder: BodyDecoder | None = None,
        config: MemoryConfig | None = None,
    ):
        self.messages = messages
        self.participants = participants
        self.store = store
        self.decoder = decoder or PlainBodyDecoder()
        self.config = config or MemoryConfig()

    def build_context(self, session_id: str, recent_limit: int | None = None) -> str:
        """
        Build the context for a session.

        Args:
            session_id: Session to build context for.
            recent_limit: Recent messages to include verbatim; defaults to
                `recent_messages_count`.

        Returns:
            Summarized history followed by recent messages.
        """
        limit = self.config.recent_messages_count if recent_limit is None else recent_limit

        try:
            return self._build(session_id, limit)
        except Exception as e:
            logger.error(f"Error building context with memory for {session_id}: {e}")
            return self._build_fallback(session_id, limit)

    def _build(self, session_id: str, limit: int) -> str:
        records = self.store.list_all(session_id)
        cutoff = compaction_cutoff(records[-1] if records else None)
        recent = self.messages.find_recent_messages(session_id, limit, cutoff)

        context = render_memory_history(records)

        if recent:
            resolver = NameResolver(self.participants.get_participants(session_id))
            lines = render_chat_lines(recent, self.decoder, resolver)
            context += f"{RECENT_START_MARKER}\n\n" + "".join(f"{line}\n" for line in lines)

        return context

    def _build_fallback(self, session_id: str, limit: int) -> str:
        """Recent messages only, labelled by sender kind."""
        try:
            recent = self.messages.find_recent_messages(session_id, limit)
        except Exception as e:
            logger.error(f"Fallback context failed for {session_id}: {e}")
            return ""
        return "\n".join(render_chat_lines(recent, self.decoder))
