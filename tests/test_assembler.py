"""Tests for context assembly."""

import pytest

from memoria.compaction.assembler import ContextAssembler, render_memory_history
from memoria.compaction.compactor import Compactor
from memoria.compaction.types import (
    DECODE_FAILED_PLACEHOLDER,
    HISTORY_END_MARKER,
    HISTORY_START_MARKER,
    RECENT_START_MARKER,
    KeyEvent,
    MemoryConfig,
    MemoryRecord,
    Participant,
)


def _assembler(messages, directory, store, config=None, **kwargs) -> ContextAssembler:
    return ContextAssembler(messages, directory, store, config=config or MemoryConfig(), **kwargs)


# ── History rendering ───────────────────────────────────────────────


class TestRenderMemoryHistory:
    def test_empty(self):
        assert render_memory_history([]) == ""

    def test_format(self, messages):
        msg = messages.add("s1")
        record = MemoryRecord(
            id="r1",
            session_id="s1",
            summary="They met at the tavern.",
            key_events=(
                KeyEvent(description="Alice arrived.", importance="high"),
                KeyEvent(description="Bob ordered ale.", importance="low"),
            ),
            message_count=25,
            start_message_id=msg.id,
            end_message_id=msg.id,
            end_message_at=msg.created_at,
        )

        assert render_memory_history([record]) == (
            f"{HISTORY_START_MARKER}\n\n"
            "=== Summary 1 (25 messages) ===\n"
            "They met at the tavern.\n\n"
            "Key Events:\n"
            "- Alice arrived. (high)\n"
            "- Bob ordered ale. (low)\n\n"
            f"{HISTORY_END_MARKER}\n\n"
        )

    def test_record_without_events(self, messages):
        msg = messages.add("s1")
        record = MemoryRecord(
            id="r1", session_id="s1", summary="Quiet.", key_events=(), message_count=3,
            start_message_id=msg.id, end_message_id=msg.id, end_message_at=msg.created_at,
        )
        assert "Key Events" not in render_memory_history([record])


# ── Context building ────────────────────────────────────────────────


class TestBuildContext:
    def test_empty_session(self, messages, directory, store):
        assert _assembler(messages, directory, store).build_context("s1") == ""

    def test_recent_only(self, messages, directory, store):
        messages.add_many("s1", 3)

        context = _assembler(messages, directory, store).build_context("s1")

        assert context == (
            f"{RECENT_START_MARKER}\n\n"
            "User: hello 1\n"
            "User: hello 2\n"
            "User: hello 3\n"
        )

    def test_limits_to_recent_window(self, messages, directory, store):
        messages.add_many("s1", 15)

        context = _assembler(messages, directory, store).build_context("s1")

        assert "hello 5\n" not in context
        assert "User: hello 6\n" in context
        assert context.endswith("User: hello 15\n")

    def test_explicit_limit(self, messages, directory, store):
        messages.add_many("s1", 15)
        context = _assembler(messages, directory, store).build_context("s1", recent_limit=2)
        assert context == f"{RECENT_START_MARKER}\n\nUser: hello 14\nUser: hello 15\n"

    def test_zero_limit(self, messages, directory, store):
        messages.add_many("s1", 5)
        assert _assembler(messages, directory, store).build_context("s1", recent_limit=0) == ""

    def test_resolves_names(self, messages, directory, store):
        directory.participants["s1"] = [
            Participant("p1", user_id="u1", display_name="Alice"),
            Participant("p2", representing_character="Frodo", acting_character="Gandalf"),
        ]
        messages.add("s1", body="Hi")
        messages.add("s1", body="Greetings", sender_id="p2", sender_kind="character")
        messages.add("s1", body="Welcome", sender_id="sys", sender_kind="system")

        context = _assembler(messages, directory, store).build_context("s1")

        assert "Alice: Hi\n" in context
        assert "Frodo: Greetings\n" in context
        assert "System: Welcome\n" in context

    def test_decode_failure_is_isolated(self, messages, directory, store, decoder_factory):
        messages.add_many("s1", 10)
        assembler = _assembler(messages, directory, store, decoder=decoder_factory({"hello 5"}))

        context = assembler.build_context("s1")

        lines = context.splitlines()[2:]
        assert len(lines) == 10
        assert lines[4] == f"User: {DECODE_FAILED_PLACEHOLDER}"
        assert lines[3] == "User: HELLO 4"
        assert lines[5] == "User: HELLO 6"


# ── With memory records ─────────────────────────────────────────────


class TestBuildContextWithMemory:
    @pytest.mark.asyncio
    async def test_summaries_then_recent(self, messages, directory, store, provider, config):
        messages.add_many("s1", 35)
        await Compactor(messages, directory, store, provider, config=config).compact("s1")

        context = _assembler(messages, directory, store, config).build_context("s1")

        assert context.startswith(HISTORY_START_MARKER)
        assert "=== Summary 1 (25 messages) ===\nThey met at the tavern.\n" in context
        assert "- Event 1 happened. (high)\n" in context
        assert context.index(HISTORY_END_MARKER) < context.index(RECENT_START_MARKER)

        recent = context.split(f"{RECENT_START_MARKER}\n\n", 1)[1]
        assert recent.splitlines() == [f"User: hello {i}" for i in range(26, 36)]

    @pytest.mark.asyncio
    async def test_compacted_messages_not_repeated(self, messages, directory, store, provider, config):
        messages.add_many("s1", 35)
        await Compactor(messages, directory, store, provider, config=config).compact("s1")

        context = _assembler(messages, directory, store, config).build_context("s1", recent_limit=50)

        assert "User: hello 25\n" not in context
        assert "User: hello 26\n" in context

    @pytest.mark.asyncio
    async def test_history_without_new_messages(self, messages, directory, store, provider, config):
        messages.add_many("s1", 11)
        await Compactor(messages, directory, store, provider, config=MemoryConfig(recent_messages_count=0)).compact("s1")

        context = _assembler(messages, directory, store, config).build_context("s1")

        assert context.endswith(f"{HISTORY_END_MARKER}\n\n")
        assert RECENT_START_MARKER not in context


# ── Fallback ────────────────────────────────────────────────────────


class TestFallback:
    def test_store_failure(self, messages, directory, broken_store):
        messages.add_many("s1", 12)
        assembler = _assembler(messages, directory, broken_store(fail_list=True))

        context = assembler.build_context("s1")

        assert HISTORY_START_MARKER not in context
        assert RECENT_START_MARKER not in context
        assert context.splitlines() == [f"User: hello {i}" for i in range(3, 13)]

    def test_participant_failure_uses_generic_labels(self, messages, directory, store):
        directory.participants["s1"] = [Participant("p1", user_id="u1", display_name="Alice")]
        directory.fail = True
        messages.add("s1", body="Hi")
        messages.add("s1", body="Hm", sender_id="p2", sender_kind="assistant")

        context = _assembler(messages, directory, store).build_context("s1")

        assert context == "User: Hi\nCharacter: Hm"

    def test_everything_down(self, messages, directory, broken_store):
        messages.add_many("s1", 3)
        messages.fail = True

        assert _assembler(messages, directory, broken_store(fail_list=True)).build_context("s1") == ""
