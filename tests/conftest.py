"""Shared fakes and fixtures for memory engine tests."""

import asyncio
import json
from datetime import datetime, timedelta, timezone
from typing import Any, Callable

import pytest

from memoria.compaction.errors import DecodeError, PersistenceError
from memoria.compaction.interfaces import (
    BodyDecoder,
    MessageSource,
    ParticipantDirectory,
    SessionBookkeeper,
)
from memoria.compaction.store import InMemoryMemoryStore
from memoria.compaction.types import (
    MemoryConfig,
    Message,
    Participant,
    SenderKind,
    SessionSnapshot,
)
from memoria.providers.base import LLMProvider, LLMResponse

BASE_TIME = datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc)


# ── Fakes ───────────────────────────────────────────────────────────


class FakeMessageSource(MessageSource):
    """Messages in memory, one second apart."""

    def __init__(self):
        self.messages: dict[str, list[Message]] = {}
        self.fail = False

    def add(
        self,
        session_id: str,
        body: str = "hello",
        sender_id: str = "u1",
        sender_kind: SenderKind = "user",
        created_at: datetime | None = None,
    ) -> Message:
        items = self.messages.setdefault(session_id, [])
        msg = Message(
            id=f"{session_id}-m{len(items) + 1}",
            session_id=session_id,
            sender_id=sender_id,
            sender_kind=sender_kind,
            body=body,
            created_at=created_at or BASE_TIME + timedelta(seconds=len(items)),
        )
        items.append(msg)
        return msg

    def add_many(self, session_id: str, count: int, body: str = "hello") -> list[Message]:
        return [self.add(session_id, body=f"{body} {i + 1}") for i in range(count)]

    def find_messages_after(self, session_id: str, cutoff: datetime | None) -> list[Message]:
        if self.fail:
            raise ConnectionError("message store unreachable")
        items = self.messages.get(session_id, [])
        return [m for m in items if cutoff is None or m.created_at > cutoff]


class FakeDirectory(ParticipantDirectory):
    def __init__(self):
        self.participants: dict[str, list[Participant]] = {}
        self.fail = False

    def get_participants(self, session_id: str) -> SessionSnapshot:
        if self.fail:
            raise ConnectionError("participant lookup failed")
        return SessionSnapshot(
            session_id=session_id,
            participants=tuple(self.participants.get(session_id, [])),
        )


class FakeBookkeeper(SessionBookkeeper):
    def __init__(self):
        self.calls: list[tuple[str, datetime]] = []

    def mark_memory_updated(self, session_id: str, timestamp: datetime) -> None:
        self.calls.append((session_id, timestamp))


class SelectiveDecoder(BodyDecoder):
    """Fails on a fixed set of bodies, upper-cases the rest."""

    def __init__(self, broken: set[str] | None = None):
        self.broken = broken or set()

    def decode(self, body: str) -> str:
        if body in self.broken:
            raise DecodeError(f"cannot decode {body!r}")
        return body.upper()


class ScriptedProvider(LLMProvider):
    """Returns queued responses and records every call."""

    def __init__(self, responses: list[Any] | None = None, delay: float = 0.0):
        super().__init__()
        self.responses = list(responses or [])
        self.delay = delay
        self.calls: list[dict[str, Any]] = []

    async def chat(
        self,
        messages: list[dict[str, Any]],
        model: str | None = None,
        max_tokens: int = 4096,
        temperature: float = 0.7,
        json_mode: bool = False,
    ) -> LLMResponse:
        self.calls.append({
            "system": messages[0]["content"],
            "user": messages[1]["content"],
            "model": model,
            "max_tokens": max_tokens,
            "temperature": temperature,
            "json_mode": json_mode,
        })
        if self.delay:
            await asyncio.sleep(self.delay)

        response = self.responses.pop(0) if self.responses else memory_json()
        if isinstance(response, Exception):
            raise response
        if isinstance(response, LLMResponse):
            return response
        return LLMResponse(content=response)

    def get_default_model(self) -> str:
        return "fake/model"


class BrokenStore(InMemoryMemoryStore):
    def __init__(self, fail_list: bool = False, fail_append: bool = False):
        super().__init__()
        self.fail_list = fail_list
        self.fail_append = fail_append

    def list_all(self, session_id):
        if self.fail_list:
            raise PersistenceError("memory store unreachable")
        return super().list_all(session_id)

    def append(self, session_id, record):
        if self.fail_append:
            raise PersistenceError("write rejected")
        return super().append(session_id, record)


def memory_json(summary: str = "They met at the tavern.", events: int = 1) -> str:
    return json.dumps({
        "summary": summary,
        "keyEvents": [
            {
                "timestamp": "2025-01-01T12:00:00Z",
                "description": f"Event {i + 1} happened.",
                "participants": ["Alice"],
                "importance": "high",
            }
            for i in range(events)
        ],
    })


# ── Fixtures ────────────────────────────────────────────────────────


@pytest.fixture
def messages() -> FakeMessageSource:
    return FakeMessageSource()


@pytest.fixture
def directory() -> FakeDirectory:
    return FakeDirectory()


@pytest.fixture
def store() -> InMemoryMemoryStore:
    return InMemoryMemoryStore()


@pytest.fixture
def bookkeeper() -> FakeBookkeeper:
    return FakeBookkeeper()


@pytest.fixture
def provider() -> ScriptedProvider:
    return ScriptedProvider()


@pytest.fixture
def config() -> MemoryConfig:
    return MemoryConfig(max_context_tokens=100, recent_messages_count=10)


@pytest.fixture
def memory_response() -> Callable[..., str]:
    return memory_json


@pytest.fixture
def broken_store() -> Callable[..., BrokenStore]:
    return BrokenStore


@pytest.fixture
def decoder_factory() -> Callable[..., SelectiveDecoder]:
    return SelectiveDecoder


@pytest.fixture
def provider_factory() -> Callable[..., ScriptedProvider]:
    return ScriptedProvider
