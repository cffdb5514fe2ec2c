"""Types for the memory compaction engine."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

# Sender kinds: human user, acting character, assigned AI assistant, system
SenderKind = Literal["user", "character", "assistant", "system"]

Importance = Literal["high", "medium", "low"]

EstimatorName = Literal["chars", "cl100k"]


@dataclass
class MemoryConfig:
    """Thresholds and generation settings for the memory engine."""

    # Total context budget shared by summaries and the recent window
    max_context_tokens: int = 8000

    # Messages always kept verbatim, never compacted
    recent_messages_count: int = 10

    # Share of the budget reserved for compressed history
    compressed_share: float = 0.30

    max_key_events: int = 5

    estimator: EstimatorName = "chars"
    chars_per_token: int = 4

    # Generation call
    summary_model: str | None = None
    summary_temperature: float = 0.3
    summary_max_tokens: int = 2000
    generation_timeout_seconds: float = 60.0

    def __post_init__(self) -> None:
        if self.max_context_tokens <= 0:
            raise ValueError("max_context_tokens must be positive")
        if self.recent_messages_count < 0:
            raise ValueError("recent_messages_count must not be negative")
        if not 0 < self.compressed_share < 1:
            raise ValueError("compressed_share must be between 0 and 1")
        if self.chars_per_token <= 0:
            raise ValueError("chars_per_token must be positive")

    @property
    def max_compressed_tokens(self) -> int:
        """Token budget for one generated summary."""
        return int(self.max_context_tokens * self.compressed_share)


@dataclass(frozen=True)
class Message:
    """A chat message, read-only to the engine."""

    id: str
    session_id: str
    sender_id: str
    sender_kind: SenderKind
    body: str
    created_at: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "session_id": self.session_id,
            "sender_id": self.sender_id,
            "sender_kind": self.sender_kind,
            "body": self.body,
            "created_at": self.created_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Message":
        return cls(
            id=data["id"],
            session_id=data["session_id"],
            sender_id=data["sender_id"],
            sender_kind=data.get("sender_kind", "user"),
            body=data.get("body", ""),
            created_at=parse_timestamp(data["created_at"]),
        )


@dataclass(frozen=True)
class Participant:
    """
    A session participant.

    A participant either is a human user, or controls a character or an
    assistant. A user can also be attached to a character participant.
    """

    participant_id: str
    user_id: str | None = None
    display_name: str | None = None
    username: str | None = None
    representing_character: str | None = None
    acting_character: str | None = None
    assistant: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {k: v for k, v in self.__dict__.items() if v is not None}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Participant":
        return cls(
            participant_id=data["participant_id"],
            user_id=data.get("user_id"),
            display_name=data.get("display_name"),
            username=data.get("username"),
            representing_character=data.get("representing_character"),
            acting_character=data.get("acting_character"),
            assistant=data.get("assistant"),
        )


@dataclass(frozen=True)
class SessionSnapshot:
    """Read-only view of the participants of a session."""

    session_id: str
    participants: tuple[Participant, ...] = ()


class KeyEvent(BaseModel):
    """A notable moment extracted by the generation provider."""

    model_config = ConfigDict(frozen=True)

    timestamp: str = ""
    description: str = Field(min_length=1)
    participants: list[str] = Field(default_factory=list)
    importance: Importance = "medium"

    @field_validator("timestamp", mode="before")
    @classmethod
    def _coerce_timestamp(cls, value: Any) -> Any:
        if value is None:
            return ""
        if isinstance(value, (int, float)):
            return str(value)
        return value

    @field_validator("participants", mode="before")
    @classmethod
    def _coerce_participants(cls, value: Any) -> Any:
        if value is None:
            return []
        if isinstance(value, str):
            return [value]
        return value

    @field_validator("importance", mode="before")
    @classmethod
    def _normalize_importance(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().lower()
        return value


class GeneratedMemory(BaseModel):
    """Structured output of one summarization call."""

    model_config = ConfigDict(populate_by_name=True)

    summary: str = Field(min_length=1)
    key_events: list[KeyEvent] = Field(default_factory=list, alias="keyEvents")

    @field_validator("summary", mode="before")
    @classmethod
    def _strip_summary(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip()
        return value

    @field_validator("key_events", mode="before")
    @classmethod
    def _none_is_empty(cls, value: Any) -> Any:
        return [] if value is None else value


@dataclass(frozen=True)
class MemoryRecord:
    """
    One compaction result.

    Covers the messages in (previous end_message_at, end_message_at].
    Records are immutable once written.
    """

    id: str
    session_id: str
    summary: str
    key_events: tuple[KeyEvent, ...]
    message_count: int
    start_message_id: str
    end_message_id: str
    end_message_at: datetime
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "session_id": self.session_id,
            "summary": self.summary,
            "key_events": [e.model_dump() for e in self.key_events],
            "message_count": self.message_count,
            "start_message_id": self.start_message_id,
            "end_message_id": self.end_message_id,
            "end_message_at": self.end_message_at.isoformat(),
            "created_at": self.created_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "MemoryRecord":
        return cls(
            id=data["id"],
            session_id=data["session_id"],
            summary=data["summary"],
            key_events=tuple(KeyEvent.model_validate(e) for e in data.get("key_events", [])),
            message_count=int(data["message_count"]),
            start_message_id=data["start_message_id"],
            end_message_id=data["end_message_id"],
            end_message_at=parse_timestamp(data["end_message_at"]),
            created_at=parse_timestamp(data["created_at"]),
        )


@dataclass
class ContextTokenStats:
    """Token usage of a session as seen by the compaction trigger."""

    compressed_tokens: int
    recent_messages_tokens: int
    total_tokens: int
    recent_message_count: int


def parse_timestamp(value: str) -> datetime:
    """Parse an ISO timestamp; naive values are taken as UTC."""
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


# Labels used when a sender is not found in the session snapshot
GENERIC_SENDER_LABELS: dict[str, str] = {
    "user": "User",
    "character": "Character",
    "assistant": "Character",
    "system": "System",
}

DECODE_FAILED_PLACEHOLDER = "[Message could not be decoded]"

HISTORY_START_MARKER = "[= CONVERSATION HISTORY (SUMMARIZED) =]"
HISTORY_END_MARKER = "[= END OF SUMMARIZED HISTORY =]"
RECENT_START_MARKER = "[= RECENT MESSAGES (FULL CONTEXT) =]"
