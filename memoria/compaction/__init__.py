"""Compaction system for conversation memory."""

from memoria.compaction.assembler import ContextAssembler, render_memory_history
from memoria.compaction.compactor import Compactor
from memoria.compaction.errors import (
    DecodeError,
    MemoryEngineError,
    MemorySynthesisError,
    PersistenceError,
)
from memoria.compaction.estimator import estimate_tokens, get_estimator
from memoria.compaction.interfaces import (
    BodyDecoder,
    MessageSource,
    ParticipantDirectory,
    PlainBodyDecoder,
    SessionBookkeeper,
)
from memoria.compaction.locks import SessionLocks
from memoria.compaction.names import NameResolver, resolve_display_name
from memoria.compaction.service import MemoryService
from memoria.compaction.store import (
    InMemoryMemoryStore,
    JsonlMemoryStore,
    MemoryRecordStore,
)
from memoria.compaction.summarizer import parse_generated_memory
from memoria.compaction.trigger import CompactionTrigger
from memoria.compaction.types import (
    ContextTokenStats,
    GeneratedMemory,
    KeyEvent,
    MemoryConfig,
    MemoryRecord,
    Message,
    Participant,
    SessionSnapshot,
)

__all__ = [
    # Estimator
    "estimate_tokens",
    "get_estimator",
    # Names
    "NameResolver",
    "resolve_display_name",
    # Store
    "MemoryRecordStore",
    "InMemoryMemoryStore",
    "JsonlMemoryStore",
    # Engine
    "CompactionTrigger",
    "Compactor",
    "ContextAssembler",
    "render_memory_history",
    "parse_generated_memory",
    "SessionLocks",
    # Service
    "MemoryService",
    # Collaborators
    "MessageSource",
    "ParticipantDirectory",
    "BodyDecoder",
    "PlainBodyDecoder",
    "SessionBookkeeper",
    # Errors
    "MemoryEngineError",
    "PersistenceError",
    "MemorySynthesisError",
    "DecodeError",
    # Types
    "MemoryConfig",
    "Message",
    "Participant",
    "SessionSnapshot",
    "KeyEvent",
    "GeneratedMemory",
    "MemoryRecord",
    "ContextTokenStats",
]
