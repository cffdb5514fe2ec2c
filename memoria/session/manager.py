"""Session management for conversation history."""

import bisect
import json
import os
import secrets
import uuid
from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from loguru import logger

from memoria.compaction.interfaces import (
    MessageSource,
    ParticipantDirectory,
    SessionBookkeeper,
)
from memoria.compaction.types import (
    Message,
    Participant,
    SenderKind,
    SessionSnapshot,
    parse_timestamp,
)
from memoria.utils.helpers import ensure_dir, key_filename

# Maximum number of sessions to keep in memory cache (LRU eviction)
_MAX_CACHED_SESSIONS = 200


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class Session:
    """
    A conversation session.

    Stores participants and messages in JSONL format for easy reading and persistence.
    """

    key: str
    messages: list[Message] = field(default_factory=list)
    participants: list[Participant] = field(default_factory=list)
    created_at: datetime = field(default_factory=_now)
    updated_at: datetime = field(default_factory=_now)
    metadata: dict[str, Any] = field(default_factory=dict)

    def add_message(
        self,
        sender_id: str,
        sender_kind: SenderKind,
        body: str,
        created_at: datetime | None = None,
        message_id: str | None = None,
    ) -> Message:
        """Add a message to the session."""
        msg = Message(
            id=message_id or uuid.uuid4().hex,
            session_id=self.key,
            sender_id=sender_id,
            sender_kind=sender_kind,
            body=body,
            created_at=created_at or _now(),
        )
        # Keep chronological order even for back-dated messages
        bisect.insort(self.messages, msg, key=lambda m: m.created_at)
        self.updated_at = _now()
        return msg

    @property
    def memory_last_updated_at(self) -> datetime | None:
        value = self.metadata.get("memory_last_updated_at")
        return parse_timestamp(value) if value else None


class SessionManager(MessageSource, ParticipantDirectory, SessionBookkeeper):
    """
    Manages conversation sessions.

    Sessions are stored as JSONL files in the sessions directory.
    Uses LRU cache to limit memory usage.
    """

    def __init__(self, sessions_dir: Path):
        self.sessions_dir = ensure_dir(Path(sessions_dir).expanduser())
        self._cache: OrderedDict[str, Session] = OrderedDict()

    def _get_session_path(self, key: str) -> Path:
        """Get the file path for a session."""
        return self.sessions_dir / f"{key_filename(key)}.jsonl"

    def get_or_create(self, key: str) -> Session:
        """
        Get an existing session or create a new one.

        Args:
            key: Session id.

        Returns:
            The session.
        """
        # Check cache (and move to end for LRU)
        if key in self._cache:
            self._cache.move_to_end(key)
            return self._cache[key]

        # Try to load from disk
        session = self._load(key)
        if session is None:
            session = Session(key=key)

        # Add to cache with LRU eviction
        self._cache[key] = session
        if len(self._cache) > _MAX_CACHED_SESSIONS:
            self._cache.popitem(last=False)  # Remove oldest

        return session

    def _load(self, key: str) -> Session | None:
        """Load a session from disk, skipping corrupt lines."""
        path = self._get_session_path(key)

        if not path.exists():
            return None

        try:
            messages: list[Message] = []
            participants: list[Participant] = []
            metadata: dict[str, Any] = {}
            created_at = None
            corrupt_lines = 0
            foreign_lines = 0

            with open(path, encoding="utf-8") as f:
                for line_num, line in enumerate(f, 1):
                    line = line.strip()
                    if not line:
                        continue

                    try:
                        data = json.loads(line)
                        if data.get("_type") == "metadata":
                            metadata = data.get("metadata", {})
                            participants = [
                                Participant.from_dict(p) for p in data.get("participants", [])
                            ]
                            if data.get("created_at"):
                                created_at = parse_timestamp(data["created_at"])
                        else:
                            msg = Message.from_dict(data)
                            if msg.session_id != key:
                                foreign_lines += 1
                                continue
                            messages.append(msg)
                    except (json.JSONDecodeError, KeyError, TypeError, ValueError):
                        corrupt_lines += 1
                        if corrupt_lines <= 3:
                            logger.warning(f"Skipped corrupt line {line_num} in session {key}")
                        if corrupt_lines > 50:
                            logger.error(f"Too many corrupt lines in session {key}, aborting load")
                            return None

            if corrupt_lines:
                logger.warning(f"Session {key}: loaded with {corrupt_lines} corrupt line(s) skipped")
            if foreign_lines:
                logger.warning(f"Session {key}: skipped {foreign_lines} message(s) of other sessions")

            messages.sort(key=lambda m: m.created_at)
            return Session(
                key=key,
                messages=messages,
                participants=participants,
                created_at=created_at or _now(),
                metadata=metadata,
            )
        except OSError as e:
            logger.warning(f"Failed to load session {key}: {e}")
            return None

    def save(self, session: Session) -> None:
        """Save a session to disk atomically."""
        path = self._get_session_path(session.key)
        path.parent.mkdir(parents=True, exist_ok=True)

        # Write to temp file first, then atomic rename
        tmp_path = path.with_suffix(f".tmp.{secrets.token_hex(4)}")
        try:
            with open(tmp_path, "w", encoding="utf-8", newline="\n") as f:
                metadata_line = {
                    "_type": "metadata",
                    "key": session.key,
                    "created_at": session.created_at.isoformat(),
                    "updated_at": session.updated_at.isoformat(),
                    "participants": [p.to_dict() for p in session.participants],
                    "metadata": session.metadata,
                }
                f.write(json.dumps(metadata_line, ensure_ascii=False) + "\n")

                for msg in session.messages:
                    f.write(json.dumps(msg.to_dict(), ensure_ascii=False) + "\n")

            os.replace(str(tmp_path), str(path))
        except Exception:
            # Clean up temp file on failure
            try:
                tmp_path.unlink(missing_ok=True)
            except OSError:
                pass
            raise

        # Update cache
        self._cache[session.key] = session
        self._cache.move_to_end(session.key)

    def add_message(
        self,
        key: str,
        sender_id: str,
        sender_kind: SenderKind,
        body: str,
        created_at: datetime | None = None,
    ) -> Message:
        """Append a message to a session and persist it."""
        session = self.get_or_create(key)
        msg = session.add_message(sender_id, sender_kind, body, created_at)
        self.save(session)
        return msg

    def set_participants(self, key: str, participants: list[Participant]) -> None:
        """Replace a session's participant list and persist it."""
        session = self.get_or_create(key)
        session.participants = list(participants)
        session.updated_at = _now()
        self.save(session)

    def delete(self, key: str) -> bool:
        """
        Delete a session.

        Args:
            key: Session id.

        Returns:
            True if deleted, False if not found.
        """
        self._cache.pop(key, None)

        path = self._get_session_path(key)
        if path.exists():
            path.unlink()
            return True
        return False

    def list_sessions(self) -> list[dict[str, Any]]:
        """
        List all sessions.

        Returns:
            List of session info dicts, most recently updated first.
        """
        sessions = []

        for path in self.sessions_dir.glob("*.jsonl"):
            try:
                # Read just the metadata line
                with open(path, encoding="utf-8") as f:
                    first_line = f.readline().strip()
                    if first_line:
                        data = json.loads(first_line)
                        if data.get("_type") == "metadata":
                            sessions.append({
                                "key": data.get("key", path.stem),
                                "created_at": data.get("created_at"),
                                "updated_at": data.get("updated_at"),
                                "path": str(path),
                            })
            except (OSError, json.JSONDecodeError) as e:
                logger.warning(f"Skipping unreadable session file {path.name}: {e}")

        return sorted(sessions, key=lambda x: x.get("updated_at") or "", reverse=True)

    # -- Memory engine collaborators ----------------------------------------

    def find_messages_after(self, session_id: str, cutoff: datetime | None) -> list[Message]:
        messages = self.get_or_create(session_id).messages
        if cutoff is None:
            return list(messages)
        return [m for m in messages if m.created_at > cutoff]

    def get_participants(self, session_id: str) -> SessionSnapshot:
        session = self.get_or_create(session_id)
        return SessionSnapshot(session_id=session_id, participants=tuple(session.participants))

    def mark_memory_updated(self, session_id: str, timestamp: datetime) -> None:
        session = self.get_or_create(session_id)
        session.metadata["memory_last_updated_at"] = timestamp.isoformat()
        session.updated_at = _now()
        self.save(session)
