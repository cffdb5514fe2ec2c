"""Append-only persistence of memory records."""

import json
import os
import threading
from abc import ABC, abstractmethod
from collections import defaultdict
from pathlib import Path

from filelock import FileLock
from loguru import logger

from memoria.compaction.errors import PersistenceError
from memoria.compaction.types import MemoryRecord
from memoria.utils.helpers import ensure_dir, key_filename

# Stop loading a session's records after this many unreadable lines
_MAX_CORRUPT_LINES = 50


class MemoryRecordStore(ABC):
    """
    Store for memory records.

    The only writer of records. There is no update or delete: records are
    immutable once appended.
    """

    @abstractmethod
    def append(self, session_id: str, record: MemoryRecord) -> MemoryRecord:
        """
        Persist a new record.

        Raises:
            PersistenceError: On storage failure, or when the record does not
                extend the session's record chain.
        """
        pass

    @abstractmethod
    def list_all(self, session_id: str) -> list[MemoryRecord]:
        """Get all records of a session, oldest first."""
        pass

    def latest(self, session_id: str) -> MemoryRecord | None:
        """Get the most recent record of a session."""
        records = self.list_all(session_id)
        return records[-1] if records else None


def check_chain(
    session_id: str,
    record: MemoryRecord,
    latest: MemoryRecord | None,
) -> None:
    """
    Reject a record that would break the session's record chain.

    Raises:
        PersistenceError: If the record belongs to another session or its
            range does not start after the latest record's range.
    """
    if record.session_id != session_id:
        raise PersistenceError(
            f"Record {record.id} belongs to session {record.session_id}, not {session_id}"
        )
    if record.message_count <= 0:
        raise PersistenceError(f"Record {record.id} compacts no messages")
    if latest is not None and record.end_message_at <= latest.end_message_at:
        raise PersistenceError(
            f"Record {record.id} overlaps record {latest.id} in session {session_id}"
        )


class InMemoryMemoryStore(MemoryRecordStore):
    """Process-local record store."""

    def __init__(self):
        self._records: dict[str, list[MemoryRecord]] = defaultdict(list)
        self._lock = threading.Lock()

    def append(self, session_id: str, record: MemoryRecord) -> MemoryRecord:
        with self._lock:
            records = self._records[session_id]
            check_chain(session_id, record, records[-1] if records else None)
            records.append(record)
            records.sort(key=lambda r: r.created_at)
        return record

    def list_all(self, session_id: str) -> list[MemoryRecord]:
        with self._lock:
            return list(self._records.get(session_id, []))


class JsonlMemoryStore(MemoryRecordStore):
    """
    File-backed record store.

    One JSONL file per session; each line is one record. Writes are
    appends under a file lock, so several processes can share a directory.
    """

    def __init__(self, root: Path, lock_timeout: float = 10.0):
        self.root = ensure_dir(Path(root).expanduser())
        self.lock_timeout = lock_timeout

    def _get_path(self, session_id: str) -> Path:
        return self.root / f"{key_filename(session_id)}.jsonl"

    def _get_lock(self, session_id: str) -> FileLock:
        return FileLock(self._get_path(session_id).with_suffix(".lock"), timeout=self.lock_timeout)

    def append(self, session_id: str, record: MemoryRecord) -> MemoryRecord:
        path = self._get_path(session_id)
        try:
            with self._get_lock(session_id):
                records = self._read_records(session_id, path)
                check_chain(session_id, record, records[-1] if records else None)

                line = json.dumps(record.to_dict(), ensure_ascii=False)
                with open(path, "a", encoding="utf-8", newline="\n") as f:
                    f.write(line + "\n")
                    f.flush()
                    os.fsync(f.fileno())
        except OSError as e:
            raise PersistenceError(f"Failed to append memory record for {session_id}: {e}") from e

        logger.debug(f"Appended memory record {record.id} to {path.name}")
        return record

    def list_all(self, session_id: str) -> list[MemoryRecord]:
        try:
            with self._get_lock(session_id):
                return self._read_records(session_id, self._get_path(session_id))
        except OSError as e:
            raise PersistenceError(f"Failed to read memory records for {session_id}: {e}") from e

    def _read_records(self, session_id: str, path: Path) -> list[MemoryRecord]:
        """Load the session's records, skipping unreadable lines and other sessions' records."""
        if not path.exists():
            return []

        records: list[MemoryRecord] = []
        corrupt_lines = 0
        foreign_lines = 0

        with open(path, encoding="utf-8") as f:
            for line_num, line in enumerate(f, 1):
                line = line.strip()
                if not line:
                    continue

                try:
                    record = MemoryRecord.from_dict(json.loads(line))
                except (json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
                    corrupt_lines += 1
                    if corrupt_lines <= 3:
                        logger.warning(
                            f"Skipped corrupt memory record at line {line_num} "
                            f"for session {session_id}: {e}"
                        )
                    if corrupt_lines > _MAX_CORRUPT_LINES:
                        raise PersistenceError(
                            f"Too many corrupt memory records for session {session_id}"
                        )
                    continue

                if record.session_id != session_id:
                    foreign_lines += 1
                    continue
                records.append(record)

        if corrupt_lines:
            logger.warning(
                f"Session {session_id}: loaded memory with {corrupt_lines} corrupt line(s) skipped"
            )
        if foreign_lines:
            logger.warning(
                f"Session {session_id}: skipped {foreign_lines} record(s) of other sessions in {path.name}"
            )

        records.sort(key=lambda r: r.created_at)
        return records
