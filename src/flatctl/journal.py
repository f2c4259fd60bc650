"""Append-only structured history log stored as JSON lines.

Each line is one entry: a JSON object mapping field names to strings, in
the style of a systemd journal record. Readers apply exact-match filters
and walk the entries newest first.
"""

import json
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator, Mapping

from flatctl.constants import (
    APP_NAME,
    JOURNAL_FIELD_COMM,
    JOURNAL_FIELD_MESSAGE_ID,
    JOURNAL_FIELD_TIMESTAMP,
    TRANSACTION_MESSAGE_ID,
)
from flatctl.errors import StorageError
from flatctl.time_utils import datetime_to_usec


class JournalEntry:
    """One read-only log record."""

    def __init__(self, fields: Mapping[str, str], line_number: int):
        self._fields = fields
        self.line_number = line_number

    def get(self, name: str) -> str | None:
        """Return the field value, or None when the entry lacks it."""
        return self._fields.get(name)


def _decode_line(raw: str, line_number: int, path: Path) -> dict[str, str]:
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as e:
        raise StorageError(f"Failed to get journal data (line {line_number} of {path}): {e}") from e

    if not isinstance(payload, dict):
        raise StorageError(f"Failed to get journal data (line {line_number} of {path}): not an object")

    fields: dict[str, str] = {}
    for key, value in payload.items():
        if not isinstance(value, str):
            raise StorageError(
                f"Failed to get journal data ({key}, line {line_number} of {path}): value is not a string"
            )
        fields[key] = value
    return fields


class JournalReader:
    """Filtered reverse reader over a history log file."""

    def __init__(self, path: Path, lines: list[str]):
        self.path = path
        self._lines = lines
        self._matches: list[tuple[str, str]] = []
        self._closed = False

    def add_match(self, key: str, value: str) -> None:
        """Restrict iteration to entries whose ``key`` equals ``value``."""
        if not key or "=" in key:
            raise StorageError(f"Failed to add match to journal: invalid field name '{key}'")
        self._matches.append((key, value))

    def _matches_entry(self, fields: Mapping[str, str]) -> bool:
        return all(fields.get(key) == value for key, value in self._matches)

    def iter_backwards(self) -> Iterator[JournalEntry]:
        """Yield matching entries from newest to oldest."""
        if self._closed:
            raise StorageError(f"Journal already closed: {self.path}")

        for index in range(len(self._lines) - 1, -1, -1):
            raw = self._lines[index].strip()
            if not raw:
                continue
            fields = _decode_line(raw, index + 1, self.path)
            if self._matches_entry(fields):
                yield JournalEntry(fields, index + 1)

    def close(self) -> None:
        self._lines = []
        self._closed = True

    def __enter__(self) -> "JournalReader":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


def open_journal(path: str | Path) -> JournalReader:
    """Open the history log for reading.

    A missing file is an empty journal; any other read failure raises.

    Raises:
        StorageError: If the file exists but cannot be read
    """
    journal_path = Path(path)
    if not journal_path.exists():
        return JournalReader(journal_path, [])

    try:
        with open(journal_path, "r", encoding="utf-8") as f:
            lines = f.readlines()
    except (OSError, UnicodeDecodeError) as e:
        raise StorageError(f"Failed to open journal: {journal_path}: {e}") from e

    return JournalReader(journal_path, lines)


def append_entry(path: str | Path, fields: Mapping[str, str], now: datetime | None = None) -> dict[str, str]:
    """Append one transaction entry to the history log.

    The message id, producer name and timestamp are filled in when the
    caller does not provide them. Returns the record as written.
    """
    record = {key: str(value) for key, value in fields.items()}
    record.setdefault(JOURNAL_FIELD_MESSAGE_ID, TRANSACTION_MESSAGE_ID)
    record.setdefault(JOURNAL_FIELD_COMM, APP_NAME)
    if JOURNAL_FIELD_TIMESTAMP not in record:
        moment = now if now is not None else datetime.now(timezone.utc)
        record[JOURNAL_FIELD_TIMESTAMP] = str(datetime_to_usec(moment))

    journal_path = Path(path)
    try:
        journal_path.parent.mkdir(parents=True, exist_ok=True)
        with open(journal_path, "a", encoding="utf-8") as f:
            f.write(json.dumps(record, ensure_ascii=False) + "\n")
            f.flush()
            os.fsync(f.fileno())
    except OSError as e:
        raise StorageError(f"Failed to write journal: {journal_path}: {e}") from e

    return record
