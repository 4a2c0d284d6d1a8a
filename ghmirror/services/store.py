"""SQLite persistence for mirrored pull requests and issues."""

import json
from dataclasses import fields
from datetime import datetime
from logging import getLogger
from pathlib import Path
from typing import Any

import aiosqlite

from ghmirror.conf.sync import CollectionKind

from .records import IMMUTABLE_FIELDS, Record, record_field_names, record_type

logger = getLogger(__name__)

TABLES: dict[CollectionKind, str] = {
    CollectionKind.PULLS: "pull_requests",
    CollectionKind.ISSUES: "issues",
}

# Stored as JSON text
JSON_FIELDS = frozenset({"labels", "conversations", "participants", "commits", "files_changed"})

# Stored as ISO 8601 text
DATETIME_FIELDS = frozenset({"created_at", "closed_at", "merged_at", "merge_date", "updated_at"})

_SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS pull_requests (
    repo TEXT NOT NULL,
    number INTEGER NOT NULL,
    title TEXT NOT NULL,
    description TEXT,
    labels TEXT NOT NULL DEFAULT '[]',
    conversations TEXT NOT NULL DEFAULT '[]',
    num_conversations INTEGER NOT NULL DEFAULT 0,
    participants TEXT NOT NULL DEFAULT '[]',
    num_participants INTEGER NOT NULL DEFAULT 0,
    commits TEXT NOT NULL DEFAULT '[]',
    num_commits INTEGER NOT NULL DEFAULT 0,
    files_changed TEXT NOT NULL DEFAULT '[]',
    num_files_changed INTEGER NOT NULL DEFAULT 0,
    created_at TEXT NOT NULL,
    closed_at TEXT,
    merged_at TEXT,
    merge_date TEXT,
    PRIMARY KEY (repo, number)
);

CREATE TABLE IF NOT EXISTS issues (
    repo TEXT NOT NULL,
    number INTEGER NOT NULL,
    title TEXT NOT NULL,
    description TEXT,
    labels TEXT NOT NULL DEFAULT '[]',
    conversations TEXT NOT NULL DEFAULT '[]',
    num_conversations INTEGER NOT NULL DEFAULT 0,
    participants TEXT NOT NULL DEFAULT '[]',
    num_participants INTEGER NOT NULL DEFAULT 0,
    state TEXT NOT NULL,
    author TEXT,
    created_at TEXT NOT NULL,
    closed_at TEXT,
    updated_at TEXT,
    PRIMARY KEY (repo, number)
);
"""

# Finalization expressed over stored columns, matching Record.is_finalized
_FINALIZED_SQL: dict[CollectionKind, str] = {
    CollectionKind.PULLS: "closed_at IS NOT NULL AND merged_at IS NOT NULL",
    CollectionKind.ISSUES: "closed_at IS NOT NULL",
}


def _to_column(name: str, value: Any) -> Any:
    if value is None:
        return None
    if name in JSON_FIELDS:
        return json.dumps(value)
    if name in DATETIME_FIELDS:
        if not isinstance(value, datetime):
            raise ValueError(f"Field {name} expects a datetime, got {type(value).__name__}")
        return value.isoformat()
    return value


def _from_column(name: str, value: Any) -> Any:
    if value is None:
        return [] if name in JSON_FIELDS else None
    if name in JSON_FIELDS:
        return json.loads(value)
    if name in DATETIME_FIELDS:
        return datetime.fromisoformat(value)
    return value


class RecordStore:
    """Keyed store of mirrored records, one table per collection.

    Records are keyed by (repository, number). Use as an async context manager,
    which opens the database and creates the tables if needed.
    """

    def __init__(self, path: Path | str) -> None:
        """Initialize the store.

        Args:
            path: SQLite database file, or ":memory:"
        """
        self.path = str(path)
        self._db: aiosqlite.Connection | None = None

    async def __aenter__(self) -> "RecordStore":
        self._db = await aiosqlite.connect(self.path)
        self._db.row_factory = aiosqlite.Row
        await self._db.executescript(_SCHEMA_SQL)
        await self._db.commit()
        logger.debug(f"Opened record store at {self.path}")
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        if self._db is not None:
            await self._db.close()
            self._db = None

    @property
    def db(self) -> aiosqlite.Connection:
        if self._db is None:
            raise RuntimeError("Store not opened - use async with context manager")
        return self._db

    async def find_by_key(self, kind: CollectionKind, repo: str, number: int) -> Record | None:
        """Fetch a stored record by its natural key.

        Returns:
            The record, or None if it has never been stored
        """
        cursor = await self.db.execute(
            f"SELECT * FROM {TABLES[kind]} WHERE repo = ? AND number = ?",
            (repo, number),
        )
        row = await cursor.fetchone()
        await cursor.close()
        if row is None:
            return None

        names = record_field_names(kind)
        return record_type(kind)(**{name: _from_column(name, row[name]) for name in names})

    async def insert(self, kind: CollectionKind, repo: str, record: Record) -> bool:
        """Insert a record unless one with the same key already exists.

        Returns:
            True if the record was written, False if the key was taken
        """
        if not isinstance(record, record_type(kind)):
            raise TypeError(f"Cannot store {type(record).__name__} in {TABLES[kind]}")

        values = {f.name: _to_column(f.name, getattr(record, f.name)) for f in fields(record)}
        columns = ["repo", *values]
        placeholders = ", ".join("?" for _ in columns)
        cursor = await self.db.execute(
            f"INSERT OR IGNORE INTO {TABLES[kind]} ({', '.join(columns)}) VALUES ({placeholders})",
            (repo, *values.values()),
        )
        await self.db.commit()
        return cursor.rowcount > 0

    async def update_fields(self, kind: CollectionKind, repo: str, number: int, changes: dict[str, Any]) -> bool:
        """Overwrite the given fields of a stored record, leaving the rest untouched.

        Returns:
            True if a record was updated, False if none matched the key

        Raises:
            ValueError: If a field is unknown or immutable
        """
        known = set(record_field_names(kind)) - IMMUTABLE_FIELDS
        unknown = set(changes) - known
        if unknown:
            raise ValueError(f"Cannot update fields of {TABLES[kind]}: {', '.join(sorted(unknown))}")
        if not changes:
            return False

        assignments = ", ".join(f"{name} = ?" for name in changes)
        cursor = await self.db.execute(
            f"UPDATE {TABLES[kind]} SET {assignments} WHERE repo = ? AND number = ?",
            (*(_to_column(name, value) for name, value in changes.items()), repo, number),
        )
        await self.db.commit()
        return cursor.rowcount > 0

    async def count(self, kind: CollectionKind, repo: str, finalized_only: bool = False) -> int:
        """Count stored records for a repository, optionally only finalized ones."""
        query = f"SELECT COUNT(*) FROM {TABLES[kind]} WHERE repo = ?"
        if finalized_only:
            query += f" AND {_FINALIZED_SQL[kind]}"
        cursor = await self.db.execute(query, (repo,))
        row = await cursor.fetchone()
        await cursor.close()
        return int(row[0]) if row else 0
