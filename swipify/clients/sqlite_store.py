"""Shared SQLite plumbing for the user and pending-login tables."""

from __future__ import annotations

import sqlite3
from pathlib import Path


def _ensure_directory(db_path: Path) -> None:
    if db_path.parent and not db_path.parent.exists():
        db_path.parent.mkdir(parents=True, exist_ok=True)


class SQLiteStore:
    """Base class owning a database file and the schema of one table."""

    SCHEMA: tuple[str, ...] = ()

    def __init__(self, db_path: str) -> None:
        self._db_path = Path(db_path)
        _ensure_directory(self._db_path)
        self._ensure_schema()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path, check_same_thread=False, timeout=5.0)
        conn.row_factory = sqlite3.Row
        return conn

    def _ensure_schema(self) -> None:
        with self._connect() as conn:
            for statement in self.SCHEMA:
                conn.execute(statement)


__all__ = ["SQLiteStore"]
