"""SQLite-backed store for login attempts waiting on the provider redirect."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from swipify.clients.sqlite_store import SQLiteStore
from swipify.models.oauth import PendingLogin

logger = logging.getLogger(__name__)


class PendingLoginStore(SQLiteStore):
    """Holds ``PendingLogin`` rows keyed by state.

    ``take`` deletes the row it returns in a single statement, so a state can
    be consumed at most once even when two callbacks race.

    Expired rows lose their verifier on the next purge but the bare record
    stays for ``EXPIRED_RETENTION``, so a late callback is told its attempt
    expired instead of being treated as unknown.
    """

    EXPIRED_RETENTION = timedelta(hours=1)

    SCHEMA = (
        """
        CREATE TABLE IF NOT EXISTS pending_logins (
            state TEXT PRIMARY KEY,
            code_challenge TEXT NOT NULL,
            code_verifier TEXT,
            created_at TEXT NOT NULL,
            expires_at TEXT NOT NULL
        )
        """,
    )

    def put(self, pending: PendingLogin) -> None:
        self.purge_expired()
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO pending_logins
                    (state, code_challenge, code_verifier, created_at, expires_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                (
                    pending.state,
                    pending.code_challenge,
                    pending.code_verifier,
                    pending.created_at.isoformat(),
                    pending.expires_at.isoformat(),
                ),
            )

    def take(self, state: str) -> Optional[PendingLogin]:
        """Remove and return the attempt for ``state``; expired rows are returned too."""
        if not state:
            return None
        with self._connect() as conn:
            rows = conn.execute(
                """
                DELETE FROM pending_logins WHERE state = ?
                RETURNING state, code_challenge, code_verifier, created_at, expires_at
                """,
                (state,),
            ).fetchall()
        if not rows:
            return None
        row = rows[0]
        return PendingLogin(
            state=row["state"],
            code_challenge=row["code_challenge"],
            code_verifier=row["code_verifier"],
            created_at=datetime.fromisoformat(row["created_at"]),
            expires_at=datetime.fromisoformat(row["expires_at"]),
        )

    def discard(self, state: str) -> bool:
        with self._connect() as conn:
            cursor = conn.execute(
                "DELETE FROM pending_logins WHERE state = ?", (state,)
            )
        return cursor.rowcount > 0

    def purge_expired(self, *, reference: Optional[datetime] = None) -> int:
        """Clear verifiers of expired attempts and drop those past retention."""
        now = reference or datetime.now(timezone.utc)
        with self._connect() as conn:
            conn.execute(
                """
                UPDATE pending_logins SET code_verifier = NULL
                WHERE expires_at <= ? AND code_verifier IS NOT NULL
                """,
                (now.isoformat(),),
            )
            cursor = conn.execute(
                "DELETE FROM pending_logins WHERE expires_at <= ?",
                ((now - self.EXPIRED_RETENTION).isoformat(),),
            )
        if cursor.rowcount:
            logger.debug("Purged %s expired pending logins", cursor.rowcount)
        return cursor.rowcount

    def count(self) -> int:
        with self._connect() as conn:
            row = conn.execute("SELECT COUNT(*) AS total FROM pending_logins").fetchone()
        return int(row["total"])


__all__ = ["PendingLoginStore"]
