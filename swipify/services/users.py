"""User records keyed by provider identity, with encrypted token storage."""

from __future__ import annotations

import logging
import sqlite3
from datetime import datetime, timezone
from typing import Optional
from uuid import uuid4

from swipify.clients.sqlite_store import SQLiteStore
from swipify.models.oauth import OAuthTokenSet, SpotifyProfile, User
from swipify.services.token_cipher import TokenCipherService, TokenDecryptionError

logger = logging.getLogger(__name__)

_COLUMNS = (
    "id, provider, external_id, display_name, email, avatar_url, "
    "access_token_encrypted, refresh_token_encrypted, token_expires_at, "
    "created_at, updated_at"
)


class UserRepository(SQLiteStore):
    """Find-or-create users by ``(provider, external_id)``.

    Writes are upserts against the unique constraint, so two concurrent logins
    for the same identity converge on one row. Token sets are overwritten
    wholesale; a token set without a refresh token keeps the stored one.
    """

    SCHEMA = (
        """
        CREATE TABLE IF NOT EXISTS users (
            id TEXT PRIMARY KEY,
            provider TEXT NOT NULL,
            external_id TEXT NOT NULL,
            display_name TEXT,
            email TEXT,
            avatar_url TEXT,
            access_token_encrypted TEXT,
            refresh_token_encrypted TEXT,
            token_expires_at TEXT,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL,
            UNIQUE (provider, external_id)
        )
        """,
    )

    def __init__(self, db_path: str, *, token_cipher: TokenCipherService) -> None:
        self._cipher = token_cipher
        super().__init__(db_path)

    def upsert_from_profile(
        self, *, provider: str, profile: SpotifyProfile, tokens: OAuthTokenSet
    ) -> User:
        now = datetime.now(timezone.utc).isoformat()
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO users (
                    id, provider, external_id, display_name, email, avatar_url,
                    access_token_encrypted, refresh_token_encrypted, token_expires_at,
                    created_at, updated_at
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT (provider, external_id) DO UPDATE SET
                    display_name = excluded.display_name,
                    email = excluded.email,
                    avatar_url = excluded.avatar_url,
                    access_token_encrypted = excluded.access_token_encrypted,
                    refresh_token_encrypted = COALESCE(
                        excluded.refresh_token_encrypted, users.refresh_token_encrypted
                    ),
                    token_expires_at = excluded.token_expires_at,
                    updated_at = excluded.updated_at
                """,
                (
                    uuid4().hex,
                    provider,
                    profile.id,
                    profile.display_name,
                    profile.email,
                    profile.avatar_url,
                    self._cipher.encrypt(tokens.access_token),
                    self._cipher.encrypt_optional(tokens.refresh_token),
                    tokens.expires_at.isoformat(),
                    now,
                    now,
                ),
            )
            row = conn.execute(
                f"SELECT {_COLUMNS} FROM users WHERE provider = ? AND external_id = ?",
                (provider, profile.id),
            ).fetchone()
        return self._to_user(row)

    def get_by_id(self, user_id: str) -> Optional[User]:
        with self._connect() as conn:
            row = conn.execute(
                f"SELECT {_COLUMNS} FROM users WHERE id = ?", (user_id,)
            ).fetchone()
        return self._to_user(row) if row else None

    def get_by_external_id(self, provider: str, external_id: str) -> Optional[User]:
        with self._connect() as conn:
            row = conn.execute(
                f"SELECT {_COLUMNS} FROM users WHERE provider = ? AND external_id = ?",
                (provider, external_id),
            ).fetchone()
        return self._to_user(row) if row else None

    def update_tokens(self, user_id: str, tokens: OAuthTokenSet) -> Optional[User]:
        now = datetime.now(timezone.utc).isoformat()
        with self._connect() as conn:
            conn.execute(
                """
                UPDATE users SET
                    access_token_encrypted = ?,
                    refresh_token_encrypted = COALESCE(?, refresh_token_encrypted),
                    token_expires_at = ?,
                    updated_at = ?
                WHERE id = ?
                """,
                (
                    self._cipher.encrypt(tokens.access_token),
                    self._cipher.encrypt_optional(tokens.refresh_token),
                    tokens.expires_at.isoformat(),
                    now,
                    user_id,
                ),
            )
        return self.get_by_id(user_id)

    def count(self) -> int:
        with self._connect() as conn:
            row = conn.execute("SELECT COUNT(*) AS total FROM users").fetchone()
        return int(row["total"])

    def _readable_token(self, row: sqlite3.Row, column: str) -> Optional[str]:
        # Tokens sealed with a rotated secret are unusable; the user logs in again.
        try:
            return self._cipher.decrypt_optional(row[column])
        except TokenDecryptionError:
            logger.warning("Dropping undecryptable %s for user %s", column, row["id"])
            return None

    def _to_user(self, row: sqlite3.Row) -> User:
        expires_at = row["token_expires_at"]
        return User(
            id=row["id"],
            provider=row["provider"],
            external_id=row["external_id"],
            display_name=row["display_name"],
            email=row["email"],
            avatar_url=row["avatar_url"],
            access_token=self._readable_token(row, "access_token_encrypted"),
            refresh_token=self._readable_token(row, "refresh_token_encrypted"),
            token_expires_at=datetime.fromisoformat(expires_at) if expires_at else None,
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
        )


__all__ = ["UserRepository"]
