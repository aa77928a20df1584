"""SQLite storage for users and their links."""

from __future__ import annotations

import logging
import sqlite3
import threading
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Iterator

from curltree.errors import DatabaseError
from curltree.models import (
    CreateUserRequest,
    Link,
    LinkInput,
    PublicProfile,
    UpdateUserRequest,
    User,
)

_log = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS users (
    id TEXT PRIMARY KEY,
    ssh_public_key TEXT NOT NULL UNIQUE,
    full_name TEXT NOT NULL,
    username TEXT NOT NULL UNIQUE,
    about TEXT NOT NULL DEFAULT '',
    created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
    updated_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
);
CREATE TABLE IF NOT EXISTS links (
    id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
    name TEXT NOT NULL,
    url TEXT NOT NULL,
    position INTEGER NOT NULL DEFAULT 0
);
CREATE INDEX IF NOT EXISTS idx_links_user_position ON links(user_id, position);
"""

_USER_SELECT = (
    "SELECT id, ssh_public_key, full_name, username, about, created_at, updated_at "
    "FROM users WHERE {} = ?"
)


@contextmanager
def _failing(context: str) -> Iterator[None]:
    try:
        yield
    except sqlite3.Error as exc:
        raise DatabaseError(f"{context}: {exc}") from exc


def _parse_time(value: str | None) -> datetime | None:
    try:
        return datetime.fromisoformat(value).replace(tzinfo=timezone.utc) if value else None
    except ValueError:
        return None


class Database:
    """A connection to the profile database, with the schema applied."""

    def __init__(self, path: str) -> None:
        with _failing("failed to connect to database"):
            self._conn = sqlite3.connect(str(path), check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._lock = threading.RLock()
        try:
            with _failing("failed to enable foreign keys"):
                self._conn.execute("PRAGMA foreign_keys = ON")
            with _failing("failed to migrate database: failed to execute schema"):
                self._conn.executescript(_SCHEMA)
        except DatabaseError:
            self._conn.close()
            raise
        _log.info("Database schema applied successfully")

    def close(self) -> None:
        """Close the underlying connection."""
        with self._lock:
            self._conn.close()

    def __enter__(self) -> Database:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def _fetch_user(self, column: str, value: str) -> User | None:
        with _failing(f"failed to get user by {column}"), self._lock:
            row = self._conn.execute(_USER_SELECT.format(column), (value,)).fetchone()
        if row is None:
            return None
        return User(
            id=row["id"],
            ssh_public_key=row["ssh_public_key"],
            full_name=row["full_name"],
            username=row["username"],
            about=row["about"] or "",
            created_at=_parse_time(row["created_at"]),
            updated_at=_parse_time(row["updated_at"]),
            links=self.get_user_links(row["id"]),
        )

    def get_user_by_ssh_key(self, ssh_public_key: str) -> User | None:
        """Return the user registered with this key, or None."""
        return self._fetch_user("ssh_public_key", ssh_public_key)

    def get_user_by_username(self, username: str) -> User | None:
        """Return the user with this username, or None."""
        return self._fetch_user("username", username)

    def get_public_profile(self, username: str) -> PublicProfile | None:
        """Return the public part of a user's profile, or None."""
        user = self.get_user_by_username(username)
        if user is None:
            return None
        return PublicProfile(full_name=user.full_name, username=user.username,
                             about=user.about, links=user.links)

    def create_user(self, req: CreateUserRequest) -> User | None:
        """Store a new user and their links, returning the stored user."""
        user_id = uuid.uuid4().hex
        with _failing("failed to commit transaction"), self._lock, self._conn:
            with _failing("failed to create user"):
                self._conn.execute(
                    "INSERT INTO users (id, ssh_public_key, full_name, username, about) "
                    "VALUES (?, ?, ?, ?, ?)",
                    (user_id, req.ssh_public_key, req.full_name, req.username, req.about),
                )
            with _failing("failed to create user links"):
                self._replace_links(user_id, req.links)
        return self.get_user_by_ssh_key(req.ssh_public_key)

    def update_user(self, user_id: str, req: UpdateUserRequest) -> User | None:
        """Replace a user's details and links, returning the stored user."""
        with _failing("failed to commit transaction"), self._lock, self._conn:
            with _failing("failed to update user"):
                self._conn.execute(
                    "UPDATE users SET full_name = ?, username = ?, about = ?, "
                    "updated_at = CURRENT_TIMESTAMP WHERE id = ?",
                    (req.full_name, req.username, req.about, user_id),
                )
            with _failing("failed to update user links"):
                self._replace_links(user_id, req.links)
        with _failing("failed to get SSH key"), self._lock:
            row = self._conn.execute(
                "SELECT ssh_public_key FROM users WHERE id = ?", (user_id,)
            ).fetchone()
        if row is None:
            raise DatabaseError("failed to get SSH key: user not found")
        return self.get_user_by_ssh_key(row["ssh_public_key"])

    def delete_user(self, user_id: str) -> None:
        """Delete a user; their links go with them."""
        with _failing("failed to delete user"), self._lock, self._conn:
            self._conn.execute("DELETE FROM users WHERE id = ?", (user_id,))

    def username_exists(self, username: str) -> bool:
        """Tell whether a user already has this username."""
        with _failing("failed to check username existence"), self._lock:
            (count,) = self._conn.execute(
                "SELECT COUNT(*) FROM users WHERE username = ?", (username,)
            ).fetchone()
        return count > 0

    def get_user_links(self, user_id: str) -> list[Link]:
        """Return a user's links in their stored order."""
        with _failing("failed to get user links"), self._lock:
            rows = self._conn.execute(
                "SELECT id, user_id, name, url, position FROM links "
                "WHERE user_id = ? ORDER BY position",
                (user_id,),
            ).fetchall()
        return [Link(**dict(row)) for row in rows]

    def _replace_links(self, user_id: str, links: list[LinkInput]) -> None:
        self._conn.execute("DELETE FROM links WHERE user_id = ?", (user_id,))
        self._conn.executemany(
            "INSERT INTO links (id, user_id, name, url, position) VALUES (?, ?, ?, ?, ?)",
            [(uuid.uuid4().hex, user_id, link.name, link.url, position)
             for position, link in enumerate(links)],
        )