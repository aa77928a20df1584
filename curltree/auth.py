"""Lookup of users by SSH key, and helpers for SSH key strings."""

from __future__ import annotations

import hashlib
from typing import Any, Mapping

from curltree.database import Database
from curltree.models import User

USER_KEY = "user"
SSH_KEY_KEY = "ssh_key"


class AuthService:
    """Answers whether an SSH key belongs to a registered user."""

    def __init__(self, db: Database) -> None:
        self.db = db

    def is_user_registered(self, ssh_key: str) -> tuple[bool, User | None]:
        """Return whether the key is registered, and the user if it is."""
        user = self.db.get_user_by_ssh_key(ssh_key)
        return user is not None, user


def format_ssh_key(key_type: str, key_bytes: bytes) -> str:
    """Identify a public key as '<type>:<hex sha256 of its wire bytes>'."""
    return f"{key_type}:{hashlib.sha256(key_bytes).hexdigest()}"


def normalize_ssh_key(key_string: str) -> str:
    """Keep only the type and base64 body of an authorized_keys line."""
    parts = key_string.split()
    if len(parts) >= 2:
        return f"{parts[0]} {parts[1]}"
    return key_string


def get_user(ctx: Mapping[str, Any]) -> User | None:
    """Return the user stored in a session context, if any."""
    user = ctx.get(USER_KEY)
    return user if isinstance(user, User) else None


def get_ssh_key(ctx: Mapping[str, Any]) -> str:
    """Return the SSH key stored in a session context, or an empty string."""
    ssh_key = ctx.get(SSH_KEY_KEY)
    return ssh_key if isinstance(ssh_key, str) else ""