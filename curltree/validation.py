"""Input validation and sanitising for profile data."""

from __future__ import annotations

import re
from urllib.parse import urlsplit

_USERNAME_RE = re.compile(r"[a-zA-Z0-9_-]+")
_SSH_KEY_RE = re.compile(r"ssh-[a-z0-9]+ [A-Za-z0-9+/=]+ ?.*")
_HTML_ESCAPES = str.maketrans(
    {"<": "&lt;", ">": "&gt;", "&": "&amp;", '"': "&quot;", "'": "&#39;"}
)


def _byte_length(value: str) -> int:
    return len(value.encode("utf-8"))


def validate_username(username: str) -> None:
    """Raise ValueError unless the username is acceptable."""
    if username == "":
        raise ValueError("username cannot be empty")
    length = _byte_length(username)
    if length < 2:
        raise ValueError("username must be at least 2 characters long")
    if length > 50:
        raise ValueError("username cannot be longer than 50 characters")
    if not _USERNAME_RE.fullmatch(username):
        raise ValueError(
            "username can only contain letters, numbers, hyphens, and underscores"
        )
    if username[0] in "-_" or username[-1] in "-_":
        raise ValueError("username cannot start or end with hyphens or underscores")


def validate_full_name(full_name: str) -> None:
    """Raise ValueError unless the full name is acceptable."""
    if full_name.strip() == "":
        raise ValueError("full name cannot be empty")
    if _byte_length(full_name) > 100:
        raise ValueError("full name cannot be longer than 100 characters")


def validate_about(about: str) -> None:
    """Raise ValueError if the about text is too long."""
    if _byte_length(about) > 500:
        raise ValueError("about section cannot be longer than 500 characters")


def validate_url(link_url: str) -> None:
    """Raise ValueError unless the URL is an http(s) URL with a host."""
    if link_url == "":
        raise ValueError("URL cannot be empty")
    if _byte_length(link_url) > 500:
        raise ValueError("URL cannot be longer than 500 characters")
    if any(ord(ch) < 0x20 or ord(ch) == 0x7F for ch in link_url):
        raise ValueError("invalid URL format: invalid control character in URL")
    try:
        parts = urlsplit(link_url)
    except ValueError as exc:
        raise ValueError(f"invalid URL format: {exc}") from exc
    if parts.scheme not in ("http", "https"):
        raise ValueError("URL must start with http:// or https://")
    host = parts.netloc.rpartition("@")[2]
    if host == "":
        raise ValueError("URL must have a valid host")


def validate_link_name(name: str) -> None:
    """Raise ValueError unless the link name is acceptable."""
    if name.strip() == "":
        raise ValueError("link name cannot be empty")
    if _byte_length(name) > 100:
        raise ValueError("link name cannot be longer than 100 characters")


def validate_ssh_key(ssh_key: str) -> None:
    """Raise ValueError unless the text looks like an OpenSSH public key."""
    if ssh_key == "":
        raise ValueError("SSH key cannot be empty")
    if not _SSH_KEY_RE.fullmatch(ssh_key.strip()):
        raise ValueError("invalid SSH key format")


def sanitize_input(value: str) -> str:
    """Trim whitespace and drop NUL and carriage-return characters."""
    return value.strip().replace("\x00", "").replace("\r", "")


def sanitize_html(value: str) -> str:
    """Escape the characters that are special in HTML."""
    return value.translate(_HTML_ESCAPES)