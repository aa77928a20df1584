"""Data types shared by the HTTP API, the database layer and the terminal UI."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import IntEnum
from typing import Any


def _mapping(data: Any) -> dict:
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError("expected a JSON object")
    return data


def _text(data: dict, key: str) -> str:
    value = data.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ValueError(f"field {key!r} must be a string")
    return value


def _link_inputs(data: dict) -> list[LinkInput]:
    links = data.get("links") or []
    if not isinstance(links, list):
        raise ValueError("field 'links' must be a list")
    return [LinkInput.from_dict(item) for item in links]


@dataclass
class Link:
    """A stored link belonging to a user."""

    id: str = ""
    user_id: str = ""
    name: str = ""
    url: str = ""
    position: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "user_id": self.user_id, "name": self.name,
                "url": self.url, "position": self.position}


@dataclass
class User:
    """A registered user together with their links."""

    id: str = ""
    ssh_public_key: str = ""
    full_name: str = ""
    username: str = ""
    about: str = ""
    created_at: datetime | None = None
    updated_at: datetime | None = None
    links: list[Link] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "ssh_public_key": self.ssh_public_key,
            "full_name": self.full_name,
            "username": self.username,
            "about": self.about,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
            "links": [link.to_dict() for link in self.links],
        }


@dataclass
class LinkInput:
    """A link as submitted by a client, before it is stored."""

    name: str = ""
    url: str = ""

    @classmethod
    def from_dict(cls, data: Any) -> LinkInput:
        data = _mapping(data)
        return cls(name=_text(data, "name"), url=_text(data, "url"))

    def to_dict(self) -> dict[str, str]:
        return {"name": self.name, "url": self.url}


@dataclass
class UpdateUserRequest:
    """Payload for updating a profile."""

    full_name: str = ""
    username: str = ""
    about: str = ""
    links: list[LinkInput] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Any) -> UpdateUserRequest:
        data = _mapping(data)
        return cls(full_name=_text(data, "full_name"), username=_text(data, "username"),
                   about=_text(data, "about"), links=_link_inputs(data))

    def to_dict(self) -> dict[str, Any]:
        return {"full_name": self.full_name, "username": self.username, "about": self.about,
                "links": [link.to_dict() for link in self.links]}


@dataclass
class CreateUserRequest:
    """Payload for creating a profile."""

    ssh_public_key: str = ""
    full_name: str = ""
    username: str = ""
    about: str = ""
    links: list[LinkInput] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Any) -> CreateUserRequest:
        data = _mapping(data)
        return cls(ssh_public_key=_text(data, "ssh_public_key"),
                   full_name=_text(data, "full_name"), username=_text(data, "username"),
                   about=_text(data, "about"), links=_link_inputs(data))

    def to_dict(self) -> dict[str, Any]:
        return {"ssh_public_key": self.ssh_public_key, "full_name": self.full_name,
                "username": self.username, "about": self.about,
                "links": [link.to_dict() for link in self.links]}


@dataclass
class PublicProfile:
    """The publicly visible part of a user's profile."""

    full_name: str = ""
    username: str = ""
    about: str = ""
    links: list[Link] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {"full_name": self.full_name, "username": self.username, "about": self.about,
                "links": [link.to_dict() for link in self.links]}


class AppState(IntEnum):
    """Screens of the terminal UI."""

    LOADING = 0
    ERROR = 1
    PROFILE_VIEW = 2
    PROFILE_EDIT = 3
    PROFILE_CREATE = 4
    CONFIRM_DELETE = 5


class FieldType(IntEnum):
    """Kinds of form field."""

    TEXT = 0
    TEXT_AREA = 1
    URL = 2


@dataclass
class FormField:
    """Description of a single form field."""

    label: str = ""
    value: str = ""
    placeholder: str = ""
    required: bool = False
    type: FieldType = FieldType.TEXT
    max_length: int = 0


@dataclass(frozen=True)
class KeyBinding:
    """A key and a short description of what it does."""

    key: str
    desc: str


_FORM_KEYS = (
    KeyBinding("tab", "next field"),
    KeyBinding("shift+tab", "prev field"),
    KeyBinding("ctrl+n", "add link"),
    KeyBinding("ctrl+d", "delete link"),
)

PROFILE_VIEW_KEYS = (
    KeyBinding("ctrl+e", "edit profile"),
    KeyBinding("ctrl+c", "exit"),
    KeyBinding("ctrl+d", "delete profile"),
)
PROFILE_EDIT_KEYS = _FORM_KEYS + (KeyBinding("ctrl+s", "save"), KeyBinding("esc", "cancel"))
PROFILE_CREATE_KEYS = _FORM_KEYS + (KeyBinding("ctrl+s", "create"), KeyBinding("esc", "cancel"))