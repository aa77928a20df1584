"""The profile form used by the terminal UI: fields, navigation and validation."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator

from curltree.models import CreateUserRequest, LinkInput, UpdateUserRequest, User

_BASIC_FIELDS = 3
_NAME_LIMIT = 100
_USERNAME_LIMIT = 50
_LONG_LIMIT = 500
_WIDE = 48
_NARROW = 23


@dataclass
class FormInput:
    """A single-line text input with a character limit."""

    placeholder: str = ""
    char_limit: int = 0
    width: int = 0
    value: str = ""
    focused: bool = False

    def __post_init__(self) -> None:
        self.set_value(self.value)

    def _clip(self, text: str) -> str:
        if self.char_limit > 0:
            return text[: self.char_limit]
        return text

    def set_value(self, value: str) -> None:
        """Replace the text, cut to the character limit."""
        self.value = self._clip(value)

    def insert(self, text: str) -> None:
        """Append typed text, dropping whatever exceeds the character limit."""
        self.value = self._clip(self.value + text)

    def backspace(self) -> None:
        """Remove the last character, if any."""
        self.value = self.value[:-1]

    def focus(self) -> None:
        self.focused = True

    def blur(self) -> None:
        self.focused = False


def _link_inputs(name: str = "", url: str = "") -> tuple[FormInput, FormInput]:
    return (
        FormInput("Link name", _NAME_LIMIT, _NARROW, name),
        FormInput("https://example.com", _LONG_LIMIT, _NARROW, url),
    )


def is_valid_username(username: str) -> bool:
    """Tell whether a username is 1-50 ASCII letters, digits, '-' or '_'."""
    if not 1 <= len(username.encode("utf-8")) <= _USERNAME_LIMIT:
        return False
    return all(ch.isascii() and (ch.isalnum() or ch in "-_") for ch in username)


class ProfileForm:
    """Full name, username and about fields followed by name/URL pairs of link fields."""

    def __init__(self) -> None:
        self.inputs: list[FormInput] = [
            FormInput("Your full name", _NAME_LIMIT, _WIDE),
            FormInput("Username (alphanumeric, -, _)", _USERNAME_LIMIT, _WIDE),
            FormInput("Tell us about yourself (optional)", _LONG_LIMIT, _WIDE),
            *_link_inputs(),
        ]
        self.focus_index = 0
        self._sync_focus()

    def _sync_focus(self) -> None:
        for index, field in enumerate(self.inputs):
            field.focused = index == self.focus_index

    @property
    def focused_input(self) -> FormInput:
        return self.inputs[self.focus_index]

    def _link_pairs(self) -> Iterator[tuple[FormInput, FormInput]]:
        rest = iter(self.inputs[_BASIC_FIELDS:])
        return zip(rest, rest)

    def populate_from_user(self, user: User) -> None:
        """Fill the form with a user's details and links."""
        if len(self.inputs) >= _BASIC_FIELDS:
            self.inputs[0].set_value(user.full_name)
            self.inputs[1].set_value(user.username)
            self.inputs[2].set_value(user.about)
        self.clear_links()
        for link in user.links:
            self.add_link(link.name, link.url)

    def type_text(self, text: str) -> None:
        """Type text into the focused field."""
        self.focused_input.insert(text)

    def backspace(self) -> None:
        """Delete the last character of the focused field."""
        self.focused_input.backspace()

    def clear_links(self) -> None:
        """Drop every link field, keeping the three basic fields."""
        if len(self.inputs) > _BASIC_FIELDS:
            del self.inputs[_BASIC_FIELDS:]
            if self.focus_index >= len(self.inputs):
                self.focus_index = len(self.inputs) - 1
            self._sync_focus()

    def add_link(self, name: str, url: str) -> None:
        """Append a name/URL pair of link fields."""
        self.inputs.extend(_link_inputs(name, url))

    def delete_current_link(self) -> None:
        """Remove the link pair that holds the focus, if the focus is on a link."""
        if len(self.inputs) <= _BASIC_FIELDS or self.focus_index < _BASIC_FIELDS:
            return
        start = _BASIC_FIELDS + (self.focus_index - _BASIC_FIELDS) // 2 * 2
        del self.inputs[start : start + 2]
        if self.focus_index >= len(self.inputs):
            self.focus_index = len(self.inputs) - 1
        self._sync_focus()

    def next_field(self) -> None:
        """Move the focus to the next field, stopping at the last."""
        if self.focus_index < len(self.inputs) - 1:
            self.focus_index += 1
            self._sync_focus()

    def prev_field(self) -> None:
        """Move the focus to the previous field, stopping at the first."""
        if self.focus_index > 0:
            self.focus_index -= 1
            self._sync_focus()

    def validate(self) -> None:
        """Raise ValueError describing the first problem with the form."""
        if len(self.inputs) < _BASIC_FIELDS:
            raise ValueError("form not properly initialized")

        if self.inputs[0].value.strip() == "":
            raise ValueError("full name is required")

        username = self.inputs[1].value.strip()
        if username == "":
            raise ValueError("username is required")
        if not is_valid_username(username):
            raise ValueError(
                "username must be alphanumeric with optional hyphens and underscores"
            )

        for name_input, url_input in self._link_pairs():
            name = name_input.value.strip()
            url = url_input.value.strip()
            if name == "" and url == "":
                continue
            if name == "":
                raise ValueError("link name is required")
            if url == "":
                raise ValueError("link URL is required")
            if not url.startswith(("http://", "https://")):
                raise ValueError("URL must start with http:// or https://")

    def _basic_values(self) -> tuple[str, str, str]:
        if len(self.inputs) < _BASIC_FIELDS:
            return "", "", ""
        return tuple(field.value.strip() for field in self.inputs[:_BASIC_FIELDS])

    def _filled_links(self) -> list[LinkInput]:
        links = []
        for name_input, url_input in self._link_pairs():
            name = name_input.value.strip()
            url = url_input.value.strip()
            if name and url:
                links.append(LinkInput(name=name, url=url))
        return links

    def to_create_request(self, ssh_key: str) -> CreateUserRequest:
        """Build a create request; link pairs with an empty half are left out."""
        full_name, username, about = self._basic_values()
        return CreateUserRequest(
            ssh_public_key=ssh_key,
            full_name=full_name,
            username=username,
            about=about,
            links=self._filled_links(),
        )

    def to_update_request(self) -> UpdateUserRequest:
        """Build an update request; link pairs with an empty half are left out."""
        full_name, username, about = self._basic_values()
        return UpdateUserRequest(
            full_name=full_name,
            username=username,
            about=about,
            links=self._filled_links(),
        )