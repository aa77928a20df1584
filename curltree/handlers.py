"""HTTP handlers for reading and managing profiles."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from http import HTTPStatus
from typing import Any, Callable, TypeVar
from urllib.parse import parse_qs

from curltree.database import Database
from curltree.errors import DatabaseError, ValidationError
from curltree.models import CreateUserRequest, LinkInput, PublicProfile, UpdateUserRequest
from curltree.validation import (
    sanitize_input,
    validate_about,
    validate_full_name,
    validate_link_name,
    validate_ssh_key,
    validate_url,
    validate_username,
)

_MAX_LINE_LENGTH = 60
_CONTINUATION_PREFIX = "│     "
_JSON_ESCAPES = str.maketrans(
    {
        "<": "\\u003c",
        ">": "\\u003e",
        "&": "\\u0026",
        "\u2028": "\\u2028",
        "\u2029": "\\u2029",
    }
)

T = TypeVar("T")


@dataclass
class Request:
    """An incoming HTTP request, independent of any server framework."""

    method: str = "GET"
    path: str = "/"
    headers: dict[str, str] = field(default_factory=dict)
    query: str = ""
    body: bytes = b""
    remote_addr: str = ""

    def header(self, name: str) -> str:
        """Return the first value of a header, matched case-insensitively."""
        wanted = name.lower()
        for key, value in self.headers.items():
            if key.lower() == wanted:
                return value
        return ""

    def query_param(self, name: str) -> str:
        """Return the first value of a query parameter, or an empty string."""
        return parse_qs(self.query, keep_blank_values=True).get(name, [""])[0]


@dataclass
class Response:
    """An outgoing HTTP response."""

    status: int = HTTPStatus.OK
    headers: dict[str, str] = field(default_factory=dict)
    body: bytes = b""

    @property
    def text(self) -> str:
        return self.body.decode("utf-8")

    @classmethod
    def error(cls, message: str, status: int) -> Response:
        """A plain-text error response."""
        return cls(
            status=int(status),
            headers={
                "Content-Type": "text/plain; charset=utf-8",
                "X-Content-Type-Options": "nosniff",
            },
            body=(message + "\n").encode("utf-8"),
        )

    @classmethod
    def json(cls, data: Any, status: int = HTTPStatus.OK) -> Response:
        """A JSON response with HTML-sensitive characters escaped."""
        text = json.dumps(data, ensure_ascii=False).translate(_JSON_ESCAPES)
        return cls(
            status=int(status),
            headers={"Content-Type": "application/json"},
            body=(text + "\n").encode("utf-8"),
        )


HandlerFunc = Callable[[Request], Response]


def _byte_length(text: str) -> int:
    return len(text.encode("utf-8"))


def render_plain_text(profile: PublicProfile) -> str:
    """Render a profile as a box-drawn text tree for terminal clients."""
    out = [f"┌─ {profile.full_name} (@{profile.username})\n", "│\n"]

    if profile.about != "":
        out.append("├─ About:\n")
        out.append("│  ├─ ")
        current = ""
        for index, word in enumerate(profile.about.split()):
            candidate = f"{current} {word}" if index > 0 else current + word
            if _byte_length(candidate) > _MAX_LINE_LENGTH and current != "":
                out.append(f"{current}\n{_CONTINUATION_PREFIX}")
                current = word
            else:
                current = candidate
        if current != "":
            out.append(f"{current}\n")
        out.append("│\n")

    if profile.links:
        out.append("├─ Links\n")
        last = len(profile.links) - 1
        for index, link in enumerate(profile.links):
            branch = "└─" if index == last else "├─"
            out.append(f"│  {branch} 🔗 {link.name}: {link.url}\n")
        out.append("│\n")

    out.append("└─ Powered by curltree.dev\n")
    return "".join(out)


def _decode_body(body: bytes, factory: Callable[[Any], T]) -> T:
    """Decode the first JSON value of a body; raise ValueError if it is not valid."""
    text = body.decode("utf-8", errors="replace").lstrip(" \t\r\n")
    data, _ = json.JSONDecoder().raw_decode(text)
    return factory(data)


def _check(field_name: str, validator: Callable[[str], None], value: str) -> None:
    try:
        validator(value)
    except ValueError as exc:
        raise ValidationError(field_name, str(exc)) from exc


def _validate_links(links: list[LinkInput]) -> None:
    for index, link in enumerate(links):
        name = sanitize_input(link.name)
        url = sanitize_input(link.url)
        _check(f"link[{index}].name", validate_link_name, name)
        _check(f"link[{index}].url", validate_url, url)
        link.name = name
        link.url = url


def _validate_create(req: CreateUserRequest) -> None:
    req.ssh_public_key = sanitize_input(req.ssh_public_key)
    req.full_name = sanitize_input(req.full_name)
    req.username = sanitize_input(req.username)
    req.about = sanitize_input(req.about)
    _check("ssh_public_key", validate_ssh_key, req.ssh_public_key)
    _check("full_name", validate_full_name, req.full_name)
    _check("username", validate_username, req.username)
    _check("about", validate_about, req.about)
    _validate_links(req.links)


def _validate_update(req: UpdateUserRequest) -> None:
    req.full_name = sanitize_input(req.full_name)
    req.username = sanitize_input(req.username)
    req.about = sanitize_input(req.about)
    _check("full_name", validate_full_name, req.full_name)
    _check("username", validate_username, req.username)
    _check("about", validate_about, req.about)
    _validate_links(req.links)


class Handler:
    """The profile endpoints, backed by a database."""

    def __init__(self, db: Database) -> None:
        self.db = db

    def get_profile(self, request: Request) -> Response:
        """Serve a public profile as JSON, or as text to curl."""
        username = request.path.removeprefix("/")
        if username == "":
            return Response.error("Username is required", HTTPStatus.BAD_REQUEST)

        try:
            profile = self.db.get_public_profile(username)
        except DatabaseError:
            return Response.error("Internal server error", HTTPStatus.INTERNAL_SERVER_ERROR)
        if profile is None:
            return Response.error("Profile not found", HTTPStatus.NOT_FOUND)

        accept = request.header("Accept")
        user_agent = request.header("User-Agent")
        if "application/json" in accept or "curl" not in user_agent:
            return Response.json(profile.to_dict())

        return Response(
            status=HTTPStatus.OK,
            headers={"Content-Type": "text/plain"},
            body=render_plain_text(profile).encode("utf-8"),
        )

    def create_profile(self, request: Request) -> Response:
        """Create a profile from a JSON body."""
        if request.method != "POST":
            return Response.error("Method not allowed", HTTPStatus.METHOD_NOT_ALLOWED)

        try:
            req = _decode_body(request.body, CreateUserRequest.from_dict)
        except ValueError:
            return Response.error("Invalid JSON", HTTPStatus.BAD_REQUEST)

        try:
            _validate_create(req)
        except ValidationError as exc:
            return Response.error(str(exc), HTTPStatus.BAD_REQUEST)

        try:
            exists = self.db.username_exists(req.username)
        except DatabaseError:
            return Response.error("Internal server error", HTTPStatus.INTERNAL_SERVER_ERROR)
        if exists:
            return Response.error("Username already exists", HTTPStatus.CONFLICT)

        try:
            user = self.db.create_user(req)
        except DatabaseError:
            return Response.error("Failed to create profile", HTTPStatus.INTERNAL_SERVER_ERROR)

        return Response.json(user.to_dict() if user else None, HTTPStatus.CREATED)

    def update_profile(self, request: Request) -> Response:
        """Replace a profile's details; the user is named by the user_id query parameter."""
        if request.method != "PUT":
            return Response.error("Method not allowed", HTTPStatus.METHOD_NOT_ALLOWED)

        user_id = request.query_param("user_id")
        if user_id == "":
            return Response.error("User ID is required", HTTPStatus.BAD_REQUEST)

        try:
            req = _decode_body(request.body, UpdateUserRequest.from_dict)
        except ValueError:
            return Response.error("Invalid JSON", HTTPStatus.BAD_REQUEST)

        try:
            _validate_update(req)
        except ValidationError as exc:
            return Response.error(str(exc), HTTPStatus.BAD_REQUEST)

        try:
            user = self.db.update_user(user_id, req)
        except DatabaseError as exc:
            if "UNIQUE constraint failed" in str(exc):
                return Response.error("Username already exists", HTTPStatus.CONFLICT)
            return Response.error("Failed to update profile", HTTPStatus.INTERNAL_SERVER_ERROR)

        return Response.json(user.to_dict() if user else None)

    def delete_profile(self, request: Request) -> Response:
        """Delete the profile named by the user_id query parameter."""
        if request.method != "DELETE":
            return Response.error("Method not allowed", HTTPStatus.METHOD_NOT_ALLOWED)

        user_id = request.query_param("user_id")
        if user_id == "":
            return Response.error("User ID is required", HTTPStatus.BAD_REQUEST)

        try:
            self.db.delete_user(user_id)
        except DatabaseError:
            return Response.error("Failed to delete profile", HTTPStatus.INTERNAL_SERVER_ERROR)

        return Response(status=HTTPStatus.NO_CONTENT)