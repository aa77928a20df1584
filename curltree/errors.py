"""Exception types used throughout the package."""

from __future__ import annotations


class CurltreeError(Exception):
    """Base class for all errors raised by this package."""


class ValidationError(CurltreeError, ValueError):
    """A request field failed validation."""

    def __init__(self, field: str, message: str) -> None:
        self.field = field
        self.message = message
        super().__init__(f"validation error on field '{field}': {message}")


class AppError(CurltreeError):
    """An application error carrying a status code and an optional cause."""

    def __init__(self, code: int, message: str, cause: BaseException | None = None) -> None:
        self.code = code
        self.message = message
        self.cause = cause
        self.__cause__ = cause
        text = f"{message}: {cause}" if cause is not None else message
        super().__init__(text)


class UserNotFoundError(CurltreeError):
    """No user matches the lookup."""

    def __init__(self, message: str = "user not found") -> None:
        super().__init__(message)


class UsernameExistsError(CurltreeError):
    """The requested username is already taken."""

    def __init__(self, message: str = "username already exists") -> None:
        super().__init__(message)


class DatabaseError(CurltreeError):
    """A database operation failed."""

    def __init__(self, message: str = "database connection failed") -> None:
        super().__init__(message)