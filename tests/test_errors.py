import pytest

from curltree.errors import (
    AppError,
    CurltreeError,
    DatabaseError,
    UserNotFoundError,
    UsernameExistsError,
    ValidationError,
)


def test_validation_error_message():
    err = ValidationError("username", "username cannot be empty")
    assert str(err) == "validation error on field 'username': username cannot be empty"
    assert err.field == "username"
    assert err.message == "username cannot be empty"


def test_validation_error_is_value_error():
    err = ValidationError("about", "too long")
    assert isinstance(err, ValueError)
    assert str(err) == "validation error on field 'about': too long"
    assert err.field == "about"
    assert err.message == "too long"


def test_app_error_without_cause():
    err = AppError(404, "user not found")
    assert str(err) == "user not found"
    assert err.code == 404
    assert err.cause is None


def test_app_error_with_cause():
    cause = RuntimeError("disk full")
    err = AppError(500, "failed to create user", cause)
    assert str(err) == "failed to create user: disk full"
    assert err.__cause__ is cause


def test_default_messages():
    assert str(UserNotFoundError()) == "user not found"
    assert str(UsernameExistsError()) == "username already exists"
    assert str(DatabaseError()) == "database connection failed"


@pytest.mark.parametrize(
    ("error", "expected"),
    [
        (ValidationError("x", "y"), "validation error on field 'x': y"),
        (AppError(400, "bad"), "bad"),
        (UserNotFoundError(), "user not found"),
        (UsernameExistsError(), "username already exists"),
        (DatabaseError("failed to connect"), "failed to connect"),
    ],
)
def test_all_derive_from_base(error, expected):
    with pytest.raises(CurltreeError) as excinfo:
        raise error
    assert excinfo.value is error
    assert str(excinfo.value) == expected