import io
import json
import logging

import pytest

from curltree.database import Database
from curltree.handlers import Request, Response
from curltree.logger import Logger
from curltree.server import Router, create_app, main, to_wsgi

SSH_KEY = "ssh-rsa AAAAB3NzaC1yc2EAAAADAQABAAABAQ test"

PROFILE = {
    "ssh_public_key": SSH_KEY,
    "full_name": "Test User",
    "username": "testuser",
    "about": "Test about",
    "links": [{"name": "Website", "url": "https://example.com"}],
}


def quiet_logger():
    base = logging.Logger("test-server")
    base.addHandler(logging.NullHandler())
    return Logger(base)


@pytest.fixture
def db(tmp_path):
    database = Database(str(tmp_path / "test.db"))
    yield database
    database.close()


def test_router_exact_and_fallback():
    router = Router()
    router.add("/api/profiles", lambda r: Response(status=201, body=b"api"))
    router.add("/", lambda r: Response(status=200, body=r.path.encode()))
    assert router.dispatch(Request(path="/api/profiles")).body == b"api"
    assert router.dispatch(Request(path="/api/profiles/other")).body == b"/api/profiles/other"
    assert router.dispatch(Request(path="/someone")).body == b"/someone"


def test_router_without_match_is_404():
    router = Router()
    router.add("/only", lambda r: Response(status=200))
    response = router.dispatch(Request(path="/else"))
    assert response.status == 404
    assert response.text == "404 page not found\n"


def test_app_create_then_read(db):
    app = create_app(db, quiet_logger(), 60, 10)
    created = app.dispatch(
        Request(method="POST", path="/api/profiles", body=json.dumps(PROFILE).encode())
    )
    assert created.status == 201
    shown = app.dispatch(
        Request(path="/testuser", headers={"User-Agent": "curl/7.68.0"}, remote_addr="192.0.2.1:1")
    )
    assert shown.status == 200
    assert "Test User (@testuser)" in shown.text


def test_app_update_and_delete_routes(db):
    app = create_app(db, quiet_logger(), 60, 10)
    app.dispatch(Request(method="POST", path="/api/profiles", body=json.dumps(PROFILE).encode()))
    user_id = db.get_user_by_username("testuser").id
    updated = app.dispatch(
        Request(
            method="PUT",
            path="/api/profiles/update",
            query=f"user_id={user_id}",
            body=json.dumps({"full_name": "New Name", "username": "newname"}).encode(),
        )
    )
    assert json.loads(updated.body)["username"] == "newname"
    deleted = app.dispatch(
        Request(method="DELETE", path="/api/profiles/delete", query=f"user_id={user_id}")
    )
    assert deleted.status == 204
    assert db.get_user_by_username("newname") is None


def test_app_rate_limits_profile_reads_only(db):
    app = create_app(db, quiet_logger(), 1, 1)
    first = app.dispatch(Request(path="/nobody", remote_addr="192.0.2.1:1"))
    second = app.dispatch(Request(path="/nobody", remote_addr="192.0.2.1:1"))
    assert first.status == 404
    assert second.status == 429
    posts = [
        app.dispatch(Request(method="POST", path="/api/profiles", body=b"bad", remote_addr="192.0.2.1:1")).status
        for _ in range(3)
    ]
    assert posts == [400, 400, 400]
    assert app.rate_limiter.client_count == 1


def test_to_wsgi_round_trip(db):
    wsgi_app = to_wsgi(create_app(db, quiet_logger(), 60, 10))
    body = json.dumps(PROFILE).encode()
    environ = {
        "REQUEST_METHOD": "POST",
        "PATH_INFO": "/api/profiles",
        "QUERY_STRING": "",
        "CONTENT_TYPE": "application/json",
        "CONTENT_LENGTH": str(len(body)),
        "REMOTE_ADDR": "127.0.0.1",
        "REMOTE_PORT": "5000",
        "wsgi.input": io.BytesIO(body),
    }
    captured = {}

    def start_response(status, headers):
        captured["status"] = status
        captured["headers"] = dict(headers)

    chunks = wsgi_app(environ, start_response)
    payload = b"".join(chunks)
    assert captured["status"] == "201 Created"
    assert captured["headers"]["Content-Length"] == str(len(payload))
    assert json.loads(payload)["username"] == "testuser"


def test_to_wsgi_passes_query_and_headers(db):
    db_app = create_app(db, quiet_logger(), 60, 10)
    wsgi_app = to_wsgi(db_app)
    captured = {}

    def start_response(status, headers):
        captured["status"] = status

    environ = {
        "REQUEST_METHOD": "PUT",
        "PATH_INFO": "/api/profiles/update",
        "QUERY_STRING": "",
        "HTTP_USER_AGENT": "curl/7.68.0",
        "wsgi.input": io.BytesIO(b""),
    }
    payload = b"".join(wsgi_app(environ, start_response))
    assert captured["status"].startswith("400")
    assert payload == b"User ID is required\n"


def test_main_fails_on_unopenable_database(tmp_path, capsys):
    missing = tmp_path / "missing" / "db.sqlite"
    assert main(["--database", str(missing)]) == 1
    assert "Failed to initialize database" in capsys.readouterr().err


def test_main_rejects_bad_port():
    with pytest.raises(SystemExit) as info:
        main(["--port", "not-a-number"])
    assert info.value.code == 2