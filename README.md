# curltree

curltree keeps small personal profiles in a SQLite database and serves
them over HTTP. A profile has a name, a username, a short "about" text
and a list of links. The response depends on the client:

- If the `User-Agent` mentions curl and the request does not ask for
  `application/json`, the client gets a box-drawn text card.
- Every other client gets the profile as JSON.

```
┌─ Demo User (@demo)
│
├─ About:
│  ├─ This is a demo profile
│
├─ Links
│  ├─ 🔗 Website: https://example.com
│  └─ 🔗 Blog: https://example.com/blog
│
└─ Powered by curltree.dev
```

The text card wraps the "about" text at 60 characters per line.

## Installing

```
pip install .
```

No third-party libraries are needed. Everything runs on the standard
library.

## Running the server

```
curltree-server
```

This opens (or creates) the database and applies the schema. It then
serves HTTP with a threaded WSGI server until interrupted. Every request
is logged. Profile lookups are rate limited per client.

| Option         | Default       | Meaning                                          |
|----------------|---------------|--------------------------------------------------|
| `--host`       | `0.0.0.0`     | Address to listen on                             |
| `--port`       | `8080`        | Port to listen on                                |
| `--database`   | `curltree.db` | SQLite database file                             |
| `--rate-limit` | `60`          | Profile lookups per minute per client            |
| `--burst`      | `10`          | Lookups a client may make at once                |
| `--log-level`  | `info`        | `debug`, `info`, `warn` or `error`               |
| `--log-format` | `text`        | `text` (key=value) or `json`                     |
| `--log-output` | `stdout`      | `stdout`, `stderr` or `file`                     |
| `--log-file`   | (empty)       | File to append to when `--log-output file`       |

## HTTP interface

| Method | Path                               | Purpose                                  |
|--------|------------------------------------|------------------------------------------|
| GET    | `/<username>`                      | Show a public profile (text or JSON)     |
| POST   | `/api/profiles`                    | Create a profile from a JSON body        |
| PUT    | `/api/profiles/update?user_id=ID`  | Replace name, username, about and links  |
| DELETE | `/api/profiles/delete?user_id=ID`  | Remove a profile and its links           |

A create request body looks like this:

```json
{
  "ssh_public_key": "ssh-ed25519 placeholder demo",
  "full_name": "Demo User",
  "username": "demo",
  "about": "This is a demo profile",
  "links": [
    {"name": "Website", "url": "https://example.com"}
  ]
}
```

An update body has the same fields without `ssh_public_key`.

Responses:

| Status | When                                                                 |
|--------|----------------------------------------------------------------------|
| `200`  | A profile lookup or an update succeeded. An update returns the stored user. |
| `201`  | A create succeeded. The body is the stored user.                     |
| `204`  | A delete succeeded.                                                  |
| `400`  | Malformed JSON, a missing `user_id` or username, or a field that fails validation. |
| `404`  | The username is unknown.                                             |
| `405`  | The request used the wrong method.                                   |
| `409`  | The username is taken.                                               |
| `429`  | The client went over the lookup rate limit.                          |

A validation error names the field, for example
`validation error on field 'username': ...`.

Before validation, every input is trimmed of surrounding whitespace and
has NUL and carriage-return characters removed. The rules are:

- **SSH public key:** must look like `ssh-<type> <base64> [comment]`.
- **Username:** 2–50 letters, digits, `-` or `_`. It may not start or
  end with `-` or `_`.
- **Full name:** required, at most 100 characters.
- **About:** at most 500 characters.
- **Link name:** required, at most 100 characters.
- **Link URL:** `http://` or `https://`, with a host, at most 500
  characters.

## Using it from Python

```python
from wsgiref.simple_server import make_server

from curltree.database import Database
from curltree.logger import new_logger
from curltree.models import CreateUserRequest
from curltree.server import create_app, to_wsgi

logger = new_logger("info", "stdout", "text", "")

with Database("curltree.db") as db:
    if not db.username_exists("demo"):
        db.create_user(CreateUserRequest.from_dict({
            "ssh_public_key": "ssh-ed25519 placeholder demo",
            "full_name": "Demo User",
            "username": "demo",
            "about": "This is a demo profile",
            "links": [{"name": "Website", "url": "https://example.com"}],
        }))

    app = create_app(db, logger, 60, 10)
    make_server("127.0.0.1", 8080, to_wsgi(app)).serve_forever()
```

`create_app` returns a `Router`. You can also call it directly with a
`curltree.handlers.Request` and get a `Response` back, with no server
involved.

Modules:

- **`curltree.database.Database`:** stores users and their links.
  Database failures raise `curltree.errors.DatabaseError`.
- **`curltree.validation`:** `validate_username`, `validate_full_name`,
  `validate_about`, `validate_url`, `validate_link_name`,
  `validate_ssh_key`, `sanitize_input` and `sanitize_html`. The
  validators raise `ValueError` with a readable message.
- **`curltree.handlers`:** the `Handler` endpoints, the `Request` and
  `Response` types, and `render_plain_text`, which turns a
  `PublicProfile` into the text card shown above.
- **`curltree.middleware`:** `RateLimiter` (a token bucket per client,
  keyed on `X-Forwarded-For`, `X-Real-IP` or the remote address),
  `LoggingMiddleware` and `TokenBucket`.
- **`curltree.logger`:** `new_logger` and `Logger`, for key/value
  logging as text or JSON.
- **`curltree.auth`:** `AuthService.is_user_registered` looks a user up
  by key identifier. `format_ssh_key` builds `<type>:<sha256 hex>`
  identifiers from a key's wire bytes. `normalize_ssh_key` reduces an
  `authorized_keys` line to its type and body.
- **`curltree.form.ProfileForm`:** a profile form model with field
  navigation, link rows and validation. It produces `CreateUserRequest`
  or `UpdateUserRequest` objects.

## What it does not do

- There is no SSH server and no interactive terminal screen.
  `ProfileForm` and the `AppState` and `KeyBinding` models hold the
  state such a screen would use, but nothing in the package draws it or
  accepts SSH connections.
- The HTTP API does not authenticate anyone. Updates and deletes are
  keyed only on `user_id`.

## Running the tests

```
pip install ".[test]"
pytest
```