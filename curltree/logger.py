"""Structured key/value logging in text or JSON form."""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime
from typing import Any

_LEVELS = {"debug": logging.DEBUG, "info": logging.INFO,
           "warn": logging.WARNING, "error": logging.ERROR}
_NAMES = {logging.DEBUG: "DEBUG", logging.INFO: "INFO",
          logging.WARNING: "WARN", logging.ERROR: "ERROR"}


def parse_log_level(level: str) -> int:
    """Map a level name to a logging level; unknown names mean info."""
    return _LEVELS.get(level.lower(), logging.INFO)


def _quote(value: Any) -> str:
    text = ("true" if value else "false") if isinstance(value, bool) else str(value)
    if text == "" or any(c.isspace() or c in '="' or not c.isprintable() for c in text):
        return json.dumps(text, ensure_ascii=False)
    return text


class _Formatter(logging.Formatter):
    def __init__(self, as_json: bool) -> None:
        super().__init__()
        self._as_json = as_json

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "time": datetime.fromtimestamp(record.created).astimezone().isoformat(
                timespec="milliseconds"),
            "level": _NAMES.get(record.levelno, record.levelname),
            "msg": record.getMessage(),
            **getattr(record, "fields", {}),
        }
        if self._as_json:
            return json.dumps(entry, ensure_ascii=False, default=str)
        return " ".join(f"{key}={_quote(value)}" for key, value in entry.items())


def new_logger(level: str = "info", output: str = "stdout", fmt: str = "text",
               output_file: str = "") -> Logger:
    """Build a Logger writing to stdout, stderr or a file, as text or JSON."""
    if output == "stderr":
        handler: logging.Handler = logging.StreamHandler(sys.stderr)
    elif output == "file":
        handler = logging.FileHandler(output_file, mode="a", encoding="utf-8")
    else:
        handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(_Formatter(as_json=fmt == "json"))
    base = logging.Logger("curltree", parse_log_level(level))
    base.addHandler(handler)
    return Logger(base)


class Logger:
    """A logger that carries key/value fields into every record."""

    def __init__(self, logger: logging.Logger, fields: dict[str, Any] | None = None) -> None:
        self._logger = logger
        self.fields: dict[str, Any] = dict(fields or {})

    def _bind(self, **fields: Any) -> Logger:
        return Logger(self._logger, {**self.fields, **fields})

    def with_context(self, component: str) -> Logger:
        return self._bind(component=component)

    def with_user(self, user_id: str) -> Logger:
        return self._bind(user_id=user_id)

    def with_request(self, method: str, path: str, user_agent: str) -> Logger:
        return self._bind(method=method, path=path, user_agent=user_agent)

    def _log(self, level: int, message: str, fields: dict[str, Any]) -> None:
        self._logger.log(level, message, extra={"fields": {**self.fields, **fields}})

    def debug(self, message: str, **kwargs: Any) -> None:
        self._log(logging.DEBUG, message, kwargs)

    def info(self, message: str, **kwargs: Any) -> None:
        self._log(logging.INFO, message, kwargs)

    def warn(self, message: str, **kwargs: Any) -> None:
        self._log(logging.WARNING, message, kwargs)

    def error(self, message: str, **kwargs: Any) -> None:
        self._log(logging.ERROR, message, kwargs)

    def log_error(self, err: BaseException | str, message: str, **kwargs: Any) -> None:
        self.error(message, error=err, **kwargs)

    def log_request(self, method: str, path: str, status_code: int, duration: str) -> None:
        self.info("HTTP request", method=method, path=path,
                  status_code=status_code, duration=duration)

    def log_ssh_connection(self, user: str, remote_addr: str) -> None:
        self.info("SSH connection", user=user, remote_addr=remote_addr)

    def log_profile_action(self, action: str, user_id: str, username: str) -> None:
        self.info("Profile action", action=action, user_id=user_id, username=username)

    def log_rate_limit(self, ip: str, requests_per_minute: int) -> None:
        self.warn("Rate limit exceeded", ip=ip, limit=requests_per_minute)

    def close(self) -> None:
        """Close the handlers of the underlying logger."""
        for handler in list(self._logger.handlers):
            handler.close()
            self._logger.removeHandler(handler)