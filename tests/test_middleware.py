import logging
import time

import pytest

from curltree.handlers import Request, Response
from curltree.logger import Logger
from curltree.middleware import (
    LoggingMiddleware,
    RateLimiter,
    TokenBucket,
    get_client_ip,
)


class _Collect(logging.Handler):
    def __init__(self):
        super().__init__()
        self.records = []

    def emit(self, record):
        self.records.append(record)


def make_logger():
    base = logging.Logger("test-middleware")
    base.setLevel(logging.DEBUG)
    collector = _Collect()
    base.addHandler(collector)
    return Logger(base), collector


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


def ok_handler(request):
    return Response(status=200, body=b"ok")


def test_token_bucket_allows_burst_then_refills():
    clock = FakeClock()
    bucket = TokenBucket(1.0, 2, clock)
    assert [bucket.allow() for _ in range(3)] == [True, True, False]
    clock.now = 1.0
    assert bucket.allow() is True
    assert bucket.allow() is False


def test_token_bucket_tokens_at():
    clock = FakeClock()
    bucket = TokenBucket(1.0, 3, clock)
    assert bucket.tokens_at(0.0) == 3
    assert bucket.allow()
    assert bucket.tokens_at(0.0) == 3 - 1
    assert bucket.tokens_at(1000.0) == 3


def test_rate_limiter_rejects_over_limit():
    logger, collector = make_logger()
    limiter = RateLimiter(1, 2, logger)
    wrapped = limiter.middleware(ok_handler)
    req = Request(path="/x", remote_addr="192.0.2.1:1234")
    statuses = [wrapped(req).status for _ in range(3)]
    assert statuses[:2] == [200, 200]
    assert statuses[2] == 429
    blocked = wrapped(req)
    assert blocked.text == "Rate limit exceeded\n"
    warnings = [r for r in collector.records if r.levelno == logging.WARNING]
    assert warnings[0].fields["ip"] == "192.0.2.1"
    assert warnings[0].fields["component"] == "rate_limiter"


def test_rate_limiter_is_per_client():
    logger, _ = make_logger()
    limiter = RateLimiter(1, 1, logger)
    wrapped = limiter.middleware(ok_handler)
    assert wrapped(Request(remote_addr="192.0.2.1:1")).status == 200
    assert wrapped(Request(remote_addr="192.0.2.1:2")).status == 429
    assert wrapped(Request(remote_addr="192.0.2.2:1")).status == 200
    assert limiter.client_count == 2


def test_rate_limiter_rejects_nonpositive_rate():
    logger, _ = make_logger()
    with pytest.raises(ValueError):
        RateLimiter(0, 1, logger)


def test_cleanup_removes_refilled_clients():
    logger, _ = make_logger()
    limiter = RateLimiter(60_000_000, 2, logger)
    limiter.middleware(ok_handler)(Request(remote_addr="192.0.2.1:1"))
    assert limiter.client_count == 1
    time.sleep(0.01)
    limiter.cleanup_old_clients()
    assert limiter.client_count == 0


def test_cleanup_keeps_busy_clients():
    logger, _ = make_logger()
    limiter = RateLimiter(1, 5, logger)
    limiter.middleware(ok_handler)(Request(remote_addr="192.0.2.1:1"))
    limiter.cleanup_old_clients()
    assert limiter.client_count == 1


def test_cleanup_task_starts_and_stops():
    logger, _ = make_logger()
    limiter = RateLimiter(60, 5, logger)
    thread = limiter.start_cleanup_task()
    assert thread.is_alive()
    assert limiter.start_cleanup_task() is thread
    limiter.stop_cleanup_task()
    assert not thread.is_alive()


def test_get_client_ip_prefers_forwarded_headers():
    req = Request(
        headers={"X-Forwarded-For": "203.0.113.5", "X-Real-IP": "203.0.113.6"},
        remote_addr="192.0.2.1:80",
    )
    assert get_client_ip(req) == "203.0.113.5"
    req = Request(headers={"X-Real-IP": "203.0.113.6"}, remote_addr="192.0.2.1:80")
    assert get_client_ip(req) == "203.0.113.6"


@pytest.mark.parametrize(
    "remote, expected",
    [
        ("192.0.2.1:8080", "192.0.2.1"),
        ("[2001:db8::1]:443", "2001:db8::1"),
        ("192.0.2.1", "192.0.2.1"),
        ("2001:db8::1", "2001:db8::1"),
    ],
)
def test_get_client_ip_from_remote_addr(remote, expected):
    assert get_client_ip(Request(remote_addr=remote)) == expected


def test_logging_middleware_logs_requests():
    logger, collector = make_logger()
    wrapped = LoggingMiddleware(logger).middleware(ok_handler)
    response = wrapped(Request(method="GET", path="/someone", remote_addr="192.0.2.1:1"))
    assert response.body == b"ok"
    (record,) = collector.records
    assert record.getMessage() == "HTTP request"
    assert record.fields["status_code"] == 200
    assert record.fields["path"] == "/someone"
    assert record.fields["component"] == "http"
    assert record.fields["duration"].endswith("s")


def test_logging_middleware_logs_errors():
    logger, collector = make_logger()

    def failing(request):
        return Response.error("Profile not found", 404)

    wrapped = LoggingMiddleware(logger).middleware(failing)
    wrapped(
        Request(
            method="GET",
            path="/missing",
            headers={"User-Agent": "curl/7.68.0"},
            remote_addr="192.0.2.9:5",
        )
    )
    errors = [r for r in collector.records if r.levelno == logging.ERROR]
    assert len(errors) == 1
    assert errors[0].getMessage() == "HTTP error response"
    assert errors[0].fields["user_agent"] == "curl/7.68.0"
    assert errors[0].fields["remote_addr"] == "192.0.2.9"
    assert errors[0].fields["status_code"] == 404