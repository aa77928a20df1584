"""Per-client rate limiting and request logging around handlers."""

from __future__ import annotations

import threading
import time
from http import HTTPStatus
from typing import Callable

from curltree.handlers import HandlerFunc, Request, Response
from curltree.logger import Logger


class TokenBucket:
    """A token bucket that refills at `rate` tokens per second up to `burst`."""

    def __init__(self, rate: float, burst: int,
                 clock: Callable[[], float] = time.monotonic) -> None:
        self.rate = float(rate)
        self.burst = burst
        self._clock = clock
        self._tokens = float(burst)
        self._last: float | None = None
        self._lock = threading.Lock()

    def _advance(self, now: float) -> float:
        if self._last is None:
            return float(self.burst)
        return min(float(self.burst), self._tokens + max(0.0, now - self._last) * self.rate)

    def tokens_at(self, now: float) -> float:
        """Return how many tokens the bucket holds at the given clock reading."""
        with self._lock:
            return self._advance(now)

    def allow(self) -> bool:
        """Take one token if there is one; tell whether it was taken."""
        with self._lock:
            now = self._clock()
            tokens = self._advance(now)
            if tokens < 1:
                return False
            self._tokens, self._last = tokens - 1, now
            return True


class RateLimiter:
    """Keeps one token bucket per client address."""

    CLEANUP_INTERVAL = 600.0

    def __init__(self, requests_per_minute: int, burst: int, logger: Logger) -> None:
        if requests_per_minute <= 0:
            raise ValueError("requests_per_minute must be positive")
        self.rate = requests_per_minute / 60.0
        self.burst = burst
        self._logger = logger.with_context("rate_limiter")
        self._clients: dict[str, TokenBucket] = {}
        self._lock = threading.Lock()
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def client_count(self) -> int:
        with self._lock:
            return len(self._clients)

    def middleware(self, handler: HandlerFunc) -> HandlerFunc:
        """Wrap a handler so that clients over their limit get 429."""

        def limited(request: Request) -> Response:
            ip = get_client_ip(request)
            with self._lock:
                bucket = self._clients.setdefault(ip, TokenBucket(self.rate, self.burst))
            if not bucket.allow():
                self._logger.log_rate_limit(ip, int(self.rate))
                return Response.error("Rate limit exceeded", HTTPStatus.TOO_MANY_REQUESTS)
            return handler(request)

        return limited

    def cleanup_old_clients(self) -> None:
        """Forget clients whose buckets have refilled completely."""
        now = time.monotonic()
        with self._lock:
            self._clients = {ip: bucket for ip, bucket in self._clients.items()
                             if bucket.tokens_at(now) != self.burst}

    def start_cleanup_task(self) -> threading.Thread:
        """Run cleanup every ten minutes in a background thread."""
        if self._thread is None or not self._thread.is_alive():
            self._stop.clear()

            def loop() -> None:
                while not self._stop.wait(self.CLEANUP_INTERVAL):
                    self.cleanup_old_clients()

            self._thread = threading.Thread(target=loop, name="rate-limiter-cleanup",
                                            daemon=True)
            self._thread.start()
        return self._thread

    def stop_cleanup_task(self) -> None:
        """Stop the background cleanup thread, if it runs."""
        self._stop.set()
        if self._thread is not None:
            self._thread.join()
            self._thread = None


def _format_duration(seconds: float) -> str:
    ns = max(0, round(seconds * 1e9))
    if ns == 0:
        return "0s"
    if ns < 1_000:
        return f"{ns}ns"
    for unit, suffix in ((1_000, "µs"), (1_000_000, "ms")):
        if ns < unit * 1_000:
            return f"{ns / unit:.{len(str(unit)) - 1}f}".rstrip("0").rstrip(".") + suffix
    minutes, rest = divmod(ns, 60 * 10**9)
    hours, minutes = divmod(minutes, 60)
    text = f"{rest / 1e9:.9f}".rstrip("0").rstrip(".") + "s"
    if hours:
        return f"{hours}h{minutes}m{text}"
    return f"{minutes}m{text}" if minutes else text


class LoggingMiddleware:
    """Logs every request, and error responses in more detail."""

    def __init__(self, logger: Logger) -> None:
        self._logger = logger.with_context("http")

    def middleware(self, handler: HandlerFunc) -> HandlerFunc:
        def logged(request: Request) -> Response:
            start = time.perf_counter()
            response = handler(request)
            status = int(response.status)
            self._logger.log_request(request.method, request.path, status,
                                     _format_duration(time.perf_counter() - start))
            if status >= 400:
                self._logger.error(
                    "HTTP error response",
                    method=request.method,
                    path=request.path,
                    status_code=status,
                    user_agent=request.header("User-Agent"),
                    remote_addr=get_client_ip(request),
                )
            return response

        return logged


def get_client_ip(request: Request) -> str:
    """Return the client address from proxy headers or the connection."""
    for name in ("X-Forwarded-For", "X-Real-IP"):
        value = request.header(name)
        if value:
            return value
    address = request.remote_addr
    if address.startswith("["):
        host, sep, rest = address[1:].partition("]")
        return host if sep and rest.startswith(":") else address
    host, sep, _ = address.rpartition(":")
    return host if sep and ":" not in host else address