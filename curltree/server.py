"""The HTTP server: routing, WSGI adapter and command-line entry point."""

from __future__ import annotations

import argparse
import sys
from http import HTTPStatus
from socketserver import ThreadingMixIn
from typing import Any, Callable, Iterable
from wsgiref.simple_server import WSGIRequestHandler, WSGIServer, make_server

from curltree.database import Database
from curltree.errors import DatabaseError
from curltree.handlers import Handler, HandlerFunc, Request, Response
from curltree.logger import Logger, new_logger
from curltree.middleware import LoggingMiddleware, RateLimiter


class Router:
    """Maps paths to handlers; a path ending in '/' matches everything below it."""

    def __init__(self) -> None:
        self._routes: dict[str, HandlerFunc] = {}
        self.rate_limiter: RateLimiter | None = None

    def add(self, path: str, handler: HandlerFunc) -> None:
        self._routes[path] = handler

    def dispatch(self, request: Request) -> Response:
        handler = self._routes.get(request.path)
        if handler is None:
            prefixes = [
                pattern
                for pattern in self._routes
                if pattern.endswith("/") and request.path.startswith(pattern)
            ]
            if prefixes:
                handler = self._routes[max(prefixes, key=len)]
        if handler is None:
            return Response.error("404 page not found", HTTPStatus.NOT_FOUND)
        return handler(request)

    def __call__(self, request: Request) -> Response:
        return self.dispatch(request)


def create_app(db: Database, logger: Logger, requests_per_minute: int, burst: int) -> Router:
    """Build the router with all profile endpoints; profile reads are rate limited."""
    handler = Handler(db)
    rate_limiter = RateLimiter(requests_per_minute, burst, logger)
    logging_middleware = LoggingMiddleware(logger)

    router = Router()
    router.add("/api/profiles", logging_middleware.middleware(handler.create_profile))
    router.add("/api/profiles/update", logging_middleware.middleware(handler.update_profile))
    router.add("/api/profiles/delete", logging_middleware.middleware(handler.delete_profile))
    router.add(
        "/",
        logging_middleware.middleware(rate_limiter.middleware(handler.get_profile)),
    )
    router.rate_limiter = rate_limiter
    return router


def _request_from_environ(environ: dict[str, Any]) -> Request:
    headers: dict[str, str] = {}
    for key, value in environ.items():
        if key.startswith("HTTP_"):
            headers[key[5:].replace("_", "-").title()] = value
    if environ.get("CONTENT_TYPE"):
        headers["Content-Type"] = environ["CONTENT_TYPE"]
    if environ.get("CONTENT_LENGTH"):
        headers["Content-Length"] = environ["CONTENT_LENGTH"]

    try:
        length = int(environ.get("CONTENT_LENGTH") or 0)
    except ValueError:
        length = 0
    stream = environ.get("wsgi.input")
    body = stream.read(length) if stream is not None and length > 0 else b""

    path = environ.get("PATH_INFO", "/").encode("latin-1").decode("utf-8", errors="replace")
    remote = environ.get("REMOTE_ADDR", "")
    port = environ.get("REMOTE_PORT", "")
    if port:
        remote = f"[{remote}]:{port}" if ":" in remote else f"{remote}:{port}"

    return Request(
        method=environ.get("REQUEST_METHOD", "GET"),
        path=path or "/",
        headers=headers,
        query=environ.get("QUERY_STRING", ""),
        body=body,
        remote_addr=remote,
    )


def to_wsgi(app: Router) -> Callable[[dict[str, Any], Callable[..., Any]], Iterable[bytes]]:
    """Expose a router as a WSGI application."""

    def wsgi_app(environ: dict[str, Any], start_response: Callable[..., Any]) -> Iterable[bytes]:
        response = app.dispatch(_request_from_environ(environ))
        try:
            reason = HTTPStatus(response.status).phrase
        except ValueError:
            reason = "Unknown"
        headers = list(response.headers.items())
        headers.append(("Content-Length", str(len(response.body))))
        start_response(f"{int(response.status)} {reason}", headers)
        return [response.body]

    return wsgi_app


class _ThreadingWSGIServer(ThreadingMixIn, WSGIServer):
    daemon_threads = True


class _QuietHandler(WSGIRequestHandler):
    def log_message(self, format: str, *args: Any) -> None:
        pass


def _parse_args(argv: list[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="curltree-server", description="Serve curltree profiles over HTTP.")
    parser.add_argument("--host", default="0.0.0.0")
    parser.add_argument("--port", type=int, default=8080)
    parser.add_argument("--database", default="curltree.db")
    parser.add_argument("--rate-limit", type=int, default=60, help="requests per minute per client")
    parser.add_argument("--burst", type=int, default=10)
    parser.add_argument("--log-level", default="info")
    parser.add_argument("--log-format", choices=("text", "json"), default="text")
    parser.add_argument("--log-output", choices=("stdout", "stderr", "file"), default="stdout")
    parser.add_argument("--log-file", default="")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    """Run the HTTP server until interrupted."""
    args = _parse_args(argv)

    try:
        logger = new_logger(args.log_level, args.log_output, args.log_format, args.log_file)
    except OSError as exc:
        print(f"Failed to initialize logger: {exc}", file=sys.stderr)
        return 1

    try:
        db = Database(args.database)
    except DatabaseError as exc:
        logger.log_error(exc, "Failed to initialize database")
        print(f"Failed to initialize database: {exc}", file=sys.stderr)
        logger.close()
        return 1

    try:
        app = create_app(db, logger, args.rate_limit, args.burst)
    except ValueError as exc:
        print(f"Invalid configuration: {exc}", file=sys.stderr)
        db.close()
        logger.close()
        return 1
    app.rate_limiter.start_cleanup_task()

    address = f"{args.host}:{args.port}"
    logger.info(
        "Starting HTTP server",
        address=address,
        database="sqlite",
        rate_limit=args.rate_limit,
        rate_burst=args.burst,
    )

    status = 0
    try:
        with make_server(
            args.host,
            args.port,
            to_wsgi(app),
            server_class=_ThreadingWSGIServer,
            handler_class=_QuietHandler,
        ) as server:
            try:
                server.serve_forever()
            except KeyboardInterrupt:
                pass
    except OSError as exc:
        logger.log_error(exc, "Server failed to start")
        print(f"Server failed to start: {exc}", file=sys.stderr)
        status = 1
    finally:
        app.rate_limiter.stop_cleanup_task()
        db.close()
        logger.close()
    return status


if __name__ == "__main__":
    sys.exit(main())