import logging
import time
from contextvars import ContextVar

from sqlalchemy import event
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from conduit.config import settings

logger = logging.getLogger(__name__)

# SQL statements issued while serving the current request.
query_count_var: ContextVar[int] = ContextVar("query_count", default=0)


def install_query_counter(engine) -> None:
    """
    Count every statement *engine* sends to the database into
    ``query_count_var``.  Call once per engine: the application engine in
    ``database.py`` and the SQLite engine in the test suite.
    """

    @event.listens_for(engine.sync_engine, "before_cursor_execute")
    def _count_query(conn, cursor, statement, parameters, context, executemany):
        query_count_var.set(query_count_var.get() + 1)


class TimingMiddleware:
    """
    Stamp each HTTP response with ``X-Response-Time-Ms`` and
    ``X-Query-Count``, and log the request once it has been answered.

    Written against raw ASGI so the handler runs in this coroutine's
    context and its writes to ``query_count_var`` are visible here.
    """

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        query_count_var.set(0)
        started = time.perf_counter()
        status_code = 500

        async def send_with_timing(message: Message) -> None:
            nonlocal status_code
            if message["type"] == "http.response.start":
                status_code = message["status"]
                elapsed_ms = round((time.perf_counter() - started) * 1000, 2)
                message["headers"] = [
                    *message.get("headers", []),
                    (b"x-response-time-ms", str(elapsed_ms).encode()),
                    (b"x-query-count", str(query_count_var.get()).encode()),
                ]
            await send(message)

        try:
            await self.app(scope, receive, send_with_timing)
        finally:
            self._log_request(scope, status_code, (time.perf_counter() - started) * 1000)

    @staticmethod
    def _log_request(scope: Scope, status_code: int, elapsed_ms: float) -> None:
        level = logging.WARNING if elapsed_ms >= settings.SLOW_REQUEST_MS else logging.DEBUG
        logger.log(
            level,
            "%s %s -> %s in %.1fms (%d queries)",
            scope["method"], scope["path"], status_code, elapsed_ms, query_count_var.get(),
        )
