"""
Middleware for the FuelSense API.

Provides:
- Request context: X-Request-ID, one JSON log line per request, and a
  500 body for exceptions no handler claimed
- Security headers on every response
"""
import json
import logging
import time
import uuid
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Callable, Optional

from fastapi import FastAPI
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

REQUEST_ID_HEADER = "X-Request-ID"

request_id_ctx: ContextVar[Optional[str]] = ContextVar("request_id", default=None)


def get_request_id() -> Optional[str]:
    """Request ID of the request being served, if any."""
    return request_id_ctx.get()


class StructuredLogger:
    """
    Writes one JSON object per log line.

    Each line carries a UTC timestamp, the level, the event name, the
    service and the current request ID; keyword fields are appended and
    None values left out.
    """

    def __init__(self, name: str, service: str = "fuelsense-api"):
        self.logger = logging.getLogger(name)
        self.service = service

    def emit(self, level: int, event: str, **fields):
        if not self.logger.isEnabledFor(level):
            return
        line = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": logging.getLevelName(level),
            "event": event,
            "service": self.service,
        }
        request_id = get_request_id()
        if request_id:
            line["request_id"] = request_id
        line.update({key: value for key, value in fields.items() if value is not None})
        self.logger.log(level, json.dumps(line, default=str))

    def info(self, event: str, **fields):
        self.emit(logging.INFO, event, **fields)

    def warning(self, event: str, **fields):
        self.emit(logging.WARNING, event, **fields)

    def error(self, event: str, **fields):
        self.emit(logging.ERROR, event, **fields)


structured_logger = StructuredLogger("fuelsense.api")


class RequestContextMiddleware(BaseHTTPMiddleware):
    """
    Per-request ID, access log and last-resort error body.

    The ID comes from the caller's X-Request-ID header or a fresh UUID4 and
    is echoed on the response. Exceptions that escape every handler become
    a 500 carrying the ID; the exception text is only included in debug mode.
    """

    # Polled by monitors; not access-logged
    QUIET_PATHS = frozenset({"/api/health"})

    def __init__(self, app, debug: bool = False):
        super().__init__(app)
        self.debug = debug

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
        token = request_id_ctx.set(request_id)
        started = time.perf_counter()
        try:
            try:
                response = await call_next(request)
            except Exception as e:
                structured_logger.error(
                    "unhandled_exception",
                    method=request.method,
                    path=request.url.path,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                response = self._internal_error(e, request_id)

            if request.url.path not in self.QUIET_PATHS:
                structured_logger.info(
                    "request",
                    method=request.method,
                    path=request.url.path,
                    status_code=response.status_code,
                    duration_ms=round((time.perf_counter() - started) * 1000, 2),
                    client_ip=request.client.host if request.client else None,
                )
            response.headers[REQUEST_ID_HEADER] = request_id
            return response
        finally:
            request_id_ctx.reset(token)

    def _internal_error(self, error: Exception, request_id: str) -> JSONResponse:
        detail = str(error) if self.debug else "Internal error; quote the request ID when reporting it."
        return JSONResponse(
            status_code=500,
            content={
                "error": "InternalError",
                "code": "INTERNAL_ERROR",
                "detail": detail,
                "request_id": request_id,
            },
        )


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Adds fixed security headers to every response."""

    HEADERS = {
        "X-Content-Type-Options": "nosniff",
        "X-Frame-Options": "DENY",
        "Referrer-Policy": "strict-origin-when-cross-origin",
    }

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        response = await call_next(request)
        response.headers.update(self.HEADERS)
        return response


def setup_middleware(app: FastAPI, debug: bool = False):
    """
    Install the middleware stack.

    The last one added runs outermost, so the request context wraps
    everything else and every log line carries the request ID.
    """
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(RequestContextMiddleware, debug=debug)
