"""Request logging middleware."""

from __future__ import annotations

import json
import logging
import time

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import Response

logger = logging.getLogger("callscribe.middleware.structured")

_RESET = "\u001b[0m"
_STATUS_COLORS = (
    (500, "\u001b[31m"),
    (400, "\u001b[33m"),
    (200, "\u001b[32m"),
    (0, "\u001b[36m"),
)

_TWILIO_SIGNATURE = "x-twilio-signature"
_REDACTED_HEADERS = {_TWILIO_SIGNATURE, "authorization", "cookie"}


def _color_for(status_code: int) -> str:
    for floor, color in _STATUS_COLORS:
        if status_code >= floor:
            return color
    return _STATUS_COLORS[-1][1]


def _redacted_headers(request: Request) -> str:
    headers = {
        name: "***" if name.lower() in _REDACTED_HEADERS else value
        for name, value in request.headers.items()
    }
    return json.dumps(headers, separators=(",", ":"))


class StructuredLoggingMiddleware(BaseHTTPMiddleware):
    """One coloured line per request; Twilio webhook calls are tagged.

    Header dumps (with credentials and webhook signatures masked) are only
    emitted at DEBUG level.
    """

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        started = time.perf_counter()
        source = "twilio" if _TWILIO_SIGNATURE in request.headers else "api"
        try:
            response = await call_next(request)
        except Exception:
            logger.exception(self._line(request, 500, started, source))
            raise

        logger.info(self._line(request, response.status_code, started, source))
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug("headers=%s", _redacted_headers(request))
        return response

    @staticmethod
    def _line(request: Request, status_code: int, started: float, source: str) -> str:
        duration_ms = round((time.perf_counter() - started) * 1000, 2)
        client = request.client.host if request.client else "-"
        query = f"?{request.url.query}" if request.url.query else ""
        return (
            f"{_color_for(status_code)}{request.method} {request.url.path}{query} "
            f"status={status_code} duration_ms={duration_ms} "
            f"client={client} source={source}{_RESET}"
        )
