"""Per-request correlation id and access log.

Every request gets an ``X-Request-ID``: an upstream proxy's id is reused when
it looks like one, otherwise a fresh UUID4 hex is minted. The id, method and
path are bound into structlog contextvars for the request's lifetime, and one
"Request handled" line with status and duration replaces uvicorn's access log.
"""
from __future__ import annotations

import re
import time
import uuid

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response
from structlog.contextvars import bound_contextvars

logger = structlog.get_logger(__name__)

_WELL_FORMED = re.compile(r"^[A-Za-z0-9._-]{8,64}$")


def resolve_request_id(incoming: str | None) -> str:
    if incoming and _WELL_FORMED.match(incoming):
        return incoming
    return uuid.uuid4().hex


class RequestIdMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, header_name: str = "X-Request-ID") -> None:  # type: ignore[override]
        super().__init__(app)
        self.header_name = header_name

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:  # type: ignore[override]
        request_id = resolve_request_id(request.headers.get(self.header_name))
        request.state.request_id = request_id
        started = time.perf_counter()

        with bound_contextvars(request_id=request_id, method=request.method, path=request.url.path):
            response = await call_next(request)
            logger.info(
                "Request handled",
                status_code=response.status_code,
                duration_ms=round((time.perf_counter() - started) * 1000, 1),
            )

        response.headers[self.header_name] = request_id
        return response
