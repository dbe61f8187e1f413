"""
Request-scoped observability middleware.

- ``RequestIDMiddleware`` reuses an upstream ``X-Request-ID`` or mints one,
  exposes it on ``request.state`` and in ``request_id_var`` so every log line
  written while serving the request carries it, and echoes it back.
- ``RequestTimingMiddleware`` adds ``X-Process-Time`` and writes one access
  line per request with method, path, status and latency as structured
  fields; requests slower than ``SLOW_REQUEST_MS`` are logged at WARNING.
"""

import logging
import time
import uuid

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from aquafin.core.logging import request_id_var

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"
PROCESS_TIME_HEADER = "X-Process-Time"
SLOW_REQUEST_MS = 500.0


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Propagate or generate the request's trace id."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
        request.state.request_id = request_id
        token = request_id_var.set(request_id)
        try:
            response = await call_next(request)
        finally:
            request_id_var.reset(token)
        response.headers[REQUEST_ID_HEADER] = request_id
        return response


class RequestTimingMiddleware(BaseHTTPMiddleware):
    """Measure wall-clock latency and write the access log line."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        start = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = round((time.perf_counter() - start) * 1000, 2)

        response.headers[PROCESS_TIME_HEADER] = f"{elapsed_ms:.2f}ms"

        fields = {
            "method": request.method,
            "path": request.url.path,
            "status_code": response.status_code,
            "elapsed_ms": elapsed_ms,
            "request_id": getattr(request.state, "request_id", None),
        }
        level = logging.WARNING if elapsed_ms > SLOW_REQUEST_MS else logging.INFO
        logger.log(
            level,
            "%s %s -> %d in %.2fms%s",
            request.method,
            request.url.path,
            response.status_code,
            elapsed_ms,
            " (SLOW)" if level == logging.WARNING else "",
            extra=fields,
        )
        return response
