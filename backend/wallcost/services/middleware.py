"""
Request middleware for the wall cost API.

Every response carries ``X-Request-ID`` (the caller's own id when it sent
one) and ``X-Process-Time`` in milliseconds, and every request outside
``QUIET_PATHS`` gets one access log line.  Server errors log at WARNING.
"""
import logging
import time
import uuid

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

logger = logging.getLogger("wallcost-api.middleware")

REQUEST_ID_HEADER = "X-Request-ID"
PROCESS_TIME_HEADER = "X-Process-Time"
QUIET_PATHS = frozenset({"/health", "/api/metrics"})


class RequestTimingMiddleware(BaseHTTPMiddleware):

    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        request.state.request_id = request_id
        started = time.perf_counter()

        response = await call_next(request)

        elapsed_ms = round((time.perf_counter() - started) * 1000, 2)
        response.headers[REQUEST_ID_HEADER] = request_id
        response.headers[PROCESS_TIME_HEADER] = str(elapsed_ms)

        path = request.url.path
        if path in QUIET_PATHS:
            return response
        level = logging.WARNING if response.status_code >= 500 else logging.INFO
        logger.log(
            level,
            f"{request.method} {path} {response.status_code} ({elapsed_ms} ms)",
            extra={
                "request_id": request_id,
                "http_method": request.method,
                "http_path": path,
                "http_status": response.status_code,
                "duration_ms": elapsed_ms,
            },
        )
        return response
