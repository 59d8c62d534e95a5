# src/skillboard/middleware/logging.py

"""Request/response logging middleware for the SkillBoard API."""

import logging
import time
import uuid
from collections.abc import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger("skillboard.api")

REQUEST_ID_HEADER = "X-Request-ID"


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Logs each request once it completes, tagged with a request ID.

    A caller-supplied X-Request-ID is reused; otherwise a short one is
    generated. The ID is echoed back on the response and kept on
    ``request.state.request_id``.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex[:8]
        request.state.request_id = request_id
        started = time.perf_counter()

        context = {
            "request_id": request_id,
            "method": request.method,
            "path": request.url.path,
        }

        try:
            response = await call_next(request)
        except Exception as e:
            logger.error(
                "[%s] %s %s -> ERROR: %s",
                request_id,
                request.method,
                request.url.path,
                e,
                extra={**context, "duration_ms": _elapsed_ms(started)},
                exc_info=True,
            )
            raise

        duration_ms = _elapsed_ms(started)
        # 5xx responses are logged as errors
        level = logging.ERROR if response.status_code >= 500 else logging.INFO
        logger.log(
            level,
            "[%s] %s %s -> %d (%.2fms)",
            request_id,
            request.method,
            request.url.path,
            response.status_code,
            duration_ms,
            extra={
                **context,
                "status_code": response.status_code,
                "duration_ms": duration_ms,
            },
        )
        response.headers[REQUEST_ID_HEADER] = request_id
        return response  # type: ignore[no-any-return]


def _elapsed_ms(started: float) -> float:
    return round((time.perf_counter() - started) * 1000, 2)
