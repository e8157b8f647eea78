"""Request logging middleware."""

import time
import uuid
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from sitecms.core.logging import bind_context, clear_context, get_logger

logger = get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Binds a request id to every log line emitted while serving a request.

    An incoming X-Request-ID is reused so ids can be followed across
    services; otherwise a new one is generated. The id is echoed back in the
    response headers.
    """

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Response]
    ) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())

        bind_context(
            request_id=request_id,
            method=request.method,
            path=request.url.path,
        )
        start_time = time.perf_counter()

        try:
            response = await call_next(request)
        except Exception as exc:
            logger.exception(
                "request_failed",
                error=str(exc),
                duration_ms=self._elapsed_ms(start_time),
            )
            raise
        else:
            log = logger.warning if response.status_code >= 500 else logger.info
            log(
                "request_completed",
                status_code=response.status_code,
                duration_ms=self._elapsed_ms(start_time),
            )
            response.headers[REQUEST_ID_HEADER] = request_id
            return response
        finally:
            clear_context()

    @staticmethod
    def _elapsed_ms(start_time: float) -> float:
        return round((time.perf_counter() - start_time) * 1000, 2)
