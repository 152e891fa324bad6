"""
Request Logging Middleware
Logs all incoming requests and responses.
"""

import logging
import time
import uuid
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger(__name__)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Log every HTTP request with its status and duration.

    The request id comes from X-Request-ID (generated when absent) and is
    echoed back on the response, along with X-Response-Time.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        start_time = time.time()

        logger.info(
            f"{request.method} {request.url.path} started",
            extra={
                "request_id": request_id,
                "query": str(request.url.query) if request.url.query else None,
                "client": request.client.host if request.client else None,
            },
        )

        try:
            response = await call_next(request)
        except Exception as e:
            duration_ms = (time.time() - start_time) * 1000
            logger.error(
                f"{request.method} {request.url.path} failed",
                exc_info=True,
                extra={"request_id": request_id, "duration_ms": duration_ms, "error": str(e)},
            )
            raise

        duration_ms = (time.time() - start_time) * 1000
        logger.info(
            f"{request.method} {request.url.path} completed: {response.status_code}",
            extra={"request_id": request_id, "duration_ms": duration_ms},
        )

        response.headers["X-Request-ID"] = request_id
        response.headers["X-Response-Time"] = f"{duration_ms:.2f}ms"
        return response
