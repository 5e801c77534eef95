"""Request logging middleware."""
import time
from typing import Callable
from uuid import uuid4

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from app.utils.logger import bind_request_context, clear_request_context, get_logger

logger = get_logger(__name__)


class RequestLogMiddleware(BaseHTTPMiddleware):
    """
    Log every request once it completes.

    Bodies are never logged: they carry claim descriptions and personal
    details. A request id is bound to every log line emitted while handling
    the request and returned in ``X-Request-ID``.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        clear_request_context()
        request_id = request.headers.get("X-Request-ID") or uuid4().hex
        bind_request_context(request_id=request_id)
        start = time.perf_counter()

        response = await call_next(request)

        logger.info(
            "API request",
            method=request.method,
            path=request.url.path,
            status_code=response.status_code,
            duration_ms=round((time.perf_counter() - start) * 1000, 1),
            client_ip=request.client.host if request.client else None,
        )
        response.headers["X-Request-ID"] = request_id
        return response
