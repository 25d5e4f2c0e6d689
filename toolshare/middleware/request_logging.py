"""
Per-request bookkeeping: request ID, declared body size limit, timing.
"""

from typing import Callable, Optional
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp
import logging
import time
import uuid

from toolshare.services.error_handler import ErrorHandlerService
from toolshare.utils.exceptions import BadRequestError

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"
PROCESSING_TIME_HEADER = "X-Processing-Time"


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Stores a short ID on ``request.state.request_id``; the error handler puts
    the same value in error bodies. Bodies whose ``Content-Length`` exceeds
    ``max_request_size`` are refused with 400 before reaching a route.
    """

    def __init__(
        self,
        app: ASGIApp,
        max_request_size: int = 60 * 1024 * 1024,
        enable_request_logging: bool = True,
        slow_request_threshold: float = 2.0
    ):
        super().__init__(app)
        self.max_request_size = max_request_size
        self.enable_request_logging = enable_request_logging
        self.slow_request_threshold = slow_request_threshold

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = uuid.uuid4().hex[:8]
        request.state.request_id = request_id
        started = time.perf_counter()
        label = f"[{request_id}] {request.method} {request.url.path}"

        rejection = self._size_error(request.headers.get("content-length"))
        if rejection is not None:
            response = ErrorHandlerService.handle_api_exception(rejection, request)
            response.headers[REQUEST_ID_HEADER] = request_id
            return response

        if self.enable_request_logging:
            logger.info(f"{label} started")

        response = await call_next(request)
        elapsed = time.perf_counter() - started

        if elapsed > self.slow_request_threshold:
            logger.warning(f"{label} slow: {elapsed:.3f}s")
        elif self.enable_request_logging:
            logger.info(f"{label} -> {response.status_code} in {elapsed:.3f}s")

        response.headers[REQUEST_ID_HEADER] = request_id
        response.headers[PROCESSING_TIME_HEADER] = f"{elapsed:.3f}"
        return response

    def _size_error(self, content_length: Optional[str]) -> Optional[BadRequestError]:
        if not content_length:
            return None
        if not content_length.isdigit():
            return BadRequestError("Invalid content-length header")
        size = int(content_length)
        if size > self.max_request_size:
            return BadRequestError(
                f"Request body of {size} bytes exceeds the {self.max_request_size} byte limit"
            )
        return None
