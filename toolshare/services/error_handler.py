"""
Error response formatting.
Every failure leaves the API as ``{"error": {code, message, timestamp, request_id}}``
with optional ``details``; client errors are logged at WARNING, server errors at ERROR.
"""

from typing import Dict, Any, Optional, List
from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from sqlalchemy.exc import SQLAlchemyError, IntegrityError
from toolshare.utils.exceptions import APIException
from datetime import datetime, timezone
import logging
import uuid

logger = logging.getLogger(__name__)

# Driver message fragment -> caller-safe description
CONSTRAINT_MESSAGES = (
    ("unique", "Duplicate value for unique field"),
    ("foreign key", "Referenced record does not exist"),
    ("not null", "Required field cannot be empty"),
    ("check constraint", "Value does not meet validation requirements"),
)


class ErrorHandlerService:
    """Builds structured error responses for the exception handlers in ``main``."""

    @staticmethod
    def format_error_response(
        error_code: str,
        message: str,
        details: Optional[List[Dict[str, Any]]] = None,
        request_id: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Build the error envelope.

        Args:
            error_code: Machine-readable code, e.g. ``NOT_FOUND``
            message: Human-readable message
            details: Per-field problems for validation failures
            request_id: Correlates the body with the ``X-Request-ID`` header
        """
        error: Dict[str, Any] = {
            "code": error_code,
            "message": message,
            "timestamp": ErrorHandlerService._get_current_timestamp(),
        }
        if details:
            error["details"] = details
        if request_id:
            error["request_id"] = request_id
        return {"error": error}

    @staticmethod
    def handle_api_exception(
        exception: APIException,
        request: Optional[Request] = None
    ) -> JSONResponse:
        """Respond to an exception raised on purpose by a service or router."""
        return ErrorHandlerService._respond(
            request,
            status_code=exception.status_code,
            error_code=exception.error_code or "API_ERROR",
            message=exception.detail,
            headers=exception.headers,
            log_label="API Exception",
        )

    @staticmethod
    def handle_validation_error(
        exception: Any,
        request: Optional[Request] = None
    ) -> JSONResponse:
        """
        Respond to a pydantic or FastAPI request validation error.
        Each field problem is listed under ``details``.
        """
        details = [
            {
                "field": " -> ".join(str(part) for part in error["loc"]),
                "message": error["msg"],
                "type": error["type"],
            }
            for error in exception.errors()
        ]
        return ErrorHandlerService._respond(
            request,
            status_code=422,
            error_code="VALIDATION_ERROR",
            message="Request validation failed",
            details=details,
            log_label=f"Validation Error ({len(details)} field errors)",
        )

    @staticmethod
    def handle_database_error(
        exception: SQLAlchemyError,
        request: Optional[Request] = None
    ) -> JSONResponse:
        """
        Respond to a database error that escaped the service layer.

        Integrity violations map to 409, anything else to 500. Driver text
        never reaches the caller.
        """
        if isinstance(exception, IntegrityError):
            constraint = ErrorHandlerService._extract_constraint_info(exception)
            status_code, error_code = 409, "INTEGRITY_ERROR"
            message = f"Constraint violation: {constraint}" if constraint else "Data integrity constraint violation"
        else:
            status_code, error_code = 500, "DATABASE_ERROR"
            message = "Database operation failed"

        return ErrorHandlerService._respond(
            request,
            status_code=status_code,
            error_code=error_code,
            message=message,
            log_label=f"Database Error: {exception}",
            exc_info=exception,
            force_error=True,
        )

    @staticmethod
    def handle_http_exception(
        exception: StarletteHTTPException,
        request: Optional[Request] = None
    ) -> JSONResponse:
        """Respond to framework HTTP exceptions such as unmatched routes."""
        return ErrorHandlerService._respond(
            request,
            status_code=exception.status_code,
            error_code=f"HTTP_{exception.status_code}",
            message=str(exception.detail),
            headers=getattr(exception, "headers", None),
            log_label="HTTP Exception",
        )

    @staticmethod
    def handle_unexpected_error(
        exception: Exception,
        request: Optional[Request] = None
    ) -> JSONResponse:
        """Generic 500; the traceback goes to the log only."""
        return ErrorHandlerService._respond(
            request,
            status_code=500,
            error_code="INTERNAL_SERVER_ERROR",
            message="An unexpected error occurred. Please try again later.",
            log_label=f"Unexpected Error: {type(exception).__name__} - {exception}",
            exc_info=exception,
        )

    @staticmethod
    def _respond(
        request: Optional[Request],
        status_code: int,
        error_code: str,
        message: str,
        details: Optional[List[Dict[str, Any]]] = None,
        headers: Optional[Dict[str, str]] = None,
        log_label: str = "Error",
        exc_info: Optional[BaseException] = None,
        force_error: bool = False
    ) -> JSONResponse:
        request_id = ErrorHandlerService._get_request_id(request)
        log = logger.error if force_error or status_code >= 500 else logger.warning
        log(
            f"{log_label} [{request_id}]: {status_code} {error_code} - {message}",
            extra={
                "error_code": error_code,
                "status_code": status_code,
                "request_id": request_id,
                "path": request.url.path if request else None,
            },
            exc_info=exc_info,
        )
        return JSONResponse(
            status_code=status_code,
            content=ErrorHandlerService.format_error_response(error_code, message, details, request_id),
            headers=headers,
        )

    @staticmethod
    def _get_request_id(request: Optional[Request]) -> str:
        """Request ID set by the logging middleware, or a fresh one."""
        if request is not None:
            request_id = getattr(request.state, "request_id", None)
            if request_id:
                return request_id
        return uuid.uuid4().hex[:8]

    @staticmethod
    def _get_current_timestamp() -> str:
        return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ")

    @staticmethod
    def _extract_constraint_info(exception: IntegrityError) -> Optional[str]:
        error_msg = str(exception.orig).lower()
        for fragment, description in CONSTRAINT_MESSAGES:
            if fragment in error_msg:
                return description
        return None
