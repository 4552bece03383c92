"""
Unified Error Handling Middleware.

Provides consistent error handling across the context service with
custom exceptions, error codes, and formatted responses.

Key features:
1. Custom exception hierarchy
2. Error code system
3. Consistent error responses
4. Error logging and tracking
5. Request context preservation
"""
import os
import traceback
import logging
from typing import Dict, Any, Optional
from datetime import datetime, timezone
from enum import Enum
from dataclasses import dataclass
from uuid import uuid4

from fastapi import Request, HTTPException
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger(__name__)


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


class ErrorCode(str, Enum):
    """Application error codes."""
    # General errors (1xxx)
    INTERNAL_ERROR = "E1000"
    VALIDATION_ERROR = "E1001"

    # Context errors (2xxx)
    CONTEXT_NOT_FOUND = "E2001"
    CONTEXT_HYDRATION_FAILED = "E2002"

    # External service errors (6xxx)
    LLM_SERVICE_ERROR = "E6003"


# Error code to HTTP status mapping
ERROR_STATUS_MAP = {
    ErrorCode.INTERNAL_ERROR: 500,
    ErrorCode.VALIDATION_ERROR: 422,
    ErrorCode.CONTEXT_NOT_FOUND: 404,
    ErrorCode.CONTEXT_HYDRATION_FAILED: 422,
    ErrorCode.LLM_SERVICE_ERROR: 503,
}


@dataclass
class ErrorResponse:
    """Standardized error response."""
    error_id: str
    code: str
    message: str
    status_code: int
    timestamp: str
    path: Optional[str] = None
    details: Optional[Dict[str, Any]] = None
    suggestion: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON response."""
        result = {
            "success": False,
            "error": {
                "id": self.error_id,
                "code": self.code,
                "message": self.message,
                "timestamp": self.timestamp
            }
        }
        if self.path:
            result["error"]["path"] = self.path
        if self.details:
            result["error"]["details"] = self.details
        if self.suggestion:
            result["error"]["suggestion"] = self.suggestion
        return result


class AppException(Exception):
    """Base exception for application errors."""

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        suggestion: Optional[str] = None,
        original_error: Optional[Exception] = None
    ):
        self.code = code
        self.message = message
        self.details = details
        self.suggestion = suggestion
        self.original_error = original_error
        self.status_code = ERROR_STATUS_MAP.get(code, 500)
        super().__init__(message)


class NotFoundException(AppException):
    """Resource not found exception."""

    def __init__(
        self,
        resource_type: str,
        resource_id: Optional[str] = None,
        code: ErrorCode = ErrorCode.CONTEXT_NOT_FOUND
    ):
        message = f"{resource_type} not found"
        if resource_id:
            message = f"{resource_type} with ID '{resource_id}' not found"
        super().__init__(
            code=code,
            message=message,
            details={"resource_type": resource_type, "resource_id": resource_id}
        )


class ContextException(AppException):
    """Conversation context exception."""
    pass


class ContextHydrationException(ContextException):
    """A stored snapshot could not be turned back into a context."""

    def __init__(
        self,
        conversation_id: str,
        reason: str,
        original_error: Optional[Exception] = None
    ):
        super().__init__(
            code=ErrorCode.CONTEXT_HYDRATION_FAILED,
            message=f"Cannot restore context for conversation '{conversation_id}': {reason}",
            details={"conversation_id": conversation_id},
            suggestion="Export a fresh snapshot and import it again",
            original_error=original_error
        )


class ExternalServiceException(AppException):
    """External service exception."""

    def __init__(
        self,
        service_name: str,
        message: str,
        code: ErrorCode = ErrorCode.LLM_SERVICE_ERROR,
        original_error: Optional[Exception] = None
    ):
        super().__init__(
            code=code,
            message=f"{service_name}: {message}",
            details={"service": service_name},
            suggestion="Please try again later",
            original_error=original_error
        )


class ErrorTracker:
    """Tracks errors for monitoring and alerting."""

    def __init__(self):
        self._errors: Dict[str, list] = {}
        self._error_counts: Dict[str, int] = {}
        self.max_stored_errors = int(os.getenv("MAX_STORED_ERRORS", "1000"))

    def track(
        self,
        error_id: str,
        error_code: ErrorCode,
        message: str,
        request_path: Optional[str] = None,
        conversation_id: Optional[str] = None,
        stack_trace: Optional[str] = None
    ) -> None:
        """Track an error occurrence."""
        error_record = {
            "error_id": error_id,
            "code": error_code.value,
            "message": message,
            "path": request_path,
            "conversation_id": conversation_id,
            "timestamp": _timestamp(),
            "stack_trace": stack_trace
        }

        code_key = error_code.value
        self._errors.setdefault(code_key, []).append(error_record)
        if len(self._errors[code_key]) > self.max_stored_errors:
            self._errors[code_key] = self._errors[code_key][-self.max_stored_errors:]

        self._error_counts[code_key] = self._error_counts.get(code_key, 0) + 1

        logger.error(
            f"Error tracked: {error_id} - {error_code.value}: {message}",
            extra={"error_id": error_id, "error_code": error_code.value}
        )

    def get_stats(self) -> Dict[str, Any]:
        """Get error statistics."""
        return {
            "total_errors": sum(self._error_counts.values()),
            "by_code": dict(self._error_counts),
            "recent_errors": self._get_recent_errors(10)
        }

    def _get_recent_errors(self, limit: int) -> list:
        """Get most recent errors across all codes."""
        all_errors = []
        for errors in self._errors.values():
            all_errors.extend(errors)
        all_errors.sort(key=lambda e: e["timestamp"], reverse=True)
        return all_errors[:limit]


def create_error_response(
    error: AppException,
    request: Optional[Request] = None,
    tracker: Optional[ErrorTracker] = None
) -> ErrorResponse:
    """Create a standardized error response and record it."""
    error_id = str(uuid4())

    if tracker is not None:
        tracker.track(
            error_id=error_id,
            error_code=error.code,
            message=error.message,
            request_path=str(request.url) if request else None,
            conversation_id=request.path_params.get("conversation_id") if request else None,
            stack_trace=traceback.format_exc() if error.original_error else None
        )

    return ErrorResponse(
        error_id=error_id,
        code=error.code.value,
        message=error.message,
        status_code=error.status_code,
        timestamp=_timestamp(),
        path=str(request.url.path) if request else None,
        details=error.details,
        suggestion=error.suggestion
    )


class ErrorHandlingMiddleware(BaseHTTPMiddleware):
    """Middleware turning unexpected exceptions into the JSON error envelope."""

    def __init__(self, app, tracker: Optional[ErrorTracker] = None):
        super().__init__(app)
        self.tracker = tracker

    async def dispatch(self, request: Request, call_next):
        """Handle request with error catching."""
        try:
            return await call_next(request)

        except AppException as e:
            error_response = create_error_response(e, request, self.tracker)
            return JSONResponse(
                status_code=error_response.status_code,
                content=error_response.to_dict()
            )

        except HTTPException as e:
            error_response = ErrorResponse(
                error_id=str(uuid4()),
                code=f"HTTP_{e.status_code}",
                message=e.detail,
                status_code=e.status_code,
                timestamp=_timestamp(),
                path=str(request.url.path)
            )
            return JSONResponse(
                status_code=e.status_code,
                content=error_response.to_dict()
            )

        except Exception as e:
            error_id = str(uuid4())
            logger.exception(f"Unexpected error {error_id}: {str(e)}")

            if self.tracker is not None:
                self.tracker.track(
                    error_id=error_id,
                    error_code=ErrorCode.INTERNAL_ERROR,
                    message=str(e),
                    request_path=str(request.url),
                    stack_trace=traceback.format_exc()
                )

            # Don't expose internal details in production
            is_debug = os.getenv("DEBUG", "false").lower() == "true"
            message = str(e) if is_debug else "An internal error occurred"

            error_response = ErrorResponse(
                error_id=error_id,
                code=ErrorCode.INTERNAL_ERROR.value,
                message=message,
                status_code=500,
                timestamp=_timestamp(),
                path=str(request.url.path),
                suggestion="Please try again later or contact support"
            )
            return JSONResponse(
                status_code=500,
                content=error_response.to_dict()
            )


def setup_error_handling(app, tracker: Optional[ErrorTracker] = None) -> ErrorTracker:
    """Setup error handling for a FastAPI app and return its tracker."""
    tracker = tracker or ErrorTracker()
    app.state.error_tracker = tracker
    app.add_middleware(ErrorHandlingMiddleware, tracker=tracker)

    @app.exception_handler(AppException)
    async def app_exception_handler(request: Request, exc: AppException):
        error_response = create_error_response(exc, request, tracker)
        return JSONResponse(
            status_code=error_response.status_code,
            content=error_response.to_dict()
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        error = AppException(
            code=ErrorCode.VALIDATION_ERROR,
            message="Request validation failed",
            details={"errors": jsonable_encoder(exc.errors())},
            suggestion="Please check your input and try again"
        )
        error_response = create_error_response(error, request, tracker)
        return JSONResponse(
            status_code=error_response.status_code,
            content=error_response.to_dict()
        )

    logger.info("Error handling middleware configured")
    return tracker
