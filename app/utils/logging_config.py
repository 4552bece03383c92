"""
Structured Logging Configuration.

Provides consistent JSON-structured logging with request and conversation
correlation, performance metrics, and context preservation.

Key features:
1. JSON-formatted logs for aggregation
2. Request and conversation correlation IDs
3. Performance timing
4. Context injection
5. Log level management
"""
import os
import sys
import json
import time
import logging
import traceback
from typing import Dict, Any
from datetime import datetime, timezone
from uuid import uuid4
from contextvars import ContextVar
from functools import wraps

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

# Context variables for request-scoped data
request_id_var: ContextVar[str] = ContextVar("request_id", default="")
conversation_id_var: ContextVar[str] = ContextVar("conversation_id", default="")
extra_context_var: ContextVar[Dict[str, Any]] = ContextVar("extra_context", default={})


class StructuredFormatter(logging.Formatter):
    """JSON-formatted log formatter."""

    def __init__(self, include_stack: bool = False):
        super().__init__()
        self.include_stack = include_stack
        self.service_name = os.getenv("SERVICE_NAME", "campus-context-engine")
        self.environment = os.getenv("ENVIRONMENT", "development")

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "service": self.service_name,
            "environment": self.environment
        }

        request_id = request_id_var.get()
        if request_id:
            log_entry["request_id"] = request_id

        conversation_id = conversation_id_var.get()
        if conversation_id:
            log_entry["conversation_id"] = conversation_id

        extra_context = extra_context_var.get()
        if extra_context:
            log_entry["context"] = extra_context

        log_entry["source"] = {
            "file": record.filename,
            "line": record.lineno,
            "function": record.funcName
        }

        if record.exc_info:
            log_entry["exception"] = {
                "type": record.exc_info[0].__name__ if record.exc_info[0] else None,
                "message": str(record.exc_info[1]) if record.exc_info[1] else None
            }
            if self.include_stack:
                log_entry["exception"]["stack_trace"] = traceback.format_exception(*record.exc_info)

        if hasattr(record, "extra_fields"):
            log_entry.update(record.extra_fields)

        return json.dumps(log_entry, ensure_ascii=False)


class ContextLogger(logging.LoggerAdapter):
    """Logger adapter that includes request and conversation ids in all messages."""

    def process(self, msg: str, kwargs: Dict[str, Any]) -> tuple:
        """Add context to log message."""
        extra = kwargs.get("extra", {})
        extra["request_id"] = request_id_var.get()
        extra["conversation_id"] = conversation_id_var.get()
        kwargs["extra"] = extra
        return msg, kwargs


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Middleware for request/response logging."""

    def __init__(self, app, logger_name: str = "api"):
        super().__init__(app)
        self.logger = logging.getLogger(logger_name)

    async def dispatch(self, request: Request, call_next):
        """Log request and response with timing."""
        request_id = str(uuid4())
        request_id_var.set(request_id)
        conversation_id_var.set(request.headers.get("X-Conversation-ID", ""))

        start_time = time.perf_counter()

        self.logger.info(
            f"Request started: {request.method} {request.url.path}",
            extra={
                "extra_fields": {
                    "event": "request_started",
                    "method": request.method,
                    "path": request.url.path,
                    "client_ip": request.client.host if request.client else None
                }
            }
        )

        try:
            response = await call_next(request)
            duration_ms = (time.perf_counter() - start_time) * 1000

            self.logger.info(
                f"Request completed: {request.method} {request.url.path} - {response.status_code}",
                extra={
                    "extra_fields": {
                        "event": "request_completed",
                        "method": request.method,
                        "path": request.url.path,
                        "status_code": response.status_code,
                        "duration_ms": round(duration_ms, 2)
                    }
                }
            )

            response.headers["X-Request-ID"] = request_id
            return response

        except Exception as e:
            duration_ms = (time.perf_counter() - start_time) * 1000
            self.logger.error(
                f"Request failed: {request.method} {request.url.path} - {str(e)}",
                extra={
                    "extra_fields": {
                        "event": "request_failed",
                        "method": request.method,
                        "path": request.url.path,
                        "duration_ms": round(duration_ms, 2),
                        "error": str(e)
                    }
                },
                exc_info=True
            )
            raise


def setup_logging(
    level: str = None,
    json_format: bool = True,
    include_stack: bool = False
) -> None:
    """
    Setup application logging.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR)
        json_format: Use JSON formatting outside development
        include_stack: Include stack traces in JSON
    """
    level = level or os.getenv("LOG_LEVEL", "INFO")
    log_level = getattr(logging, level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(log_level)

    if json_format and os.getenv("ENVIRONMENT", "development") != "development":
        handler.setFormatter(StructuredFormatter(include_stack=include_stack))
    else:
        # Human-readable format for development
        handler.setFormatter(logging.Formatter(
            "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S"
        ))

    root_logger.addHandler(handler)

    # Reduce noise from third-party libraries
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("openai").setLevel(logging.WARNING)

    logging.info(f"Logging configured: level={level}, json_format={json_format}")


def get_logger(name: str) -> ContextLogger:
    """Get a context-aware logger."""
    return ContextLogger(logging.getLogger(name), {})


def log_performance(operation_name: str = None):
    """Decorator to log the duration of a synchronous operation."""
    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            op_name = operation_name or func.__name__
            logger = logging.getLogger(func.__module__)

            start = time.perf_counter()
            try:
                result = func(*args, **kwargs)
            except Exception as e:
                duration_ms = (time.perf_counter() - start) * 1000
                logger.error(
                    f"Operation failed: {op_name}",
                    extra={
                        "extra_fields": {
                            "event": "operation_failed",
                            "operation": op_name,
                            "duration_ms": round(duration_ms, 2),
                            "error": str(e)
                        }
                    }
                )
                raise

            duration_ms = (time.perf_counter() - start) * 1000
            logger.debug(
                f"Operation completed: {op_name}",
                extra={
                    "extra_fields": {
                        "event": "operation_completed",
                        "operation": op_name,
                        "duration_ms": round(duration_ms, 2)
                    }
                }
            )
            return result

        return wrapper

    return decorator


class LogContext:
    """Context manager for scoped logging context."""

    def __init__(self, **kwargs):
        self.context = kwargs
        self.previous_context = {}

    def __enter__(self):
        self.previous_context = extra_context_var.get()
        extra_context_var.set({**self.previous_context, **self.context})
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        extra_context_var.set(self.previous_context)
        return False
