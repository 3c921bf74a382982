"""
Error handling shared by the inventory and alert services.

Business exceptions (HTTPException subclasses such as insufficient stock or
not found) pass through untouched. Storage failures become PersistenceError,
anything else becomes ServiceError, so routes only ever see those three.
"""
from functools import wraps
from typing import Any, Dict, Optional

from fastapi import HTTPException
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError

from src.shared.exceptions import ConflictException
from src.shared.utils import get_logger

# Keyword arguments worth carrying into error logs
CONTEXT_KEYS = ("product_id", "variant_id", "reservation_id", "order_id", "alert_id", "user_id")


class ServiceError(Exception):
    """Base service error with context"""
    def __init__(self, message: str, original_error: Optional[Exception] = None, context: Optional[Dict[str, Any]] = None):
        self.message = message
        self.original_error = original_error
        self.context = context or {}
        super().__init__(self.message)


class PersistenceError(ServiceError):
    """The underlying storage operation failed (connection, constraint violation)."""


class ErrorHandler:
    """Logs and translates errors raised inside a service"""

    def __init__(self, logger_name: str):
        self.logger = get_logger(logger_name)

    def handle_database_error(self, error: SQLAlchemyError, operation: str, context: Optional[Dict[str, Any]] = None) -> None:
        context = context or {}

        if isinstance(error, IntegrityError):
            error_msg = str(error.orig) if getattr(error, "orig", None) else str(error)
            self.logger.error(f"Integrity error during {operation}: {error_msg}", extra=context)
            if "unique" in error_msg.lower() or "duplicate key" in error_msg.lower():
                raise ConflictException(detail=f"Record already exists ({operation})")
            raise PersistenceError(f"Data integrity error during {operation}", error, context)

        if isinstance(error, OperationalError):
            self.logger.error(f"Database unavailable during {operation}: {error}", extra=context)
            raise PersistenceError(f"Database unavailable during {operation}", error, context)

        self.logger.error(f"Database error during {operation}: {error}", extra=context)
        raise PersistenceError(f"Database operation failed for {operation}", error, context)

    def handle_general_error(self, error: Exception, operation: str, context: Optional[Dict[str, Any]] = None) -> None:
        context = context or {}

        if isinstance(error, ServiceError):
            self.logger.error(f"Service error during {operation}: {error.message}", extra=context)
            raise error

        self.logger.error(f"Unexpected error during {operation}: {error}", extra=context, exc_info=True)
        raise ServiceError(f"Unexpected error during {operation}", error, context)

    def handle(self, error: Exception, operation: str, context: Dict[str, Any]) -> None:
        if isinstance(error, HTTPException):
            self.logger.info(f"{operation} rejected: {error.detail}", extra=context)
            raise error
        if isinstance(error, SQLAlchemyError):
            self.handle_database_error(error, operation, context)
        self.handle_general_error(error, operation, context)


def _error_context(func, args, kwargs) -> Dict[str, Any]:
    context = {"method": func.__name__}
    context.update({key: kwargs[key] for key in CONTEXT_KEYS if kwargs.get(key) is not None})
    if args:
        context["call_args"] = str(args)[:100]
    return context


def handle_service_errors(operation: str):
    """Decorator for async service methods"""
    def decorator(func):
        @wraps(func)
        async def wrapper(self, *args, **kwargs):
            error_handler = getattr(self, "_error_handler", None) or ErrorHandler(self.__class__.__name__)
            try:
                result = await func(self, *args, **kwargs)
            except Exception as e:
                error_handler.handle(e, operation, _error_context(func, args, kwargs))
                raise
            error_handler.logger.debug(f"Completed {operation}")
            return result

        return wrapper

    return decorator
