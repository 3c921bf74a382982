from fastapi import HTTPException, Request, status

from src.core.responses import error_response
from src.shared.error_handler import PersistenceError, ServiceError
from src.shared.exceptions import InsufficientStockException
from src.shared.utils import get_logger

logger = get_logger(__name__)


async def http_exception_handler(request: Request, exc: Exception):
    """Global exception handler for HTTP errors."""
    if isinstance(exc, InsufficientStockException):
        return error_response(request, exc.status_code, exc.detail, error="InsufficientStockError")

    if isinstance(exc, HTTPException):
        return error_response(request, exc.status_code, exc.detail)

    if isinstance(exc, PersistenceError):
        logger.error(f"Storage failure on {request.method} {request.url.path}: {exc.message}")
        return error_response(request, status.HTTP_503_SERVICE_UNAVAILABLE, exc.message, error="PersistenceError")

    if isinstance(exc, ServiceError):
        logger.error(f"Service error on {request.method} {request.url.path}: {exc.message}")
        return error_response(request, status.HTTP_500_INTERNAL_SERVER_ERROR, exc.message)

    logger.error(f"Unhandled exception: {exc}", exc_info=exc)
    return error_response(request, status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error")
