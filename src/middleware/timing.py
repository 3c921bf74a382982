import time

from fastapi import Request

from src.shared.utils import get_logger

logger = get_logger(__name__)

# Reservation calls sit on the checkout path; anything slower is worth a warning
SLOW_REQUEST_SECONDS = 1.0


async def add_process_time_header(request: Request, call_next):
    """Add an X-Process-Time header and log each request with its duration."""
    start_time = time.perf_counter()
    response = await call_next(request)
    process_time = time.perf_counter() - start_time
    response.headers["X-Process-Time"] = f"{process_time:.4f}"

    message = f"{request.method} {request.url.path} - Status: {response.status_code} - Process Time: {process_time:.4f}s"
    if process_time > SLOW_REQUEST_SECONDS:
        logger.warning(f"Slow request: {message}")
    else:
        logger.info(message)
    return response
