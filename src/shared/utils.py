import logging
import os
from datetime import datetime, timezone

LOG_LEVEL = getattr(logging, os.getenv("LOG_LEVEL", "INFO").upper(), logging.INFO)

# Configure logging
logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[
        logging.StreamHandler(),  # Output to console
    ],
)


def get_logger(name: str):
    return logging.getLogger(name)


def utcnow() -> datetime:
    """Timezone-aware current UTC time; the default clock for all services."""
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Attach UTC to naive timestamps read back from backends that drop tzinfo (SQLite)."""
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
