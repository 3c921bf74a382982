import os

from dotenv import load_dotenv

from src.shared.utils import get_logger

logger = get_logger(__name__)


load_dotenv()


class Settings:
    """Application configuration settings."""

    # Environment
    ENVIRONMENT = os.getenv("ENVIRONMENT", "development")

    # Database
    DATABASE_URL = os.getenv("DATABASE_URL", None)
    DB_POOL_SIZE = int(os.getenv("DB_POOL_SIZE", "5"))
    DB_MAX_OVERFLOW = int(os.getenv("DB_MAX_OVERFLOW", "10"))
    DB_POOL_TIMEOUT = int(os.getenv("DB_POOL_TIMEOUT", "30"))
    DB_POOL_RECYCLE = int(os.getenv("DB_POOL_RECYCLE", "3600"))
    DB_COMMAND_TIMEOUT = int(os.getenv("DB_COMMAND_TIMEOUT", "60"))

    # Redis (cache + pub/sub). Empty means in-process fallbacks.
    REDIS_URL = os.getenv("REDIS_URL", "")

    # Reservations
    RESERVATION_TTL_MINUTES = int(os.getenv("RESERVATION_TTL_MINUTES", "15"))
    CHECKOUT_RESERVATION_TTL_MINUTES = int(
        os.getenv("CHECKOUT_RESERVATION_TTL_MINUTES", "30")
    )

    # Background jobs
    ENABLE_BACKGROUND_JOBS = os.getenv("ENABLE_BACKGROUND_JOBS", "true").lower() == "true"
    RESERVATION_SWEEP_INTERVAL_SECONDS = int(
        os.getenv("RESERVATION_SWEEP_INTERVAL_SECONDS", "300")
    )  # 5 minutes
    ALERT_SWEEP_INTERVAL_SECONDS = int(
        os.getenv("ALERT_SWEEP_INTERVAL_SECONDS", "600")
    )  # 10 minutes

    # Stock alerts
    ALERT_DEDUP_WINDOW_MINUTES = int(os.getenv("ALERT_DEDUP_WINDOW_MINUTES", "60"))
    ALERT_ADMIN_RECIPIENTS = [
        r.strip() for r in os.getenv("ALERT_ADMIN_RECIPIENTS", "admins").split(",") if r.strip()
    ]
    LOW_STOCK_THRESHOLD = int(os.getenv("LOW_STOCK_THRESHOLD", "10"))
    DEFAULT_REORDER_POINT = int(os.getenv("DEFAULT_REORDER_POINT", "10"))
    DEFAULT_REORDER_QUANTITY = int(os.getenv("DEFAULT_REORDER_QUANTITY", "50"))
    SALES_VELOCITY_WINDOW_DAYS = int(os.getenv("SALES_VELOCITY_WINDOW_DAYS", "7"))
    HIGH_DEMAND_MIN_VELOCITY = float(os.getenv("HIGH_DEMAND_MIN_VELOCITY", "10"))
    HIGH_DEMAND_COVER_DAYS = float(os.getenv("HIGH_DEMAND_COVER_DAYS", "3"))
    SLOW_MOVING_MAX_VELOCITY = float(os.getenv("SLOW_MOVING_MAX_VELOCITY", "0.5"))
    SLOW_MOVING_MIN_STOCK = int(os.getenv("SLOW_MOVING_MIN_STOCK", "50"))


settings = Settings()
