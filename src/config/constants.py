from enum import Enum


class StockOperation(str, Enum):
    INCREMENT = "increment"
    DECREMENT = "decrement"
    SET = "set"


class MovementType(str, Enum):
    IN = "in"
    OUT = "out"
    RESERVED = "reserved"
    RELEASED = "released"
    ADJUSTED = "adjusted"
    TRANSFERRED = "transferred"


class ReservationStatus(str, Enum):
    ACTIVE = "active"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    EXPIRED = "expired"


class ReferenceType(str, Enum):
    ORDER = "order"
    CART = "cart"


class AlertType(str, Enum):
    LOW_STOCK = "low_stock"
    OUT_OF_STOCK = "out_of_stock"
    RESTOCK = "restock"
    HIGH_DEMAND = "high_demand"
    SLOW_MOVING = "slow_moving"


class AlertStatus(str, Enum):
    PENDING = "pending"
    NOTIFIED = "notified"
    RESOLVED = "resolved"
    IGNORED = "ignored"


class AlertSeverity(str, Enum):
    CRITICAL = "critical"
    WARNING = "warning"
    INFO = "info"


class NotificationType(str, Enum):
    EMAIL = "email"
    SMS = "sms"
    PUSH = "push"
    IN_APP = "in_app"


class Channels(str, Enum):
    INVENTORY_EVENTS = "inventory-events"
    STOCK_UPDATES = "stock-updates"


ACTIVE_RESERVATION_STATUSES = (ReservationStatus.ACTIVE,)
ACTIVE_ALERT_STATUSES = (AlertStatus.PENDING, AlertStatus.NOTIFIED)

# Alert types that fan out to product subscribers
SUBSCRIBER_ALERT_TYPES = (
    AlertType.LOW_STOCK,
    AlertType.OUT_OF_STOCK,
    AlertType.RESTOCK,
)

ALERT_SEVERITIES = {
    AlertType.OUT_OF_STOCK: AlertSeverity.CRITICAL,
    AlertType.LOW_STOCK: AlertSeverity.WARNING,
    AlertType.HIGH_DEMAND: AlertSeverity.WARNING,
    AlertType.RESTOCK: AlertSeverity.INFO,
    AlertType.SLOW_MOVING: AlertSeverity.INFO,
}

DEFAULT_WAREHOUSE_ID = "default"
NO_VARIANT = ""
