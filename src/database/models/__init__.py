# Import all models to ensure they are registered with SQLAlchemy

from .inventory import InventoryRecord
from .stock_alert import StockAlert, StockSubscription
from .stock_movement import StockMovement
from .stock_reservation import StockReservation

__all__ = [
    "InventoryRecord",
    "StockReservation",
    "StockMovement",
    "StockAlert",
    "StockSubscription",
]
