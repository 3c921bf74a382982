from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from src.config.constants import (
    DEFAULT_WAREHOUSE_ID,
    MovementType,
    ReferenceType,
    ReservationStatus,
    StockOperation,
)


class InventorySchema(BaseModel):
    id: int
    product_id: str
    variant_id: str
    warehouse_id: str
    product_name: Optional[str] = None
    quantity: int
    reorder_point: int
    reorder_quantity: int
    low_stock_threshold: int
    last_restocked_at: Optional[datetime] = None
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class CreateInventorySchema(BaseModel):
    product_id: str = Field(..., min_length=1)
    variant_id: Optional[str] = None
    warehouse_id: str = DEFAULT_WAREHOUSE_ID
    product_name: Optional[str] = None
    quantity: int = Field(0, ge=0)
    reorder_point: Optional[int] = Field(None, ge=0)
    reorder_quantity: Optional[int] = Field(None, ge=0)
    low_stock_threshold: Optional[int] = Field(None, ge=0)


class AvailabilitySchema(BaseModel):
    product_id: str
    variant_id: Optional[str] = None
    available: int
    reserved: int
    total: int


class StockCheckItem(BaseModel):
    product_id: str
    quantity: int = Field(..., gt=0)
    variant_id: Optional[str] = None


class ReserveStockSchema(BaseModel):
    product_id: str
    quantity: int = Field(..., gt=0)
    reference_id: str
    reference_type: ReferenceType = ReferenceType.CART
    ttl_seconds: Optional[int] = Field(None, gt=0)
    variant_id: Optional[str] = None
    user_id: Optional[str] = None


class ReservationSchema(BaseModel):
    id: str
    product_id: str
    variant_id: str
    quantity: int
    reference_id: str
    reference_type: ReferenceType
    user_id: Optional[str] = None
    status: ReservationStatus
    expires_at: datetime
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ReleaseStockSchema(BaseModel):
    product_id: str
    quantity: int = Field(..., gt=0)
    reservation_id: Optional[str] = None
    variant_id: Optional[str] = None


class ConfirmReservationSchema(BaseModel):
    product_id: str
    quantity: int = Field(..., gt=0)
    order_id: str
    variant_id: Optional[str] = None


class UpdateStockSchema(BaseModel):
    product_id: str
    quantity: int = Field(..., ge=0)
    operation: StockOperation
    reason: Optional[str] = None
    user_id: Optional[str] = None
    variant_id: Optional[str] = None
    warehouse_id: Optional[str] = None


class SetLowStockThresholdSchema(BaseModel):
    threshold: int = Field(..., ge=0)
    variant_id: Optional[str] = None


class BulkStockUpdateItem(BaseModel):
    product_id: str
    quantity: int = Field(..., ge=0)
    operation: StockOperation
    variant_id: Optional[str] = None
    warehouse_id: Optional[str] = None


class BulkUpdateStockSchema(BaseModel):
    updates: List[BulkStockUpdateItem]
    reason: Optional[str] = None
    user_id: Optional[str] = None


class BulkUpdateItemResult(BaseModel):
    product_id: str
    success: bool
    inventory: Optional[InventorySchema] = None
    error: Optional[str] = None


class BulkUpdateResult(BaseModel):
    results: List[BulkUpdateItemResult]
    succeeded: int
    failed: int


class TransferStockSchema(BaseModel):
    product_id: str
    quantity: int = Field(..., gt=0)
    from_warehouse: str
    to_warehouse: str
    user_id: Optional[str] = None
    variant_id: Optional[str] = None


class StockMovementSchema(BaseModel):
    id: int
    product_id: str
    variant_id: str
    movement_type: MovementType
    quantity: int
    reference_id: Optional[str] = None
    reference_type: Optional[str] = None
    from_location: Optional[str] = None
    to_location: Optional[str] = None
    reason: Optional[str] = None
    user_id: Optional[str] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class LowStockProductSchema(BaseModel):
    product_id: str
    variant_id: str
    warehouse_id: str
    product_name: Optional[str] = None
    quantity: int
    available: int
    reorder_point: int


class ReservationStatsSchema(BaseModel):
    active_reservations: int
    reserved_units: int
    expired_pending_sweep: int
    expiring_within_5min: int


class SweepResult(BaseModel):
    reservations_expired: int = 0
    products_affected: int = 0
    stock_released: int = 0
    skipped: int = 0
    errors: int = 0


class ReorderRequest(BaseModel):
    product_id: str
    variant_id: Optional[str] = None
    reorder_quantity: int
    available: int
    reorder_point: int


class CamelMessage(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_message(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


class InventoryEventMessage(CamelMessage):
    """Movement notification on the inventory-events channel"""

    product_id: str
    variant_id: Optional[str] = None
    movement_type: MovementType
    quantity: int
    before_stock: int
    after_stock: int
    reference_id: Optional[str] = None
    timestamp: datetime


class StockUpdateMessage(CamelMessage):
    """Availability snapshot on the stock-updates channel"""

    product_id: str
    variant_id: Optional[str] = None
    available_stock: int
    timestamp: datetime
