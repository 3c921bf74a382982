from datetime import datetime
from typing import Annotated, Dict, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator

from src.api.inventory.models import CamelMessage
from src.config.constants import AlertSeverity, AlertStatus, AlertType, NotificationType


class LowStockDetails(BaseModel):
    kind: Literal["low_stock"] = "low_stock"
    low_stock_threshold: int


class OutOfStockDetails(BaseModel):
    kind: Literal["out_of_stock"] = "out_of_stock"


class RestockDetails(BaseModel):
    kind: Literal["restock"] = "restock"
    restocked_quantity: int
    subscribers_notified: int = 0


class HighDemandDetails(BaseModel):
    kind: Literal["high_demand"] = "high_demand"
    sales_velocity: float
    cover_days: float


class SlowMovingDetails(BaseModel):
    kind: Literal["slow_moving"] = "slow_moving"
    sales_velocity: float


AlertDetails = Annotated[
    Union[LowStockDetails, OutOfStockDetails, RestockDetails, HighDemandDetails, SlowMovingDetails],
    Field(discriminator="kind"),
]

alert_details_adapter = TypeAdapter(AlertDetails)


class StockAlertSchema(BaseModel):
    id: str
    product_id: str
    variant_id: str
    product_name: Optional[str] = None
    alert_type: AlertType
    severity: AlertSeverity
    threshold: float
    current_stock: int
    status: AlertStatus
    details: AlertDetails
    notified_at: Optional[datetime] = None
    resolved_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class SubscriptionSchema(BaseModel):
    id: str
    user_id: str
    product_id: str
    notification_type: NotificationType
    threshold: Optional[int] = None
    active: bool
    created_at: datetime
    deactivated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class CreateSubscriptionSchema(BaseModel):
    user_id: str = Field(..., min_length=1)
    product_id: str = Field(..., min_length=1)
    notification_type: NotificationType
    threshold: Optional[int] = Field(None, ge=0)


class CancelSubscriptionSchema(BaseModel):
    user_id: str = Field(..., min_length=1)
    product_id: str = Field(..., min_length=1)


class AlertTypeStats(BaseModel):
    count: int
    resolved_count: int
    avg_resolution_hours: Optional[float] = None


class AlertStatsSchema(BaseModel):
    by_type: Dict[AlertType, AlertTypeStats]
    total: int


class AlertSweepResult(BaseModel):
    products_checked: int = 0
    alerts_created: int = 0
    errors: int = 0


class StockMovementEvent(BaseModel):
    """Inbound view of an inventory-events message"""

    model_config = ConfigDict(populate_by_name=True)

    product_id: str = Field(alias="productId")
    variant_id: Optional[str] = Field(None, alias="variantId")
    movement_type: str = Field(alias="movementType")
    quantity: int
    before_stock: int = Field(alias="beforeStock")
    after_stock: int = Field(alias="afterStock")
    timestamp: Optional[datetime] = None

    @field_validator("variant_id")
    @classmethod
    def empty_variant(cls, v):
        return v or None


class StockLevelMessage(CamelMessage):
    """Dashboard update on the stock-updates channel"""

    product_id: str
    variant_id: Optional[str] = None
    current_stock: int
    timestamp: datetime
