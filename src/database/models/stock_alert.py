from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import JSON, Boolean, DateTime, Float, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from src.config.constants import (
    NO_VARIANT,
    AlertSeverity,
    AlertStatus,
    AlertType,
    NotificationType,
)
from src.database.base import Base, enum_type


class StockAlert(Base):
    """Alerts for stock conditions requiring attention"""
    __tablename__ = "stock_alerts"
    __table_args__ = (
        Index('idx_stock_alerts_dedup', 'product_id', 'alert_type', 'status', 'created_at'),
        Index('idx_stock_alerts_created', 'created_at'),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    product_id: Mapped[str] = mapped_column(String(64), nullable=False)
    variant_id: Mapped[str] = mapped_column(String(64), nullable=False, default=NO_VARIANT)
    product_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    alert_type: Mapped[AlertType] = mapped_column(enum_type(AlertType, "stock_alert_type"), nullable=False)
    severity: Mapped[AlertSeverity] = mapped_column(enum_type(AlertSeverity, "stock_alert_severity"), nullable=False)
    threshold: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    current_stock: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[AlertStatus] = mapped_column(
        enum_type(AlertStatus, "stock_alert_status"), default=AlertStatus.PENDING, nullable=False
    )

    # Tagged payload, validated by AlertDetails on the way in and out
    details: Mapped[Dict[str, Any]] = mapped_column("metadata", JSON, nullable=False, default=dict)

    notified_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    resolved_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    def __repr__(self):
        return f"<StockAlert {self.id}: {self.alert_type.value} for product {self.product_id} ({self.status.value})>"


class StockSubscription(Base):
    """Per-user, per-product notification preference"""
    __tablename__ = "stock_subscriptions"
    __table_args__ = (
        Index('idx_stock_subscriptions_product_active', 'product_id', 'active'),
        Index('idx_stock_subscriptions_user_product', 'user_id', 'product_id'),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    user_id: Mapped[str] = mapped_column(String(128), nullable=False)
    product_id: Mapped[str] = mapped_column(String(64), nullable=False)
    notification_type: Mapped[NotificationType] = mapped_column(
        enum_type(NotificationType, "stock_notification_type"), nullable=False
    )
    threshold: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    deactivated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
