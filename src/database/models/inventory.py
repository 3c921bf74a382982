from datetime import datetime
from typing import Optional

from sqlalchemy import CheckConstraint, DateTime, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from src.config.constants import DEFAULT_WAREHOUSE_ID, NO_VARIANT
from src.database.base import Base


class InventoryRecord(Base):
    __tablename__ = "inventory"
    __table_args__ = (
        CheckConstraint('quantity >= 0', name='check_inventory_quantity_non_negative'),
        CheckConstraint('reorder_point >= 0', name='check_inventory_reorder_point_non_negative'),

        # Primary lookup indexes
        Index('idx_inventory_product_variant_warehouse', 'product_id', 'variant_id', 'warehouse_id', unique=True),
        Index('idx_inventory_warehouse_product', 'warehouse_id', 'product_id'),

        # Reorder / low stock scans
        Index('idx_inventory_reorder', 'product_id', 'quantity', 'reorder_point'),
        Index('idx_inventory_updated', 'updated_at'),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    product_id: Mapped[str] = mapped_column(String(64), nullable=False)
    variant_id: Mapped[str] = mapped_column(String(64), nullable=False, default=NO_VARIANT)
    warehouse_id: Mapped[str] = mapped_column(String(64), nullable=False, default=DEFAULT_WAREHOUSE_ID)
    product_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    quantity: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    reorder_point: Mapped[int] = mapped_column(Integer, default=10, nullable=False)
    reorder_quantity: Mapped[int] = mapped_column(Integer, default=50, nullable=False)
    low_stock_threshold: Mapped[int] = mapped_column(Integer, default=10, nullable=False)

    last_restocked_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    def __repr__(self):
        return (
            f"<InventoryRecord {self.product_id}/{self.variant_id or '-'}"
            f"@{self.warehouse_id}: {self.quantity}>"
        )
