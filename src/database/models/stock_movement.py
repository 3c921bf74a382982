"""
Stock movement audit trail. Rows are appended, never updated or deleted.
"""
from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from src.config.constants import NO_VARIANT, MovementType
from src.database.base import Base, enum_type


class StockMovement(Base):
    __tablename__ = "stock_movements"
    __table_args__ = (
        Index('idx_stock_movements_product_created', 'product_id', 'created_at'),
        Index('idx_stock_movements_type_created', 'movement_type', 'created_at'),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    product_id: Mapped[str] = mapped_column(String(64), nullable=False)
    variant_id: Mapped[str] = mapped_column(String(64), nullable=False, default=NO_VARIANT)

    movement_type: Mapped[MovementType] = mapped_column(
        enum_type(MovementType, "stock_movement_type"), nullable=False
    )
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)  # positive for in, negative for out

    # Reference to source
    reference_id: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    reference_type: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)

    # Transfers only
    from_location: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    to_location: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)

    reason: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    user_id: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    def __repr__(self):
        return f"<StockMovement {self.id}: {self.movement_type.value} {self.quantity:+d} on product {self.product_id}>"
