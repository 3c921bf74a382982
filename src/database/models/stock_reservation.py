from datetime import datetime
from typing import Optional

from sqlalchemy import CheckConstraint, DateTime, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from src.config.constants import NO_VARIANT, ReferenceType, ReservationStatus
from src.database.base import Base, enum_type


class StockReservation(Base):
    """
    Time-bounded hold against available stock.

    Lifecycle: active -> confirmed (sale), cancelled (explicit release) or
    expired (sweeper). Terminal states are final.
    """
    __tablename__ = "stock_reservations"
    __table_args__ = (
        CheckConstraint('quantity > 0', name='check_reservation_quantity_positive'),
        Index('idx_reservations_product_status', 'product_id', 'variant_id', 'status'),
        Index('idx_reservations_status_expires', 'status', 'expires_at'),
        Index('idx_reservations_reference', 'reference_type', 'reference_id'),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    product_id: Mapped[str] = mapped_column(String(64), nullable=False)
    variant_id: Mapped[str] = mapped_column(String(64), nullable=False, default=NO_VARIANT)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    reference_id: Mapped[str] = mapped_column(String(128), nullable=False)
    reference_type: Mapped[ReferenceType] = mapped_column(
        enum_type(ReferenceType, "reservation_reference_type"), nullable=False
    )
    user_id: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    status: Mapped[ReservationStatus] = mapped_column(
        enum_type(ReservationStatus, "reservation_status"),
        default=ReservationStatus.ACTIVE,
        nullable=False,
    )
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    @property
    def is_terminal(self) -> bool:
        return self.status != ReservationStatus.ACTIVE

    def __repr__(self):
        return f"<StockReservation {self.id}: {self.quantity} of {self.product_id} ({self.status.value})>"
