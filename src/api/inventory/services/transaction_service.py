import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from sqlalchemy import func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from src.api.inventory.models import InventoryEventMessage
from src.config.constants import (
    DEFAULT_WAREHOUSE_ID,
    NO_VARIANT,
    MovementType,
    ReferenceType,
    ReservationStatus,
    StockOperation,
)
from src.database.models.inventory import InventoryRecord
from src.database.models.stock_movement import StockMovement
from src.database.models.stock_reservation import StockReservation
from src.shared.error_handler import ErrorHandler
from src.shared.exceptions import InsufficientStockException, ValidationException


@dataclass
class StockLevel:
    total: int
    reserved: int

    @property
    def available(self) -> int:
        return self.total - self.reserved


@dataclass
class MutationOutcome:
    """What a locked write changed; consumed after commit for invalidation and events"""

    product_id: str
    variant_id: str
    before: StockLevel
    after: StockLevel
    events: List[InventoryEventMessage] = field(default_factory=list)
    check_reorder: bool = False
    result: object = None


class InventoryTransactionService:
    """Session-scoped stock primitives. Callers own the transaction and the product lock."""

    def __init__(self):
        self._error_handler = ErrorHandler(__name__)

    async def lock_records(
        self, session: AsyncSession, product_id: str, variant_id: str
    ) -> List[InventoryRecord]:
        """Lock every warehouse row of a product/variant for the rest of the transaction."""
        # Deterministic order to prevent deadlocks
        result = await session.execute(
            select(InventoryRecord)
            .filter_by(product_id=product_id, variant_id=variant_id)
            .order_by(InventoryRecord.id)
            .with_for_update()
        )
        return list(result.scalars().all())

    async def fetch_records(
        self, session: AsyncSession, product_id: str, variant_id: str
    ) -> List[InventoryRecord]:
        result = await session.execute(
            select(InventoryRecord)
            .filter_by(product_id=product_id, variant_id=variant_id)
            .order_by(InventoryRecord.id)
        )
        return list(result.scalars().all())

    async def reserved_quantity(
        self, session: AsyncSession, product_id: str, variant_id: str, now: datetime
    ) -> int:
        """Sum of active, non-expired reservations."""
        result = await session.execute(
            select(func.coalesce(func.sum(StockReservation.quantity), 0)).where(
                StockReservation.product_id == product_id,
                StockReservation.variant_id == variant_id,
                StockReservation.status == ReservationStatus.ACTIVE,
                StockReservation.expires_at > now,
            )
        )
        return int(result.scalar_one())

    async def stock_level(
        self,
        session: AsyncSession,
        records: List[InventoryRecord],
        product_id: str,
        variant_id: str,
        now: datetime,
    ) -> StockLevel:
        total = sum(record.quantity for record in records)
        reserved = await self.reserved_quantity(session, product_id, variant_id, now)
        return StockLevel(total=total, reserved=reserved)

    def create_record(
        self,
        session: AsyncSession,
        product_id: str,
        variant_id: str,
        warehouse_id: str,
        now: datetime,
        defaults,
        **attrs,
    ) -> InventoryRecord:
        record = InventoryRecord(
            product_id=product_id,
            variant_id=variant_id,
            warehouse_id=warehouse_id,
            product_name=attrs.get("product_name"),
            quantity=attrs.get("quantity") or 0,
            reorder_point=_first_set(attrs.get("reorder_point"), defaults.DEFAULT_REORDER_POINT),
            reorder_quantity=_first_set(attrs.get("reorder_quantity"), defaults.DEFAULT_REORDER_QUANTITY),
            low_stock_threshold=_first_set(attrs.get("low_stock_threshold"), defaults.LOW_STOCK_THRESHOLD),
            created_at=now,
            updated_at=now,
        )
        session.add(record)
        return record

    def record_movement(
        self,
        session: AsyncSession,
        product_id: str,
        variant_id: str,
        movement_type: MovementType,
        quantity: int,
        now: datetime,
        reference_id: Optional[str] = None,
        reference_type: Optional[str] = None,
        from_location: Optional[str] = None,
        to_location: Optional[str] = None,
        reason: Optional[str] = None,
        user_id: Optional[str] = None,
    ) -> StockMovement:
        if movement_type != MovementType.TRANSFERRED and (from_location or to_location):
            raise ValidationException("Locations are only recorded for transfers.")

        movement = StockMovement(
            product_id=product_id,
            variant_id=variant_id,
            movement_type=movement_type,
            quantity=quantity,
            reference_id=reference_id,
            reference_type=reference_type,
            from_location=from_location,
            to_location=to_location,
            reason=reason,
            user_id=user_id,
            created_at=now,
        )
        session.add(movement)
        return movement

    async def place_reservation(
        self,
        session: AsyncSession,
        records: List[InventoryRecord],
        product_id: str,
        variant_id: str,
        quantity: int,
        reference_id: str,
        reference_type: ReferenceType,
        expires_at: datetime,
        now: datetime,
        user_id: Optional[str] = None,
    ) -> MutationOutcome:
        """Check availability and insert the hold inside the caller's locked transaction."""
        if quantity <= 0:
            raise ValidationException("Quantity must be positive.")

        before = await self.stock_level(session, records, product_id, variant_id, now)
        if before.available < quantity:
            raise InsufficientStockException(product_id, quantity, max(before.available, 0))

        reservation = StockReservation(
            id=str(uuid.uuid4()),
            product_id=product_id,
            variant_id=variant_id,
            quantity=quantity,
            reference_id=reference_id,
            reference_type=reference_type,
            user_id=user_id,
            status=ReservationStatus.ACTIVE,
            expires_at=expires_at,
            created_at=now,
            updated_at=now,
        )
        session.add(reservation)
        self.record_movement(
            session,
            product_id,
            variant_id,
            MovementType.RESERVED,
            -quantity,
            now,
            reference_id=reference_id,
            reference_type=reference_type.value,
            user_id=user_id,
        )

        after = StockLevel(total=before.total, reserved=before.reserved + quantity)
        return MutationOutcome(
            product_id=product_id,
            variant_id=variant_id,
            before=before,
            after=after,
            events=[
                build_event(product_id, variant_id, MovementType.RESERVED, -quantity, before, after, now, reference_id)
            ],
            result=reservation.id,
        )

    async def active_reservations(
        self,
        session: AsyncSession,
        product_id: str,
        variant_id: str,
        reference_id: Optional[str] = None,
    ) -> List[StockReservation]:
        """Active reservations, oldest first, locked."""
        query = select(StockReservation).where(
            StockReservation.product_id == product_id,
            StockReservation.variant_id == variant_id,
            StockReservation.status == ReservationStatus.ACTIVE,
        )
        if reference_id is not None:
            query = query.where(StockReservation.reference_id == reference_id)

        result = await session.execute(
            query.order_by(StockReservation.created_at, StockReservation.id).with_for_update()
        )
        return list(result.scalars().all())

    async def get_reservation(
        self, session: AsyncSession, reservation_id: str, lock: bool = False
    ) -> Optional[StockReservation]:
        query = select(StockReservation).filter_by(id=reservation_id)
        if lock:
            query = query.with_for_update()
        result = await session.execute(query)
        return result.scalars().first()

    def end_reservations(
        self,
        reservations: List[StockReservation],
        status: ReservationStatus,
        now: datetime,
    ) -> List[StockReservation]:
        """Move active reservations to a terminal status; terminal ones are skipped."""
        ended = []
        for reservation in reservations:
            if reservation.is_terminal:
                continue
            reservation.status = status
            reservation.updated_at = now
            ended.append(reservation)
        return ended

    def apply_stock_operation(
        self, record: InventoryRecord, operation: StockOperation, quantity: int, now: datetime
    ) -> int:
        """Apply an administrative adjustment and return the signed delta actually applied."""
        if quantity < 0:
            raise ValidationException("Quantity cannot be negative.")

        previous = record.quantity
        if operation == StockOperation.INCREMENT:
            record.quantity = previous + quantity
            if quantity > 0:
                record.last_restocked_at = now
        elif operation == StockOperation.DECREMENT:
            # Decrement floors at zero
            record.quantity = max(0, previous - quantity)
        elif operation == StockOperation.SET:
            record.quantity = quantity
        else:
            raise ValidationException(f"Unknown stock operation: {operation}")

        record.updated_at = now
        return record.quantity - previous

    def deduct_sale(
        self, records: List[InventoryRecord], quantity: int, now: datetime
    ) -> None:
        """Remove sold units across warehouse rows, default warehouse first."""
        ordered = sorted(records, key=lambda r: (r.warehouse_id != DEFAULT_WAREHOUSE_ID, r.id))
        remaining = quantity
        for record in ordered:
            if remaining == 0:
                break
            taken = min(record.quantity, remaining)
            record.quantity -= taken
            record.updated_at = now
            remaining -= taken

        if remaining:
            # Callers check availability first; reaching here means the lock was bypassed
            raise ValidationException("Cannot deduct more stock than is on hand.")


def normalize_variant(variant_id: Optional[str]) -> str:
    return variant_id or NO_VARIANT


def _first_set(value, default):
    return default if value is None else value


def build_event(
    product_id: str,
    variant_id: str,
    movement_type: MovementType,
    quantity: int,
    before: StockLevel,
    after: StockLevel,
    now: datetime,
    reference_id: Optional[str] = None,
) -> InventoryEventMessage:
    return InventoryEventMessage(
        product_id=product_id,
        variant_id=variant_id or None,
        movement_type=movement_type,
        quantity=quantity,
        before_stock=before.available,
        after_stock=after.available,
        reference_id=reference_id,
        timestamp=now,
    )
