from datetime import datetime, timedelta
from typing import Awaitable, Callable, Dict, List, Optional

from fastapi import HTTPException
from sqlalchemy import func
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.future import select

from src.api.inventory.models import (
    AvailabilitySchema,
    BulkStockUpdateItem,
    BulkUpdateItemResult,
    BulkUpdateResult,
    CreateInventorySchema,
    InventorySchema,
    LowStockProductSchema,
    ReorderRequest,
    ReservationSchema,
    ReservationStatsSchema,
    StockCheckItem,
    StockMovementSchema,
    StockUpdateMessage,
)
from src.api.inventory.services.availability_cache import AvailabilityCache
from src.api.inventory.services.transaction_service import (
    InventoryTransactionService,
    MutationOutcome,
    StockLevel,
    build_event,
    normalize_variant,
)
from src.config.constants import (
    DEFAULT_WAREHOUSE_ID,
    Channels,
    MovementType,
    ReferenceType,
    ReservationStatus,
    StockOperation,
)
from src.config.settings import Settings, settings as default_settings
from src.database.models.inventory import InventoryRecord
from src.database.models.stock_movement import StockMovement
from src.database.models.stock_reservation import StockReservation
from src.shared.error_handler import ErrorHandler, ServiceError, handle_service_errors
from src.shared.exceptions import (
    ConflictException,
    InsufficientStockException,
    ResourceNotFoundException,
    TransferException,
    ValidationException,
)
from src.shared.locks import KeyedLock
from src.shared.pubsub import Broadcaster
from src.shared.utils import as_utc, utcnow

ReorderHandler = Callable[[ReorderRequest], Awaitable[None]]
ThresholdHandler = Callable[[str, Optional[str]], Awaitable[object]]

_OPERATION_MOVEMENTS = {
    StockOperation.INCREMENT: MovementType.IN,
    StockOperation.DECREMENT: MovementType.OUT,
    StockOperation.SET: MovementType.ADJUSTED,
}


class InventoryService:
    """Authoritative stock bookkeeping and the reservation ledger.

    Every write to a product runs under that product's lock: an in-process
    KeyedLock plus SELECT ... FOR UPDATE on its inventory rows. Before the
    caller returns, the availability cache entry is deleted; afterwards the
    new availability is broadcast on stock-updates and each movement is
    published on inventory-events.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        cache: AvailabilityCache,
        broadcaster: Broadcaster,
        settings: Settings = default_settings,
        clock: Callable[[], datetime] = utcnow,
        reorder_handler: Optional[ReorderHandler] = None,
        locks: Optional[KeyedLock] = None,
        threshold_handler: Optional[ThresholdHandler] = None,
    ):
        self._error_handler = ErrorHandler(__name__)
        self.session_factory = session_factory
        self.cache = cache
        self.broadcaster = broadcaster
        self.settings = settings
        self.clock = clock
        self.reorder_handler = reorder_handler
        self.locks = locks or KeyedLock()
        self.threshold_handler = threshold_handler
        self.transaction_service = InventoryTransactionService()

    @property
    def logger(self):
        return self._error_handler.logger

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @handle_service_errors("retrieving availability")
    async def get_availability(
        self, product_id: str, variant_id: Optional[str] = None
    ) -> AvailabilitySchema:
        """Cached availability; recomputed from inventory rows and active reservations on a miss."""
        cached = await self.cache.get(product_id, variant_id)
        if cached is not None:
            return cached

        variant = normalize_variant(variant_id)
        async with self.session_factory() as session:
            records = await self.transaction_service.fetch_records(session, product_id, variant)
            if not records:
                raise ResourceNotFoundException(
                    f"Inventory for product {product_id} not found"
                )
            level = await self.transaction_service.stock_level(
                session, records, product_id, variant, self.clock()
            )

        availability = _availability(product_id, variant_id, level)
        await self.cache.set(availability)
        return availability

    async def check_stock(
        self, product_id: str, quantity: int, variant_id: Optional[str] = None
    ) -> bool:
        """Pre-check only; reserve_stock re-checks under the product lock."""
        try:
            availability = await self.get_availability(product_id, variant_id)
        except ResourceNotFoundException:
            return False
        return availability.available >= quantity

    async def check_bulk_stock(self, items: List[StockCheckItem]) -> Dict[str, bool]:
        """Results keyed by product ID, or "product_id:variant_id" for variant items."""
        results = {}
        for item in items:
            results[stock_check_key(item.product_id, item.variant_id)] = await self.check_stock(
                item.product_id, item.quantity, item.variant_id
            )
        return results

    @handle_service_errors("retrieving inventory")
    async def get_inventory(
        self, product_id: str, variant_id: Optional[str] = None
    ) -> List[InventorySchema]:
        async with self.session_factory() as session:
            records = await self.transaction_service.fetch_records(
                session, product_id, normalize_variant(variant_id)
            )
        if not records:
            raise ResourceNotFoundException(f"Inventory for product {product_id} not found")
        return [InventorySchema.model_validate(record) for record in records]

    @handle_service_errors("retrieving reservation")
    async def get_reservation(self, reservation_id: str) -> ReservationSchema:
        async with self.session_factory() as session:
            reservation = await self.transaction_service.get_reservation(session, reservation_id)
        if not reservation:
            raise ResourceNotFoundException(f"Reservation {reservation_id} not found")
        return ReservationSchema.model_validate(reservation)

    @handle_service_errors("retrieving stock movements")
    async def get_stock_movements(
        self, product_id: str, limit: int = 50, offset: int = 0
    ) -> List[StockMovementSchema]:
        async with self.session_factory() as session:
            result = await session.execute(
                select(StockMovement)
                .filter_by(product_id=product_id)
                .order_by(StockMovement.created_at.desc(), StockMovement.id.desc())
                .limit(limit)
                .offset(offset)
            )
            return [StockMovementSchema.model_validate(m) for m in result.scalars().all()]

    @handle_service_errors("retrieving low stock products")
    async def get_low_stock_products(
        self, warehouse_id: Optional[str] = None
    ) -> List[LowStockProductSchema]:
        """Inventory rows at or below their reorder point, most depleted first."""
        now = self.clock()
        async with self.session_factory() as session:
            query = select(InventoryRecord).where(
                InventoryRecord.quantity <= InventoryRecord.reorder_point
            )
            if warehouse_id is not None:
                query = query.where(InventoryRecord.warehouse_id == warehouse_id)
            records = (await session.execute(query)).scalars().all()

            reserved_rows = await session.execute(
                select(
                    StockReservation.product_id,
                    StockReservation.variant_id,
                    func.sum(StockReservation.quantity),
                )
                .where(
                    StockReservation.status == ReservationStatus.ACTIVE,
                    StockReservation.expires_at > now,
                )
                .group_by(StockReservation.product_id, StockReservation.variant_id)
            )
            reserved = {(p, v): int(total) for p, v, total in reserved_rows.all()}

        products = [
            LowStockProductSchema(
                product_id=record.product_id,
                variant_id=record.variant_id,
                warehouse_id=record.warehouse_id,
                product_name=record.product_name,
                quantity=record.quantity,
                available=record.quantity - reserved.get((record.product_id, record.variant_id), 0),
                reorder_point=record.reorder_point,
            )
            for record in records
        ]
        products.sort(key=lambda p: p.quantity / p.reorder_point if p.reorder_point else 0.0)
        return products

    @handle_service_errors("retrieving reservation stats")
    async def get_reservation_stats(self) -> ReservationStatsSchema:
        now = self.clock()
        async with self.session_factory() as session:
            result = await session.execute(
                select(StockReservation.quantity, StockReservation.expires_at).where(
                    StockReservation.status == ReservationStatus.ACTIVE
                )
            )
            rows = result.all()

        soon = now + timedelta(minutes=5)
        live = [(q, as_utc(e)) for q, e in rows if as_utc(e) > now]
        return ReservationStatsSchema(
            active_reservations=len(live),
            reserved_units=sum(q for q, _ in live),
            expired_pending_sweep=len(rows) - len(live),
            expiring_within_5min=sum(1 for _, e in live if e <= soon),
        )

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    @handle_service_errors("creating inventory")
    async def create_inventory(self, data: CreateInventorySchema) -> InventorySchema:
        variant = normalize_variant(data.variant_id)
        now = self.clock()

        async with self.locks.acquire((data.product_id, variant)):
            async with self.session_factory() as session:
                async with session.begin():
                    records = await self.transaction_service.lock_records(session, data.product_id, variant)
                    if any(r.warehouse_id == data.warehouse_id for r in records):
                        raise ConflictException(
                            f"Inventory for product {data.product_id} at warehouse {data.warehouse_id} already exists."
                        )
                    before = await self.transaction_service.stock_level(
                        session, records, data.product_id, variant, now
                    )
                    record = self.transaction_service.create_record(
                        session,
                        data.product_id,
                        variant,
                        data.warehouse_id,
                        now,
                        self.settings,
                        **data.model_dump(exclude={"product_id", "variant_id", "warehouse_id"}),
                    )
                    if data.quantity:
                        record.last_restocked_at = now
                        self.transaction_service.record_movement(
                            session, data.product_id, variant, MovementType.IN, data.quantity, now,
                            reason="Initial stock",
                        )
                    await session.flush()
                    inventory = InventorySchema.model_validate(record)

                outcome = MutationOutcome(
                    product_id=data.product_id,
                    variant_id=variant,
                    before=before,
                    after=StockLevel(before.total + data.quantity, before.reserved),
                )
                if data.quantity:
                    outcome.events.append(
                        build_event(data.product_id, variant, MovementType.IN, data.quantity,
                                    outcome.before, outcome.after, now)
                    )
            await self.cache.invalidate(data.product_id, data.variant_id)

        await self.publish_outcome(outcome)
        return inventory

    @handle_service_errors("reserving stock")
    async def reserve_stock(
        self,
        product_id: str,
        quantity: int,
        reference_id: str,
        reference_type: ReferenceType = ReferenceType.CART,
        ttl_seconds: Optional[int] = None,
        variant_id: Optional[str] = None,
        user_id: Optional[str] = None,
    ) -> str:
        """Place a time-bounded hold. Availability check and insert are one locked unit."""
        reference_type = ReferenceType(reference_type)
        if ttl_seconds is None:
            ttl_seconds = self._default_ttl_seconds(reference_type)
        variant = normalize_variant(variant_id)

        async def reserve(session, records, now):
            if not records:
                raise ResourceNotFoundException(f"Inventory for product {product_id} not found")
            return await self.transaction_service.place_reservation(
                session,
                records,
                product_id,
                variant,
                quantity,
                reference_id,
                reference_type,
                expires_at=now + timedelta(seconds=ttl_seconds),
                now=now,
                user_id=user_id,
            )

        outcome = await self._locked_write(product_id, variant, reserve)
        self.logger.info(
            f"Reserved {quantity} of product {product_id} for {reference_type.value} {reference_id} "
            f"(reservation {outcome.result}, available {outcome.after.available})"
        )
        return outcome.result

    @handle_service_errors("releasing stock")
    async def release_stock(
        self,
        product_id: str,
        quantity: int,
        reservation_id: Optional[str] = None,
        variant_id: Optional[str] = None,
    ) -> bool:
        """Cancel the named reservation, or the oldest active ones up to `quantity`.

        Releasing a reservation that is already confirmed, cancelled or expired
        is a no-op and still returns True. A named reservation is released
        under its own variant.
        """
        if quantity <= 0:
            raise ValidationException("Quantity must be positive.")
        variant = normalize_variant(variant_id)
        if reservation_id:
            variant = await self._reservation_variant(reservation_id, product_id, variant_id)

        async def release(session, records, now):
            before = await self.transaction_service.stock_level(session, records, product_id, variant, now)

            if reservation_id:
                reservation = await self.transaction_service.get_reservation(session, reservation_id, lock=True)
                if not reservation:
                    raise ResourceNotFoundException(f"Reservation {reservation_id} not found")
                if reservation.product_id != product_id or reservation.variant_id != variant:
                    raise ValidationException(
                        f"Reservation {reservation_id} does not belong to product {product_id}"
                    )
                ended = self.transaction_service.end_reservations(
                    [reservation], ReservationStatus.CANCELLED, now
                )
                released = sum(r.quantity for r in ended)
            else:
                released = 0
                for reservation in await self.transaction_service.active_reservations(session, product_id, variant):
                    remaining = quantity - released
                    if remaining <= 0:
                        break
                    if as_utc(reservation.expires_at) <= now:
                        continue
                    if reservation.quantity <= remaining:
                        self.transaction_service.end_reservations([reservation], ReservationStatus.CANCELLED, now)
                        released += reservation.quantity
                    else:
                        # Partial release shrinks the hold and keeps it active
                        reservation.quantity -= remaining
                        reservation.updated_at = now
                        released += remaining

            if released == 0:
                return None

            self.transaction_service.record_movement(
                session, product_id, variant, MovementType.RELEASED, released, now,
                reference_id=reservation_id,
                reason="Reservation released",
            )
            after = await self._level_after_flush(session, records, product_id, variant, now)
            return MutationOutcome(
                product_id=product_id,
                variant_id=variant,
                before=before,
                after=after,
                events=[build_event(product_id, variant, MovementType.RELEASED, released, before, after, now, reservation_id)],
                result=released,
            )

        outcome = await self._locked_write(product_id, variant, release)
        if outcome is None:
            self.logger.info(f"Release for product {product_id} found nothing active; no-op")
        return True

    @handle_service_errors("confirming reservation")
    async def confirm_reservation(
        self,
        product_id: str,
        quantity: int,
        order_id: str,
        variant_id: Optional[str] = None,
    ) -> bool:
        """Convert the order's holds into a sale: the only path that reduces stock for a sale."""
        if quantity <= 0:
            raise ValidationException("Quantity must be positive.")
        variant = normalize_variant(variant_id)

        async def confirm(session, records, now):
            if not records:
                raise ResourceNotFoundException(f"Inventory for product {product_id} not found")

            before = await self.transaction_service.stock_level(session, records, product_id, variant, now)
            held = await self.transaction_service.active_reservations(
                session, product_id, variant, reference_id=order_id
            )
            held_live = sum(r.quantity for r in held if as_utc(r.expires_at) > now)
            if before.available + held_live < quantity:
                raise InsufficientStockException(product_id, quantity, max(before.available + held_live, 0))

            self.transaction_service.end_reservations(held, ReservationStatus.CONFIRMED, now)
            self.transaction_service.deduct_sale(records, quantity, now)
            self.transaction_service.record_movement(
                session, product_id, variant, MovementType.OUT, -quantity, now,
                reference_id=order_id,
                reference_type=ReferenceType.ORDER.value,
                reason="Order confirmed",
            )
            after = await self._level_after_flush(session, records, product_id, variant, now)
            return MutationOutcome(
                product_id=product_id,
                variant_id=variant,
                before=before,
                after=after,
                events=[build_event(product_id, variant, MovementType.OUT, -quantity, before, after, now, order_id)],
                check_reorder=True,
                result=True,
            )

        await self._locked_write(product_id, variant, confirm)
        self.logger.info(f"Confirmed sale of {quantity} of product {product_id} for order {order_id}")
        return True

    @handle_service_errors("updating stock")
    async def update_stock(
        self,
        product_id: str,
        quantity: int,
        operation: StockOperation,
        reason: Optional[str] = None,
        user_id: Optional[str] = None,
        variant_id: Optional[str] = None,
        warehouse_id: Optional[str] = None,
    ) -> InventorySchema:
        """Administrative adjustment. Creates the inventory row on first reference."""
        operation = StockOperation(operation)
        variant = normalize_variant(variant_id)
        warehouse = warehouse_id or DEFAULT_WAREHOUSE_ID

        async def update(session, records, now):
            before = await self.transaction_service.stock_level(session, records, product_id, variant, now)
            record = next((r for r in records if r.warehouse_id == warehouse), None)
            if record is None:
                record = self.transaction_service.create_record(
                    session, product_id, variant, warehouse, now, self.settings
                )
                records.append(record)

            delta = self.transaction_service.apply_stock_operation(record, operation, quantity, now)
            movement_type = _OPERATION_MOVEMENTS[operation]
            self.transaction_service.record_movement(
                session, product_id, variant, movement_type, delta, now,
                reason=reason,
                user_id=user_id,
            )
            after = await self._level_after_flush(session, records, product_id, variant, now)
            return MutationOutcome(
                product_id=product_id,
                variant_id=variant,
                before=before,
                after=after,
                events=[build_event(product_id, variant, movement_type, delta, before, after, now)],
                check_reorder=True,
                result=InventorySchema.model_validate(record),
            )

        outcome = await self._locked_write(product_id, variant, update)
        return outcome.result

    async def bulk_update_stock(
        self,
        updates: List[BulkStockUpdateItem],
        reason: Optional[str] = None,
        user_id: Optional[str] = None,
    ) -> BulkUpdateResult:
        """Apply each update in its own transaction; one failure never aborts the rest."""
        results = []
        for update in updates:
            try:
                inventory = await self.update_stock(
                    update.product_id,
                    update.quantity,
                    update.operation,
                    reason=reason,
                    user_id=user_id,
                    variant_id=update.variant_id,
                    warehouse_id=update.warehouse_id,
                )
                results.append(BulkUpdateItemResult(product_id=update.product_id, success=True, inventory=inventory))
            except HTTPException as e:
                results.append(BulkUpdateItemResult(product_id=update.product_id, success=False, error=str(e.detail)))
            except ServiceError as e:
                results.append(BulkUpdateItemResult(product_id=update.product_id, success=False, error=e.message))

        succeeded = sum(1 for r in results if r.success)
        if succeeded != len(results):
            self.logger.warning(f"Bulk stock update: {len(results) - succeeded} of {len(results)} updates failed")
        return BulkUpdateResult(results=results, succeeded=succeeded, failed=len(results) - succeeded)

    @handle_service_errors("transferring stock")
    async def transfer_stock(
        self,
        product_id: str,
        quantity: int,
        from_warehouse: str,
        to_warehouse: str,
        user_id: Optional[str] = None,
        variant_id: Optional[str] = None,
    ) -> bool:
        """Move stock between warehouses in one transaction; both legs or neither."""
        if quantity <= 0:
            raise ValidationException("Quantity must be positive.")
        if from_warehouse == to_warehouse:
            raise ValidationException("Source and destination warehouses must differ.")
        variant = normalize_variant(variant_id)

        async def transfer(session, records, now):
            source = next((r for r in records if r.warehouse_id == from_warehouse), None)
            if source is None:
                raise ResourceNotFoundException(
                    f"Inventory for product {product_id} at warehouse {from_warehouse} not found"
                )
            if source.quantity < quantity:
                raise InsufficientStockException(
                    product_id, quantity, source.quantity,
                    detail=f"Warehouse {from_warehouse} holds {source.quantity} of product {product_id}, "
                    f"cannot transfer {quantity}",
                )
            level = await self.transaction_service.stock_level(session, records, product_id, variant, now)

            try:
                destination = next((r for r in records if r.warehouse_id == to_warehouse), None)
                if destination is None:
                    destination = self.transaction_service.create_record(
                        session, product_id, variant, to_warehouse, now, self.settings,
                        product_name=source.product_name,
                    )

                source.quantity -= quantity
                source.updated_at = now
                destination.quantity += quantity
                destination.updated_at = now

                for signed in (-quantity, quantity):
                    self.transaction_service.record_movement(
                        session, product_id, variant, MovementType.TRANSFERRED, signed, now,
                        from_location=from_warehouse,
                        to_location=to_warehouse,
                        user_id=user_id,
                    )
                await session.flush()
            except HTTPException:
                raise
            except Exception as e:
                self.logger.error(f"Transfer of product {product_id} failed, rolling back: {e}")
                raise TransferException(
                    f"Transfer of {quantity} of product {product_id} from {from_warehouse} "
                    f"to {to_warehouse} failed and was rolled back"
                ) from e

            # Total across warehouses is unchanged
            return MutationOutcome(product_id=product_id, variant_id=variant, before=level, after=level, result=True)

        await self._locked_write(product_id, variant, transfer)
        self.logger.info(f"Transferred {quantity} of product {product_id} from {from_warehouse} to {to_warehouse}")
        return True

    @handle_service_errors("setting low stock threshold")
    async def set_low_stock_threshold(
        self, product_id: str, threshold: int, variant_id: Optional[str] = None
    ) -> List[InventorySchema]:
        """Set the low-stock threshold on every warehouse row, then re-evaluate alerts."""
        if threshold < 0:
            raise ValidationException("Low stock threshold cannot be negative.")
        variant = normalize_variant(variant_id)

        async def set_threshold(session, records, now):
            if not records:
                raise ResourceNotFoundException(f"Inventory for product {product_id} not found")
            for record in records:
                record.low_stock_threshold = threshold
                record.updated_at = now
            level = await self._level_after_flush(session, records, product_id, variant, now)
            return MutationOutcome(
                product_id=product_id,
                variant_id=variant,
                before=level,
                after=level,
                result=[InventorySchema.model_validate(record) for record in records],
            )

        outcome = await self._locked_write(product_id, variant, set_threshold)
        self.logger.info(f"Low stock threshold for product {product_id} set to {threshold}")

        if self.threshold_handler is not None:
            try:
                await self.threshold_handler(product_id, variant_id)
            except Exception as e:
                self.logger.error(f"Alert evaluation for product {product_id} failed: {e}")
        return outcome.result

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _locked_write(self, product_id: str, variant_id: str, mutate) -> Optional[MutationOutcome]:
        """Run `mutate(session, records, now)` in one transaction under the product lock.

        The cache entry is invalidated before the lock is released; events are
        published after.
        """
        async with self.locks.acquire((product_id, variant_id)):
            async with self.session_factory() as session:
                async with session.begin():
                    now = self.clock()
                    records = await self.transaction_service.lock_records(session, product_id, variant_id)
                    outcome = await mutate(session, records, now)
            if outcome is not None:
                await self.cache.invalidate(product_id, variant_id or None)

        if outcome is not None:
            await self.publish_outcome(outcome)
        return outcome

    async def _reservation_variant(
        self, reservation_id: str, product_id: str, variant_id: Optional[str]
    ) -> str:
        """Variant a named reservation was placed under; the lock and cache key follow it."""
        async with self.session_factory() as session:
            reservation = await self.transaction_service.get_reservation(session, reservation_id)
        if not reservation:
            raise ResourceNotFoundException(f"Reservation {reservation_id} not found")
        if reservation.product_id != product_id:
            raise ValidationException(f"Reservation {reservation_id} does not belong to product {product_id}")
        if variant_id is not None and normalize_variant(variant_id) != reservation.variant_id:
            raise ValidationException(
                f"Reservation {reservation_id} was placed for variant {reservation.variant_id or 'none'}, "
                f"not {variant_id}"
            )
        return reservation.variant_id

    async def _level_after_flush(self, session, records, product_id, variant_id, now) -> StockLevel:
        await session.flush()
        return await self.transaction_service.stock_level(session, records, product_id, variant_id, now)

    async def publish_outcome(self, outcome: MutationOutcome) -> None:
        now = self.clock()
        update = StockUpdateMessage(
            product_id=outcome.product_id,
            variant_id=outcome.variant_id or None,
            available_stock=outcome.after.available,
            timestamp=now,
        )
        await self.broadcaster.publish(Channels.STOCK_UPDATES.value, update.to_message())

        for event in outcome.events:
            await self.broadcaster.publish(Channels.INVENTORY_EVENTS.value, event.to_message())

        if outcome.check_reorder:
            await self._check_reorder_point(outcome)

    async def _check_reorder_point(self, outcome: MutationOutcome) -> None:
        async with self.session_factory() as session:
            records = await self.transaction_service.fetch_records(
                session, outcome.product_id, outcome.variant_id
            )
        if not records:
            return

        reorder_point = max(r.reorder_point for r in records)
        available = outcome.after.available
        if not reorder_point or available > reorder_point:
            return

        request = ReorderRequest(
            product_id=outcome.product_id,
            variant_id=outcome.variant_id or None,
            reorder_quantity=max(r.reorder_quantity for r in records),
            available=available,
            reorder_point=reorder_point,
        )
        self.logger.warning(
            f"Product {request.product_id} at reorder point: available {available} <= {reorder_point}"
        )
        if self.reorder_handler is None:
            return
        try:
            await self.reorder_handler(request)
        except Exception as e:
            self.logger.error(f"Reorder request for product {request.product_id} failed: {e}")

    def _default_ttl_seconds(self, reference_type: ReferenceType) -> int:
        if reference_type == ReferenceType.ORDER:
            return self.settings.CHECKOUT_RESERVATION_TTL_MINUTES * 60
        return self.settings.RESERVATION_TTL_MINUTES * 60


def _availability(product_id: str, variant_id: Optional[str], level: StockLevel) -> AvailabilitySchema:
    return AvailabilitySchema(
        product_id=product_id,
        variant_id=variant_id or None,
        available=level.available,
        reserved=level.reserved,
        total=level.total,
    )


def stock_check_key(product_id: str, variant_id: Optional[str] = None) -> str:
    return f"{product_id}:{variant_id}" if variant_id else product_id
