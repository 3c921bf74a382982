"""
Reservation expiry sweeper.

Run periodically (every 5 minutes by default) to move active reservations
past their expires_at to `expired` and hand their stock back. Each product is
processed under the same lock the write path uses, so a reservation that was
confirmed or released in the meantime is skipped rather than expired twice.
"""
from collections import defaultdict
from typing import TYPE_CHECKING, Dict, List, Optional, Tuple

from sqlalchemy.future import select

from src.api.inventory.models import SweepResult
from src.api.inventory.services.transaction_service import MutationOutcome, StockLevel, build_event
from src.config.constants import MovementType, NotificationType, ReservationStatus
from src.database.models.stock_reservation import StockReservation
from src.shared.utils import get_logger

if TYPE_CHECKING:
    from src.api.alerts.services.notification_dispatcher import NotificationDispatcher
    from src.api.inventory.service import InventoryService

logger = get_logger(__name__)


def expiry_message(product_name: str, quantity: int) -> str:
    return f"⏰ 예약 만료: {product_name} {quantity}개에 대한 예약이 만료되었습니다."


class ReservationSweeper:
    def __init__(
        self,
        inventory_service: "InventoryService",
        dispatcher: Optional["NotificationDispatcher"] = None,
    ):
        self.inventory_service = inventory_service
        self.dispatcher = dispatcher

    async def sweep(self) -> SweepResult:
        """Expire overdue reservations product by product; one failing product never stops the rest."""
        result = SweepResult()
        now = self.inventory_service.clock()

        async with self.inventory_service.session_factory() as session:
            rows = await session.execute(
                select(StockReservation.id, StockReservation.product_id, StockReservation.variant_id).where(
                    StockReservation.status == ReservationStatus.ACTIVE,
                    StockReservation.expires_at < now,
                )
            )
            by_product: Dict[Tuple[str, str], List[str]] = defaultdict(list)
            for reservation_id, product_id, variant_id in rows.all():
                by_product[(product_id, variant_id)].append(reservation_id)

        if not by_product:
            logger.debug("No expired reservations to sweep")
            return result

        for (product_id, variant_id), reservation_ids in by_product.items():
            try:
                expired, released, skipped = await self._expire_product(product_id, variant_id, reservation_ids)
            except Exception as e:
                logger.error(f"Error expiring reservations for product {product_id}: {e}")
                result.errors += 1
                continue

            result.skipped += skipped
            if expired:
                result.reservations_expired += len(expired)
                result.products_affected += 1
                result.stock_released += released
                await self._notify_expired(product_id, variant_id, expired)

        if result.reservations_expired:
            logger.info(
                f"Expired {result.reservations_expired} reservations, "
                f"released {result.stock_released} units across {result.products_affected} products"
            )
        return result

    async def _expire_product(
        self, product_id: str, variant_id: str, reservation_ids: List[str]
    ) -> Tuple[List[StockReservation], int, int]:
        service = self.inventory_service
        transactions = service.transaction_service
        expired: List[StockReservation] = []

        async with service.locks.acquire((product_id, variant_id)):
            async with service.session_factory() as session:
                async with session.begin():
                    now = service.clock()
                    records = await transactions.lock_records(session, product_id, variant_id)
                    result = await session.execute(
                        select(StockReservation)
                        .where(StockReservation.id.in_(reservation_ids))
                        .order_by(StockReservation.created_at, StockReservation.id)
                        .with_for_update()
                    )
                    candidates = result.scalars().all()
                    # Status re-checked under the lock
                    overdue = [r for r in candidates if not r.is_terminal]
                    expired = transactions.end_reservations(overdue, ReservationStatus.EXPIRED, now)

                    after = await transactions.stock_level(session, records, product_id, variant_id, now)
                    released = sum(r.quantity for r in expired)
                    outcome = MutationOutcome(
                        product_id=product_id,
                        variant_id=variant_id,
                        before=StockLevel(after.total, after.reserved + released),
                        after=after,
                    )

                    pending = released
                    for reservation in expired:
                        transactions.record_movement(
                            session, product_id, variant_id, MovementType.RELEASED, reservation.quantity, now,
                            reference_id=reservation.reference_id,
                            reference_type=reservation.reference_type.value,
                            reason="Reservation expired",
                            user_id=reservation.user_id,
                        )
                        before = StockLevel(after.total, after.reserved + pending)
                        pending -= reservation.quantity
                        outcome.events.append(
                            build_event(
                                product_id, variant_id, MovementType.RELEASED, reservation.quantity,
                                before, StockLevel(after.total, after.reserved + pending), now,
                                reservation.reference_id,
                            )
                        )

            if expired:
                await service.cache.invalidate(product_id, variant_id or None)

        if expired:
            await service.publish_outcome(outcome)
        return expired, released, len(candidates) - len(expired)

    async def _notify_expired(
        self, product_id: str, variant_id: str, reservations: List[StockReservation]
    ) -> None:
        if self.dispatcher is None:
            return
        owners = [r for r in reservations if r.user_id]
        if not owners:
            return
        try:
            records = await self.inventory_service.get_inventory(product_id, variant_id or None)
            product_name = next((r.product_name for r in records if r.product_name), product_id)
            for reservation in owners:
                await self.dispatcher.send(
                    NotificationType.IN_APP.value,
                    reservation.user_id,
                    product_name,
                    expiry_message(product_name, reservation.quantity),
                )
        except Exception as e:
            logger.warning(f"Expiry notice for product {product_id} failed: {e}")
