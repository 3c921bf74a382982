import uuid
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

from pydantic import BaseModel
from sqlalchemy import func, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.future import select

from src.api.alerts.models import (
    AlertStatsSchema,
    AlertSweepResult,
    AlertTypeStats,
    HighDemandDetails,
    LowStockDetails,
    OutOfStockDetails,
    RestockDetails,
    SlowMovingDetails,
    StockAlertSchema,
    StockLevelMessage,
    StockMovementEvent,
    alert_details_adapter,
)
from src.api.alerts.services.notification_dispatcher import NotificationDispatcher
from src.api.alerts.services.subscription_service import SubscriptionService
from src.api.inventory.services.transaction_service import InventoryTransactionService
from src.config.constants import (
    ACTIVE_ALERT_STATUSES,
    ALERT_SEVERITIES,
    SUBSCRIBER_ALERT_TYPES,
    AlertStatus,
    AlertType,
    Channels,
    MovementType,
    ReferenceType,
)
from src.config.settings import Settings, settings as default_settings
from src.database.models.inventory import InventoryRecord
from src.database.models.stock_alert import StockAlert
from src.database.models.stock_movement import StockMovement
from src.shared.error_handler import ErrorHandler, handle_service_errors
from src.shared.exceptions import ConflictException, ResourceNotFoundException, ValidationException
from src.shared.locks import KeyedLock
from src.shared.pubsub import Broadcaster
from src.shared.utils import as_utc, utcnow

LEVEL_ALERT_TYPES = (AlertType.LOW_STOCK, AlertType.OUT_OF_STOCK)


def generate_alert_message(alert_type: AlertType, product_name: str, current_stock: int) -> str:
    if alert_type == AlertType.OUT_OF_STOCK:
        return f"🚨 품절: {product_name}이(가) 품절되었습니다."
    if alert_type == AlertType.LOW_STOCK:
        return f"⚠️ 재고 부족: {product_name}의 재고가 {current_stock}개 남았습니다."
    if alert_type == AlertType.RESTOCK:
        return f"✅ 재입고: {product_name}이(가) 재입고되었습니다."
    if alert_type == AlertType.HIGH_DEMAND:
        return f"🔥 높은 수요: {product_name}의 판매가 급증하고 있습니다."
    if alert_type == AlertType.SLOW_MOVING:
        return f"📊 재고 회전 저조: {product_name}의 재고 회전율이 낮습니다."
    return f"재고 알림: {product_name}"


class StockAlertService:
    """Evaluates stock movements and periodic sweeps into deduplicated alerts.

    Administrators are notified of every new alert; low-stock, out-of-stock
    and restock alerts also fan out to the product's subscribers. Restock
    subscriptions are one-shot and deactivated once notified.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        subscription_service: SubscriptionService,
        dispatcher: NotificationDispatcher,
        broadcaster: Broadcaster,
        settings: Settings = default_settings,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._error_handler = ErrorHandler(__name__)
        self.session_factory = session_factory
        self.subscription_service = subscription_service
        self.dispatcher = dispatcher
        self.broadcaster = broadcaster
        self.settings = settings
        self.clock = clock
        self.transaction_service = InventoryTransactionService()
        self.locks = KeyedLock()

    @property
    def logger(self):
        return self._error_handler.logger

    async def handle_stock_movement(self, event: Union[StockMovementEvent, Dict[str, Any]]) -> None:
        """Handler for inventory-events messages."""
        if not isinstance(event, StockMovementEvent):
            event = StockMovementEvent.model_validate(event)

        product_id = event.product_id
        after = event.after_stock
        _, low_stock_threshold = await self._product_profile(product_id, event.variant_id)

        if event.movement_type == MovementType.IN.value and event.before_stock <= 0 < after:
            await self.create_alert(
                product_id,
                AlertType.RESTOCK,
                0,
                after,
                RestockDetails(restocked_quantity=event.quantity),
                variant_id=event.variant_id,
            )
            await self._resolve_active(product_id, LEVEL_ALERT_TYPES)
        elif after <= 0:
            await self.create_alert(
                product_id, AlertType.OUT_OF_STOCK, 0, after, OutOfStockDetails(), variant_id=event.variant_id
            )
        elif after <= low_stock_threshold:
            await self.create_alert(
                product_id,
                AlertType.LOW_STOCK,
                low_stock_threshold,
                after,
                LowStockDetails(low_stock_threshold=low_stock_threshold),
                variant_id=event.variant_id,
            )
        else:
            await self._resolve_active(product_id, LEVEL_ALERT_TYPES)

        update_message = StockLevelMessage(
            product_id=product_id,
            variant_id=event.variant_id,
            current_stock=after,
            timestamp=self.clock(),
        )
        await self.broadcaster.publish(Channels.STOCK_UPDATES.value, update_message.to_message())

    @handle_service_errors("creating stock alert")
    async def create_alert(
        self,
        product_id: str,
        alert_type: AlertType,
        threshold: float,
        current_stock: int,
        details: Optional[Union[BaseModel, Dict[str, Any]]] = None,
        variant_id: Optional[str] = None,
    ) -> StockAlertSchema:
        """Create an alert unless an active one of the same type exists within the dedup window."""
        alert, _ = await self._create_alert(product_id, alert_type, threshold, current_stock, details, variant_id)
        return alert

    @handle_service_errors("resolving stock alert")
    async def resolve_alert(self, alert_id: str) -> StockAlertSchema:
        return await self._close_alert(alert_id, AlertStatus.RESOLVED)

    @handle_service_errors("ignoring stock alert")
    async def ignore_alert(self, alert_id: str) -> StockAlertSchema:
        return await self._close_alert(alert_id, AlertStatus.IGNORED)

    @handle_service_errors("retrieving active alerts")
    async def get_active_alerts(self, product_id: Optional[str] = None) -> List[StockAlertSchema]:
        async with self.session_factory() as session:
            query = select(StockAlert).where(StockAlert.status.in_(ACTIVE_ALERT_STATUSES))
            if product_id is not None:
                query = query.where(StockAlert.product_id == product_id)
            result = await session.execute(query.order_by(StockAlert.created_at.desc()))
            return [StockAlertSchema.model_validate(a) for a in result.scalars().all()]

    @handle_service_errors("retrieving alert stats")
    async def get_alert_stats(
        self, start_date: Optional[datetime] = None, end_date: Optional[datetime] = None
    ) -> AlertStatsSchema:
        async with self.session_factory() as session:
            query = select(StockAlert.alert_type, StockAlert.status, StockAlert.created_at, StockAlert.resolved_at)
            if start_date and end_date:
                query = query.where(StockAlert.created_at.between(start_date, end_date))
            rows = (await session.execute(query)).all()

        grouped: Dict[AlertType, List[Tuple]] = {}
        for alert_type, status, created_at, resolved_at in rows:
            grouped.setdefault(alert_type, []).append((status, created_at, resolved_at))

        by_type = {}
        for alert_type, alerts in grouped.items():
            durations = [
                (as_utc(resolved_at) - as_utc(created_at)).total_seconds() / 3600
                for status, created_at, resolved_at in alerts
                if status == AlertStatus.RESOLVED and resolved_at is not None
            ]
            by_type[alert_type] = AlertTypeStats(
                count=len(alerts),
                resolved_count=sum(1 for status, _, _ in alerts if status == AlertStatus.RESOLVED),
                avg_resolution_hours=sum(durations) / len(durations) if durations else None,
            )
        return AlertStatsSchema(by_type=by_type, total=len(rows))

    @handle_service_errors("calculating sales velocity")
    async def calculate_sales_velocity(self, product_id: str) -> float:
        """Average units sold per day over the velocity window, counting confirmed order sales."""
        window_days = self.settings.SALES_VELOCITY_WINDOW_DAYS
        since = self.clock() - timedelta(days=window_days)
        async with self.session_factory() as session:
            result = await session.execute(
                select(func.coalesce(func.sum(StockMovement.quantity), 0)).where(
                    StockMovement.product_id == product_id,
                    StockMovement.movement_type == MovementType.OUT,
                    StockMovement.reference_type == ReferenceType.ORDER.value,
                    StockMovement.created_at >= since,
                )
            )
            # Sale movements are negative
            sold = -int(result.scalar_one())
        return sold / window_days

    @handle_service_errors("evaluating stock level")
    async def evaluate_stock_level(
        self, product_id: str, variant_id: Optional[str] = None
    ) -> Optional[StockAlertSchema]:
        """Check current availability against the low-stock threshold right now.

        Raises an out-of-stock or low-stock alert when due; otherwise resolves
        active level alerts of the product.
        """
        variant = variant_id or ""
        async with self.session_factory() as session:
            records = await self.transaction_service.fetch_records(session, product_id, variant)
            if not records:
                raise ResourceNotFoundException(f"Inventory for product {product_id} not found")
            level = await self.transaction_service.stock_level(session, records, product_id, variant, self.clock())

        level_alert = _level_alert(level.available, max(r.low_stock_threshold for r in records))
        if level_alert is None:
            await self._resolve_active(product_id, LEVEL_ALERT_TYPES)
            return None

        alert_type, threshold, details = level_alert
        alert, _ = await self._create_alert(product_id, alert_type, threshold, level.available, details, variant_id)
        return alert

    async def check_all_thresholds(self) -> AlertSweepResult:
        """Periodic sweep over every product; a failing product is counted and skipped."""
        sweep = AlertSweepResult()
        async with self.session_factory() as session:
            result = await session.execute(
                select(InventoryRecord.product_id, InventoryRecord.variant_id)
                .distinct()
                .order_by(InventoryRecord.product_id, InventoryRecord.variant_id)
            )
            products = result.all()

        for product_id, variant_id in products:
            try:
                sweep.alerts_created += await self._check_product(product_id, variant_id)
                sweep.products_checked += 1
            except Exception as e:
                sweep.errors += 1
                self.logger.error(f"Threshold check failed for product {product_id}: {e}")

        self.logger.info(
            f"Threshold sweep: {sweep.products_checked} products checked, "
            f"{sweep.alerts_created} alerts created, {sweep.errors} errors"
        )
        return sweep

    async def _check_product(self, product_id: str, variant_id: str) -> int:
        async with self.session_factory() as session:
            records = await self.transaction_service.fetch_records(session, product_id, variant_id)
            level = await self.transaction_service.stock_level(
                session, records, product_id, variant_id, self.clock()
            )
        available = level.available
        variant = variant_id or None

        candidates = []
        level_alert = _level_alert(available, max(r.low_stock_threshold for r in records))
        if level_alert:
            candidates.append(level_alert)

        velocity = await self.calculate_sales_velocity(product_id)
        cover_days = self.settings.HIGH_DEMAND_COVER_DAYS
        if velocity > self.settings.HIGH_DEMAND_MIN_VELOCITY and available < velocity * cover_days:
            candidates.append(
                (AlertType.HIGH_DEMAND, velocity * cover_days,
                 HighDemandDetails(sales_velocity=velocity, cover_days=cover_days))
            )
        if velocity < self.settings.SLOW_MOVING_MAX_VELOCITY and available > self.settings.SLOW_MOVING_MIN_STOCK:
            candidates.append(
                (AlertType.SLOW_MOVING, self.settings.SLOW_MOVING_MIN_STOCK, SlowMovingDetails(sales_velocity=velocity))
            )

        created = 0
        for alert_type, threshold, details in candidates:
            _, is_new = await self._create_alert(product_id, alert_type, threshold, available, details, variant)
            created += int(is_new)
        return created

    async def _create_alert(
        self,
        product_id: str,
        alert_type: AlertType,
        threshold: float,
        current_stock: int,
        details: Optional[Union[BaseModel, Dict[str, Any]]],
        variant_id: Optional[str],
    ) -> Tuple[StockAlertSchema, bool]:
        alert_type = AlertType(alert_type)
        if isinstance(details, BaseModel):
            details = details.model_dump()
        details = alert_details_adapter.validate_python(details or _default_details(alert_type, threshold))
        if details.kind != alert_type.value:
            raise ValidationException(f"Details of kind {details.kind} do not match alert type {alert_type.value}")

        product_name, _ = await self._product_profile(product_id, variant_id)
        now = self.clock()

        # Dedup check and insert are one unit per (product, alert type)
        async with self.locks.acquire((product_id, alert_type.value)):
            async with self.session_factory() as session:
                async with session.begin():
                    await self._lock_alert_key(session, product_id, alert_type)
                    result = await session.execute(
                        select(StockAlert)
                        .where(
                            StockAlert.product_id == product_id,
                            StockAlert.alert_type == alert_type,
                            StockAlert.status.in_(ACTIVE_ALERT_STATUSES),
                            StockAlert.created_at
                            >= now - timedelta(minutes=self.settings.ALERT_DEDUP_WINDOW_MINUTES),
                        )
                        .order_by(StockAlert.created_at.desc())
                        .limit(1)
                    )
                    existing = result.scalars().first()
                    if existing:
                        self.logger.debug(f"Suppressed duplicate {alert_type.value} alert for product {product_id}")
                        return StockAlertSchema.model_validate(existing), False

                    alert = self._new_alert(
                        product_id, variant_id, product_name, alert_type, threshold, current_stock, details, now
                    )
                    session.add(alert)

        self.logger.info(f"Created {alert_type.value} alert for product {product_id} (stock {current_stock})")
        message = generate_alert_message(alert_type, product_name, current_stock)
        await self.dispatcher.notify_admins(product_name, message)

        if alert_type in SUBSCRIBER_ALERT_TYPES:
            notified = await self._notify_subscribers(product_id, alert_type, product_name, message, current_stock)
            if alert_type == AlertType.RESTOCK:
                details = details.model_copy(update={"subscribers_notified": notified})

        async with self.session_factory() as session:
            async with session.begin():
                alert = await session.get(StockAlert, alert.id)
                alert.status = AlertStatus.NOTIFIED
                alert.notified_at = self.clock()
                alert.updated_at = alert.notified_at
                alert.details = details.model_dump()
        return StockAlertSchema.model_validate(alert), True

    async def _lock_alert_key(self, session: AsyncSession, product_id: str, alert_type: AlertType) -> None:
        """Transaction-scoped advisory lock so API processes sharing the database dedup against each other."""
        if session.get_bind().dialect.name != "postgresql":
            return
        key = f"stock_alert:{product_id}:{alert_type.value}"
        await session.execute(select(func.pg_advisory_xact_lock(func.hashtext(key))))

    def _new_alert(
        self,
        product_id: str,
        variant_id: Optional[str],
        product_name: str,
        alert_type: AlertType,
        threshold: float,
        current_stock: int,
        details: BaseModel,
        now: datetime,
    ) -> StockAlert:
        return StockAlert(
            id=str(uuid.uuid4()),
            product_id=product_id,
            variant_id=variant_id or "",
            product_name=product_name,
            alert_type=alert_type,
            severity=ALERT_SEVERITIES[alert_type],
            threshold=threshold,
            current_stock=current_stock,
            status=AlertStatus.PENDING,
            details=details.model_dump(),
            created_at=now,
            updated_at=now,
        )

    async def _notify_subscribers(
        self,
        product_id: str,
        alert_type: AlertType,
        product_name: str,
        message: str,
        current_stock: int,
    ) -> int:
        try:
            subscriptions = await self.subscription_service.get_active_subscriptions(product_id)
        except Exception as e:
            self.logger.error(f"Could not load subscribers of product {product_id}: {e}")
            return 0

        if alert_type == AlertType.LOW_STOCK:
            # A personal threshold narrows low-stock notices to the level the user asked for
            subscriptions = [s for s in subscriptions if s.threshold is None or current_stock <= s.threshold]
        if not subscriptions:
            return 0

        delivered = await self.dispatcher.send_many(
            ((s.notification_type.value, s.user_id) for s in subscriptions), product_name, message
        )

        if alert_type == AlertType.RESTOCK:
            try:
                await self.subscription_service.deactivate_subscriptions([s.id for s in subscriptions])
            except Exception as e:
                self.logger.error(f"Could not deactivate restock subscriptions of product {product_id}: {e}")
        return delivered

    async def _resolve_active(self, product_id: str, alert_types) -> int:
        now = self.clock()
        async with self.session_factory() as session:
            async with session.begin():
                result = await session.execute(
                    update(StockAlert)
                    .where(
                        StockAlert.product_id == product_id,
                        StockAlert.alert_type.in_(alert_types),
                        StockAlert.status.in_(ACTIVE_ALERT_STATUSES),
                    )
                    .values(status=AlertStatus.RESOLVED, resolved_at=now, updated_at=now)
                    .execution_options(synchronize_session=False)
                )
        if result.rowcount:
            self.logger.info(f"Resolved {result.rowcount} stock level alerts for product {product_id}")
        return result.rowcount

    async def _close_alert(self, alert_id: str, status: AlertStatus) -> StockAlertSchema:
        now = self.clock()
        async with self.session_factory() as session:
            async with session.begin():
                alert = await session.get(StockAlert, alert_id, with_for_update=True)
                if not alert:
                    raise ResourceNotFoundException(f"Stock alert {alert_id} not found")
                if alert.status not in ACTIVE_ALERT_STATUSES:
                    if alert.status == status:
                        return StockAlertSchema.model_validate(alert)
                    raise ConflictException(f"Stock alert {alert_id} is already {alert.status.value}")

                alert.status = status
                alert.updated_at = now
                if status == AlertStatus.RESOLVED:
                    alert.resolved_at = now
        return StockAlertSchema.model_validate(alert)

    async def _product_profile(self, product_id: str, variant_id: Optional[str]) -> Tuple[str, int]:
        """Display name and low-stock threshold of a product, falling back to defaults."""
        async with self.session_factory() as session:
            records = await self.transaction_service.fetch_records(session, product_id, variant_id or "")
        if not records:
            return product_id, self.settings.LOW_STOCK_THRESHOLD
        name = next((r.product_name for r in records if r.product_name), product_id)
        return name, max(r.low_stock_threshold for r in records)


def _default_details(alert_type: AlertType, threshold: float) -> Dict[str, Any]:
    """Minimal payload for callers that pass no details."""
    defaults = {
        AlertType.LOW_STOCK: {"low_stock_threshold": int(threshold)},
        AlertType.RESTOCK: {"restocked_quantity": 0},
        AlertType.HIGH_DEMAND: {"sales_velocity": 0.0, "cover_days": 0},
        AlertType.SLOW_MOVING: {"sales_velocity": 0.0},
    }
    return {"kind": alert_type.value, **defaults.get(alert_type, {})}


def _level_alert(available: int, low_stock_threshold: int) -> Optional[Tuple[AlertType, int, BaseModel]]:
    if available <= 0:
        return AlertType.OUT_OF_STOCK, 0, OutOfStockDetails()
    if available <= low_stock_threshold:
        return AlertType.LOW_STOCK, low_stock_threshold, LowStockDetails(low_stock_threshold=low_stock_threshold)
    return None
