"""
Explicitly constructed services and their lifecycle.

The container owns the database engine, the cache and pub/sub backends, and
the background jobs. Nothing is created at import time: main.py builds one in
its lifespan and tests build their own around a throwaway database.
"""
from datetime import datetime
from typing import Callable, Optional

from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from src.api.alerts.service import StockAlertService
from src.api.alerts.services.notification_dispatcher import NotificationDispatcher
from src.api.alerts.services.subscription_service import SubscriptionService
from src.api.inventory.service import InventoryService, ReorderHandler
from src.api.inventory.services.availability_cache import AvailabilityCache
from src.api.inventory.services.reservation_sweeper import ReservationSweeper
from src.config.constants import Channels
from src.config.settings import Settings, settings as default_settings
from src.database.connection import create_all_tables, create_engine, create_session_factory
from src.shared.cache_service import CacheService, RedisCacheService
from src.shared.exceptions import ServiceUnavailableException
from src.shared.pubsub import Broadcaster, InMemoryBroadcaster, RedisBroadcaster
from src.shared.redis_client import close_redis, get_redis
from src.shared.scheduler import PeriodicTask
from src.shared.utils import get_logger, utcnow

logger = get_logger(__name__)


class ServiceContainer:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        cache_backend=None,
        broadcaster: Optional[Broadcaster] = None,
        dispatcher: Optional[NotificationDispatcher] = None,
        settings: Settings = default_settings,
        clock: Callable[[], datetime] = utcnow,
        reorder_handler: Optional[ReorderHandler] = None,
        engine: Optional[AsyncEngine] = None,
    ):
        self.settings = settings
        self.engine = engine
        self.session_factory = session_factory
        self.cache_backend = cache_backend or CacheService()
        self.broadcaster = broadcaster or InMemoryBroadcaster()
        self.dispatcher = dispatcher or NotificationDispatcher(admin_recipients=settings.ALERT_ADMIN_RECIPIENTS)

        self.availability_cache = AvailabilityCache(self.cache_backend)
        self.inventory_service = InventoryService(
            session_factory,
            self.availability_cache,
            self.broadcaster,
            settings=settings,
            clock=clock,
            reorder_handler=reorder_handler,
        )
        self.subscription_service = SubscriptionService(session_factory, clock=clock)
        self.alert_service = StockAlertService(
            session_factory,
            self.subscription_service,
            self.dispatcher,
            self.broadcaster,
            settings=settings,
            clock=clock,
        )
        self.inventory_service.threshold_handler = self.alert_service.evaluate_stock_level
        self.reservation_sweeper = ReservationSweeper(self.inventory_service, self.dispatcher)

        self.broadcaster.subscribe(Channels.INVENTORY_EVENTS.value, self.alert_service.handle_stock_movement)

        self.jobs = [
            PeriodicTask(
                "reservation_sweep",
                self.reservation_sweeper.sweep,
                settings.RESERVATION_SWEEP_INTERVAL_SECONDS,
            ),
            PeriodicTask(
                "stock_threshold_sweep",
                self.alert_service.check_all_thresholds,
                settings.ALERT_SWEEP_INTERVAL_SECONDS,
                initial_delay_seconds=60,
            ),
        ]
        self._uses_redis = False

    @classmethod
    async def from_settings(cls, settings: Settings = default_settings) -> "ServiceContainer":
        """Build against DATABASE_URL, using Redis for cache and pub/sub when REDIS_URL is reachable."""
        engine = create_engine(settings.DATABASE_URL)
        client = await get_redis(settings.REDIS_URL)

        if client is not None:
            cache_backend, broadcaster = RedisCacheService(client), RedisBroadcaster(client)
        else:
            logger.info("REDIS_URL not available; using in-process cache and broadcaster")
            cache_backend, broadcaster = CacheService(), InMemoryBroadcaster()

        container = cls(
            create_session_factory(engine),
            cache_backend=cache_backend,
            broadcaster=broadcaster,
            settings=settings,
            engine=engine,
        )
        container._uses_redis = client is not None
        return container

    async def start(self, create_tables: bool = False) -> None:
        if create_tables and self.engine is not None:
            await create_all_tables(self.engine)
        await self.broadcaster.start()
        if self.settings.ENABLE_BACKGROUND_JOBS:
            for job in self.jobs:
                job.start()
        logger.info("Inventory services started")

    async def shutdown(self) -> None:
        for job in self.jobs:
            await job.stop()
        await self.broadcaster.stop()
        await self.cache_backend.close()
        if self._uses_redis:
            await close_redis()
        if self.engine is not None:
            await self.engine.dispose()
        logger.info("Inventory services stopped")


def get_container(request: Request) -> ServiceContainer:
    container = getattr(request.app.state, "services", None)
    if container is None:
        raise ServiceUnavailableException("Services are not initialized")
    return container


def get_inventory_service(request: Request) -> InventoryService:
    return get_container(request).inventory_service


def get_alert_service(request: Request) -> StockAlertService:
    return get_container(request).alert_service


def get_subscription_service(request: Request) -> SubscriptionService:
    return get_container(request).subscription_service


def get_reservation_sweeper(request: Request) -> ReservationSweeper:
    return get_container(request).reservation_sweeper
