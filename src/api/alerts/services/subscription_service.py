import uuid
from datetime import datetime
from typing import Callable, List, Optional

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.future import select

from src.api.alerts.models import SubscriptionSchema
from src.config.constants import NotificationType
from src.database.models.stock_alert import StockSubscription
from src.shared.error_handler import ErrorHandler, handle_service_errors
from src.shared.utils import utcnow


class SubscriptionService:
    """Per-user, per-product stock notification preferences"""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        clock: Callable[[], datetime] = utcnow,
    ):
        self._error_handler = ErrorHandler(__name__)
        self.session_factory = session_factory
        self.clock = clock

    @handle_service_errors("creating subscription")
    async def create_subscription(
        self,
        user_id: str,
        product_id: str,
        notification_type: NotificationType,
        threshold: Optional[int] = None,
    ) -> SubscriptionSchema:
        """Subscribe a user to a product; an existing active subscription is returned as is."""
        async with self.session_factory() as session:
            async with session.begin():
                result = await session.execute(
                    select(StockSubscription)
                    .filter_by(user_id=user_id, product_id=product_id, active=True)
                    .order_by(StockSubscription.created_at)
                )
                existing = result.scalars().first()
                if existing:
                    return SubscriptionSchema.model_validate(existing)

                subscription = StockSubscription(
                    id=str(uuid.uuid4()),
                    user_id=user_id,
                    product_id=product_id,
                    notification_type=NotificationType(notification_type),
                    threshold=threshold,
                    active=True,
                    created_at=self.clock(),
                )
                session.add(subscription)
            return SubscriptionSchema.model_validate(subscription)

    @handle_service_errors("cancelling subscription")
    async def cancel_subscription(self, user_id: str, product_id: str) -> bool:
        async with self.session_factory() as session:
            async with session.begin():
                result = await session.execute(
                    update(StockSubscription)
                    .where(
                        StockSubscription.user_id == user_id,
                        StockSubscription.product_id == product_id,
                        StockSubscription.active.is_(True),
                    )
                    .values(active=False, deactivated_at=self.clock())
                    .execution_options(synchronize_session=False)
                )
            return result.rowcount > 0

    @handle_service_errors("retrieving subscriptions")
    async def get_active_subscriptions(self, product_id: str) -> List[SubscriptionSchema]:
        async with self.session_factory() as session:
            result = await session.execute(
                select(StockSubscription)
                .filter_by(product_id=product_id, active=True)
                .order_by(StockSubscription.created_at)
            )
            return [SubscriptionSchema.model_validate(s) for s in result.scalars().all()]

    @handle_service_errors("retrieving user subscriptions")
    async def get_user_subscriptions(self, user_id: str) -> List[SubscriptionSchema]:
        async with self.session_factory() as session:
            result = await session.execute(
                select(StockSubscription)
                .filter_by(user_id=user_id, active=True)
                .order_by(StockSubscription.created_at)
            )
            return [SubscriptionSchema.model_validate(s) for s in result.scalars().all()]

    @handle_service_errors("deactivating subscriptions")
    async def deactivate_subscriptions(self, subscription_ids: List[str]) -> int:
        if not subscription_ids:
            return 0
        async with self.session_factory() as session:
            async with session.begin():
                result = await session.execute(
                    update(StockSubscription)
                    .where(
                        StockSubscription.id.in_(subscription_ids),
                        StockSubscription.active.is_(True),
                    )
                    .values(active=False, deactivated_at=self.clock())
                    .execution_options(synchronize_session=False)
                )
            return result.rowcount
