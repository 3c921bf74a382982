import pytest

from src.api.alerts.services.notification_dispatcher import NotificationDispatcher
from src.config.constants import NotificationType


@pytest.mark.asyncio
class TestSubscriptionService:
    async def test_create_is_idempotent_per_user_and_product(self, services):
        subscriptions = services.subscription_service

        first = await subscriptions.create_subscription("user-1", "P", NotificationType.EMAIL)
        again = await subscriptions.create_subscription("user-1", "P", NotificationType.SMS)

        assert again.id == first.id
        assert again.notification_type == NotificationType.EMAIL
        assert len(await subscriptions.get_active_subscriptions("P")) == 1

    async def test_cancel_is_soft(self, services):
        subscriptions = services.subscription_service
        await subscriptions.create_subscription("user-1", "P", NotificationType.PUSH, threshold=3)

        assert await subscriptions.cancel_subscription("user-1", "P") is True
        assert await subscriptions.cancel_subscription("user-1", "P") is False
        assert await subscriptions.get_active_subscriptions("P") == []

        renewed = await subscriptions.create_subscription("user-1", "P", NotificationType.IN_APP)
        assert renewed.active is True
        assert renewed.notification_type == NotificationType.IN_APP

    async def test_user_subscriptions_and_deactivation(self, services):
        subscriptions = services.subscription_service
        a = await subscriptions.create_subscription("user-1", "A", NotificationType.EMAIL)
        await subscriptions.create_subscription("user-1", "B", NotificationType.EMAIL)

        assert {s.product_id for s in await subscriptions.get_user_subscriptions("user-1")} == {"A", "B"}

        assert await subscriptions.deactivate_subscriptions([a.id]) == 1
        assert await subscriptions.deactivate_subscriptions([]) == 0
        assert [s.product_id for s in await subscriptions.get_user_subscriptions("user-1")] == ["B"]


@pytest.mark.asyncio
class TestNotificationDispatcher:
    async def test_send_many_isolates_failures(self):
        delivered = []

        async def ok(recipient, product_name, message):
            delivered.append(recipient)

        async def broken(recipient, product_name, message):
            raise RuntimeError("gateway down")

        dispatcher = NotificationDispatcher(email=ok, sms=broken)

        count = await dispatcher.send_many(
            [("email", "a@example.com"), ("sms", "+820100000000"), ("email", "b@example.com")],
            "텀블러",
            "재고 알림",
        )

        assert count == 2
        assert sorted(delivered) == ["a@example.com", "b@example.com"]

    async def test_unknown_channel(self):
        dispatcher = NotificationDispatcher()
        assert await dispatcher.send("fax", "someone", "P", "message") is False

    async def test_default_senders_log(self):
        dispatcher = NotificationDispatcher(admin_recipients=["ops", "buyer"])
        assert await dispatcher.notify_admins("P", "message") == 2
