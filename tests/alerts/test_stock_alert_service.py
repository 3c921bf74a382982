import asyncio

import pytest

from src.api.alerts.models import HighDemandDetails, LowStockDetails, RestockDetails, SlowMovingDetails
from src.api.alerts.service import generate_alert_message
from src.config.constants import (
    AlertSeverity,
    AlertStatus,
    AlertType,
    Channels,
    NotificationType,
    ReferenceType,
    StockOperation,
)
from src.shared.exceptions import ConflictException, ResourceNotFoundException


def alerts_of(alerts, alert_type):
    return [a for a in alerts if a.alert_type == alert_type]


@pytest.mark.asyncio
class TestMovementAlerts:
    async def test_restock_notifies_subscribers_once_and_deactivates(
        self, services, inventory_service, alert_service, seed, notifications
    ):
        await seed("P", 0, product_name="무선 이어폰")
        subscriptions = services.subscription_service
        await subscriptions.create_subscription("user-1", "P", NotificationType.EMAIL)
        await subscriptions.create_subscription("user-2", "P", NotificationType.SMS)

        await inventory_service.update_stock("P", 10, StockOperation.INCREMENT)

        [restock] = alerts_of(await alert_service.get_active_alerts("P"), AlertType.RESTOCK)
        assert restock.status == AlertStatus.NOTIFIED
        assert restock.severity == AlertSeverity.INFO
        assert restock.current_stock == 10
        assert restock.details.kind == "restock"
        assert restock.details.restocked_quantity == 10
        assert restock.details.subscribers_notified == 2

        expected = generate_alert_message(AlertType.RESTOCK, "무선 이어폰", 10)
        assert notifications.to("user-1") == [("email", "user-1", "무선 이어폰", expected)]
        assert notifications.to("user-2") == [("sms", "user-2", "무선 이어폰", expected)]
        assert await subscriptions.get_active_subscriptions("P") == []

        # Sell out and restock again: the one-shot subscriptions stay quiet
        await inventory_service.update_stock("P", 10, StockOperation.DECREMENT)
        await inventory_service.update_stock("P", 5, StockOperation.INCREMENT)

        assert len(notifications.to("user-1")) == 1
        assert len(notifications.to("user-2")) == 1

    async def test_selling_out_raises_critical_alert(self, inventory_service, alert_service, seed):
        await seed("P", 5)

        await inventory_service.reserve_stock("P", 5, "order-1", ReferenceType.ORDER)

        [alert] = alerts_of(await alert_service.get_active_alerts("P"), AlertType.OUT_OF_STOCK)
        assert alert.severity == AlertSeverity.CRITICAL
        assert alert.current_stock == 0
        assert alert.details.kind == "out_of_stock"

    async def test_low_stock_alert_and_recovery(self, inventory_service, alert_service, seed):
        await seed("P", 20)

        reservation_id = await inventory_service.reserve_stock("P", 12, "cart-1")

        [alert] = alerts_of(await alert_service.get_active_alerts("P"), AlertType.LOW_STOCK)
        assert alert.current_stock == 8
        assert alert.threshold == 10
        assert alert.details == LowStockDetails(low_stock_threshold=10)

        await inventory_service.release_stock("P", 12, reservation_id=reservation_id)

        assert alerts_of(await alert_service.get_active_alerts("P"), AlertType.LOW_STOCK) == []

    async def test_restock_resolves_out_of_stock(self, inventory_service, alert_service, seed):
        await seed("P", 3)
        await inventory_service.update_stock("P", 3, StockOperation.DECREMENT)
        assert alerts_of(await alert_service.get_active_alerts("P"), AlertType.OUT_OF_STOCK)

        await inventory_service.update_stock("P", 20, StockOperation.INCREMENT)

        active = await alert_service.get_active_alerts("P")
        assert alerts_of(active, AlertType.OUT_OF_STOCK) == []
        assert alerts_of(active, AlertType.RESTOCK)

    async def test_low_stock_respects_subscriber_threshold(
        self, services, inventory_service, seed, notifications
    ):
        await seed("P", 20)
        await services.subscription_service.create_subscription("near", "P", NotificationType.PUSH, threshold=8)
        await services.subscription_service.create_subscription("far", "P", NotificationType.PUSH, threshold=2)

        await inventory_service.reserve_stock("P", 12, "cart-1")

        assert len(notifications.to("near")) == 1
        assert notifications.to("far") == []

    async def test_dashboard_update_published(self, inventory_service, seed, events):
        await seed("P", 20)

        await inventory_service.reserve_stock("P", 5, "cart-1")

        levels = [m for m in events.on(Channels.STOCK_UPDATES) if "currentStock" in m]
        assert levels[-1]["productId"] == "P"
        assert levels[-1]["currentStock"] == 15

    async def test_failing_sender_does_not_break_writes(self, services, inventory_service, alert_service, seed):
        async def broken(recipient, product_name, message):
            raise RuntimeError("smtp down")

        services.dispatcher.senders["admin"] = broken
        await seed("P", 5)

        await inventory_service.reserve_stock("P", 5, "cart-1")

        assert (await inventory_service.get_availability("P")).available == 0
        assert alerts_of(await alert_service.get_active_alerts("P"), AlertType.OUT_OF_STOCK)


@pytest.mark.asyncio
class TestCreateAlert:
    async def test_duplicate_alert_within_window_is_suppressed(self, alert_service, notifications, clock):
        first = await alert_service.create_alert("P", AlertType.LOW_STOCK, 10, 5)
        second = await alert_service.create_alert("P", AlertType.LOW_STOCK, 10, 4)

        assert second.id == first.id
        assert len(notifications.on("admin")) == 1

        clock.advance(minutes=61)
        third = await alert_service.create_alert("P", AlertType.LOW_STOCK, 10, 3)

        assert third.id != first.id
        assert len(notifications.on("admin")) == 2

    async def test_concurrent_triggers_create_one_alert(self, alert_service, notifications):
        first, second = await asyncio.gather(
            alert_service.create_alert("P", AlertType.LOW_STOCK, 10, 3),
            alert_service.create_alert("P", AlertType.LOW_STOCK, 10, 3),
        )

        assert first.id == second.id
        assert len(alerts_of(await alert_service.get_active_alerts("P"), AlertType.LOW_STOCK)) == 1
        assert len(notifications.on("admin")) == 1

    async def test_concurrent_restocks_notify_subscriber_once(self, services, alert_service, notifications):
        await services.subscription_service.create_subscription("user-1", "P", NotificationType.EMAIL)

        await asyncio.gather(
            *(
                alert_service.create_alert("P", AlertType.RESTOCK, 0, 10, RestockDetails(restocked_quantity=10))
                for _ in range(3)
            )
        )

        assert len(alerts_of(await alert_service.get_active_alerts("P"), AlertType.RESTOCK)) == 1
        assert len(notifications.to("user-1")) == 1

    async def test_different_types_are_not_deduplicated(self, alert_service):
        low = await alert_service.create_alert("P", AlertType.LOW_STOCK, 10, 5)
        demand = await alert_service.create_alert(
            "P", AlertType.HIGH_DEMAND, 36, 5, HighDemandDetails(sales_velocity=12, cover_days=3)
        )
        assert low.id != demand.id

    async def test_admin_message_uses_product_name(self, alert_service, seed, notifications):
        await seed("P", 50, product_name="텀블러")
        notifications.sent.clear()

        await alert_service.create_alert("P", AlertType.LOW_STOCK, 10, 3)

        [(channel, _, product_name, message)] = notifications.on("admin")
        assert product_name == "텀블러"
        assert message == "⚠️ 재고 부족: 텀블러의 재고가 3개 남았습니다."

    async def test_resolve_and_ignore(self, alert_service):
        alert = await alert_service.create_alert("P", AlertType.LOW_STOCK, 10, 5)

        resolved = await alert_service.resolve_alert(alert.id)
        assert resolved.status == AlertStatus.RESOLVED
        assert resolved.resolved_at is not None
        assert (await alert_service.resolve_alert(alert.id)).status == AlertStatus.RESOLVED

        with pytest.raises(ConflictException):
            await alert_service.ignore_alert(alert.id)
        with pytest.raises(ResourceNotFoundException):
            await alert_service.resolve_alert("missing")

        other = await alert_service.create_alert("Q", AlertType.OUT_OF_STOCK, 0, 0)
        assert (await alert_service.ignore_alert(other.id)).status == AlertStatus.IGNORED
        assert await alert_service.get_active_alerts() == []

    async def test_alert_stats(self, alert_service, clock):
        a = await alert_service.create_alert("A", AlertType.LOW_STOCK, 10, 5)
        await alert_service.create_alert("B", AlertType.LOW_STOCK, 10, 4)
        await alert_service.create_alert("C", AlertType.OUT_OF_STOCK, 0, 0)

        clock.advance(hours=2)
        await alert_service.resolve_alert(a.id)

        stats = await alert_service.get_alert_stats()
        assert stats.total == 3
        low = stats.by_type[AlertType.LOW_STOCK]
        assert low.count == 2
        assert low.resolved_count == 1
        assert low.avg_resolution_hours == pytest.approx(2.0, abs=0.01)
        assert stats.by_type[AlertType.OUT_OF_STOCK].avg_resolution_hours is None


@pytest.mark.asyncio
class TestThresholdSweep:
    async def test_sales_velocity_counts_order_sales(self, inventory_service, alert_service, seed):
        await seed("P", 100)
        await inventory_service.reserve_stock("P", 70, "order-1", ReferenceType.ORDER)
        await inventory_service.confirm_reservation("P", 70, "order-1")
        # Administrative decrements are not sales
        await inventory_service.update_stock("P", 5, StockOperation.DECREMENT)

        assert await alert_service.calculate_sales_velocity("P") == pytest.approx(10.0)

    async def test_sales_outside_window_are_ignored(self, inventory_service, alert_service, seed, clock):
        await seed("P", 100)
        await inventory_service.reserve_stock("P", 70, "order-1", ReferenceType.ORDER)
        await inventory_service.confirm_reservation("P", 70, "order-1")

        clock.advance(days=8)

        assert await alert_service.calculate_sales_velocity("P") == 0

    async def test_check_all_thresholds(self, inventory_service, alert_service, seed):
        await seed("EMPTY", 0)
        await seed("IDLE", 100)
        await seed("HOT", 100)
        await inventory_service.reserve_stock("HOT", 80, "order-1", ReferenceType.ORDER)
        await inventory_service.confirm_reservation("HOT", 80, "order-1")

        result = await alert_service.check_all_thresholds()

        assert result.products_checked == 3
        assert result.alerts_created == 3
        assert result.errors == 0

        active = await alert_service.get_active_alerts()
        assert [a.product_id for a in alerts_of(active, AlertType.OUT_OF_STOCK)] == ["EMPTY"]
        [slow] = alerts_of(active, AlertType.SLOW_MOVING)
        assert slow.product_id == "IDLE"
        assert slow.details == SlowMovingDetails(sales_velocity=0.0)
        [hot] = alerts_of(active, AlertType.HIGH_DEMAND)
        assert hot.product_id == "HOT"
        assert hot.current_stock == 20
        assert hot.details.sales_velocity == pytest.approx(80 / 7)

        # A second sweep inside the dedup window creates nothing new
        again = await alert_service.check_all_thresholds()
        assert again.alerts_created == 0

    async def test_failing_product_is_counted_and_skipped(self, alert_service, seed, monkeypatch):
        await seed("A", 0)
        await seed("B", 0)
        original = alert_service._check_product

        async def flaky(product_id, variant_id):
            if product_id == "A":
                raise RuntimeError("boom")
            return await original(product_id, variant_id)

        monkeypatch.setattr(alert_service, "_check_product", flaky)
        result = await alert_service.check_all_thresholds()

        assert result.errors == 1
        assert result.products_checked == 1
        assert [a.product_id for a in await alert_service.get_active_alerts()] == ["B"]

    async def test_high_demand_requires_velocity_above_minimum(self, inventory_service, alert_service, seed):
        await seed("P", 80)
        # Exactly 10 units a day over the 7 day window
        await inventory_service.reserve_stock("P", 70, "order-1", ReferenceType.ORDER)
        await inventory_service.confirm_reservation("P", 70, "order-1")
        assert await alert_service.calculate_sales_velocity("P") == 10

        await alert_service.check_all_thresholds()

        assert alerts_of(await alert_service.get_active_alerts("P"), AlertType.HIGH_DEMAND) == []


@pytest.mark.asyncio
class TestEvaluateStockLevel:
    async def test_raises_level_alert_for_current_availability(self, inventory_service, alert_service, seed):
        await seed("P", 20, low_stock_threshold=5)
        await inventory_service.reserve_stock("P", 17, "cart-1")

        alert = await alert_service.evaluate_stock_level("P")

        assert alert.alert_type == AlertType.LOW_STOCK
        assert alert.current_stock == 3
        assert alert.threshold == 5

    async def test_resolves_level_alerts_when_above_threshold(self, alert_service, seed):
        await seed("P", 20)
        await alert_service.create_alert("P", AlertType.LOW_STOCK, 10, 4)

        assert await alert_service.evaluate_stock_level("P") is None
        assert alerts_of(await alert_service.get_active_alerts("P"), AlertType.LOW_STOCK) == []

    async def test_unknown_product(self, alert_service):
        with pytest.raises(ResourceNotFoundException):
            await alert_service.evaluate_stock_level("missing")
