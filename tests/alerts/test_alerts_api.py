import pytest
from httpx import AsyncClient


@pytest.mark.asyncio
class TestStockAlertsAPI:
    async def test_subscription_lifecycle(self, client: AsyncClient):
        subscription_data = {"user_id": "user-1", "product_id": "P-1", "notification_type": "email"}

        response = await client.post("/stock-alerts/subscriptions", json=subscription_data)
        assert response.status_code == 201
        subscription_id = response.json()["data"]["id"]
        assert response.json()["data"]["active"] is True

        # Subscribing again returns the same subscription
        response = await client.post("/stock-alerts/subscriptions", json=subscription_data)
        assert response.status_code == 201
        assert response.json()["data"]["id"] == subscription_id

        response = await client.get("/stock-alerts/subscriptions/users/user-1")
        assert [s["id"] for s in response.json()["data"]] == [subscription_id]

        response = await client.get("/stock-alerts/subscriptions/products/P-1")
        assert [s["user_id"] for s in response.json()["data"]] == ["user-1"]

        response = await client.post(
            "/stock-alerts/subscriptions/cancel", json={"user_id": "user-1", "product_id": "P-1"}
        )
        assert response.status_code == 200
        assert response.json()["data"] == {"cancelled": True}

        response = await client.get("/stock-alerts/subscriptions/users/user-1")
        assert response.json()["data"] == []

    async def test_invalid_notification_type(self, client: AsyncClient):
        response = await client.post(
            "/stock-alerts/subscriptions",
            json={"user_id": "user-1", "product_id": "P-1", "notification_type": "fax"},
        )
        assert response.status_code == 422

    async def test_alerts_follow_stock_movements(self, client: AsyncClient):
        await client.post("/inventory/", json={"product_id": "P-2", "quantity": 3})
        await client.post(
            "/inventory/stock", json={"product_id": "P-2", "quantity": 3, "operation": "decrement"}
        )

        response = await client.get("/stock-alerts/", params={"product_id": "P-2"})
        assert response.status_code == 200
        [alert] = [a for a in response.json()["data"] if a["alert_type"] == "out_of_stock"]
        assert alert["severity"] == "critical"
        assert alert["details"] == {"kind": "out_of_stock"}

        response = await client.post(f"/stock-alerts/{alert['id']}/resolve")
        assert response.status_code == 200
        assert response.json()["data"]["status"] == "resolved"

        response = await client.post(f"/stock-alerts/{alert['id']}/ignore")
        assert response.status_code == 409

        response = await client.post("/stock-alerts/missing/resolve")
        assert response.status_code == 404

        response = await client.get("/stock-alerts/stats")
        assert response.status_code == 200
        assert response.json()["data"]["by_type"]["out_of_stock"]["resolved_count"] == 1

    async def test_manual_threshold_sweep(self, client: AsyncClient):
        await client.post("/inventory/", json={"product_id": "P-3", "quantity": 0})

        response = await client.post("/stock-alerts/check")
        assert response.status_code == 200
        assert response.json()["data"]["products_checked"] == 1
        assert response.json()["data"]["errors"] == 0
