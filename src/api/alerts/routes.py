from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status

from src.api.alerts.models import (
    AlertStatsSchema,
    AlertSweepResult,
    CancelSubscriptionSchema,
    CreateSubscriptionSchema,
    StockAlertSchema,
    SubscriptionSchema,
)
from src.api.alerts.service import StockAlertService
from src.api.alerts.services.subscription_service import SubscriptionService
from src.core.responses import success_response
from src.dependencies.services import get_alert_service, get_subscription_service

alerts_router = APIRouter(prefix="/stock-alerts", tags=["Stock Alerts"])


@alerts_router.get(
    "/",
    summary="Get active stock alerts",
    response_model=List[StockAlertSchema],
)
async def get_active_alerts(
    product_id: Optional[str] = Query(None, description="Filter by product ID"),
    alert_service: StockAlertService = Depends(get_alert_service),
):
    alerts = await alert_service.get_active_alerts(product_id)
    return success_response([alert.model_dump(mode="json") for alert in alerts])


@alerts_router.get(
    "/stats",
    summary="Get alert statistics per alert type",
    response_model=AlertStatsSchema,
)
async def get_alert_stats(
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
    alert_service: StockAlertService = Depends(get_alert_service),
):
    stats = await alert_service.get_alert_stats(start_date, end_date)
    return success_response(stats.model_dump(mode="json"))


@alerts_router.post(
    "/check",
    summary="Run the stock threshold sweep now",
    response_model=AlertSweepResult,
)
async def check_thresholds(
    alert_service: StockAlertService = Depends(get_alert_service),
):
    result = await alert_service.check_all_thresholds()
    return success_response(result.model_dump(mode="json"))


@alerts_router.post(
    "/{alert_id}/resolve",
    summary="Resolve a stock alert",
    response_model=StockAlertSchema,
)
async def resolve_alert(
    alert_id: str,
    alert_service: StockAlertService = Depends(get_alert_service),
):
    alert = await alert_service.resolve_alert(alert_id)
    return success_response(alert.model_dump(mode="json"))


@alerts_router.post(
    "/{alert_id}/ignore",
    summary="Ignore a stock alert",
    response_model=StockAlertSchema,
)
async def ignore_alert(
    alert_id: str,
    alert_service: StockAlertService = Depends(get_alert_service),
):
    alert = await alert_service.ignore_alert(alert_id)
    return success_response(alert.model_dump(mode="json"))


@alerts_router.post(
    "/subscriptions",
    summary="Subscribe to stock notifications for a product",
    response_model=SubscriptionSchema,
    status_code=status.HTTP_201_CREATED,
)
async def create_subscription(
    payload: CreateSubscriptionSchema,
    subscription_service: SubscriptionService = Depends(get_subscription_service),
):
    """
    Subscribe a user to a product. Subscribing again while a subscription is
    active returns the existing one. Restock subscriptions end after the
    first restock notice.
    """
    subscription = await subscription_service.create_subscription(
        payload.user_id,
        payload.product_id,
        payload.notification_type,
        threshold=payload.threshold,
    )
    return success_response(subscription.model_dump(mode="json"), status_code=status.HTTP_201_CREATED)


@alerts_router.post(
    "/subscriptions/cancel",
    summary="Cancel a user's subscription to a product",
)
async def cancel_subscription(
    payload: CancelSubscriptionSchema,
    subscription_service: SubscriptionService = Depends(get_subscription_service),
):
    cancelled = await subscription_service.cancel_subscription(payload.user_id, payload.product_id)
    return success_response({"cancelled": cancelled})


@alerts_router.get(
    "/subscriptions/users/{user_id}",
    summary="Get a user's active subscriptions",
    response_model=List[SubscriptionSchema],
)
async def get_user_subscriptions(
    user_id: str,
    subscription_service: SubscriptionService = Depends(get_subscription_service),
):
    subscriptions = await subscription_service.get_user_subscriptions(user_id)
    return success_response([s.model_dump(mode="json") for s in subscriptions])


@alerts_router.get(
    "/subscriptions/products/{product_id}",
    summary="Get a product's active subscriptions",
    response_model=List[SubscriptionSchema],
)
async def get_product_subscriptions(
    product_id: str,
    subscription_service: SubscriptionService = Depends(get_subscription_service),
):
    subscriptions = await subscription_service.get_active_subscriptions(product_id)
    return success_response([s.model_dump(mode="json") for s in subscriptions])
