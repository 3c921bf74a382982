from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from src.api.inventory.models import (
    AvailabilitySchema,
    BulkUpdateResult,
    BulkUpdateStockSchema,
    ConfirmReservationSchema,
    CreateInventorySchema,
    InventorySchema,
    LowStockProductSchema,
    ReleaseStockSchema,
    ReservationSchema,
    ReservationStatsSchema,
    ReserveStockSchema,
    SetLowStockThresholdSchema,
    StockCheckItem,
    StockMovementSchema,
    SweepResult,
    TransferStockSchema,
    UpdateStockSchema,
)
from src.api.inventory.service import InventoryService
from src.api.inventory.services.reservation_sweeper import ReservationSweeper
from src.core.responses import success_response
from src.dependencies.services import get_inventory_service, get_reservation_sweeper

inventory_router = APIRouter(prefix="/inventory", tags=["Inventory"])


@inventory_router.post(
    "/",
    summary="Create an inventory record",
    response_model=InventorySchema,
    status_code=status.HTTP_201_CREATED,
)
async def create_inventory(
    payload: CreateInventorySchema,
    inventory_service: InventoryService = Depends(get_inventory_service),
):
    """
    Create the inventory record of a product at a warehouse.

    - **product_id**: Product ID
    - **variant_id**: Variant ID, omitted for products without variants
    - **warehouse_id**: Warehouse ID (default: "default")
    - **quantity**: Initial stock (must be >= 0)
    """
    inventory = await inventory_service.create_inventory(payload)
    return success_response(inventory.model_dump(mode="json"), status_code=status.HTTP_201_CREATED)


@inventory_router.get(
    "/availability/{product_id}",
    summary="Get available stock of a product",
    response_model=AvailabilitySchema,
)
async def get_availability(
    product_id: str,
    variant_id: Optional[str] = Query(None, description="Variant ID"),
    inventory_service: InventoryService = Depends(get_inventory_service),
):
    availability = await inventory_service.get_availability(product_id, variant_id)
    return success_response(availability.model_dump(mode="json"))


@inventory_router.post(
    "/check",
    summary="Check stock for several products",
    response_model=Dict[str, bool],
)
async def check_bulk_stock(
    items: List[StockCheckItem],
    inventory_service: InventoryService = Depends(get_inventory_service),
):
    if not items:
        raise HTTPException(status_code=400, detail="Request body cannot be an empty list.")
    return success_response(await inventory_service.check_bulk_stock(items))


@inventory_router.post(
    "/reservations",
    summary="Reserve stock for a cart or order",
    status_code=status.HTTP_201_CREATED,
)
async def reserve_stock(
    payload: ReserveStockSchema,
    inventory_service: InventoryService = Depends(get_inventory_service),
):
    """
    Place a time-bounded hold on available stock.

    Fails with 409 when available stock is insufficient. Without `ttl_seconds`
    carts hold for 15 minutes and orders for 30.
    """
    reservation_id = await inventory_service.reserve_stock(
        payload.product_id,
        payload.quantity,
        payload.reference_id,
        reference_type=payload.reference_type,
        ttl_seconds=payload.ttl_seconds,
        variant_id=payload.variant_id,
        user_id=payload.user_id,
    )
    return success_response(
        {"reservation_id": reservation_id},
        message="Stock reserved",
        status_code=status.HTTP_201_CREATED,
    )


@inventory_router.get(
    "/reservations/stats",
    summary="Get reservation statistics",
    response_model=ReservationStatsSchema,
)
async def get_reservation_stats(
    inventory_service: InventoryService = Depends(get_inventory_service),
):
    stats = await inventory_service.get_reservation_stats()
    return success_response(stats.model_dump(mode="json"))


@inventory_router.post(
    "/reservations/sweep",
    summary="Expire overdue reservations now",
    response_model=SweepResult,
)
async def sweep_reservations(
    sweeper: ReservationSweeper = Depends(get_reservation_sweeper),
):
    result = await sweeper.sweep()
    return success_response(result.model_dump(mode="json"))


@inventory_router.get(
    "/reservations/{reservation_id}",
    summary="Get a reservation by ID",
    response_model=ReservationSchema,
)
async def get_reservation(
    reservation_id: str,
    inventory_service: InventoryService = Depends(get_inventory_service),
):
    reservation = await inventory_service.get_reservation(reservation_id)
    return success_response(reservation.model_dump(mode="json"))


@inventory_router.post(
    "/release",
    summary="Release reserved stock",
)
async def release_stock(
    payload: ReleaseStockSchema,
    inventory_service: InventoryService = Depends(get_inventory_service),
):
    released = await inventory_service.release_stock(
        payload.product_id,
        payload.quantity,
        reservation_id=payload.reservation_id,
        variant_id=payload.variant_id,
    )
    return success_response({"released": released})


@inventory_router.post(
    "/confirm",
    summary="Confirm an order's reservations as a sale",
)
async def confirm_reservation(
    payload: ConfirmReservationSchema,
    inventory_service: InventoryService = Depends(get_inventory_service),
):
    confirmed = await inventory_service.confirm_reservation(
        payload.product_id,
        payload.quantity,
        payload.order_id,
        variant_id=payload.variant_id,
    )
    return success_response({"confirmed": confirmed})


@inventory_router.post(
    "/stock",
    summary="Adjust stock levels",
    response_model=InventorySchema,
)
async def update_stock(
    payload: UpdateStockSchema,
    inventory_service: InventoryService = Depends(get_inventory_service),
):
    """
    Adjust the stock of a product at a warehouse.
    - `increment`: add received stock.
    - `decrement`: remove stock, never below zero.
    - `set`: overwrite with a counted quantity.
    """
    inventory = await inventory_service.update_stock(
        payload.product_id,
        payload.quantity,
        payload.operation,
        reason=payload.reason,
        user_id=payload.user_id,
        variant_id=payload.variant_id,
        warehouse_id=payload.warehouse_id,
    )
    return success_response(inventory.model_dump(mode="json"))


@inventory_router.post(
    "/stock/bulk",
    summary="Adjust stock of several products",
    response_model=BulkUpdateResult,
)
async def bulk_update_stock(
    payload: BulkUpdateStockSchema,
    inventory_service: InventoryService = Depends(get_inventory_service),
):
    if not payload.updates:
        raise HTTPException(status_code=400, detail="Request body cannot be an empty list.")
    result = await inventory_service.bulk_update_stock(
        payload.updates, reason=payload.reason, user_id=payload.user_id
    )
    return success_response(result.model_dump(mode="json"))


@inventory_router.post(
    "/transfer",
    summary="Transfer stock between warehouses",
)
async def transfer_stock(
    payload: TransferStockSchema,
    inventory_service: InventoryService = Depends(get_inventory_service),
):
    transferred = await inventory_service.transfer_stock(
        payload.product_id,
        payload.quantity,
        payload.from_warehouse,
        payload.to_warehouse,
        user_id=payload.user_id,
        variant_id=payload.variant_id,
    )
    return success_response({"transferred": transferred})


@inventory_router.get(
    "/low-stock",
    summary="Get products at or below their reorder point",
    response_model=List[LowStockProductSchema],
)
async def get_low_stock_products(
    warehouse_id: Optional[str] = Query(None, description="Filter by warehouse ID"),
    inventory_service: InventoryService = Depends(get_inventory_service),
):
    products = await inventory_service.get_low_stock_products(warehouse_id)
    return success_response([product.model_dump(mode="json") for product in products])


@inventory_router.get(
    "/{product_id}/movements",
    summary="Get the stock movement history of a product",
    response_model=List[StockMovementSchema],
)
async def get_stock_movements(
    product_id: str,
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    inventory_service: InventoryService = Depends(get_inventory_service),
):
    movements = await inventory_service.get_stock_movements(product_id, limit=limit, offset=offset)
    return success_response([movement.model_dump(mode="json") for movement in movements])


@inventory_router.get(
    "/{product_id}",
    summary="Get the inventory records of a product",
    response_model=List[InventorySchema],
)
async def get_inventory(
    product_id: str,
    variant_id: Optional[str] = Query(None, description="Variant ID"),
    inventory_service: InventoryService = Depends(get_inventory_service),
):
    records = await inventory_service.get_inventory(product_id, variant_id)
    return success_response([record.model_dump(mode="json") for record in records])


@inventory_router.put(
    "/{product_id}/low-stock-threshold",
    summary="Set the low stock alert threshold of a product",
    response_model=List[InventorySchema],
)
async def set_low_stock_threshold(
    product_id: str,
    payload: SetLowStockThresholdSchema,
    inventory_service: InventoryService = Depends(get_inventory_service),
):
    records = await inventory_service.set_low_stock_threshold(
        product_id, payload.threshold, variant_id=payload.variant_id
    )
    return success_response([record.model_dump(mode="json") for record in records])
