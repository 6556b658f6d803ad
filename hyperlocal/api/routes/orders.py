from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import JSONResponse
from typing import List
from hyperlocal.api.deps import (
    get_current_user_id, get_order_service, get_order_status_service,
)
from hyperlocal.core.exceptions import InvalidTransitionError, NotFoundError
from hyperlocal.models.schemas import Order, OrderCreate, OrderStatusUpdate
from hyperlocal.services.order_service import (
    InsufficientStock, LockUnavailable, OrderFailed, OrderProcessingService,
)
from hyperlocal.services.order_status import OrderStatusService

router = APIRouter()

LOCK_RETRY_AFTER_SECONDS = 1


@router.post("/", response_model=Order, status_code=status.HTTP_201_CREATED)
def create_order(
    order_data: OrderCreate,
    customer_id: int = Depends(get_current_user_id),
    service: OrderProcessingService = Depends(get_order_service),
):
    """Create a new order with oversell protection"""
    try:
        outcome = service.create_order(customer_id, order_data)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))

    if isinstance(outcome, InsufficientStock):
        raise HTTPException(
            status_code=400,
            detail={
                "message": "Some products are out of stock",
                "shortages": [shortage.model_dump() for shortage in outcome.shortages],
            },
        )
    if isinstance(outcome, LockUnavailable):
        raise HTTPException(
            status_code=409,
            detail="Store inventory is busy, please retry",
            headers={"Retry-After": str(LOCK_RETRY_AFTER_SECONDS)},
        )
    if isinstance(outcome, OrderFailed):
        raise HTTPException(status_code=500, detail=outcome.reason)
    if outcome.order is None:
        # Committed, so the client must not retry
        return JSONResponse(
            status_code=status.HTTP_201_CREATED,
            content={
                "id": outcome.order_id,
                "order_number": outcome.order_number,
                "message": "Order placed; details are temporarily unavailable",
            },
        )
    return outcome.order


@router.get("/customer/{customer_id}", response_model=List[Order])
def get_customer_orders(
    customer_id: int, service: OrderProcessingService = Depends(get_order_service)
):
    """Get a customer's order history, newest first"""
    return service.list_customer_orders(customer_id)


@router.get("/{order_id}", response_model=Order)
def get_order(order_id: int, service: OrderProcessingService = Depends(get_order_service)):
    """Get a specific order"""
    try:
        return service.get_order(order_id)
    except NotFoundError:
        raise HTTPException(status_code=404, detail="Order not found")


@router.patch("/{order_id}/status", response_model=Order)
def update_order_status(
    order_id: int,
    update: OrderStatusUpdate,
    actor_id: int = Depends(get_current_user_id),
    service: OrderStatusService = Depends(get_order_status_service),
):
    """Move an order along its lifecycle"""
    try:
        return service.update_status(order_id, update.status, actor_id, update.notes)
    except NotFoundError:
        raise HTTPException(status_code=404, detail="Order not found")
    except InvalidTransitionError as e:
        raise HTTPException(status_code=409, detail=str(e))
