import logging
from datetime import datetime
from typing import Optional
from sqlalchemy import select
from sqlalchemy.orm import Session
from hyperlocal.core.exceptions import InvalidTransitionError, NotFoundError
from hyperlocal.models.database import Order, OrderStatus, OrderStatusLog

logger = logging.getLogger(__name__)

TERMINAL_STATUSES = frozenset({OrderStatus.DELIVERED, OrderStatus.CANCELLED})

# Lifecycle timestamp stamped when an order enters each status
STATUS_TIMESTAMP_FIELDS = {
    OrderStatus.CONFIRMED: "confirmed_at",
    OrderStatus.ASSIGNED: "assigned_at",
    OrderStatus.PICKED_UP: "picked_up_at",
    OrderStatus.DELIVERED: "delivered_at",
    OrderStatus.CANCELLED: "cancelled_at",
}


def check_transition(current: OrderStatus, requested: OrderStatus) -> None:
    if current in TERMINAL_STATUSES:
        raise InvalidTransitionError(current.value, requested.value)
    if requested == current or requested == OrderStatus.PENDING:
        raise InvalidTransitionError(current.value, requested.value)


class OrderStatusService:
    """
    Post-creation lifecycle: PENDING -> CONFIRMED -> ASSIGNED -> PICKED_UP -> DELIVERED,
    with CANCELLED reachable from any non-terminal status. Only the order row is
    locked; inventory is never touched here.
    """

    def __init__(self, db: Session):
        self.db = db

    def update_status(
        self,
        order_id: int,
        new_status: OrderStatus,
        actor_id: int,
        notes: Optional[str] = None,
    ) -> Order:
        try:
            order = self.db.execute(
                select(Order)
                .where(Order.id == order_id)
                .with_for_update()
                .execution_options(populate_existing=True)
            ).scalar_one_or_none()
            if order is None:
                raise NotFoundError("Order", order_id)

            old_status = OrderStatus(order.status)
            check_transition(old_status, new_status)

            now = datetime.utcnow()
            order.status = new_status.value
            order.updated_at = now
            setattr(order, STATUS_TIMESTAMP_FIELDS[new_status], now)

            self.db.add(OrderStatusLog(
                order_id=order.id,
                old_status=old_status.value,
                new_status=new_status.value,
                changed_by=actor_id,
                notes=notes,
            ))
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info(
            f"Order {order_id} moved {old_status.value} -> {new_status.value} by {actor_id}"
        )
        self.db.refresh(order)
        return order
