import uuid
import logging
from collections import OrderedDict
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Tuple, Union
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, joinedload, selectinload
from hyperlocal.core.config import Settings, get_settings
from hyperlocal.core.database import set_statement_timeout
from hyperlocal.core.exceptions import NotFoundError
from hyperlocal.models.database import (
    Order, OrderItem, OrderStatusLog, OrderStatus, PaymentMethod, PaymentStatus, Store,
)
from hyperlocal.models.schemas import OrderCreate, Shortage
from hyperlocal.services.cache import CacheService
from hyperlocal.services.dispatch import DispatchNotifier
from hyperlocal.services.inventory_ledger import InventoryLedger, LockedInventory
from hyperlocal.services.locks import DistributedLockService, store_lock_key

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OrderPlaced:
    """
    The order is committed. ``order`` is the fully loaded row, or None when
    reading it back after the commit failed.
    """
    order_id: int
    order_number: str
    order: Optional[Order] = None


@dataclass(frozen=True)
class InsufficientStock:
    store_id: int
    shortages: List[Shortage] = field(default_factory=list)


@dataclass(frozen=True)
class LockUnavailable:
    store_id: int


@dataclass(frozen=True)
class OrderFailed:
    reason: str


OrderOutcome = Union[OrderPlaced, InsufficientStock, LockUnavailable, OrderFailed]


@dataclass(frozen=True)
class Pricing:
    subtotal: float
    delivery_fee: float
    total: float


def calculate_pricing(
    lines: List[Tuple[float, int]], free_delivery_threshold: float, flat_fee: float
) -> Pricing:
    """Price (unit_price, quantity) lines; delivery is free at or above the threshold"""
    subtotal = round(sum(price * quantity for price, quantity in lines), 2)
    delivery_fee = 0.0 if subtotal >= free_delivery_threshold else flat_fee
    return Pricing(
        subtotal=subtotal,
        delivery_fee=delivery_fee,
        total=round(subtotal + delivery_fee, 2),
    )


class OrderProcessingService:
    """
    Creates orders without overselling.

    A per-store distributed lock keeps competing workers from piling onto the
    database; the row locks taken by the inventory ledger are what actually
    serialize overlapping orders. Stock is validated, priced, written and
    decremented in one transaction, and the store lock is released on every
    exit path.
    """

    def __init__(
        self,
        db: Session,
        lock_service: DistributedLockService,
        cache: CacheService,
        settings: Optional[Settings] = None,
        ledger: Optional[InventoryLedger] = None,
        dispatcher: Optional[DispatchNotifier] = None,
    ):
        self.db = db
        self.lock_service = lock_service
        self.cache = cache
        self.settings = settings or get_settings()
        self.ledger = ledger or InventoryLedger()
        self.dispatcher = dispatcher

    def create_order(self, customer_id: int, order_data: OrderCreate) -> OrderOutcome:
        store_id = order_data.store_id
        lock_key = store_lock_key(store_id)

        token = self.lock_service.acquire(lock_key, self.settings.order_lock_ttl_seconds)
        if token is None:
            logger.warning(
                f"Order for customer {customer_id} at store {store_id} rejected: "
                f"inventory lock unavailable"
            )
            return LockUnavailable(store_id=store_id)

        try:
            outcome = self._place_order(customer_id, order_data)
        finally:
            self.lock_service.release(token)

        if not isinstance(outcome, OrderPlaced):
            return outcome

        self.cache.invalidate_store(store_id)
        try:
            order = self.get_order(outcome.order_id)
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception(
                f"Order {outcome.order_number} (id {outcome.order_id}) is committed but could "
                f"not be read back; dispatch event not sent"
            )
            return outcome

        if self.dispatcher is not None:
            self.dispatcher.notify_order_created(order)
        return replace(outcome, order=order)

    def _place_order(
        self, customer_id: int, order_data: OrderCreate
    ) -> Union[OrderPlaced, InsufficientStock, OrderFailed]:
        """
        The critical section; runs only while the store lock is held.
        On success the returned OrderPlaced carries only the committed id and number.
        """
        store_id = order_data.store_id
        requested = self._merge_lines(order_data)

        try:
            set_statement_timeout(self.db, self.settings.order_statement_timeout_ms)

            store = self.db.get(Store, store_id)
            if store is None or not store.is_active:
                raise NotFoundError("Store", store_id)

            inventory = self.ledger.lock_and_read(self.db, store_id, requested.keys())
            for product_id in requested:
                if product_id not in inventory:
                    raise NotFoundError("Product", product_id)

            shortages = self._find_shortages(inventory, requested)
            if shortages:
                self.db.rollback()
                logger.info(
                    f"Order for customer {customer_id} at store {store_id} rejected: "
                    f"{len(shortages)} item(s) short"
                )
                return InsufficientStock(store_id=store_id, shortages=shortages)

            pricing = calculate_pricing(
                [(inventory[pid].price, qty) for pid, qty in requested.items()],
                self.settings.free_delivery_threshold,
                self.settings.flat_delivery_fee,
            )

            order = self._insert_order(customer_id, order_data, pricing)
            for product_id, quantity in requested.items():
                price = inventory[product_id].price
                self.db.add(OrderItem(
                    order_id=order.id,
                    product_id=product_id,
                    quantity=quantity,
                    price_at_order=price,
                    total_price=round(price * quantity, 2),
                ))

            for product_id, quantity in requested.items():
                remaining = inventory.decrement(product_id, quantity)
                logger.info(
                    f"Decremented product {product_id} at store {store_id} by {quantity}: "
                    f"stock now {remaining}"
                )

            self._log_initial_status(order, customer_id)
            order_id, order_number = order.id, order.order_number
            self.db.commit()

            logger.info(f"Order {order_number} placed at store {store_id}: total {pricing.total}")
            return OrderPlaced(order_id=order_id, order_number=order_number)

        except SQLAlchemyError as e:
            self.db.rollback()
            logger.exception(
                f"Transaction failed for customer {customer_id} at store {store_id} "
                f"(products {list(requested)}): {e}"
            )
            return OrderFailed(reason="Order could not be processed, please try again later")
        except Exception:
            self.db.rollback()
            raise

    @staticmethod
    def _merge_lines(order_data: OrderCreate) -> Dict[int, int]:
        """Product id -> total requested quantity, in request order"""
        requested: Dict[int, int] = OrderedDict()
        for item in order_data.items:
            requested[item.product_id] = requested.get(item.product_id, 0) + item.quantity
        return requested

    @staticmethod
    def _find_shortages(inventory: LockedInventory, requested: Dict[int, int]) -> List[Shortage]:
        shortages = []
        for product_id, quantity in requested.items():
            row = inventory[product_id]
            if row.available < quantity:
                shortages.append(Shortage(
                    product_id=product_id,
                    product_name=row.name,
                    requested=quantity,
                    available=row.available,
                ))
        return shortages

    def _insert_order(self, customer_id: int, order_data: OrderCreate, pricing: Pricing) -> Order:
        now = datetime.utcnow()
        delivery = order_data.delivery
        payment_method = order_data.payment_method
        order = Order(
            order_number=f"ORD-{uuid.uuid4().hex[:8].upper()}",
            customer_id=customer_id,
            store_id=order_data.store_id,
            delivery_street=delivery.street,
            delivery_area=delivery.area,
            delivery_city=delivery.city,
            delivery_pincode=delivery.pincode,
            delivery_latitude=delivery.latitude,
            delivery_longitude=delivery.longitude,
            delivery_phone=delivery.phone,
            subtotal=pricing.subtotal,
            delivery_fee=pricing.delivery_fee,
            total_amount=pricing.total,
            status=OrderStatus.PENDING.value,
            payment_method=payment_method.value,
            payment_status=(
                PaymentStatus.PAID.value
                if payment_method == PaymentMethod.ONLINE
                else PaymentStatus.PENDING.value
            ),
            created_at=now,
            updated_at=now,
            expected_delivery_time=now + timedelta(minutes=self.settings.expected_delivery_minutes),
        )
        self.db.add(order)
        self.db.flush()  # Get the order ID
        return order

    def _log_initial_status(self, order: Order, customer_id: int) -> None:
        self.db.add(OrderStatusLog(
            order_id=order.id,
            old_status=None,
            new_status=OrderStatus.PENDING.value,
            changed_by=customer_id,
            notes="Order created",
        ))
        self.db.flush()

    def get_order(self, order_id: int) -> Order:
        order = self.db.execute(
            select(Order)
            .options(
                selectinload(Order.items).selectinload(OrderItem.product),
                selectinload(Order.status_logs),
                joinedload(Order.store),
            )
            .where(Order.id == order_id)
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if order is None:
            raise NotFoundError("Order", order_id)
        return order

    def list_customer_orders(self, customer_id: int) -> List[Order]:
        return list(self.db.execute(
            select(Order)
            .options(
                selectinload(Order.items).selectinload(OrderItem.product),
                joinedload(Order.store),
            )
            .where(Order.customer_id == customer_id)
            .order_by(Order.created_at.desc(), Order.id.desc())
        ).scalars())
