import enum
from sqlalchemy import (
    Column, Integer, BigInteger, String, Float, DateTime, ForeignKey, Boolean,
    CheckConstraint, UniqueConstraint, Index,
)
from sqlalchemy.orm import declarative_base, relationship
from datetime import datetime

Base = declarative_base()


class OrderStatus(str, enum.Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    ASSIGNED = "ASSIGNED"
    PICKED_UP = "PICKED_UP"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"


class PaymentMethod(str, enum.Enum):
    COD = "COD"
    ONLINE = "ONLINE"


class PaymentStatus(str, enum.Enum):
    PENDING = "PENDING"
    PAID = "PAID"


class Store(Base):
    """A store/hub holding per-product stock and serving a delivery radius"""
    __tablename__ = "stores"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    contact = Column(String)
    city = Column(String)
    latitude = Column(Float)
    longitude = Column(Float)
    radius_km = Column(Float, nullable=False, default=5.0)
    capacity = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    inventory = relationship("InventoryRecord", back_populates="store")

    __table_args__ = (
        Index("ix_stores_active_location", "is_active", "latitude", "longitude"),
    )


class Product(Base):
    """Catalog product; price is the live price, snapshotted onto order items"""
    __tablename__ = "products"

    id = Column(Integer, primary_key=True, index=True)
    store_id = Column(Integer, ForeignKey("stores.id"), nullable=True)  # null for catalog-wide
    name = Column(String, nullable=False)
    description = Column(String)
    category = Column(String)
    unit = Column(String, nullable=False, default="piece")
    price = Column(Float, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class InventoryRecord(Base):
    """Per-(store, product) stock; the unit of contention when ordering"""
    __tablename__ = "inventory"

    id = Column(Integer, primary_key=True, index=True)
    store_id = Column(Integer, ForeignKey("stores.id"), nullable=False)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False)
    stock_quantity = Column(Integer, nullable=False, default=0)
    reserved_quantity = Column(Integer, nullable=False, default=0)
    reorder_level = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    store = relationship("Store", back_populates="inventory")
    product = relationship("Product")

    __table_args__ = (
        UniqueConstraint("store_id", "product_id", name="uq_inventory_store_product"),
        CheckConstraint("reserved_quantity >= 0", name="ck_inventory_reserved_non_negative"),
        CheckConstraint(
            "reserved_quantity <= stock_quantity", name="ck_inventory_reserved_within_stock"
        ),
    )

    @property
    def available_quantity(self) -> int:
        return self.stock_quantity - self.reserved_quantity


class Order(Base):
    """Customer order; the delivery address is a snapshot taken at creation"""
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True)
    order_number = Column(String, unique=True, index=True, nullable=False)
    customer_id = Column(BigInteger, nullable=False, index=True)
    store_id = Column(Integer, ForeignKey("stores.id"), nullable=False)

    delivery_street = Column(String, nullable=False)
    delivery_area = Column(String)
    delivery_city = Column(String, nullable=False)
    delivery_pincode = Column(String, nullable=False)
    delivery_latitude = Column(Float, nullable=False)
    delivery_longitude = Column(Float, nullable=False)
    delivery_phone = Column(String, nullable=False)

    subtotal = Column(Float, nullable=False)
    delivery_fee = Column(Float, nullable=False, default=0)
    total_amount = Column(Float, nullable=False)

    status = Column(String, nullable=False, default=OrderStatus.PENDING.value)
    payment_method = Column(String, nullable=False, default=PaymentMethod.COD.value)
    payment_status = Column(String, nullable=False, default=PaymentStatus.PENDING.value)

    expected_delivery_time = Column(DateTime)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    confirmed_at = Column(DateTime)
    assigned_at = Column(DateTime)
    picked_up_at = Column(DateTime)
    delivered_at = Column(DateTime)
    cancelled_at = Column(DateTime)

    store = relationship("Store")
    items = relationship("OrderItem", back_populates="order", cascade="all, delete-orphan")
    status_logs = relationship(
        "OrderStatusLog", back_populates="order", order_by="OrderStatusLog.id"
    )

    __table_args__ = (
        Index("ix_orders_customer_created", "customer_id", "created_at"),
    )

    @property
    def store_name(self):
        return self.store.name if self.store is not None else None

    @property
    def item_count(self) -> int:
        return len(self.items)


class OrderItem(Base):
    """Line item; price_at_order is never recomputed from the live catalog"""
    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False)
    quantity = Column(Integer, nullable=False)
    price_at_order = Column(Float, nullable=False)
    total_price = Column(Float, nullable=False)

    order = relationship("Order", back_populates="items")
    product = relationship("Product")

    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_order_items_quantity_positive"),
    )

    @property
    def product_name(self):
        return self.product.name if self.product is not None else None


class OrderStatusLog(Base):
    """Append-only audit trail of order status transitions"""
    __tablename__ = "order_status_log"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False, index=True)
    old_status = Column(String)
    new_status = Column(String, nullable=False)
    changed_by = Column(BigInteger, nullable=False)
    notes = Column(String)
    created_at = Column(DateTime, default=datetime.utcnow)

    order = relationship("Order", back_populates="status_logs")
