from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import datetime
from hyperlocal.models.database import OrderStatus, PaymentMethod


class DeliverySnapshot(BaseModel):
    street: str
    area: Optional[str] = None
    city: str
    pincode: str
    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)
    phone: str


class OrderItemCreate(BaseModel):
    product_id: int
    quantity: int = Field(gt=0)


class OrderCreate(BaseModel):
    store_id: int
    items: List[OrderItemCreate] = Field(min_length=1)
    delivery: DeliverySnapshot
    payment_method: PaymentMethod = PaymentMethod.COD


class OrderItem(BaseModel):
    id: int
    product_id: int
    product_name: Optional[str] = None
    quantity: int
    price_at_order: float
    total_price: float

    class Config:
        from_attributes = True


class OrderStatusLogEntry(BaseModel):
    old_status: Optional[str] = None
    new_status: str
    changed_by: int
    notes: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class Order(BaseModel):
    id: int
    order_number: str
    customer_id: int
    store_id: int
    store_name: Optional[str] = None
    delivery_street: str
    delivery_area: Optional[str] = None
    delivery_city: str
    delivery_pincode: str
    delivery_latitude: float
    delivery_longitude: float
    delivery_phone: str
    subtotal: float
    delivery_fee: float
    total_amount: float
    status: str
    payment_method: str
    payment_status: str
    expected_delivery_time: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime
    confirmed_at: Optional[datetime] = None
    assigned_at: Optional[datetime] = None
    picked_up_at: Optional[datetime] = None
    delivered_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    item_count: int = 0
    items: List[OrderItem] = []
    status_logs: List[OrderStatusLogEntry] = []

    class Config:
        from_attributes = True


class OrderStatusUpdate(BaseModel):
    status: OrderStatus
    notes: Optional[str] = None


class Shortage(BaseModel):
    product_id: int
    product_name: str
    requested: int
    available: int


class StoreSummary(BaseModel):
    store_id: int
    store_name: str
    contact: Optional[str] = None
    city: Optional[str] = None
    capacity: int
    radius_km: float
    latitude: float
    longitude: float
    distance_meters: int
    distance_km: float
    delivery_possible: bool


class Store(BaseModel):
    id: int
    name: str
    contact: Optional[str] = None
    city: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    radius_km: float
    capacity: int
    is_active: bool

    class Config:
        from_attributes = True


class ProductAvailability(BaseModel):
    product_id: int
    product_name: str
    description: Optional[str] = None
    category: Optional[str] = None
    unit: str
    price: float
    stock_quantity: int
    reserved_quantity: int
    available_stock: int
    in_stock: bool


class InventoryCreate(BaseModel):
    store_id: int
    product_id: int
    stock_quantity: int = Field(ge=0)
    reorder_level: int = Field(default=0, ge=0)


class InventoryRecord(BaseModel):
    id: int
    store_id: int
    product_id: int
    stock_quantity: int
    reserved_quantity: int
    reorder_level: int
    available_quantity: int
    updated_at: datetime

    class Config:
        from_attributes = True
