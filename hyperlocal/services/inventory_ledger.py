import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List
from sqlalchemy import select
from sqlalchemy.orm import Session
from hyperlocal.core.exceptions import NotFoundError
from hyperlocal.models.database import InventoryRecord, Product, Store

logger = logging.getLogger(__name__)


@dataclass
class LockedRow:
    record: InventoryRecord
    name: str
    price: float

    @property
    def stock(self) -> int:
        return self.record.stock_quantity

    @property
    def reserved(self) -> int:
        return self.record.reserved_quantity

    @property
    def available(self) -> int:
        return self.record.stock_quantity - self.record.reserved_quantity


class LockedInventory:
    """
    Inventory rows of one store, read under SELECT ... FOR UPDATE.

    Stock can only be decremented through this object, i.e. inside the
    transaction that holds the row locks.
    """

    def __init__(self, db: Session, store_id: int, rows: Dict[int, LockedRow]):
        self.db = db
        self.store_id = store_id
        self.rows = rows

    def __contains__(self, product_id: int) -> bool:
        return product_id in self.rows

    def __getitem__(self, product_id: int) -> LockedRow:
        return self.rows[product_id]

    def decrement(self, product_id: int, quantity: int) -> int:
        """Apply stock_quantity -= quantity on a locked row; returns the new stock"""
        if not self.db.in_transaction():
            raise RuntimeError("Inventory rows are no longer locked; transaction has ended")
        if product_id not in self.rows:
            raise RuntimeError(
                f"Product {product_id} was not locked for store {self.store_id}"
            )
        if quantity <= 0:
            raise ValueError(f"Decrement quantity must be positive, got {quantity}")

        row = self.rows[product_id]
        if row.available < quantity:
            raise ValueError(
                f"Decrementing {quantity} of product {product_id} would leave "
                f"available stock negative ({row.available} available)"
            )
        row.record.stock_quantity -= quantity
        return row.record.stock_quantity


class InventoryLedger:
    """Reads and mutates per-(store, product) stock records"""

    def lock_and_read(
        self, db: Session, store_id: int, product_ids: Iterable[int]
    ) -> LockedInventory:
        """
        Row-lock the inventory of the given active products at a store.

        Rows are locked in product-id order so that overlapping orders take
        their locks in the same sequence. Products with no record at the store
        (or inactive ones) are simply absent from the result.
        """
        ids = sorted(set(product_ids))
        stmt = (
            select(InventoryRecord, Product)
            .join(Product, InventoryRecord.product_id == Product.id)
            .where(
                InventoryRecord.store_id == store_id,
                InventoryRecord.product_id.in_(ids),
                Product.is_active.is_(True),
            )
            .order_by(InventoryRecord.product_id)
            .with_for_update(of=InventoryRecord)
            .execution_options(populate_existing=True)
        )
        rows = {
            record.product_id: LockedRow(record=record, name=product.name, price=product.price)
            for record, product in db.execute(stmt).all()
        }
        logger.debug(f"Locked {len(rows)} inventory rows at store {store_id}")
        return LockedInventory(db, store_id, rows)

    def onboard(
        self,
        db: Session,
        store_id: int,
        product_id: int,
        stock_quantity: int,
        reorder_level: int = 0,
    ) -> InventoryRecord:
        """Create the inventory record for a product newly stocked at a store"""
        if db.get(Store, store_id) is None:
            raise NotFoundError("Store", store_id)
        if db.get(Product, product_id) is None:
            raise NotFoundError("Product", product_id)

        existing = db.execute(
            select(InventoryRecord).where(
                InventoryRecord.store_id == store_id,
                InventoryRecord.product_id == product_id,
            )
        ).scalar_one_or_none()
        if existing:
            raise ValueError(
                f"Product {product_id} already has inventory at store {store_id}"
            )

        record = InventoryRecord(
            store_id=store_id,
            product_id=product_id,
            stock_quantity=stock_quantity,
            reserved_quantity=0,
            reorder_level=reorder_level,
        )
        db.add(record)
        db.commit()
        db.refresh(record)
        logger.info(
            f"Onboarded product {product_id} at store {store_id} with stock {stock_quantity}"
        )
        return record

    def low_stock(self, db: Session, store_id: int) -> List[InventoryRecord]:
        """Records whose available quantity is at or below their reorder level"""
        if db.get(Store, store_id) is None:
            raise NotFoundError("Store", store_id)
        stmt = (
            select(InventoryRecord)
            .where(
                InventoryRecord.store_id == store_id,
                InventoryRecord.stock_quantity - InventoryRecord.reserved_quantity
                <= InventoryRecord.reorder_level,
            )
            .order_by(InventoryRecord.product_id)
        )
        return list(db.execute(stmt).scalars())
