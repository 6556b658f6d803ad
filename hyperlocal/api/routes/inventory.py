from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from typing import List
from hyperlocal.api.deps import get_cache
from hyperlocal.core.database import get_db
from hyperlocal.core.exceptions import NotFoundError
from hyperlocal.models.schemas import InventoryCreate, InventoryRecord
from hyperlocal.services.cache import CacheService
from hyperlocal.services.inventory_ledger import InventoryLedger

router = APIRouter()


@router.post("/", response_model=InventoryRecord, status_code=status.HTTP_201_CREATED)
def onboard_inventory(
    item_data: InventoryCreate,
    db: Session = Depends(get_db),
    cache: CacheService = Depends(get_cache),
):
    """Stock a product at a store for the first time"""
    try:
        record = InventoryLedger().onboard(
            db,
            item_data.store_id,
            item_data.product_id,
            item_data.stock_quantity,
            item_data.reorder_level,
        )
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    cache.invalidate_store(item_data.store_id)
    return record


@router.get("/{store_id}/low-stock", response_model=List[InventoryRecord])
def get_low_stock(store_id: int, db: Session = Depends(get_db)):
    """Inventory at or below its reorder level"""
    try:
        return InventoryLedger().low_stock(db, store_id)
    except NotFoundError:
        raise HTTPException(status_code=404, detail="Store not found")
