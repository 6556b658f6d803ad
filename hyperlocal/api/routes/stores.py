from fastapi import APIRouter, Depends, HTTPException, Query
from typing import List
from hyperlocal.api.deps import get_proximity_service
from hyperlocal.core.exceptions import NotFoundError
from hyperlocal.models.schemas import ProductAvailability, Store, StoreSummary
from hyperlocal.services.proximity import ProximityService

router = APIRouter()


@router.get("/nearby", response_model=List[StoreSummary])
def get_nearby_stores(
    lat: float = Query(..., ge=-90, le=90),
    lng: float = Query(..., ge=-180, le=180),
    radius_km: float = Query(10, gt=0, le=100),
    limit: int = Query(10, gt=0, le=50),
    service: ProximityService = Depends(get_proximity_service),
):
    """Active stores within radius_km, nearest first"""
    return service.nearest_stores(lat, lng, radius_km, limit)


@router.get("/{store_id}", response_model=Store)
def get_store(store_id: int, service: ProximityService = Depends(get_proximity_service)):
    try:
        return service.get_store(store_id)
    except NotFoundError:
        raise HTTPException(status_code=404, detail="Store not found")


@router.get("/{store_id}/products", response_model=List[ProductAvailability])
def get_store_products(
    store_id: int, service: ProximityService = Depends(get_proximity_service)
):
    """Products currently in stock at a store"""
    try:
        return service.store_availability(store_id)
    except NotFoundError:
        raise HTTPException(status_code=404, detail="Store not found")
