import math
import logging
from typing import List, Optional
from sqlalchemy import select
from sqlalchemy.orm import Session
from hyperlocal.core.config import Settings, get_settings
from hyperlocal.core.exceptions import NotFoundError
from hyperlocal.models.database import InventoryRecord, Product, Store
from hyperlocal.models.schemas import ProductAvailability, StoreSummary
from hyperlocal.services.cache import CacheService, nearby_stores_key, store_products_key

logger = logging.getLogger(__name__)

EARTH_RADIUS_METERS = 6371008.8
BOX_EPSILON_DEGREES = 1e-6


def haversine_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance between two points in metres"""
    lat1_rad = math.radians(lat1)
    lat2_rad = math.radians(lat2)
    delta_lat = math.radians(lat2 - lat1)
    delta_lon = math.radians(lon2 - lon1)

    a = (math.sin(delta_lat / 2) ** 2 +
         math.cos(lat1_rad) * math.cos(lat2_rad) *
         math.sin(delta_lon / 2) ** 2)
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))

    return EARTH_RADIUS_METERS * c


class ProximityService:
    """Store discovery: nearest stores and per-store product availability, both cached"""

    def __init__(self, db: Session, cache: CacheService, settings: Optional[Settings] = None):
        self.db = db
        self.cache = cache
        self.settings = settings or get_settings()

    def nearest_stores(
        self, latitude: float, longitude: float, radius_km: float = 10, limit: int = 10
    ) -> List[StoreSummary]:
        if radius_km <= 0:
            raise ValueError("radius_km must be positive")
        if limit <= 0:
            raise ValueError("limit must be positive")

        cache_key = nearby_stores_key(latitude, longitude, radius_km, limit)
        cached = self.cache.get(cache_key)
        if cached is not None:
            logger.debug(f"Cache hit for nearest stores {cache_key}")
            return [StoreSummary(**store) for store in cached]

        radius_meters = radius_km * 1000
        candidates = []
        for store in self._stores_in_bounding_box(latitude, longitude, radius_meters):
            distance = haversine_distance(latitude, longitude, store.latitude, store.longitude)
            if distance <= radius_meters:
                candidates.append((distance, store))
        candidates.sort(key=lambda pair: (pair[0], pair[1].id))

        stores = []
        for distance, store in candidates[:limit]:
            distance_meters = int(round(distance))
            stores.append(StoreSummary(
                store_id=store.id,
                store_name=store.name,
                contact=store.contact,
                city=store.city,
                capacity=store.capacity,
                radius_km=store.radius_km,
                latitude=store.latitude,
                longitude=store.longitude,
                distance_meters=distance_meters,
                distance_km=round(distance_meters / 1000, 2),
                delivery_possible=distance_meters <= store.radius_km * 1000,
            ))

        self.cache.set(
            cache_key,
            [store.model_dump() for store in stores],
            self.settings.nearby_stores_cache_ttl,
        )
        return stores

    def _stores_in_bounding_box(
        self, latitude: float, longitude: float, radius_meters: float
    ) -> List[Store]:
        """Active located stores inside the lat/lng box enclosing the search circle"""
        angular_radius = radius_meters / EARTH_RADIUS_METERS
        lat_delta = math.degrees(angular_radius) + BOX_EPSILON_DEGREES
        stmt = select(Store).where(
            Store.is_active.is_(True),
            Store.latitude.isnot(None),
            Store.longitude.isnot(None),
            Store.latitude.between(latitude - lat_delta, latitude + lat_delta),
        )

        cos_lat = math.cos(math.radians(latitude))
        if math.sin(angular_radius) < cos_lat:
            lng_delta = (
                math.degrees(math.asin(math.sin(angular_radius) / cos_lat)) + BOX_EPSILON_DEGREES
            )
            # No longitude bound when the box would wrap the antimeridian
            if longitude - lng_delta >= -180 and longitude + lng_delta <= 180:
                stmt = stmt.where(
                    Store.longitude.between(longitude - lng_delta, longitude + lng_delta)
                )
        return list(self.db.execute(stmt).scalars())

    def get_store(self, store_id: int) -> Store:
        """Inactive stores are hidden, as they are when ordering"""
        store = self.db.get(Store, store_id)
        if store is None or not store.is_active:
            raise NotFoundError("Store", store_id)
        return store

    def store_availability(self, store_id: int) -> List[ProductAvailability]:
        cache_key = store_products_key(store_id)
        cached = self.cache.get(cache_key)
        if cached is not None:
            logger.debug(f"Cache hit for store {store_id} products")
            return [ProductAvailability(**product) for product in cached]

        self.get_store(store_id)
        available = InventoryRecord.stock_quantity - InventoryRecord.reserved_quantity
        rows = self.db.execute(
            select(Product, InventoryRecord)
            .join(InventoryRecord, InventoryRecord.product_id == Product.id)
            .where(
                InventoryRecord.store_id == store_id,
                Product.is_active.is_(True),
                available > 0,
            )
            .order_by(Product.category, Product.name)
        ).all()

        products = [
            ProductAvailability(
                product_id=product.id,
                product_name=product.name,
                description=product.description,
                category=product.category,
                unit=product.unit,
                price=product.price,
                stock_quantity=record.stock_quantity,
                reserved_quantity=record.reserved_quantity,
                available_stock=record.available_quantity,
                in_stock=record.available_quantity > 0,
            )
            for product, record in rows
        ]
        self.cache.set(
            cache_key,
            [product.model_dump() for product in products],
            self.settings.store_products_cache_ttl,
        )
        return products
