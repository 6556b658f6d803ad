import redis
from fastapi import Depends, Header
from sqlalchemy.orm import Session
from hyperlocal.core.config import Settings, get_settings
from hyperlocal.core.database import get_db
from hyperlocal.core.redis_client import get_redis_client
from hyperlocal.services.cache import CacheService
from hyperlocal.services.dispatch import DispatchNotifier
from hyperlocal.services.locks import DistributedLockService
from hyperlocal.services.order_service import OrderProcessingService
from hyperlocal.services.order_status import OrderStatusService
from hyperlocal.services.proximity import ProximityService


def get_redis() -> redis.Redis:
    """Redis dependency for FastAPI"""
    return get_redis_client()


def get_current_user_id(x_user_id: int = Header(...)) -> int:
    """Identity attached upstream by the authentication layer"""
    return x_user_id


def get_cache(redis_client: redis.Redis = Depends(get_redis)) -> CacheService:
    return CacheService(redis_client)


def get_order_service(
    db: Session = Depends(get_db),
    redis_client: redis.Redis = Depends(get_redis),
    settings: Settings = Depends(get_settings),
) -> OrderProcessingService:
    return OrderProcessingService(
        db,
        lock_service=DistributedLockService(redis_client),
        cache=CacheService(redis_client),
        settings=settings,
        dispatcher=DispatchNotifier(
            redis_client, settings.dispatch_stream, settings.dispatch_stream_maxlen
        ),
    )


def get_order_status_service(db: Session = Depends(get_db)) -> OrderStatusService:
    return OrderStatusService(db)


def get_proximity_service(
    db: Session = Depends(get_db),
    cache: CacheService = Depends(get_cache),
    settings: Settings = Depends(get_settings),
) -> ProximityService:
    return ProximityService(db, cache, settings)
