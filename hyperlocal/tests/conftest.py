import pytest
import fakeredis
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from hyperlocal.core.config import Settings
from hyperlocal.models.database import Base, Store, Product, InventoryRecord
from hyperlocal.models.schemas import DeliverySnapshot, OrderCreate, OrderItemCreate
from hyperlocal.services.cache import CacheService
from hyperlocal.services.dispatch import DispatchNotifier
from hyperlocal.services.locks import DistributedLockService
from hyperlocal.services.order_service import OrderProcessingService

# Bengaluru city centre
CENTER_LAT = 12.9716
CENTER_LNG = 77.5946


@pytest.fixture
def test_engine(tmp_path):
    engine = create_engine(
        f"sqlite:///{tmp_path / 'test.db'}", connect_args={"check_same_thread": False}
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=test_engine)


@pytest.fixture
def test_db(session_factory):
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def redis_server():
    return fakeredis.FakeServer()


@pytest.fixture
def redis_client(redis_server):
    return fakeredis.FakeRedis(server=redis_server, decode_responses=True)


@pytest.fixture
def broken_redis():
    """A Redis client whose server is unreachable"""
    server = fakeredis.FakeServer()
    server.connected = False
    return fakeredis.FakeRedis(server=server, decode_responses=True)


@pytest.fixture
def settings():
    return Settings()


@pytest.fixture
def make_service(redis_client, settings):
    def _make(db, cache_client=None):
        return OrderProcessingService(
            db,
            lock_service=DistributedLockService(redis_client),
            cache=CacheService(cache_client if cache_client is not None else redis_client),
            settings=settings,
            dispatcher=DispatchNotifier(
                redis_client, settings.dispatch_stream, settings.dispatch_stream_maxlen
            ),
        )
    return _make


@pytest.fixture
def store(test_db):
    """An active store with two stocked products and one inactive product"""
    store = Store(
        name="Indiranagar Hub",
        contact="080-4000-1000",
        city="Bengaluru",
        latitude=CENTER_LAT,
        longitude=CENTER_LNG,
        radius_km=5,
        capacity=200,
    )
    test_db.add(store)
    test_db.flush()

    milk = Product(name="Toned Milk 500ml", category="Dairy", unit="packet", price=50.0)
    rice = Product(name="Basmati Rice 1kg", category="Staples", unit="bag", price=100.0)
    ghee = Product(
        name="Cow Ghee 200ml", category="Dairy", unit="jar", price=150.0, is_active=False
    )
    test_db.add_all([milk, rice, ghee])
    test_db.flush()

    test_db.add_all([
        InventoryRecord(store_id=store.id, product_id=milk.id, stock_quantity=5),
        InventoryRecord(
            store_id=store.id, product_id=rice.id, stock_quantity=10, reserved_quantity=2
        ),
        InventoryRecord(store_id=store.id, product_id=ghee.id, stock_quantity=7),
    ])
    test_db.commit()
    return {"store_id": store.id, "milk": milk.id, "rice": rice.id, "ghee": ghee.id}


def build_order(store_id, *lines, payment_method="COD"):
    """OrderCreate for (product_id, quantity) lines"""
    return OrderCreate(
        store_id=store_id,
        items=[OrderItemCreate(product_id=pid, quantity=qty) for pid, qty in lines],
        delivery=DeliverySnapshot(
            street="12 CMH Road",
            area="Indiranagar",
            city="Bengaluru",
            pincode="560038",
            latitude=12.9784,
            longitude=77.6408,
            phone="+91-9800000000",
        ),
        payment_method=payment_method,
    )
