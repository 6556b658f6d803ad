from sqlalchemy import create_engine, text
from sqlalchemy.orm import Session, sessionmaker
from hyperlocal.core.config import get_settings

# Database configuration
DATABASE_URL = get_settings().database_url

engine = create_engine(DATABASE_URL, pool_pre_ping=True)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db():
    """Database dependency for FastAPI"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def set_statement_timeout(db: Session, timeout_ms: int) -> None:
    """Bound how long the current transaction may wait on row locks (PostgreSQL only)"""
    if db.get_bind().dialect.name == "postgresql":
        db.execute(text(f"SET LOCAL statement_timeout = {int(timeout_ms)}"))


def init_db() -> None:
    """Create any missing tables"""
    from hyperlocal.models.database import Base
    Base.metadata.create_all(bind=engine)
