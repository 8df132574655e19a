import logging

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base
from fraudshield.config import settings

logger = logging.getLogger(__name__)

# 1. Create Engine
if settings.DATABASE_URL.startswith("sqlite"):
    # SQLite connections are shared across the request threadpool
    engine = create_engine(
        settings.DATABASE_URL,
        connect_args={"check_same_thread": False}
    )
else:
    engine = create_engine(
        settings.DATABASE_URL,
        pool_pre_ping=True,
        pool_size=10,
        max_overflow=20
    )

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()

def get_db():
    """Dependency for FastAPI routes"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()

def init_db(bind=None):
    """Initialize database tables"""
    # Models must be imported so they register with 'Base'
    import fraudshield.models

    logger.info("Creating tables...")
    Base.metadata.create_all(bind=bind or engine)
    logger.info("Tables ready")
