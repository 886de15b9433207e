"""Database connection and session management."""
import logging

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, DeclarativeBase

from vpnportal.config import get_settings

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


def _engine_kwargs(url: str) -> dict:
    if url.startswith("sqlite"):
        return {"connect_args": {"check_same_thread": False, "timeout": 30}}
    return {"pool_pre_ping": True}


settings = get_settings()
engine = create_engine(settings.database_url, echo=settings.debug, **_engine_kwargs(settings.database_url))
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db():
    """Dependency to get database session."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db(bind=None):
    """Create all tables."""
    # Import all model modules so they register with Base.metadata
    import vpnportal.db.models_auth  # noqa: F401
    import vpnportal.db.models_vpn  # noqa: F401
    Base.metadata.create_all(bind=bind or engine)
    logger.info("Database schema ready")
