"""Database session management with connection pooling"""

from functools import lru_cache
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker
from flashflow_risk.config import settings
from flashflow_risk.infrastructure.database.models import Base


@lru_cache(maxsize=None)
def get_engine(database_url: str | None = None) -> Engine:
    """Pooled engine; created on first use so importing never needs a DB driver"""
    url = database_url or settings.database_url
    if url.startswith("sqlite"):
        return create_engine(url, connect_args={"check_same_thread": False})

    # Connection pool: max 20 connections, recycle after 1 hour to avoid stale connections
    return create_engine(
        url,
        pool_pre_ping=True,  # Verify connections before using
        pool_size=10,
        max_overflow=10,
        pool_recycle=3600,
    )


def get_session_factory(database_url: str | None = None) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=get_engine(database_url))


def init_db(engine: Engine) -> None:
    """Create tables if they do not exist"""
    Base.metadata.create_all(bind=engine)
