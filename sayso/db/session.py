"""
Database Session
Engine and session factory shared by the API and Celery tasks.
"""

import logging
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from ..api.config import get_settings

logger = logging.getLogger(__name__)

_engine = None
_SessionLocal = None


def get_engine() -> Engine:
    """Get database engine (singleton)."""
    global _engine
    if _engine is None:
        settings = get_settings()
        kwargs = {"pool_pre_ping": True}
        if not settings.database_url.startswith("sqlite"):
            kwargs.update(pool_size=settings.db_pool_size, max_overflow=settings.db_max_overflow)
        _engine = create_engine(settings.database_url, **kwargs)
        logger.info(f"Database engine created: {settings.database_url.split('@')[-1]}")
    return _engine


def get_session_factory() -> sessionmaker:
    """Get database session factory (singleton)."""
    global _SessionLocal
    if _SessionLocal is None:
        _SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=get_engine())
    return _SessionLocal


@contextmanager
def session_scope() -> Iterator[Session]:
    """Session for work outside a request (Celery tasks, scripts)."""
    db = get_session_factory()()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
