"""
Database connection and session management for the database cache backend.
"""

from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, Session

from shopcache.config import ConfigurationError


def create_session_factory(database_url: str) -> sessionmaker:
    """
    Create an engine for ``database_url`` and make sure the schema exists.

    Args:
        database_url: SQLAlchemy URL, e.g. ``sqlite:///data/cache.db``

    Returns:
        Session factory bound to the engine

    Raises:
        ConfigurationError: If no URL is given
    """
    if not database_url:
        raise ConfigurationError("DATABASE_URL environment variable is required for the database cache")

    engine = create_engine(database_url)
    init_db(engine)
    return sessionmaker(bind=engine)


@contextmanager
def session_scope(session_factory: sessionmaker) -> Iterator[Session]:
    """
    Context manager for database session.

    Usage:
        with session_scope(factory) as db:
            # Use db session
            pass
    """
    db = session_factory()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def init_db(engine: Engine):
    """
    Initialize the database by creating all tables.
    """
    from shopcache.db_models import Base

    Base.metadata.create_all(bind=engine)
