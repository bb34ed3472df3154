"""
Module: invoice_kernel.db.engine
Responsibility: SQLAlchemy engine construction and the transactional scope
    used by the SQL-backed key-value store.

Failure modes:
    - sqlalchemy.exc.ArgumentError for an unparsable database URL.
    - OperationalError if the database cannot be reached or created.
"""

from contextlib import contextmanager
from typing import Generator

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from invoice_kernel.db.base import Base
from invoice_kernel.logging_config import get_logger

logger = get_logger("db.engine")

DEFAULT_DATABASE_URL = "sqlite:///invoice_builder.db"


def init_engine_from_url(database_url: str = DEFAULT_DATABASE_URL, echo: bool = False) -> Engine:
    """
    Create an engine for ``database_url`` and make sure the tables exist.

    Any SQLAlchemy URL works; SQLite is the default for a single-user
    builder.
    """
    engine = create_engine(database_url, echo=echo)
    Base.metadata.create_all(engine)
    logger.info(
        "engine_initialized",
        extra={"dialect": engine.dialect.name, "echo": echo},
    )
    return engine


def make_session_factory(engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(bind=engine, expire_on_commit=False)


@contextmanager
def session_scope(factory: sessionmaker[Session]) -> Generator[Session, None, None]:
    """
    Provide a transactional scope around a series of operations.

    Commits on normal exit; rolls back and re-raises on exception.
    """
    session = factory()
    logger.debug("transaction_started")
    try:
        yield session
        session.commit()
        logger.debug("transaction_committed")
    except Exception:
        session.rollback()
        logger.warning("transaction_rolled_back", exc_info=True)
        raise
    finally:
        session.close()
