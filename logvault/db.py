"""
Catalog database configuration and session management
"""
from contextlib import contextmanager

from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker
import logging

logger = logging.getLogger("logvault.db")

# Create base class for models
Base = declarative_base()


def create_session_factory(database_url: str) -> sessionmaker:
    """Build an engine and session factory for the catalog database."""
    # SQLite needs special connect args; Postgres does not
    connect_args = {"check_same_thread": False} if database_url.startswith("sqlite") else {}
    engine = create_engine(
        database_url,
        future=True,
        pool_pre_ping=True,
        connect_args=connect_args,
    )
    return sessionmaker(autocommit=False, autoflush=False, bind=engine, expire_on_commit=False)


def init_db(session_factory: sessionmaker) -> None:
    """Create catalog tables"""
    # Make sure all models are imported so Base.metadata is populated
    import logvault.models  # noqa: F401
    Base.metadata.create_all(bind=session_factory.kw["bind"])
    logger.info("Catalog tables created", extra={"component": "db"})


@contextmanager
def session_scope(session_factory: sessionmaker):
    s = session_factory()
    try:
        yield s
        s.commit()
    except Exception:
        s.rollback()
        raise
    finally:
        s.close()
