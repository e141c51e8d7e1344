"""
Database engine and session management.
"""

from collections.abc import Generator

from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

from gripp_hours.core.config import settings
from gripp_hours.core.logging import get_logger

logger = get_logger(__name__)


def build_engine(database_url: str, echo: bool = False):
    """
    Create an engine for the given URL.

    In-memory SQLite databases share a single connection so that every
    session sees the same data.
    """
    if database_url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if ":memory:" in database_url or database_url == "sqlite://":
            kwargs["poolclass"] = StaticPool
        return create_engine(database_url, echo=echo, **kwargs)
    return create_engine(database_url, echo=echo, pool_pre_ping=True)


engine = build_engine(settings.DATABASE_URL, echo=settings.DEBUG)


def create_db_and_tables(bind=None) -> None:
    """Create all tables registered on SQLModel's metadata."""
    # Importing the models registers their tables
    import gripp_hours.models  # noqa: F401

    SQLModel.metadata.create_all(bind or engine)
    logger.info("Database tables ensured")


def get_session() -> Generator[Session, None, None]:
    """FastAPI dependency yielding a database session."""
    with Session(engine) as session:
        yield session
