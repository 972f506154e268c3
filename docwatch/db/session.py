"""
Database session and engine.
"""
from pathlib import Path

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from docwatch.config import settings
from docwatch.db.base import Base


def create_engine_for(database_url: str) -> Engine:
    """Engine with pooling for PostgreSQL; thread-shared connection rules for SQLite."""
    url = make_url(database_url)
    if url.get_backend_name() == "sqlite":
        connect_args = {"check_same_thread": False}
        if not url.database or url.database == ":memory:":
            return create_engine(database_url, connect_args=connect_args, poolclass=StaticPool)
        Path(url.database).parent.mkdir(parents=True, exist_ok=True)
        return create_engine(database_url, connect_args=connect_args)
    return create_engine(
        database_url,
        pool_size=5,
        max_overflow=5,
        pool_pre_ping=True,
        pool_recycle=300,
        pool_timeout=30,
    )


engine = create_engine_for(settings.database_url)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)


def init_db(bind: Engine | None = None) -> None:
    """Create tables directly (SQLite / local runs). Deployed databases use alembic."""
    import docwatch.models  # noqa: F401

    Base.metadata.create_all(bind=bind or engine)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
