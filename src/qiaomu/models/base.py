"""Base model configuration."""
from datetime import UTC, datetime

from sqlalchemy import Column, DateTime, create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker

from qiaomu.config import StorageSettings

# Create declarative base class
Base = declarative_base()


class TimestampMixin:
    """Mixin to add timestamp columns to models."""
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(UTC))
    updated_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
    )


def make_engine(storage_settings: StorageSettings) -> Engine:
    """Create the SQLAlchemy engine backing the key-value store."""
    return create_engine(storage_settings.url, echo=storage_settings.echo)


def make_session_factory(engine: Engine) -> sessionmaker:
    """Create a session factory bound to the engine."""
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


def init_db(engine: Engine) -> None:
    """Initialize database."""
    # Import models so they register with the metadata
    from qiaomu.models import models  # noqa: F401

    Base.metadata.create_all(bind=engine)  # Create tables if they don't exist
