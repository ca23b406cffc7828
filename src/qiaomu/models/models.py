"""Database models for the persistent key-value store."""
from sqlalchemy import Column, Integer, String, Text

from qiaomu.models.base import Base, TimestampMixin


class StorageEntry(Base, TimestampMixin):
    """One persisted key with its JSON envelope."""

    __tablename__ = "storage_entries"

    id = Column(Integer, primary_key=True)
    key = Column(String, unique=True, nullable=False, index=True)
    value = Column(Text, nullable=False)  # JSON envelope: {data, timestamp, version}

    def __repr__(self) -> str:
        return f"<StorageEntry {self.key!r} ({len(self.value)} bytes)>"
