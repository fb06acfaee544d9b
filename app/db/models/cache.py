from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func

from app.db.base import Base


class CacheStoreRecord(Base):
    __tablename__ = "cache_stores"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    name: Mapped[str] = mapped_column(String(255), unique=True, index=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    entries: Mapped[list["CacheEntry"]] = relationship(
        back_populates="store", cascade="all, delete-orphan", passive_deletes=True
    )


class CacheEntry(Base):
    __tablename__ = "cache_entries"
    __table_args__ = (UniqueConstraint("store_id", "key", name="uq_cache_entry_key"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    store_id: Mapped[int] = mapped_column(
        ForeignKey("cache_stores.id", ondelete="CASCADE"), index=True
    )
    key: Mapped[str] = mapped_column(Text, nullable=False)
    value: Mapped[str] = mapped_column(Text, nullable=False)  # ResponseSnapshot JSON
    captured_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))

    store: Mapped[CacheStoreRecord] = relationship(back_populates="entries")
