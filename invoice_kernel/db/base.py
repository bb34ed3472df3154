"""
Module: invoice_kernel.db.base
Responsibility: Declarative base and the single table backing the
    key-value persistence collaborator.

Invariants enforced:
    - One row per key (``key`` is the primary key); writes replace the
      value wholesale, last write wins.
    - ``updated_at`` is timezone-aware and refreshed on every write.
"""

from datetime import datetime
from typing import ClassVar

from sqlalchemy import DateTime, LargeBinary, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Declarative base for invoice_kernel models."""

    type_annotation_map: ClassVar[dict] = {
        datetime: DateTime(timezone=True),
        bytes: LargeBinary,
    }


class KeyValueEntry(Base):
    """A persisted value such as the invoice counter or the history blob."""

    __tablename__ = "invoice_kv_entries"

    key: Mapped[str] = mapped_column(String(128), primary_key=True)

    value: Mapped[bytes] = mapped_column(LargeBinary, nullable=False)

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )
