"""
Key-value persistence collaborator.

The invoice session persists exactly two values, the next invoice number
and the serialized history, through ``get(key)`` / ``set(key, value)``.
Absence on read means "not yet initialized" and is never an error.
No transactionality beyond last-write-wins is promised.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from sqlalchemy import select
from sqlalchemy.engine import Engine

from invoice_kernel.db.base import KeyValueEntry
from invoice_kernel.db.engine import init_engine_from_url, make_session_factory, session_scope
from invoice_kernel.logging_config import get_logger

logger = get_logger("db.kv_store")

INVOICE_NUMBER_KEY = "invoiceNumber"
INVOICE_HISTORY_KEY = "invoiceHistory"


@runtime_checkable
class KeyValueStore(Protocol):
    def get(self, key: str) -> bytes | None: ...

    def set(self, key: str, value: bytes) -> None: ...


class InMemoryKeyValueStore:
    """Dict-backed store for tests and ephemeral sessions."""

    def __init__(self, initial: dict[str, bytes] | None = None):
        self._data: dict[str, bytes] = dict(initial or {})

    def get(self, key: str) -> bytes | None:
        return self._data.get(key)

    def set(self, key: str, value: bytes) -> None:
        if not isinstance(value, bytes):
            raise TypeError(f"value for {key!r} must be bytes, got {type(value).__name__}")
        self._data[key] = value

    def __contains__(self, key: object) -> bool:
        return key in self._data


class SqlKeyValueStore:
    """
    Store backed by the ``invoice_kv_entries`` table.

    Each ``set`` runs in its own transaction and replaces the row for the
    key, so a reader never observes a partially written value.
    """

    def __init__(self, engine: Engine):
        self._engine = engine
        self._factory = make_session_factory(engine)

    @classmethod
    def from_url(cls, database_url: str, echo: bool = False) -> SqlKeyValueStore:
        return cls(init_engine_from_url(database_url, echo=echo))

    @property
    def engine(self) -> Engine:
        return self._engine

    def get(self, key: str) -> bytes | None:
        with session_scope(self._factory) as session:
            entry = session.execute(
                select(KeyValueEntry).where(KeyValueEntry.key == key)
            ).scalar_one_or_none()
            return None if entry is None else bytes(entry.value)

    def set(self, key: str, value: bytes) -> None:
        if not isinstance(value, bytes):
            raise TypeError(f"value for {key!r} must be bytes, got {type(value).__name__}")
        with session_scope(self._factory) as session:
            entry = session.get(KeyValueEntry, key)
            if entry is None:
                session.add(KeyValueEntry(key=key, value=value))
            else:
                entry.value = value
        logger.debug("kv_entry_written", extra={"key": key, "size": len(value)})

    def dispose(self) -> None:
        self._engine.dispose()
