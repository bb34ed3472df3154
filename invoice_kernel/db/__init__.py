"""Database layer - key-value persistence for counter and history."""

from invoice_kernel.db.base import Base, KeyValueEntry
from invoice_kernel.db.engine import init_engine_from_url, session_scope
from invoice_kernel.db.kv_store import (
    INVOICE_HISTORY_KEY,
    INVOICE_NUMBER_KEY,
    InMemoryKeyValueStore,
    KeyValueStore,
    SqlKeyValueStore,
)

__all__ = [
    "Base",
    "KeyValueEntry",
    "init_engine_from_url",
    "session_scope",
    "INVOICE_HISTORY_KEY",
    "INVOICE_NUMBER_KEY",
    "InMemoryKeyValueStore",
    "KeyValueStore",
    "SqlKeyValueStore",
]
