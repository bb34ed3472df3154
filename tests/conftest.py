"""
Pytest fixtures for the invoice kernel test suite.

Provides:
- Structured logging configured for the whole run
- Deterministic clock, configuration and currency table
- In-memory and SQLite key-value stores
- A ready InvoiceSession wired to all of the above
"""

import json
import logging
from datetime import datetime, timezone
from io import StringIO

import pytest

from invoice_config import build_session, get_active_config
from invoice_kernel.db.kv_store import InMemoryKeyValueStore, SqlKeyValueStore
from invoice_kernel.domain.clock import DeterministicClock
from invoice_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)

FIXED_NOW = datetime(2026, 10, 17, 9, 30, 0, tzinfo=timezone.utc)


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture invoice_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, session):
            session.finalize()
            logs = captured_logs()
            assert any(r["message"] == "invoice_finalized" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("invoice_kernel")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# =============================================================================
# Domain fixtures
# =============================================================================


@pytest.fixture
def clock() -> DeterministicClock:
    return DeterministicClock(FIXED_NOW)


@pytest.fixture(scope="session")
def config():
    return get_active_config()


@pytest.fixture
def currencies(config):
    return config.currency_table()


@pytest.fixture
def kv_store() -> InMemoryKeyValueStore:
    return InMemoryKeyValueStore()


@pytest.fixture
def sql_store(tmp_path):
    store = SqlKeyValueStore.from_url(f"sqlite:///{tmp_path / 'invoices.db'}")
    yield store
    store.dispose()


@pytest.fixture
def session(config, kv_store, clock):
    return build_session(config, store=kv_store, clock=clock)


class BrokenHasher:
    """Hasher factory whose primitive is missing, like a platform without SHA-256."""

    def __init__(self):
        self.calls = 0

    def __call__(self):
        self.calls += 1
        raise ValueError("unsupported hash type sha256")


@pytest.fixture
def broken_hasher() -> BrokenHasher:
    return BrokenHasher()
