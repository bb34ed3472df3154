"""
Tests for the key-value persistence collaborators.

Runs the same contract against the in-memory store and the SQLite-backed
SqlKeyValueStore, then drives a full session round trip over SQLite.
"""

import pytest
from sqlalchemy import select

from invoice_config import build_session
from invoice_kernel.db.base import KeyValueEntry
from invoice_kernel.db.engine import make_session_factory, session_scope
from invoice_kernel.db.kv_store import (
    INVOICE_HISTORY_KEY,
    INVOICE_NUMBER_KEY,
    InMemoryKeyValueStore,
    KeyValueStore,
    SqlKeyValueStore,
)


@pytest.fixture(params=["memory", "sql"])
def store(request, tmp_path):
    if request.param == "memory":
        yield InMemoryKeyValueStore()
        return
    sql = SqlKeyValueStore.from_url(f"sqlite:///{tmp_path / 'kv.db'}")
    yield sql
    sql.dispose()


class TestContract:

    def test_satisfies_protocol(self, store):
        assert isinstance(store, KeyValueStore)

    def test_absent_key_is_none(self, store):
        assert store.get("missing") is None

    def test_set_then_get(self, store):
        store.set(INVOICE_NUMBER_KEY, b"1001")
        assert store.get(INVOICE_NUMBER_KEY) == b"1001"

    def test_last_write_wins(self, store):
        store.set(INVOICE_NUMBER_KEY, b"1001")
        store.set(INVOICE_NUMBER_KEY, b"1002")
        assert store.get(INVOICE_NUMBER_KEY) == b"1002"

    def test_keys_independent(self, store):
        store.set(INVOICE_NUMBER_KEY, b"7")
        store.set(INVOICE_HISTORY_KEY, b"[]")
        assert store.get(INVOICE_NUMBER_KEY) == b"7"
        assert store.get(INVOICE_HISTORY_KEY) == b"[]"

    def test_rejects_non_bytes(self, store):
        with pytest.raises(TypeError):
            store.set(INVOICE_NUMBER_KEY, "1001")

    def test_binary_values_preserved(self, store):
        payload = "€ Bs ñ".encode("utf-8") + b"\x00\xff"
        store.set(INVOICE_HISTORY_KEY, payload)
        assert store.get(INVOICE_HISTORY_KEY) == payload


class TestSqlStore:

    def test_single_row_per_key(self, sql_store):
        sql_store.set(INVOICE_NUMBER_KEY, b"1")
        sql_store.set(INVOICE_NUMBER_KEY, b"2")

        factory = make_session_factory(sql_store.engine)
        with session_scope(factory) as session:
            rows = session.execute(select(KeyValueEntry)).scalars().all()
            assert [(r.key, bytes(r.value)) for r in rows] == [(INVOICE_NUMBER_KEY, b"2")]
            assert rows[0].updated_at is not None

    def test_persists_across_engines(self, tmp_path):
        url = f"sqlite:///{tmp_path / 'shared.db'}"
        first = SqlKeyValueStore.from_url(url)
        first.set(INVOICE_NUMBER_KEY, b"1050")
        first.dispose()

        second = SqlKeyValueStore.from_url(url)
        assert second.get(INVOICE_NUMBER_KEY) == b"1050"
        second.dispose()

    def test_write_logged(self, sql_store, captured_logs):
        sql_store.set(INVOICE_HISTORY_KEY, b"[]")
        written = [r for r in captured_logs() if r["message"] == "kv_entry_written"]
        assert written[0]["key"] == INVOICE_HISTORY_KEY
        assert written[0]["size"] == 2


def test_session_round_trip_over_sqlite(config, clock, sql_store):
    session = build_session(config, store=sql_store, clock=clock)
    session.client_name = "Acme"
    session.add_item("Widget", "2", "10.00")
    finalized = session.finalize(tax_rate="13", currency="BOB")

    reopened = build_session(config, store=sql_store, clock=clock)

    assert reopened.invoice_number == 1002
    (record,) = reopened.history()
    assert record == finalized.record
    assert reopened.currencies.format_amount(record.converted_total, "BOB") == "Bs156.17"
