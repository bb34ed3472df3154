"""
Tests for invoice snapshots and fingerprints.

Verifies:
- Hash format and reproducibility for a fixed snapshot and timestamp
- Sensitivity to content and timestamp, insensitivity to item ids
- Placeholder client substitution
- Scannable code payload format
- HashUnavailableError with no fallback digest
"""

import hashlib
import json
import re
from decimal import Decimal
from uuid import uuid4

import pytest

from invoice_kernel.domain.fingerprint import (
    DEFAULT_CLIENT_NAME,
    FingerprintGenerator,
    build_snapshot,
    code_payload,
)
from invoice_kernel.domain.line_items import LineItem
from invoice_kernel.exceptions import HashUnavailableError

HEX64 = re.compile(r"^[0-9a-f]{64}$")


def _items(quantity="2", unit_price="10.00"):
    return [LineItem(uuid4(), "Widget", Decimal(quantity), Decimal(unit_price))]


@pytest.fixture
def generator(clock):
    return FingerprintGenerator(clock=clock)


class TestSnapshot:

    def test_blank_client_uses_placeholder(self):
        for blank in (None, "", "   "):
            snapshot = build_snapshot(1001, blank, Decimal("22.6"), _items())
            assert snapshot.client_name == DEFAULT_CLIENT_NAME

    def test_client_name_trimmed(self):
        assert build_snapshot(1001, "  Acme  ", Decimal("1"), []).client_name == "Acme"

    def test_payload_has_no_item_ids(self):
        payload = build_snapshot(1001, "Acme", Decimal("22.6"), _items()).to_payload()
        assert set(payload) == {"invoiceNumber", "clientName", "total", "items"}
        assert set(payload["items"][0]) == {"name", "quantity", "price"}

    @pytest.mark.parametrize("number", [0, -1, True, "1001", 1001.0])
    def test_invalid_invoice_number(self, number):
        with pytest.raises(ValueError):
            build_snapshot(number, "Acme", Decimal("1"), [])

    def test_generator_placeholder_configurable(self, clock):
        generator = FingerprintGenerator(clock=clock, default_client_name="Walk-in")
        assert generator.snapshot(1001, "", Decimal("1"), []).client_name == "Walk-in"


class TestFingerprint:

    def test_format_and_timestamp(self, generator):
        snapshot = generator.snapshot(1001, "Acme", Decimal("22.6"), _items())
        fp = generator.fingerprint(snapshot)

        assert HEX64.match(fp.hash)
        assert fp.timestamp == "2026-10-17T09:30:00.000Z"
        assert fp.snapshot is snapshot
        assert str(fp) == fp.hash
        assert fp.short == fp.hash[:16]

    def test_matches_sha256_of_canonical_json(self, generator):
        snapshot = generator.snapshot(1001, "Acme", Decimal("22.60"), _items())
        fp = generator.fingerprint(snapshot)

        expected_text = json.dumps(
            {
                "clientName": "Acme",
                "invoiceNumber": 1001,
                "items": [{"name": "Widget", "price": "10", "quantity": "2"}],
                "timestamp": "2026-10-17T09:30:00.000Z",
                "total": "22.6",
            },
            separators=(",", ":"),
        )
        assert fp.hash == hashlib.sha256(expected_text.encode("utf-8")).hexdigest()

    def test_same_snapshot_same_moment_same_hash(self, generator):
        snapshot = generator.snapshot(1001, "Acme", Decimal("22.6"), _items())
        assert generator.fingerprint(snapshot).hash == generator.fingerprint(snapshot).hash

    def test_timestamp_changes_hash(self, generator, clock):
        snapshot = generator.snapshot(1001, "Acme", Decimal("22.6"), _items())
        first = generator.fingerprint(snapshot)
        clock.advance(0.001)
        second = generator.fingerprint(snapshot)

        assert first.timestamp != second.timestamp
        assert first.hash != second.hash

    def test_quantity_changes_hash(self, generator):
        a = generator.snapshot(1001, "Acme", Decimal("22.6"), _items(quantity="2"))
        b = generator.snapshot(1001, "Acme", Decimal("22.6"), _items(quantity="3"))
        assert generator.fingerprint(a).hash != generator.fingerprint(b).hash

    def test_client_changes_hash(self, generator):
        a = generator.snapshot(1001, "Acme", Decimal("1"), [])
        b = generator.snapshot(1001, "Acme Ltd", Decimal("1"), [])
        assert generator.fingerprint(a).hash != generator.fingerprint(b).hash

    def test_item_ids_do_not_affect_hash(self, generator):
        a = generator.snapshot(1001, "Acme", Decimal("22.6"), _items())
        b = generator.snapshot(1001, "Acme", Decimal("22.6"), _items())
        assert generator.fingerprint(a).hash == generator.fingerprint(b).hash

    def test_non_ascii_client(self, generator):
        snapshot = generator.snapshot(1001, "Café Ñandú", Decimal("1"), [])
        assert HEX64.match(generator.fingerprint(snapshot).hash)

    def test_broken_hasher_raises(self, clock, broken_hasher):
        generator = FingerprintGenerator(clock=clock, hasher_factory=broken_hasher)
        snapshot = generator.snapshot(1001, "Acme", Decimal("1"), [])

        with pytest.raises(HashUnavailableError) as exc_info:
            generator.fingerprint(snapshot)

        assert exc_info.value.algorithm == "sha256"
        assert exc_info.value.code == "HASH_UNAVAILABLE"
        assert broken_hasher.calls == 1

    def test_computation_logged(self, generator, captured_logs):
        generator.fingerprint(generator.snapshot(1001, "Acme", Decimal("1"), _items()))
        logged = [r for r in captured_logs() if r["message"] == "fingerprint_computed"]
        assert logged[0]["item_count"] == 1
        assert len(logged[0]["hash_prefix"]) == 16


class TestCodePayload:

    def test_format(self, generator):
        fp = generator.fingerprint(generator.snapshot(1001, "Acme", Decimal("1"), []))
        assert code_payload(1001, fp) == f"INVOICE:1001|HASH:{fp.hash[:16]}"

    def test_accepts_plain_hash(self):
        assert code_payload(7, "a" * 64) == "INVOICE:7|HASH:" + "a" * 16
