"""
Fingerprint -- tamper-evidence hash over an invoice snapshot.

Responsibility:
    Builds the canonical snapshot of an invoice (economically meaningful
    content only, no item ids) and hashes it together with the time of
    the call.

Invariants enforced:
    - The hash is SHA-256 over the UTF-8 canonical JSON of
      ``{invoiceNumber, clientName, total, timestamp, items}``, rendered as
      64 lowercase hex characters.
    - The timestamp is part of the hashed payload, so fingerprinting the
      same snapshot at two moments gives two different fingerprints.

Failure modes:
    - HashUnavailableError when the hash primitive cannot be used.  There
      is no fallback digest.

Non-goals:
    - Attests content, not authorship.  No signing, no external ledger.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Iterable

from invoice_kernel.domain.clock import Clock, SystemClock
from invoice_kernel.domain.line_items import LineItem
from invoice_kernel.logging_config import get_logger
from invoice_kernel.utils.hashing import HasherFactory, hash_payload

logger = get_logger("domain.fingerprint")

DEFAULT_CLIENT_NAME = "General Client"
CODE_HASH_PREFIX_LENGTH = 16


@dataclass(frozen=True, slots=True)
class SnapshotItem:
    name: str
    quantity: Decimal
    unit_price: Decimal


@dataclass(frozen=True, slots=True)
class InvoiceSnapshot:
    """Immutable fingerprint input built at finalization time."""

    invoice_number: int
    client_name: str
    total: Decimal
    items: tuple[SnapshotItem, ...]

    def to_payload(self) -> dict[str, Any]:
        """Field names as persisted by earlier releases of the builder."""
        return {
            "invoiceNumber": self.invoice_number,
            "clientName": self.client_name,
            "total": self.total,
            "items": [
                {"name": item.name, "quantity": item.quantity, "price": item.unit_price}
                for item in self.items
            ],
        }


@dataclass(frozen=True, slots=True)
class Fingerprint:
    """A computed hash and the timestamp that was mixed into it."""

    hash: str
    timestamp: str
    snapshot: InvoiceSnapshot

    @property
    def short(self) -> str:
        """Prefix carried by the scannable code."""
        return self.hash[:CODE_HASH_PREFIX_LENGTH]

    def __str__(self) -> str:
        return self.hash


def build_snapshot(
    invoice_number: int,
    client_name: str | None,
    total: Decimal,
    items: Iterable[LineItem],
    default_client_name: str = DEFAULT_CLIENT_NAME,
) -> InvoiceSnapshot:
    """Construct a snapshot, substituting the placeholder for a blank client."""
    if isinstance(invoice_number, bool) or not isinstance(invoice_number, int) or invoice_number < 1:
        raise ValueError(f"Invoice number must be a positive integer: {invoice_number!r}")
    name = (client_name or "").strip() or default_client_name
    return InvoiceSnapshot(
        invoice_number=invoice_number,
        client_name=name,
        total=total,
        items=tuple(
            SnapshotItem(name=item.name, quantity=item.quantity, unit_price=item.unit_price)
            for item in items
        ),
    )


def code_payload(invoice_number: int, fingerprint: Fingerprint | str) -> str:
    """Short string encoded into the scannable code image."""
    digest = fingerprint.hash if isinstance(fingerprint, Fingerprint) else fingerprint
    return f"INVOICE:{invoice_number}|HASH:{digest[:CODE_HASH_PREFIX_LENGTH]}"


class FingerprintGenerator:
    """
    Builds snapshots and fingerprints them.

    Contract:
        ``snapshot`` is pure.  ``fingerprint`` reads the clock once and
        hashes; it is blocking and has no side effects besides logging.

    Args:
        clock: Time source for the mixed-in timestamp.
        hasher_factory: Source of SHA-256 hash objects.  Tests inject a
            failing factory to exercise HashUnavailableError.
        default_client_name: Placeholder for a blank client name.
    """

    def __init__(
        self,
        clock: Clock | None = None,
        hasher_factory: HasherFactory | None = None,
        default_client_name: str = DEFAULT_CLIENT_NAME,
    ):
        self._clock = clock or SystemClock()
        self._hasher_factory = hasher_factory
        self._default_client_name = default_client_name

    def snapshot(
        self,
        invoice_number: int,
        client_name: str | None,
        total: Decimal,
        items: Iterable[LineItem],
    ) -> InvoiceSnapshot:
        return build_snapshot(
            invoice_number, client_name, total, items, self._default_client_name
        )

    def fingerprint(self, snapshot: InvoiceSnapshot) -> Fingerprint:
        """
        Hash ``snapshot`` together with the current timestamp.

        Raises:
            HashUnavailableError: If hashing cannot be performed.
        """
        timestamp = self._clock.timestamp()
        payload = snapshot.to_payload()
        payload["timestamp"] = timestamp
        digest = hash_payload(payload, self._hasher_factory)
        logger.debug(
            "fingerprint_computed",
            extra={
                "invoice_number": snapshot.invoice_number,
                "item_count": len(snapshot.items),
                "hash_prefix": digest[:CODE_HASH_PREFIX_LENGTH],
            },
        )
        return Fingerprint(hash=digest, timestamp=timestamp, snapshot=snapshot)
