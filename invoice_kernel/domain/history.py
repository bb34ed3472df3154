"""
History -- bounded, most-recent-first ledger of finalized invoices.

Responsibility:
    Keeps up to ``limit`` finalized invoices (default 50) for review and
    regeneration, and round-trips them through bytes for the persistence
    collaborator.

Invariants enforced:
    - ``len(ledger) <= limit`` after every operation.
    - Order is most-recent-first; ``append`` inserts at the head and evicts
      from the tail.
    - ``delete`` removes exactly one record and keeps the others' order.
    - Records are frozen and hold copies of item values, independent of
      any live LineItemStore.
    - ``load`` replaces the in-memory records only after the whole payload
      decoded; a failed load leaves the ledger as it was.

Failure modes:
    - HistoryIndexError (also an IndexError) for out-of-range indices.
    - DeserializationError for undecodable payloads, including records
      whose items would not pass LineItemStore validation (blank name,
      non-positive or out-of-range quantity or price).

Serialized form:
    UTF-8 JSON array, one object per record, using the keys the browser
    builder stored (``invoiceNumber``, ``clientName``, ``fiscalField``,
    ``total``, ``currency``, ``convertedTotal``, ``date``, ``hash``,
    ``timestamp``, ``items[{id, name, quantity, price}]``).  Amounts are
    written as decimal strings and read back from strings or numbers.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable, Iterator

from invoice_kernel.domain.line_items import LineItem, amount_within_bounds, is_encodable
from invoice_kernel.exceptions import DeserializationError, HistoryIndexError
from invoice_kernel.logging_config import get_logger
from invoice_kernel.utils.hashing import json_default

logger = get_logger("domain.history")

DEFAULT_HISTORY_LIMIT = 50


@dataclass(frozen=True, slots=True)
class HistoryItem:
    """Copy of a line item as it stood when the invoice was finalized."""

    id: str
    name: str
    quantity: Decimal
    unit_price: Decimal

    @classmethod
    def from_line_item(cls, item: LineItem) -> HistoryItem:
        return cls(id=str(item.id), name=item.name, quantity=item.quantity, unit_price=item.unit_price)


@dataclass(frozen=True, slots=True)
class HistoryRecord:
    invoice_number: int
    client_name: str
    total: Decimal
    currency: str
    converted_total: Decimal
    date: str
    fingerprint: str | None
    timestamp: str | None
    items: tuple[HistoryItem, ...]
    fiscal_field: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "invoiceNumber": self.invoice_number,
            "clientName": self.client_name,
            "fiscalField": self.fiscal_field,
            "total": self.total,
            "currency": self.currency,
            "convertedTotal": self.converted_total,
            "date": self.date,
            "hash": self.fingerprint,
            "timestamp": self.timestamp,
            "items": [
                {
                    "id": item.id,
                    "name": item.name,
                    "quantity": item.quantity,
                    "price": item.unit_price,
                }
                for item in self.items
            ],
        }

    @classmethod
    def from_dict(cls, data: Any) -> HistoryRecord:
        """
        Decode one persisted record.

        Raises:
            ValueError, KeyError, TypeError: On malformed input.
        """
        if not isinstance(data, dict):
            raise TypeError(f"record must be an object, got {type(data).__name__}")
        invoice_number = data["invoiceNumber"]
        if isinstance(invoice_number, bool) or not isinstance(invoice_number, int):
            raise TypeError(f"invoiceNumber must be an integer: {invoice_number!r}")
        raw_items = data.get("items", [])
        if not isinstance(raw_items, list):
            raise TypeError("items must be a list")
        items = []
        for raw in raw_items:
            if not isinstance(raw, dict):
                raise TypeError("item must be an object")
            items.append(HistoryItem(
                id=str(raw.get("id", "")),
                name=_require_item_name(raw),
                quantity=_to_positive_decimal(raw, "quantity"),
                unit_price=_to_positive_decimal(raw, "price"),
            ))
        return cls(
            invoice_number=invoice_number,
            client_name=_require_str(data, "clientName"),
            fiscal_field=_require_str(data, "fiscalField") if data.get("fiscalField") else "",
            total=_to_decimal(data["total"]),
            currency=_require_str(data, "currency"),
            converted_total=_to_decimal(data["convertedTotal"]),
            date=_require_str(data, "date"),
            fingerprint=data.get("hash"),
            timestamp=data.get("timestamp"),
            items=tuple(items),
        )


def _require_str(data: dict, key: str) -> str:
    value = data[key]
    if not isinstance(value, str):
        raise TypeError(f"{key} must be a string: {value!r}")
    if not is_encodable(value):
        raise ValueError(f"{key} is not valid text: {value!r}")
    return value


def _require_item_name(raw: dict) -> str:
    """Stored items obey the same name rule as LineItemStore.add."""
    name = _require_str(raw, "name")
    if not name.strip():
        raise ValueError("item name is blank")
    return name


def _to_positive_decimal(raw: dict, key: str) -> Decimal:
    result = _to_decimal(raw[key])
    if result <= 0:
        raise ValueError(f"item {key} must be greater than 0: {result}")
    if not amount_within_bounds(result):
        raise ValueError(f"item {key} is out of range: {result}")
    return result


def _to_decimal(value: Any) -> Decimal:
    if isinstance(value, bool) or not isinstance(value, (int, float, str, Decimal)):
        raise TypeError(f"expected a number, got {value!r}")
    try:
        result = Decimal(str(value))
    except InvalidOperation as exc:
        raise ValueError(f"not a number: {value!r}") from exc
    if not result.is_finite():
        raise ValueError(f"not a finite number: {value!r}")
    return result


class HistoryLedger:
    """
    Most-recent-first ledger of HistoryRecords.

    Contract:
        ``append`` / ``delete`` / ``load`` are the only mutators.  Negative
        indices are out of range (no Python-style wraparound).
    """

    def __init__(self, limit: int = DEFAULT_HISTORY_LIMIT, records: Iterable[HistoryRecord] = ()):
        if limit < 1:
            raise ValueError(f"History limit must be at least 1: {limit}")
        self._limit = limit
        self._records: list[HistoryRecord] = list(records)[:limit]

    @property
    def limit(self) -> int:
        return self._limit

    def append(self, record: HistoryRecord) -> None:
        """Insert at the head, then evict from the tail down to the limit."""
        self._records.insert(0, record)
        evicted = len(self._records) - self._limit
        if evicted > 0:
            del self._records[self._limit:]
            logger.info(
                "history_trimmed",
                extra={"evicted": evicted, "limit": self._limit},
            )

    def list(self) -> tuple[HistoryRecord, ...]:
        return tuple(self._records)

    def get(self, index: int) -> HistoryRecord:
        self._check_index(index)
        return self._records[index]

    def delete(self, index: int) -> HistoryRecord:
        """Remove and return the record at ``index``."""
        self._check_index(index)
        record = self._records.pop(index)
        logger.info(
            "history_record_deleted",
            extra={"index": index, "deleted_invoice": record.invoice_number},
        )
        return record

    def clear(self) -> None:
        self._records = []

    def save(self) -> bytes:
        """Serialize all records, most recent first."""
        data = [record.to_dict() for record in self._records]
        return json.dumps(data, default=json_default, ensure_ascii=False).encode("utf-8")

    def load(self, payload: bytes | str) -> tuple[HistoryRecord, ...]:
        """
        Replace the ledger contents with the decoded ``payload``.

        Records beyond the limit are dropped from the tail.

        Raises:
            DeserializationError: If the payload cannot be decoded.  The
                ledger keeps its previous contents.
        """
        try:
            text = payload.decode("utf-8") if isinstance(payload, bytes) else payload
            data = json.loads(text)
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise DeserializationError(str(exc)) from exc
        if not isinstance(data, list):
            raise DeserializationError(f"expected a list of records, got {type(data).__name__}")

        records = []
        for position, raw in enumerate(data):
            try:
                records.append(HistoryRecord.from_dict(raw))
            except (KeyError, TypeError, ValueError) as exc:
                raise DeserializationError(f"record {position}: {exc!r}") from exc

        self._records = records[: self._limit]
        return tuple(self._records)

    def _check_index(self, index: int) -> None:
        if isinstance(index, bool) or not isinstance(index, int) or not 0 <= index < len(self._records):
            raise HistoryIndexError(index, len(self._records))

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[HistoryRecord]:
        return iter(tuple(self._records))
