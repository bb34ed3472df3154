"""
InvoiceSession -- owns the invoice being built and finalizes it.

Responsibility:
    Holds the LineItemStore, the invoice counter and the HistoryLedger for
    one user session.  Restores counter and history from the key-value
    store on construction and writes them back on every committed change.

Lifecycle:
    BUILDING (initial) --finalize()--> FINALIZING --> BUILDING

    Finalize computes totals, snapshots and fingerprints the invoice,
    appends a HistoryRecord, clears the items and advances the counter.
    ``regenerate(index)`` reloads a history record into BUILDING state.

Invariants enforced:
    - Finalize is all-or-nothing: if totals, fingerprinting or persistence
      fail, items, counter and history are left exactly as they were.
    - The counter only moves forward and is advanced once per newly
      numbered invoice.  Re-finalizing a regenerated invoice keeps its
      original number and does not consume a new one.
    - While a finalize is in flight it holds the session lock; other
      threads wait, and re-entrant mutation raises SessionBusyError.

Failure modes:
    - ValidationError from add_item and the client_name / fiscal_field
      setters (state unchanged).
    - UnknownCurrencyError, HashUnavailableError from finalize / preview.
    - HistoryIndexError from regenerate / history_record / delete_history.
    - SessionBusyError for mutation during finalization, including
      assignment to client_name or fiscal_field.
    - Corrupted persisted history is logged and replaced by an empty
      ledger; a corrupted counter falls back to ``counter_start``.
"""

from __future__ import annotations

import threading
from contextlib import ExitStack
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID, uuid4

from invoice_kernel.db.kv_store import (
    INVOICE_HISTORY_KEY,
    INVOICE_NUMBER_KEY,
    InMemoryKeyValueStore,
    KeyValueStore,
)
from invoice_kernel.domain.clock import Clock, SystemClock
from invoice_kernel.domain.currency import CurrencyTable
from invoice_kernel.domain.fingerprint import (
    DEFAULT_CLIENT_NAME,
    Fingerprint,
    FingerprintGenerator,
    code_payload,
)
from invoice_kernel.domain.history import (
    DEFAULT_HISTORY_LIMIT,
    HistoryItem,
    HistoryLedger,
    HistoryRecord,
)
from invoice_kernel.domain.line_items import (
    LineItem,
    LineItemCandidate,
    LineItemStore,
    is_encodable,
)
from invoice_kernel.domain.totals import DEFAULT_TAX_RATE, Totals, TotalsCalculator
from invoice_kernel.exceptions import DeserializationError, SessionBusyError, ValidationError
from invoice_kernel.logging_config import LogContext, get_logger
from invoice_kernel.utils.hashing import HasherFactory

logger = get_logger("services.invoice_session")


class SessionState(str, Enum):
    BUILDING = "building"
    FINALIZING = "finalizing"


@dataclass(frozen=True)
class SessionSettings:
    """Settings the session needs from configuration."""

    default_currency: str = "USD"
    default_tax_rate: Decimal = DEFAULT_TAX_RATE
    default_client_name: str = DEFAULT_CLIENT_NAME
    history_limit: int = DEFAULT_HISTORY_LIMIT
    counter_start: int = 1001


@dataclass(frozen=True)
class InvoicePreview:
    """Live totals and fingerprint of the invoice being built."""

    invoice_number: int
    totals: Totals
    fingerprint: Fingerprint
    code_payload: str


@dataclass(frozen=True)
class FinalizedInvoice:
    """Everything the document collaborator needs for one finalized invoice."""

    record: HistoryRecord
    totals: Totals
    fingerprint: Fingerprint
    items: tuple[LineItem, ...]
    code_payload: str

    @property
    def invoice_number(self) -> int:
        return self.record.invoice_number


class InvoiceSession:
    """
    Orchestrates building, finalizing and regenerating invoices.

    Args:
        currencies: The configured currency table.
        settings: Defaults for currency, tax rate, client name, history
            limit and counter start.
        store: Persistence collaborator.  Defaults to an in-memory store.
        clock: Time source for fingerprints and history dates.
        hasher_factory: SHA-256 provider handed to the FingerprintGenerator.
    """

    def __init__(
        self,
        currencies: CurrencyTable,
        settings: SessionSettings | None = None,
        store: KeyValueStore | None = None,
        clock: Clock | None = None,
        hasher_factory: HasherFactory | None = None,
    ):
        self._settings = settings or SessionSettings()
        self._store = store if store is not None else InMemoryKeyValueStore()
        self._clock = clock or SystemClock()
        self._calculator = TotalsCalculator(currencies, self._settings.default_tax_rate)
        self._generator = FingerprintGenerator(
            clock=self._clock,
            hasher_factory=hasher_factory,
            default_client_name=self._settings.default_client_name,
        )
        self._items = LineItemStore()
        self._ledger = HistoryLedger(limit=self._settings.history_limit)
        self._lock = threading.RLock()
        self._state = SessionState.BUILDING
        self._session_id = str(uuid4())

        self._client_name = ""
        self._fiscal_field = ""

        self._next_number = self._settings.counter_start
        self._restore()
        self._invoice_number = self._next_number

    # ------------------------------------------------------------------
    # Read access
    # ------------------------------------------------------------------

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def session_id(self) -> str:
        return self._session_id

    @property
    def client_name(self) -> str:
        """Client name as entered; blank means the configured placeholder."""
        return self._client_name

    @client_name.setter
    def client_name(self, value: str | None) -> None:
        with self._lock:
            self._ensure_building("set the client name")
            self._client_name = self._checked_text("client_name", value)

    @property
    def fiscal_field(self) -> str:
        return self._fiscal_field

    @fiscal_field.setter
    def fiscal_field(self, value: str | None) -> None:
        with self._lock:
            self._ensure_building("set the fiscal field")
            self._fiscal_field = self._checked_text("fiscal_field", value)

    @property
    def invoice_number(self) -> int:
        """Number of the invoice currently being built."""
        return self._invoice_number

    @property
    def next_invoice_number(self) -> int:
        """Persisted counter: the next number a new invoice will receive."""
        return self._next_number

    @property
    def is_regenerating(self) -> bool:
        return self._invoice_number != self._next_number

    @property
    def currencies(self) -> CurrencyTable:
        return self._calculator.currencies

    @property
    def has_unsaved_items(self) -> bool:
        return not self._items.is_empty

    def items(self) -> tuple[LineItem, ...]:
        return self._items.list()

    def history(self) -> tuple[HistoryRecord, ...]:
        return self._ledger.list()

    def history_record(self, index: int) -> HistoryRecord:
        return self._ledger.get(index)

    # ------------------------------------------------------------------
    # Building
    # ------------------------------------------------------------------

    def add_item(self, name: Any, quantity: Any, unit_price: Any) -> LineItem:
        """Validate raw field values and add the item."""
        return self.add(LineItemCandidate(name=name, quantity=quantity, unit_price=unit_price))

    def add(self, candidate: LineItemCandidate) -> LineItem:
        with self._lock:
            self._ensure_building("add an item")
            with LogContext.bind(session_id=self._session_id):
                return self._items.add(candidate)

    def remove_item(self, item_id: UUID | str) -> None:
        with self._lock:
            self._ensure_building("remove an item")
            self._items.remove(item_id)

    def totals(self, tax_rate: Any = None, currency: str | None = None) -> Totals:
        return self._calculator.compute(
            self._items.list(), tax_rate, currency or self._settings.default_currency
        )

    def preview(self, tax_rate: Any = None, currency: str | None = None) -> InvoicePreview:
        """
        Totals plus a fingerprint of the current build state.

        Nothing is stored; each call yields a fresh timestamped fingerprint.
        """
        with self._lock:
            items = self._items.list()
            totals = self._calculator.compute(
                items, tax_rate, currency or self._settings.default_currency
            )
            snapshot = self._generator.snapshot(
                self._invoice_number, self._client_name, totals.total, items
            )
            fingerprint = self._generator.fingerprint(snapshot)
            return InvoicePreview(
                invoice_number=self._invoice_number,
                totals=totals,
                fingerprint=fingerprint,
                code_payload=code_payload(self._invoice_number, fingerprint),
            )

    # ------------------------------------------------------------------
    # Finalizing
    # ------------------------------------------------------------------

    def finalize(self, tax_rate: Any = None, currency: str | None = None) -> FinalizedInvoice:
        """
        Turn the current build state into a history record.

        Raises:
            UnknownCurrencyError: If ``currency`` is not configured.
            HashUnavailableError: If the invoice cannot be fingerprinted.
            SessionBusyError: If called re-entrantly during a finalize.
        """
        with self._lock:
            self._ensure_building("finalize")
            self._state = SessionState.FINALIZING
            number = self._invoice_number
            try:
                with LogContext.bind(session_id=self._session_id, invoice_number=str(number)):
                    return self._finalize(number, tax_rate, currency)
            finally:
                self._state = SessionState.BUILDING

    def _finalize(self, number: int, tax_rate: Any, currency: str | None) -> FinalizedInvoice:
        items = self._items.list()
        with ExitStack() as log_scope:
            try:
                totals = self._calculator.compute(
                    items, tax_rate, currency or self._settings.default_currency
                )
                snapshot = self._generator.snapshot(number, self._client_name, totals.total, items)
                fingerprint = self._generator.fingerprint(snapshot)
                log_scope.enter_context(LogContext.bind(fingerprint=fingerprint.hash))

                record = HistoryRecord(
                    invoice_number=number,
                    client_name=snapshot.client_name,
                    fiscal_field=self._fiscal_field,
                    total=totals.total,
                    currency=totals.currency,
                    converted_total=totals.converted_total,
                    date=self._clock.display_date(),
                    fingerprint=fingerprint.hash,
                    timestamp=fingerprint.timestamp,
                    items=tuple(HistoryItem.from_line_item(item) for item in items),
                )

                staged = HistoryLedger(limit=self._ledger.limit, records=self._ledger.list())
                staged.append(record)
                next_number = max(self._next_number, number + 1)

                # Counter first: a failure between the two writes leaves a gap,
                # never a reusable number.
                self._store.set(INVOICE_NUMBER_KEY, str(next_number).encode("ascii"))
                self._store.set(INVOICE_HISTORY_KEY, staged.save())
            except Exception as exc:
                logger.warning(
                    "finalize_aborted",
                    extra={"reason": type(exc).__name__, "item_count": len(items)},
                    exc_info=True,
                )
                raise

            # Commit point: nothing below can fail.
            self._ledger = staged
            self._items.clear()
            self._next_number = next_number
            self._invoice_number = next_number

            logger.info(
                "invoice_finalized",
                extra={
                    "finalized_invoice": number,
                    "item_count": len(items),
                    "total": totals.total,
                    "currency": totals.currency,
                    "next_invoice_number": next_number,
                },
            )
            return FinalizedInvoice(
                record=record,
                totals=totals,
                fingerprint=fingerprint,
                items=items,
                code_payload=code_payload(number, fingerprint),
            )

    # ------------------------------------------------------------------
    # History operations
    # ------------------------------------------------------------------

    def regenerate(self, index: int) -> HistoryRecord:
        """
        Load a history record back into the build state.

        Current items are overwritten; warning the user about unsaved
        items is the caller's job (see ``has_unsaved_items``).
        """
        with self._lock:
            self._ensure_building("regenerate an invoice")
            record = self._ledger.get(index)
            discarded = len(self._items)
            self._items.replace_all(
                LineItem(id=uuid4(), name=item.name, quantity=item.quantity, unit_price=item.unit_price)
                for item in record.items
            )
            self._invoice_number = record.invoice_number
            self._client_name = record.client_name
            self._fiscal_field = record.fiscal_field
            logger.info(
                "invoice_regenerated",
                extra={
                    "session_id": self._session_id,
                    "regenerated_invoice": record.invoice_number,
                    "discarded_items": discarded,
                },
            )
            return record

    def delete_history(self, index: int) -> HistoryRecord:
        with self._lock:
            self._ensure_building("delete a history record")
            staged = HistoryLedger(limit=self._ledger.limit, records=self._ledger.list())
            record = staged.delete(index)
            self._store.set(INVOICE_HISTORY_KEY, staged.save())
            self._ledger = staged
            return record

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _ensure_building(self, operation: str) -> None:
        if self._state is not SessionState.BUILDING:
            raise SessionBusyError(operation)

    @staticmethod
    def _checked_text(field: str, value: str | None) -> str:
        if value is None:
            return ""
        if not isinstance(value, str):
            raise ValidationError([{"field": field, "message": "Must be text", "value": value}])
        if not is_encodable(value):
            raise ValidationError([
                {"field": field, "message": "Contains invalid characters", "value": value},
            ])
        return value

    def _restore(self) -> None:
        raw_history = self._store.get(INVOICE_HISTORY_KEY)
        if raw_history is not None:
            try:
                self._ledger.load(raw_history)
            except DeserializationError as exc:
                logger.warning(
                    "history_load_failed",
                    extra={"reason": exc.reason, "session_id": self._session_id},
                )
                self._ledger.clear()

        raw_counter = self._store.get(INVOICE_NUMBER_KEY)
        if raw_counter is not None:
            try:
                counter = int(raw_counter.decode("ascii").strip())
                if counter < 1:
                    raise ValueError(f"non-positive counter {counter}")
                self._next_number = counter
            except (UnicodeDecodeError, ValueError) as exc:
                logger.warning(
                    "counter_load_failed",
                    extra={"reason": str(exc), "fallback": self._next_number},
                )

        # Never hand out a number already present in history.
        highest = max((r.invoice_number for r in self._ledger.list()), default=0)
        self._next_number = max(self._next_number, highest + 1)

        logger.info(
            "session_restored",
            extra={
                "session_id": self._session_id,
                "next_invoice_number": self._next_number,
                "history_size": len(self._ledger),
            },
        )
