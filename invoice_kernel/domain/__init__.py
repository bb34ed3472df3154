"""
Pure domain layer.

Line items, totals, fingerprints and history.  No database access; time
comes from an injected Clock.
"""

from invoice_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from invoice_kernel.domain.currency import CurrencyInfo, CurrencyTable
from invoice_kernel.domain.fingerprint import (
    Fingerprint,
    FingerprintGenerator,
    InvoiceSnapshot,
    SnapshotItem,
    build_snapshot,
    code_payload,
)
from invoice_kernel.domain.history import HistoryItem, HistoryLedger, HistoryRecord
from invoice_kernel.domain.line_items import LineItem, LineItemCandidate, LineItemStore
from invoice_kernel.domain.totals import Totals, TotalsCalculator, resolve_tax_rate

__all__ = [
    "Clock",
    "DeterministicClock",
    "SystemClock",
    "CurrencyInfo",
    "CurrencyTable",
    "Fingerprint",
    "FingerprintGenerator",
    "InvoiceSnapshot",
    "SnapshotItem",
    "build_snapshot",
    "code_payload",
    "HistoryItem",
    "HistoryLedger",
    "HistoryRecord",
    "LineItem",
    "LineItemCandidate",
    "LineItemStore",
    "Totals",
    "TotalsCalculator",
    "resolve_tax_rate",
]
