"""
Bridges from configuration to kernel runtime objects.

The kernel never imports ``invoice_config``; this module builds kernel
objects from an ``InvoiceConfig`` instead.
"""

from __future__ import annotations

from invoice_config.schema import InvoiceConfig
from invoice_kernel.db.kv_store import KeyValueStore
from invoice_kernel.domain.clock import Clock
from invoice_kernel.domain.totals import TotalsCalculator
from invoice_kernel.services.invoice_session import InvoiceSession
from invoice_kernel.utils.hashing import HasherFactory


def build_calculator(config: InvoiceConfig) -> TotalsCalculator:
    return TotalsCalculator(config.currency_table(), config.default_tax_rate)


def build_session(
    config: InvoiceConfig,
    store: KeyValueStore | None = None,
    clock: Clock | None = None,
    hasher_factory: HasherFactory | None = None,
) -> InvoiceSession:
    """Open an InvoiceSession restored from ``store`` under ``config``."""
    return InvoiceSession(
        currencies=config.currency_table(),
        settings=config.session_settings(),
        store=store,
        clock=clock,
        hasher_factory=hasher_factory,
    )
