"""
Invoice configuration schema.

YAML files are parsed by the loader into these frozen dataclasses; the
bridge methods turn them into the kernel's runtime objects.  The kernel
never imports from ``invoice_config``.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from invoice_kernel.domain.currency import CurrencyInfo, CurrencyTable
from invoice_kernel.services.invoice_session import SessionSettings


@dataclass(frozen=True)
class CurrencyDef:
    """One selectable currency: rate relative to USD and display symbol."""

    code: str
    rate: Decimal
    symbol: str
    name: str = ""


@dataclass(frozen=True)
class InvoiceConfig:
    """Process-wide settings, fixed at start-up."""

    currencies: tuple[CurrencyDef, ...]
    default_currency: str = "USD"
    default_tax_rate: Decimal = Decimal("13")
    default_client_name: str = "General Client"
    history_limit: int = 50
    counter_start: int = 1001
    checksum: str = ""

    def currency_table(self) -> CurrencyTable:
        return CurrencyTable(
            CurrencyInfo(code=c.code, rate=c.rate, symbol=c.symbol, name=c.name)
            for c in self.currencies
        )

    def session_settings(self) -> SessionSettings:
        return SessionSettings(
            default_currency=self.default_currency,
            default_tax_rate=self.default_tax_rate,
            default_client_name=self.default_client_name,
            history_limit=self.history_limit,
            counter_start=self.counter_start,
        )
