"""
Totals -- subtotal, tax, total and converted total for a list of items.

Pure functions of their inputs.  Amounts are Decimal end to end and are
never display-rounded here; rounding to two places is a rendering concern
(see ``CurrencyTable.format_amount``).
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable

from invoice_kernel.domain.currency import CurrencyTable
from invoice_kernel.domain.line_items import LineItem

DEFAULT_TAX_RATE = Decimal("13")
MIN_TAX_RATE = Decimal("0")
MAX_TAX_RATE = Decimal("100")


@dataclass(frozen=True, slots=True)
class Totals:
    """Derived, non-persisted invoice totals."""

    subtotal: Decimal
    tax: Decimal
    total: Decimal
    converted_total: Decimal
    currency: str
    tax_rate_percent: Decimal


def resolve_tax_rate(raw: Any, default: Decimal = DEFAULT_TAX_RATE) -> Decimal:
    """
    Read a tax rate percentage from untrusted input.

    Absent, blank or non-numeric input yields ``default``; anything else is
    clamped into [0, 100].
    """
    if raw is None or isinstance(raw, bool):
        return default
    if isinstance(raw, Decimal):
        rate = raw
    else:
        text = str(raw).strip()
        if not text:
            return default
        try:
            rate = Decimal(text)
        except InvalidOperation:
            return default
    if rate.is_nan():
        return default
    if rate < MIN_TAX_RATE:
        return MIN_TAX_RATE
    if rate > MAX_TAX_RATE:
        return MAX_TAX_RATE
    return rate


def subtotal_of(items: Iterable[LineItem]) -> Decimal:
    """Sum of quantity * unit price, accumulated in list order."""
    subtotal = Decimal("0")
    for item in items:
        subtotal += item.quantity * item.unit_price
    return subtotal


class TotalsCalculator:
    """
    Computes Totals against a fixed currency table.

    Contract:
        ``compute`` has no side effects and may be called any number of
        times.

    Raises:
        UnknownCurrencyError: From ``compute`` when the currency is not
            configured.
    """

    def __init__(self, currencies: CurrencyTable, default_tax_rate: Decimal = DEFAULT_TAX_RATE):
        self._currencies = currencies
        self._default_tax_rate = default_tax_rate

    @property
    def currencies(self) -> CurrencyTable:
        return self._currencies

    def compute(self, items: Iterable[LineItem], tax_rate_percent: Any, currency: str) -> Totals:
        info = self._currencies.get(currency)
        rate = resolve_tax_rate(tax_rate_percent, self._default_tax_rate)

        subtotal = subtotal_of(items)
        tax = subtotal * rate / 100
        total = subtotal + tax
        return Totals(
            subtotal=subtotal,
            tax=tax,
            total=total,
            converted_total=total * info.rate,
            currency=info.code,
            tax_rate_percent=rate,
        )
