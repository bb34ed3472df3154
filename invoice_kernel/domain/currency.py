"""Currency -- the closed set of invoice currencies, their rates and symbols."""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from types import MappingProxyType
from typing import Iterable, Mapping

from invoice_kernel.exceptions import UnknownCurrencyError

BASE_CURRENCY = "USD"


@dataclass(frozen=True)
class CurrencyInfo:
    """
    One selectable invoice currency.

    ``rate`` converts an amount in the base currency (USD) into this
    currency: ``converted = amount * rate``.
    """

    code: str
    rate: Decimal
    symbol: str
    name: str = ""

    def __post_init__(self) -> None:
        if not self.code or len(self.code.strip()) != 3:
            raise ValueError(f"Currency code must be 3 characters: {self.code!r}")
        object.__setattr__(self, "code", self.code.strip().upper())
        if not isinstance(self.rate, Decimal):
            object.__setattr__(self, "rate", Decimal(str(self.rate)))
        if not self.rate.is_finite() or self.rate <= 0:
            raise ValueError(f"Exchange rate for {self.code} must be positive: {self.rate}")
        if not self.symbol:
            raise ValueError(f"Currency {self.code} has no display symbol")


class CurrencyTable:
    """
    Immutable lookup of the configured currencies.

    Contract:
        Built once at process start from configuration.  Every code in the
        table has both a rate and a symbol (enforced by CurrencyInfo) and
        the base currency, when present, has rate 1.
    """

    def __init__(self, currencies: Iterable[CurrencyInfo]):
        table: dict[str, CurrencyInfo] = {}
        for info in currencies:
            if info.code in table:
                raise ValueError(f"Duplicate currency code: {info.code}")
            table[info.code] = info
        if not table:
            raise ValueError("Currency table requires at least one currency")
        base = table.get(BASE_CURRENCY)
        if base is not None and base.rate != Decimal("1"):
            raise ValueError(f"{BASE_CURRENCY} rate must be 1, got {base.rate}")
        self._currencies: Mapping[str, CurrencyInfo] = MappingProxyType(table)

    def __contains__(self, code: object) -> bool:
        return isinstance(code, str) and code.strip().upper() in self._currencies

    def __len__(self) -> int:
        return len(self._currencies)

    def get(self, code: str) -> CurrencyInfo:
        """
        Look up a currency.

        Raises:
            UnknownCurrencyError: If ``code`` is not configured.
        """
        normalized = code.strip().upper() if isinstance(code, str) else ""
        info = self._currencies.get(normalized)
        if info is None:
            raise UnknownCurrencyError(str(code), self.codes())
        return info

    def rate(self, code: str) -> Decimal:
        return self.get(code).rate

    def symbol(self, code: str) -> str:
        return self.get(code).symbol

    def codes(self) -> tuple[str, ...]:
        """Configured codes in configuration order."""
        return tuple(self._currencies)

    def convert(self, amount: Decimal, code: str) -> Decimal:
        """Convert a base-currency amount into ``code``."""
        return amount * self.rate(code)

    def format_amount(self, amount: Decimal, code: str) -> str:
        """Display string with symbol and two decimals, e.g. ``€20.79``."""
        quantized = amount.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
        return f"{self.symbol(code)}{quantized}"

