"""
Configuration loader (``invoice_config.loader``).

Loads a YAML settings file and parses it into ``InvoiceConfig``.  Runtime
code obtains configuration through ``invoice_config.get_active_config()``
rather than calling the loader directly.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing required keys  -> ``KeyError`` propagates.
* Invalid values (bad rate, duplicate code, tax rate out of range, ...)
  -> ``ValueError``.
"""

from __future__ import annotations

import hashlib
import json
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from invoice_config.schema import CurrencyDef, InvoiceConfig


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path, encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def parse_decimal(value: Any, field: str) -> Decimal:
    """Parse a YAML scalar as Decimal, going through str to avoid float noise."""
    if isinstance(value, bool):
        raise ValueError(f"{field} must be a number, got {value!r}")
    try:
        result = Decimal(str(value))
    except InvalidOperation as exc:
        raise ValueError(f"{field} must be a number, got {value!r}") from exc
    if not result.is_finite():
        raise ValueError(f"{field} must be finite, got {value!r}")
    return result


def parse_currency(data: dict[str, Any]) -> CurrencyDef:
    """Parse a CurrencyDef; ``code``, ``rate`` and ``symbol`` are required."""
    code = str(data["code"]).strip().upper()
    if len(code) != 3:
        raise ValueError(f"Currency code must be 3 characters: {data['code']!r}")
    rate = parse_decimal(data["rate"], f"currencies.{code}.rate")
    if rate <= 0:
        raise ValueError(f"Exchange rate for {code} must be positive: {rate}")
    symbol = data["symbol"]
    if not isinstance(symbol, str) or not symbol:
        raise ValueError(f"Currency {code} needs a non-empty symbol")
    return CurrencyDef(code=code, rate=rate, symbol=symbol, name=str(data.get("name", "")))


def parse_config(data: dict[str, Any]) -> InvoiceConfig:
    """Parse and validate a whole settings document."""
    raw_currencies = data["currencies"]
    if not isinstance(raw_currencies, list) or not raw_currencies:
        raise ValueError("currencies must be a non-empty list")
    currencies = tuple(parse_currency(c) for c in raw_currencies)

    codes = [c.code for c in currencies]
    duplicates = sorted({c for c in codes if codes.count(c) > 1})
    if duplicates:
        raise ValueError(f"Duplicate currency codes: {duplicates}")
    usd = next((c for c in currencies if c.code == "USD"), None)
    if usd is None or usd.rate != Decimal("1"):
        raise ValueError("currencies must include USD with rate 1")

    default_currency = str(data.get("default_currency", "USD")).strip().upper()
    if default_currency not in codes:
        raise ValueError(f"default_currency {default_currency} is not configured")

    default_tax_rate = parse_decimal(data.get("default_tax_rate", 13), "default_tax_rate")
    if not Decimal("0") <= default_tax_rate <= Decimal("100"):
        raise ValueError(f"default_tax_rate must be within [0, 100]: {default_tax_rate}")

    history_limit = int(data.get("history_limit", 50))
    if history_limit < 1:
        raise ValueError(f"history_limit must be at least 1: {history_limit}")

    counter_start = int(data.get("counter_start", 1001))
    if counter_start < 1:
        raise ValueError(f"counter_start must be positive: {counter_start}")

    default_client_name = str(data.get("default_client_name", "General Client")).strip()
    if not default_client_name:
        raise ValueError("default_client_name must not be blank")

    return InvoiceConfig(
        currencies=currencies,
        default_currency=default_currency,
        default_tax_rate=default_tax_rate,
        default_client_name=default_client_name,
        history_limit=history_limit,
        counter_start=counter_start,
        checksum=compute_checksum(data),
    )


def load_config(path: Path) -> InvoiceConfig:
    return parse_config(load_yaml_file(path))


def compute_checksum(data: dict[str, Any]) -> str:
    """
    SHA-256 of the canonical JSON of a settings document.

    Identical documents always produce identical checksums.
    """
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
