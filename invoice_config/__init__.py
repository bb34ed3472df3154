"""
invoice_config -- single public entrypoint for invoice builder settings.

Responsibility:
    ``get_active_config()`` is the only way runtime code obtains settings
    (currencies with rates and symbols, default tax rate, client-name
    placeholder, history limit, counter start).  The currency set is closed
    and configured once at process start.

Failure modes:
    - ``FileNotFoundError`` -- the settings file does not exist.
    - ``yaml.YAMLError`` -- the file is not valid YAML.
    - ``KeyError`` / ``ValueError`` -- structural or value validation
      failures.
"""

from __future__ import annotations

import logging
from pathlib import Path

from invoice_config.bridges import build_calculator, build_session
from invoice_config.loader import compute_checksum, load_config, parse_config
from invoice_config.schema import CurrencyDef, InvoiceConfig

_logger = logging.getLogger("invoice_kernel.config")

DEFAULT_CONFIG_PATH = Path(__file__).parent / "defaults.yaml"


def get_active_config(config_path: Path | str | None = None) -> InvoiceConfig:
    """
    Load and validate the settings file.

    Args:
        config_path: Override path; defaults to the bundled defaults.yaml.
    """
    path = Path(config_path) if config_path is not None else DEFAULT_CONFIG_PATH
    config = load_config(path)
    _logger.info(
        "INVOICE_CONFIG_TRACE",
        extra={
            "config_path": str(path),
            "checksum": config.checksum,
            "currencies": [c.code for c in config.currencies],
            "history_limit": config.history_limit,
        },
    )
    return config


__all__ = [
    "CurrencyDef",
    "build_calculator",
    "build_session",
    "InvoiceConfig",
    "DEFAULT_CONFIG_PATH",
    "compute_checksum",
    "get_active_config",
    "parse_config",
]
