"""
billing_config -- single public entrypoint for invoice configuration.

Responsibility:
    Provides the only way to obtain invoice settings at runtime through
    ``get_invoice_config()``.  Services receive the returned
    ``InvoiceConfig`` by injection and never read files or environment
    variables themselves.

Architecture position:
    Configuration -- sits above ``billing_kernel`` and below
    ``billing_services``.  The kernel and engines never import from here.

Failure modes:
    - ``FileNotFoundError`` -- the configured file does not exist.
    - ``InvalidInvoiceConfigError`` -- the file's ``invoice:`` section is
      malformed or holds an invalid value.

Audit relevance:
    Every successful ``get_invoice_config()`` call emits a
    ``BILLING_CONFIG_TRACE`` record with the source path and checksum, tying
    each generated invoice to the settings that governed it.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from billing_config.loader import compute_checksum, load_invoice_config
from billing_config.schema import InvoiceConfig

_logger = logging.getLogger("billing_kernel.config")

CONFIG_PATH_ENV = "BILLING_INVOICE_CONFIG"
DEFAULT_CONFIG_PATH = Path(__file__).parent / "defaults.yaml"


def get_invoice_config(config_path: Path | str | None = None) -> InvoiceConfig:
    """The public configuration entrypoint.

    Resolution order: ``config_path`` argument, then the
    ``BILLING_INVOICE_CONFIG`` environment variable, then the packaged
    ``defaults.yaml``.
    """
    if config_path is not None:
        path, source = Path(config_path), "argument"
    elif os.environ.get(CONFIG_PATH_ENV):
        path, source = Path(os.environ[CONFIG_PATH_ENV]), "environment"
    else:
        path, source = DEFAULT_CONFIG_PATH, "defaults"

    config = load_invoice_config(path)

    _logger.info(
        "BILLING_CONFIG_TRACE",
        extra={
            "trace_type": "BILLING_CONFIG_TRACE",
            "config_path": str(path),
            "config_source": source,
            "checksum": compute_checksum(config.to_dict()),
            "max_months_in_future": config.max_months_in_future,
            "default_currency": config.default_currency,
        },
    )
    return config


__all__ = [
    "CONFIG_PATH_ENV",
    "DEFAULT_CONFIG_PATH",
    "InvoiceConfig",
    "get_invoice_config",
    "load_invoice_config",
]
