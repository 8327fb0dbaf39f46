"""
billing_services.bootstrap -- Process-level wiring of the invoicing service.

Responsibility:
    One call for applications that do not assemble the service by hand:
    resolve the invoice configuration, configure structured logging at the
    configured ``log_level``, and return a ready ``InvoiceAssembler``.

Failure modes:
    - Propagates FileNotFoundError / InvalidInvoiceConfigError from
      ``get_invoice_config``.
"""

from __future__ import annotations

import logging
from pathlib import Path

from billing_config import get_invoice_config
from billing_kernel.domain.clock import Clock, SystemClock
from billing_kernel.logging_config import configure_logging, get_logger
from billing_services.invoice_assembler import InvoiceAssembler

logger = get_logger("services.bootstrap")


def init_invoicing(
    config_path: Path | str | None = None,
    clock: Clock | None = None,
    handler: logging.Handler | None = None,
) -> InvoiceAssembler:
    """Load configuration, configure logging and build the assembler.

    Logging is configured once per process; a second call keeps the
    handler and level set by the first.
    """
    config = get_invoice_config(config_path)
    configure_logging(level=config.numeric_log_level, handler=handler)
    logger.info(
        "invoicing_initialized",
        extra={
            "log_level": config.log_level,
            "max_months_in_future": config.max_months_in_future,
            "default_currency": config.default_currency,
        },
    )
    return InvoiceAssembler(clock=clock or SystemClock(), config=config)
