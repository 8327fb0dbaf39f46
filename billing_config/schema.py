"""
InvoiceConfig schema.

The typed, validated form of the ``invoice:`` section of a billing
configuration file.  YAML is parsed into this type by the loader; runtime
code only ever sees an ``InvoiceConfig``.
"""

from __future__ import annotations

import decimal
import logging
from dataclasses import asdict, dataclass
from decimal import ROUND_HALF_UP
from typing import Any

from billing_kernel.domain.currency import CurrencyRegistry
from billing_kernel.exceptions import InvalidInvoiceConfigError

ROUNDING_MODES = frozenset({
    decimal.ROUND_CEILING,
    decimal.ROUND_DOWN,
    decimal.ROUND_FLOOR,
    decimal.ROUND_HALF_DOWN,
    decimal.ROUND_HALF_EVEN,
    decimal.ROUND_HALF_UP,
    decimal.ROUND_UP,
})

LOG_LEVELS = frozenset({"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"})


@dataclass(frozen=True)
class InvoiceConfig:
    """Invoice generation settings.

    Attributes:
        max_months_in_future: Largest number of whole months a target date
            may lie beyond today.
        default_currency: Currency used when a caller supplies none.
        rounding: ``decimal`` rounding mode for prorated amounts.
        log_level: Level passed to ``configure_logging``.
    """

    max_months_in_future: int = 36
    default_currency: str = "USD"
    rounding: str = ROUND_HALF_UP
    log_level: str = "INFO"

    def __post_init__(self) -> None:
        if isinstance(self.max_months_in_future, bool) or not isinstance(
            self.max_months_in_future, int
        ):
            raise InvalidInvoiceConfigError(
                "max_months_in_future", self.max_months_in_future, "must be an integer"
            )
        if self.max_months_in_future < 0:
            raise InvalidInvoiceConfigError(
                "max_months_in_future", self.max_months_in_future, "must not be negative"
            )
        if not CurrencyRegistry.is_valid(str(self.default_currency).upper()):
            raise InvalidInvoiceConfigError(
                "default_currency", self.default_currency, "unknown ISO 4217 code"
            )
        object.__setattr__(self, "default_currency", self.default_currency.upper())
        if self.rounding not in ROUNDING_MODES:
            raise InvalidInvoiceConfigError(
                "rounding", self.rounding, f"expected one of {sorted(ROUNDING_MODES)}"
            )
        level = str(self.log_level).upper()
        if level not in LOG_LEVELS:
            raise InvalidInvoiceConfigError(
                "log_level", self.log_level, f"expected one of {sorted(LOG_LEVELS)}"
            )
        object.__setattr__(self, "log_level", level)

    @property
    def numeric_log_level(self) -> int:
        return logging.getLevelName(self.log_level)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)
