"""
Billing modes -- Proration of billing segments into charge cycles.

Responsibility:
    Splits a billing segment (the interval between one billing event and
    the next for the same subscription) into cycles aligned on the
    billing-cycle day, each carrying a possibly fractional cycle count.
    Strategies are looked up by ``BillingMode`` through
    ``BillingModeRegistry``; new modes register themselves with the
    ``billing_mode_strategy`` decorator instead of editing a dispatch site.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  Called by ItemGenerator.

Invariants enforced:
    - Cycle boundaries fall on the billing-cycle day, clamped to the month
      length.
    - Cycle counts are exact Decimal day ratios; full periods count 1.
    - No cycle starting after the target date is produced.

Failure modes:
    - InvalidDateSequenceError if the segment end precedes its start.
    - UnsupportedBillingModeError for a mode without a registered strategy.
    - ValueError when asked to prorate a NO_BILLING_PERIOD segment.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import ClassVar

from billing_kernel.domain.billing_event import BillingMode, BillingPeriod
from billing_kernel.domain.dates import aligned_date, shift_month
from billing_kernel.exceptions import InvalidDateSequenceError, UnsupportedBillingModeError
from billing_kernel.logging_config import get_logger

logger = get_logger("engines.billing_mode")

_ONE = Decimal("1")


@dataclass(frozen=True)
class BillingCycle:
    """One charge cycle [start_date, end_date) and its count multiplier."""

    start_date: date
    end_date: date
    cycle_count: Decimal


class BillingModeStrategy(ABC):
    """Pluggable proration algorithm for one billing mode."""

    billing_mode: ClassVar[BillingMode]

    @abstractmethod
    def compute_cycles(
        self,
        start_date: date,
        end_date: date | None,
        target_date: date,
        billing_cycle_day: int,
        billing_period: BillingPeriod,
    ) -> tuple[BillingCycle, ...]:
        """Cycles for the segment [start_date, end_date) up to target_date.

        ``end_date`` None means the segment is open ended.
        """
        ...


class BillingModeRegistry:
    """Registry of billing-mode strategies, keyed by BillingMode."""

    _strategies: ClassVar[dict[BillingMode, BillingModeStrategy]] = {}

    @classmethod
    def register(cls, strategy: BillingModeStrategy, *, replace: bool = False) -> None:
        mode = strategy.billing_mode
        if mode in cls._strategies and not replace:
            existing = cls._strategies[mode]
            raise ValueError(
                f"Billing mode already registered for {mode.value}: "
                f"{existing.__class__.__name__}"
            )
        cls._strategies[mode] = strategy

    @classmethod
    def get(cls, billing_mode: BillingMode) -> BillingModeStrategy:
        """Strategy for ``billing_mode``; fails fast when none is registered."""
        try:
            return cls._strategies[billing_mode]
        except KeyError:
            raise UnsupportedBillingModeError(
                getattr(billing_mode, "value", str(billing_mode)),
                cls.registered_modes(),
            ) from None

    @classmethod
    def has_strategy(cls, billing_mode: BillingMode) -> bool:
        return billing_mode in cls._strategies

    @classmethod
    def registered_modes(cls) -> list[str]:
        return sorted(mode.value for mode in cls._strategies)

    @classmethod
    def unregister(cls, billing_mode: BillingMode) -> None:
        cls._strategies.pop(billing_mode, None)


def billing_mode_strategy(cls: type[BillingModeStrategy]) -> type[BillingModeStrategy]:
    """Class decorator: instantiate and register a billing-mode strategy."""
    BillingModeRegistry.register(cls())
    return cls


def _boundary(anchor: date, months: int, billing_cycle_day: int) -> date:
    year, month = shift_month(anchor.year, anchor.month, months)
    return aligned_date(year, month, billing_cycle_day)


def _ratio(start: date, end: date, period_start: date, period_end: date) -> Decimal:
    return Decimal((end - start).days) / Decimal((period_end - period_start).days)


@billing_mode_strategy
class InAdvanceBillingMode(BillingModeStrategy):
    """Bills each period on its first day.

    A period is billable once its start is on or before the target date.
    A segment starting off the billing-cycle day gets a leading partial
    cycle up to the first aligned boundary; a segment ending inside a
    period gets a trailing partial cycle.
    """

    billing_mode = BillingMode.IN_ADVANCE

    def compute_cycles(
        self,
        start_date: date,
        end_date: date | None,
        target_date: date,
        billing_cycle_day: int,
        billing_period: BillingPeriod,
    ) -> tuple[BillingCycle, ...]:
        if end_date is not None and end_date < start_date:
            logger.error("billing_mode_invalid_date_sequence", extra={
                "start_date": start_date.isoformat(),
                "end_date": end_date.isoformat(),
                "target_date": target_date.isoformat(),
            })
            raise InvalidDateSequenceError(
                start_date.isoformat(), end_date.isoformat(), target_date.isoformat()
            )
        if billing_period is BillingPeriod.NO_BILLING_PERIOD:
            raise ValueError("Cannot compute cycles for NO_BILLING_PERIOD")
        if start_date == end_date or start_date > target_date:
            return ()

        months = billing_period.months
        first = aligned_date(start_date.year, start_date.month, billing_cycle_day)
        if first < start_date:
            first = _boundary(start_date, 1, billing_cycle_day)

        cycles: list[BillingCycle] = []

        if start_date < first:
            previous = _boundary(first, -months, billing_cycle_day)
            cycle_end = first if end_date is None or end_date >= first else end_date
            cycles.append(BillingCycle(
                start_date=start_date,
                end_date=cycle_end,
                cycle_count=_ratio(start_date, cycle_end, previous, first),
            ))
            if cycle_end != first:
                return tuple(cycles)

        k = 0
        while True:
            cycle_start = _boundary(first, k * months, billing_cycle_day)
            if cycle_start > target_date:
                break
            if end_date is not None and cycle_start >= end_date:
                break
            cycle_end = _boundary(first, (k + 1) * months, billing_cycle_day)
            if end_date is not None and end_date < cycle_end:
                cycles.append(BillingCycle(
                    start_date=cycle_start,
                    end_date=end_date,
                    cycle_count=_ratio(cycle_start, end_date, cycle_start, cycle_end),
                ))
                break
            cycles.append(BillingCycle(cycle_start, cycle_end, _ONE))
            k += 1

        return tuple(cycles)
