"""
BillingEvent -- Immutable record of a billing-relevant subscription change.

Responsibility:
    Carries everything the item generator needs about one subscription
    transition: plan/phase identity, effective instant and timezone,
    billing-cycle day, billing period, prices and billing mode.

Architecture position:
    Kernel > Domain -- pure value objects, zero I/O.
    Produced upstream by the subscription state machine; consumed by
    BillingEventTimeline and the engines.

Invariants enforced:
    - effective_date is timezone aware.
    - billing_cycle_day_local is within 1..31.
    - prices are Decimal (never float) when present.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

from billing_kernel.domain.dates import local_date


class BillingPeriod(str, Enum):
    """Recurring billing period, with its length in months."""

    MONTHLY = "MONTHLY"
    QUARTERLY = "QUARTERLY"
    BIANNUAL = "BIANNUAL"
    ANNUAL = "ANNUAL"
    BIENNIAL = "BIENNIAL"
    NO_BILLING_PERIOD = "NO_BILLING_PERIOD"

    @property
    def months(self) -> int:
        return _PERIOD_MONTHS[self]


_PERIOD_MONTHS = {
    BillingPeriod.MONTHLY: 1,
    BillingPeriod.QUARTERLY: 3,
    BillingPeriod.BIANNUAL: 6,
    BillingPeriod.ANNUAL: 12,
    BillingPeriod.BIENNIAL: 24,
    BillingPeriod.NO_BILLING_PERIOD: 0,
}


class BillingMode(str, Enum):
    """When a recurring period is billed relative to the service it covers."""

    IN_ADVANCE = "IN_ADVANCE"
    IN_ARREAR = "IN_ARREAR"


class SubscriptionTransitionType(str, Enum):
    """Kind of subscription change that produced a billing event."""

    MIGRATE_ENTITLEMENT = "MIGRATE_ENTITLEMENT"
    CREATE = "CREATE"
    MIGRATE_BILLING = "MIGRATE_BILLING"
    TRANSFER = "TRANSFER"
    CHANGE = "CHANGE"
    RE_CREATE = "RE_CREATE"
    CANCEL = "CANCEL"
    UNCANCEL = "UNCANCEL"
    PHASE = "PHASE"
    START_BILLING_DISABLED = "START_BILLING_DISABLED"
    END_BILLING_DISABLED = "END_BILLING_DISABLED"


@dataclass(frozen=True)
class Usage:
    """A usage definition attached to a plan phase (metered billing)."""

    name: str
    billing_mode: BillingMode = BillingMode.IN_ARREAR
    billing_period: BillingPeriod = BillingPeriod.MONTHLY
    unit_type: str | None = None


@dataclass(frozen=True)
class BillingEvent:
    """
    One billing-relevant transition of a subscription.

    Attributes:
        subscription_id: Subscription the event belongs to
        bundle_id: Bundle owning the subscription
        plan_name: Catalog plan in effect from this event on
        phase_name: Catalog plan phase in effect from this event on
        effective_date: Instant the transition takes effect (tz-aware)
        time_zone: IANA zone used to round the instant to a local date
        billing_cycle_day_local: Day-of-month recurring periods align on
        billing_period: Recurring period, NO_BILLING_PERIOD for none
        transition_type: Kind of transition
        fixed_price: One-time charge for the phase, if any
        recurring_price: Per-period rate, if any
        billing_mode: In advance / in arrear
        usages: Usage definitions of the phase
        total_ordering: Creation sequence; tie-breaker for equal dates
        description: Free-text annotation for diagnostics
    """

    subscription_id: UUID
    bundle_id: UUID
    plan_name: str
    phase_name: str
    effective_date: datetime
    time_zone: str
    billing_cycle_day_local: int
    billing_period: BillingPeriod
    transition_type: SubscriptionTransitionType = SubscriptionTransitionType.CREATE
    fixed_price: Decimal | None = None
    recurring_price: Decimal | None = None
    billing_mode: BillingMode = BillingMode.IN_ADVANCE
    usages: tuple[Usage, ...] = ()
    total_ordering: int = 0
    description: str = field(default="", compare=False)

    def __post_init__(self) -> None:
        if self.effective_date.tzinfo is None:
            raise ValueError("effective_date must be timezone aware")
        if not 1 <= self.billing_cycle_day_local <= 31:
            raise ValueError(
                f"billing_cycle_day_local must be within 1..31, "
                f"got {self.billing_cycle_day_local}"
            )
        for attr in ("fixed_price", "recurring_price"):
            val = getattr(self, attr)
            if val is not None and not isinstance(val, Decimal):
                raise TypeError(f"{attr} must be Decimal, got {type(val).__name__}")

    @property
    def local_effective_date(self) -> date:
        """Effective instant rounded to a calendar day in the event's zone."""
        return local_date(self.effective_date, self.time_zone)

    @property
    def is_recurring(self) -> bool:
        return self.billing_period is not BillingPeriod.NO_BILLING_PERIOD

    def to_trace_dict(self) -> dict[str, Any]:
        return {
            "subscription_id": str(self.subscription_id),
            "transition_type": self.transition_type.value,
            "plan": self.plan_name,
            "phase": self.phase_name,
            "effective_date": self.effective_date.isoformat(),
            "billing_period": self.billing_period.value,
            "bcd": self.billing_cycle_day_local,
            "fixed_price": None if self.fixed_price is None else str(self.fixed_price),
            "recurring_price": None if self.recurring_price is None else str(self.recurring_price),
        }
