"""
Catalog -- Plan, phase and billing-alignment types consumed by the engines.

Responsibility:
    Describes the subset of the product catalog the billing-cycle-day
    resolver needs (plans, phases, alignment policy) together with the
    narrow lookup protocols for the catalog and for subscriptions.
    ``StaticCatalog`` is an in-memory implementation for tests and for
    callers that already hold their catalog in memory.

Architecture position:
    Kernel > Domain -- pure types and protocols, zero I/O.
    Catalog storage and versioning live outside the core.

Failure modes:
    - CatalogEntryNotFoundError when a plan, phase or subscription lookup
      misses.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
from enum import Enum
from typing import Protocol, runtime_checkable
from uuid import UUID

from billing_kernel.domain.billing_event import BillingPeriod, SubscriptionTransitionType
from billing_kernel.domain.dates import aligned_date, shift_month
from billing_kernel.exceptions import CatalogEntryNotFoundError


class ProductCategory(str, Enum):
    BASE = "BASE"
    ADD_ON = "ADD_ON"
    STANDALONE = "STANDALONE"


class PhaseType(str, Enum):
    TRIAL = "TRIAL"
    DISCOUNT = "DISCOUNT"
    FIXEDTERM = "FIXEDTERM"
    EVERGREEN = "EVERGREEN"


class BillingAlignment(str, Enum):
    """Which billing-cycle day recurring charges align on."""

    ACCOUNT = "ACCOUNT"
    BUNDLE = "BUNDLE"
    SUBSCRIPTION = "SUBSCRIPTION"


class DurationUnit(str, Enum):
    DAYS = "DAYS"
    MONTHS = "MONTHS"
    YEARS = "YEARS"
    UNLIMITED = "UNLIMITED"


@dataclass(frozen=True)
class Duration:
    """Length of a plan phase."""

    unit: DurationUnit
    number: int = 0

    def add_to(self, instant: datetime) -> datetime:
        """``instant`` moved forward by this duration (clamping month ends).

        Raises:
            ValueError: for UNLIMITED durations, which have no end.
        """
        if self.unit is DurationUnit.DAYS:
            return instant + timedelta(days=self.number)
        if self.unit in (DurationUnit.MONTHS, DurationUnit.YEARS):
            months = self.number if self.unit is DurationUnit.MONTHS else self.number * 12
            year, month = shift_month(instant.year, instant.month, months)
            day = aligned_date(year, month, instant.day).day
            return instant.replace(year=year, month=month, day=day)
        raise ValueError("An UNLIMITED duration cannot be added to a date")


@dataclass(frozen=True)
class PlanPhase:
    name: str
    phase_type: PhaseType
    billing_period: BillingPeriod
    duration: Duration = Duration(DurationUnit.UNLIMITED)
    fixed_price: Decimal | None = None
    recurring_price: Decimal | None = None


@dataclass(frozen=True)
class Plan:
    """
    A catalog plan: a product offered through an ordered list of phases.

    Guarantees:
        ``phases`` is non-empty; only the last phase may be UNLIMITED.
    """

    name: str
    product_name: str
    product_category: ProductCategory
    phases: tuple[PlanPhase, ...]

    def __post_init__(self) -> None:
        if not self.phases:
            raise ValueError(f"Plan {self.name} has no phases")
        for phase in self.phases[:-1]:
            if phase.duration.unit is DurationUnit.UNLIMITED:
                raise ValueError(
                    f"Plan {self.name}: only the final phase may be UNLIMITED "
                    f"({phase.name})"
                )

    def find_phase(self, phase_name: str) -> PlanPhase | None:
        for phase in self.phases:
            if phase.name == phase_name:
                return phase
        return None

    def date_of_first_recurring_non_zero_charge(self, subscription_start: datetime) -> datetime:
        """Instant the first phase with a non-zero recurring price begins.

        Falls back to the subscription start when no phase charges a
        recurring price.
        """
        current = subscription_start
        for phase in self.phases:
            if phase.recurring_price is not None and phase.recurring_price != 0:
                return current
            if phase.duration.unit is DurationUnit.UNLIMITED:
                break
            current = phase.duration.add_to(current)
        return subscription_start


@dataclass(frozen=True)
class PlanPhaseSpecifier:
    """Key the catalog resolves billing-alignment policy against."""

    product_name: str
    product_category: ProductCategory
    billing_period: BillingPeriod
    price_list_name: str | None
    phase_type: PhaseType


@dataclass(frozen=True)
class AccountInfo:
    """Account fields relevant to billing alignment (bcd 0 = unset)."""

    id: UUID
    billing_cycle_day: int = 0
    time_zone: str = "UTC"


@dataclass(frozen=True)
class SubscriptionInfo:
    id: UUID
    bundle_id: UUID
    start_date: datetime
    current_plan_name: str
    category: ProductCategory = ProductCategory.BASE

    def __post_init__(self) -> None:
        if self.start_date.tzinfo is None:
            raise ValueError("start_date must be timezone aware")


@dataclass(frozen=True)
class SubscriptionTransition:
    """A subscription state change, as seen by the alignment resolver."""

    subscription_id: UUID
    bundle_id: UUID
    transition_type: SubscriptionTransitionType
    effective_transition_time: datetime
    requested_transition_time: datetime
    subscription_start_date: datetime
    previous_plan: str | None = None
    previous_phase: str | None = None
    next_plan: str | None = None
    next_phase: str | None = None
    next_price_list: str | None = None


@runtime_checkable
class Catalog(Protocol):
    """Catalog lookup used to resolve plans, phases and alignment policy."""

    def find_plan(
        self, name: str, effective_date: datetime, subscription_start_date: datetime
    ) -> Plan:
        ...

    def find_phase(
        self, name: str, effective_date: datetime, subscription_start_date: datetime
    ) -> PlanPhase:
        ...

    def billing_alignment(
        self, specifier: PlanPhaseSpecifier, requested_date: datetime
    ) -> BillingAlignment | None:
        ...


@runtime_checkable
class SubscriptionLookup(Protocol):
    """Subscription lookup used for bundle-aligned billing-cycle days."""

    def get_base_subscription(self, bundle_id: UUID) -> SubscriptionInfo:
        ...


@dataclass(frozen=True)
class AlignmentRule:
    """Alignment policy for specifiers matching every non-None field."""

    alignment: BillingAlignment
    product_category: ProductCategory | None = None
    billing_period: BillingPeriod | None = None
    price_list_name: str | None = None
    phase_type: PhaseType | None = None

    def matches(self, specifier: PlanPhaseSpecifier) -> bool:
        return all(
            expected is None or expected == actual
            for expected, actual in (
                (self.product_category, specifier.product_category),
                (self.billing_period, specifier.billing_period),
                (self.price_list_name, specifier.price_list_name),
                (self.phase_type, specifier.phase_type),
            )
        )


class StaticCatalog:
    """In-memory, single-version catalog.

    Lookups ignore effective dates; the first matching alignment rule wins,
    otherwise ``default_alignment`` applies.
    """

    def __init__(
        self,
        plans: Iterable[Plan],
        alignment_rules: Iterable[AlignmentRule] = (),
        default_alignment: BillingAlignment | None = BillingAlignment.ACCOUNT,
    ):
        self._plans = {plan.name: plan for plan in plans}
        self._phases = {
            phase.name: phase for plan in self._plans.values() for phase in plan.phases
        }
        self._rules = tuple(alignment_rules)
        self._default_alignment = default_alignment

    def find_plan(
        self, name: str, effective_date: datetime, subscription_start_date: datetime
    ) -> Plan:
        try:
            return self._plans[name]
        except KeyError:
            raise CatalogEntryNotFoundError("Plan", name) from None

    def find_phase(
        self, name: str, effective_date: datetime, subscription_start_date: datetime
    ) -> PlanPhase:
        try:
            return self._phases[name]
        except KeyError:
            raise CatalogEntryNotFoundError("PlanPhase", name) from None

    def billing_alignment(
        self, specifier: PlanPhaseSpecifier, requested_date: datetime
    ) -> BillingAlignment | None:
        for rule in self._rules:
            if rule.matches(specifier):
                return rule.alignment
        return self._default_alignment


class StaticSubscriptionLookup:
    """In-memory SubscriptionLookup keyed by bundle."""

    def __init__(self, subscriptions: Iterable[SubscriptionInfo]):
        self._base_by_bundle: dict[UUID, SubscriptionInfo] = {}
        for sub in subscriptions:
            if sub.category is ProductCategory.BASE:
                self._base_by_bundle[sub.bundle_id] = sub

    def get_base_subscription(self, bundle_id: UUID) -> SubscriptionInfo:
        try:
            return self._base_by_bundle[bundle_id]
        except KeyError:
            raise CatalogEntryNotFoundError("BaseSubscription", str(bundle_id)) from None
