"""
Tests for BillingAlignmentResolver.

Plans:
    pistol-monthly  -- 30 day trial, then 250.00 monthly
    holster-monthly -- add-on, 10.00 monthly from day one
"""

from dataclasses import replace
from datetime import datetime, timezone
from decimal import Decimal
from uuid import uuid4
from zoneinfo import ZoneInfo

import pytest

from billing_engines.alignment import BillingAlignmentResolver
from billing_kernel.domain.billing_event import BillingPeriod, SubscriptionTransitionType
from billing_kernel.domain.catalog import (
    AccountInfo,
    AlignmentRule,
    BillingAlignment,
    Duration,
    DurationUnit,
    PhaseType,
    Plan,
    PlanPhase,
    ProductCategory,
    StaticCatalog,
    StaticSubscriptionLookup,
    SubscriptionInfo,
    SubscriptionTransition,
)
from billing_kernel.exceptions import CatalogEntryNotFoundError, InvalidBillingAlignmentError

BASE_START = datetime(2013, 8, 7, 10, tzinfo=timezone.utc)
ADDON_START = datetime(2013, 8, 20, 10, tzinfo=timezone.utc)

PISTOL = Plan(
    name="pistol-monthly",
    product_name="Pistol",
    product_category=ProductCategory.BASE,
    phases=(
        PlanPhase(
            "pistol-monthly-trial", PhaseType.TRIAL, BillingPeriod.NO_BILLING_PERIOD,
            duration=Duration(DurationUnit.DAYS, 30), fixed_price=Decimal("0"),
        ),
        PlanPhase(
            "pistol-monthly-evergreen", PhaseType.EVERGREEN, BillingPeriod.MONTHLY,
            recurring_price=Decimal("250.00"),
        ),
    ),
)
HOLSTER = Plan(
    name="holster-monthly",
    product_name="Holster",
    product_category=ProductCategory.ADD_ON,
    phases=(
        PlanPhase(
            "holster-monthly-evergreen", PhaseType.EVERGREEN, BillingPeriod.MONTHLY,
            recurring_price=Decimal("10.00"),
        ),
    ),
)


@pytest.fixture
def bundle():
    return uuid4()


@pytest.fixture
def base_subscription(bundle):
    return SubscriptionInfo(uuid4(), bundle, BASE_START, "pistol-monthly")


@pytest.fixture
def addon_subscription(bundle):
    return SubscriptionInfo(
        uuid4(), bundle, ADDON_START, "holster-monthly", category=ProductCategory.ADD_ON
    )


@pytest.fixture
def lookup(base_subscription, addon_subscription):
    return StaticSubscriptionLookup([base_subscription, addon_subscription])


def _transition(subscription, plan, phase, transition_type=SubscriptionTransitionType.CREATE):
    is_cancel = transition_type is SubscriptionTransitionType.CANCEL
    return SubscriptionTransition(
        subscription_id=subscription.id,
        bundle_id=subscription.bundle_id,
        transition_type=transition_type,
        effective_transition_time=subscription.start_date,
        requested_transition_time=subscription.start_date,
        subscription_start_date=subscription.start_date,
        previous_plan=plan if is_cancel else None,
        previous_phase=phase if is_cancel else None,
        next_plan=None if is_cancel else plan,
        next_phase=None if is_cancel else phase,
    )


def _resolver(alignment, lookup):
    return BillingAlignmentResolver(
        StaticCatalog([PISTOL, HOLSTER], default_alignment=alignment), lookup
    )


class TestAccountAlignment:

    def test_account_bcd_used(self, lookup, base_subscription):
        resolver = _resolver(BillingAlignment.ACCOUNT, lookup)
        transition = _transition(base_subscription, "pistol-monthly", "pistol-monthly-evergreen")
        account = AccountInfo(uuid4(), billing_cycle_day=15)
        assert resolver.calculate_bcd(base_subscription, transition, account) == 15

    def test_unset_account_bcd_falls_back_to_subscription(self, lookup, base_subscription):
        """BCD 0 means unset: the subscription's first charge day is used."""
        resolver = _resolver(BillingAlignment.ACCOUNT, lookup)
        transition = _transition(base_subscription, "pistol-monthly", "pistol-monthly-evergreen")
        account = AccountInfo(uuid4(), billing_cycle_day=0)
        # trial ends 30 days after Aug 7
        assert resolver.calculate_bcd(base_subscription, transition, account) == 6


class TestSubscriptionAlignment:

    def test_first_non_zero_recurring_charge(self, lookup, addon_subscription):
        resolver = _resolver(BillingAlignment.SUBSCRIPTION, lookup)
        transition = _transition(addon_subscription, "holster-monthly", "holster-monthly-evergreen")
        assert resolver.calculate_bcd(addon_subscription, transition, AccountInfo(uuid4())) == 20

    def test_day_taken_in_utc(self, lookup, bundle):
        """23:30 in Los Angeles on Aug 19 is Aug 20 in UTC."""
        start = datetime(2013, 8, 20, 6, 30, tzinfo=timezone.utc)
        subscription = SubscriptionInfo(
            uuid4(), bundle, start, "holster-monthly", category=ProductCategory.ADD_ON
        )
        resolver = _resolver(BillingAlignment.SUBSCRIPTION, lookup)
        transition = _transition(subscription, "holster-monthly", "holster-monthly-evergreen")
        account = AccountInfo(uuid4(), time_zone="America/Los_Angeles")
        assert resolver.calculate_bcd(subscription, transition, account) == 20

    def test_day_taken_in_utc_from_offset_start(self, lookup, bundle):
        """00:30 on Aug 7 in Tokyo is still Aug 6 in UTC."""
        start = datetime(2013, 8, 7, 0, 30, tzinfo=ZoneInfo("Asia/Tokyo"))
        subscription = SubscriptionInfo(
            uuid4(), bundle, start, "holster-monthly", category=ProductCategory.ADD_ON
        )
        resolver = _resolver(BillingAlignment.SUBSCRIPTION, lookup)
        transition = _transition(subscription, "holster-monthly", "holster-monthly-evergreen")
        account = AccountInfo(uuid4(), time_zone="Asia/Tokyo")
        assert resolver.calculate_bcd(subscription, transition, account) == 6

    def test_naive_start_date_rejected(self, bundle):
        """The UTC day of a naive start would depend on the host timezone."""
        with pytest.raises(ValueError, match="timezone aware"):
            SubscriptionInfo(uuid4(), bundle, datetime(2013, 8, 7, 0, 30), "holster-monthly")


class TestBundleAlignment:

    def test_addon_follows_base(self, lookup, addon_subscription):
        """An add-on aligned on its bundle takes the base plan's first charge day."""
        resolver = _resolver(BillingAlignment.BUNDLE, lookup)
        transition = _transition(addon_subscription, "holster-monthly", "holster-monthly-evergreen")
        assert resolver.calculate_bcd(addon_subscription, transition, AccountInfo(uuid4())) == 6

    def test_missing_base_subscription(self, addon_subscription):
        resolver = _resolver(BillingAlignment.BUNDLE, StaticSubscriptionLookup([]))
        transition = _transition(addon_subscription, "holster-monthly", "holster-monthly-evergreen")
        with pytest.raises(CatalogEntryNotFoundError):
            resolver.calculate_bcd(addon_subscription, transition, AccountInfo(uuid4()))


class TestTransitionPlanSelection:

    def test_cancel_uses_previous_plan(self, lookup, base_subscription):
        """Rules keyed on the previous phase apply to a cancellation."""
        catalog = StaticCatalog(
            [PISTOL, HOLSTER],
            alignment_rules=[AlignmentRule(BillingAlignment.ACCOUNT, phase_type=PhaseType.EVERGREEN)],
            default_alignment=None,
        )
        resolver = BillingAlignmentResolver(catalog, lookup)
        transition = _transition(
            base_subscription, "pistol-monthly", "pistol-monthly-evergreen",
            SubscriptionTransitionType.CANCEL,
        )
        plan, alignment = resolver.resolve_alignment(transition)
        assert plan is PISTOL
        assert alignment is BillingAlignment.ACCOUNT
        account = AccountInfo(uuid4(), billing_cycle_day=3)
        assert resolver.calculate_bcd(base_subscription, transition, account) == 3

    def test_missing_effective_plan(self, lookup, base_subscription):
        resolver = _resolver(BillingAlignment.ACCOUNT, lookup)
        transition = _transition(
            base_subscription, "pistol-monthly", "pistol-monthly-evergreen",
            SubscriptionTransitionType.CANCEL,
        )
        transition = replace(transition, previous_plan=None)
        with pytest.raises(InvalidBillingAlignmentError) as exc_info:
            resolver.resolve_alignment(transition)
        assert exc_info.value.alignment == "UNRESOLVED"

    def test_no_alignment_policy(self, lookup, base_subscription):
        """A catalog returning no policy is an alignment error."""
        resolver = _resolver(None, lookup)
        transition = _transition(base_subscription, "pistol-monthly", "pistol-monthly-trial")
        with pytest.raises(InvalidBillingAlignmentError) as exc_info:
            resolver.calculate_bcd(base_subscription, transition, AccountInfo(uuid4()))
        assert exc_info.value.code == "INVALID_BILLING_ALIGNMENT"
