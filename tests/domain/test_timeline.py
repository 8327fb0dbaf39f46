"""
Tests for BillingEvent and BillingEventTimeline.

Covers ordering, de-duplication, the account date/timezone context and
per-subscription grouping.
"""

from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from uuid import uuid4

import pytest

from billing_kernel.domain.billing_event import (
    BillingEvent,
    BillingMode,
    BillingPeriod,
    Usage,
)
from billing_kernel.domain.timeline import BillingEventTimeline
from billing_kernel.exceptions import InvalidTimelineError

AUG_7 = datetime(2013, 8, 7, tzinfo=timezone.utc)


class TestBillingEvent:
    """Validation of a single billing event."""

    def test_naive_effective_date_rejected(self, make_event):
        with pytest.raises(ValueError, match="timezone aware"):
            make_event(datetime(2013, 8, 7))

    @pytest.mark.parametrize("bcd", [0, 32])
    def test_billing_cycle_day_range(self, make_event, bcd):
        with pytest.raises(ValueError, match="billing_cycle_day_local"):
            make_event(AUG_7, billing_cycle_day=bcd)

    def test_float_price_rejected(self, make_event):
        """Prices are Decimal only."""
        with pytest.raises(TypeError):
            make_event(AUG_7, recurring_price=250.0)

    def test_billing_period_months(self):
        assert BillingPeriod.MONTHLY.months == 1
        assert BillingPeriod.QUARTERLY.months == 3
        assert BillingPeriod.BIENNIAL.months == 24
        assert BillingPeriod.NO_BILLING_PERIOD.months == 0

    def test_local_effective_date_uses_event_zone(self, make_event):
        event = make_event(
            datetime(2013, 8, 7, 3, tzinfo=timezone.utc), time_zone="America/New_York"
        )
        assert event.local_effective_date == date(2013, 8, 6)

    def test_is_recurring(self, make_event):
        assert make_event(AUG_7).is_recurring
        assert not make_event(
            AUG_7, billing_period=BillingPeriod.NO_BILLING_PERIOD
        ).is_recurring


class TestTimelineOrdering:
    """Events are kept in (effective_date, total_ordering) order."""

    def test_sorted_on_insert(self, make_event, make_timeline):
        """Out-of-order inserts come back chronologically."""
        later = make_event(AUG_7 + timedelta(days=31))
        earlier = make_event(AUG_7)
        timeline = make_timeline(later, earlier)
        assert timeline.events == (earlier, later)

    def test_total_ordering_breaks_ties(self, make_event, make_timeline):
        """Same instant: lower creation sequence first."""
        first = make_event(AUG_7, phase_name="trial")
        second = make_event(AUG_7, phase_name="evergreen")
        timeline = make_timeline(second, first)
        assert [e.phase_name for e in timeline] == ["trial", "evergreen"]

    def test_duplicates_ignored(self, make_event, make_timeline):
        """Adding an equal event is a no-op."""
        event = make_event(AUG_7)
        timeline = make_timeline(event)
        assert timeline.add(event) is False
        assert len(timeline) == 1
        assert event in timeline

    def test_add_all_reports_change(self, make_event, make_timeline):
        event = make_event(AUG_7)
        timeline = make_timeline()
        assert timeline.add_all([event]) is True
        assert timeline.add_all([event]) is False


class TestAccountContext:
    """The account date/timezone context."""

    def test_empty_timeline_has_no_context(self):
        with pytest.raises(InvalidTimelineError) as exc_info:
            BillingEventTimeline().account_date_context
        assert exc_info.value.code == "INVALID_TIMELINE"

    def test_fixed_by_first_inserted_event(self, make_event, make_timeline):
        """A later insert of an earlier event does not move the context."""
        first_inserted = make_event(AUG_7 + timedelta(days=10))
        timeline = make_timeline(first_inserted, account_time_zone="Europe/Paris")
        timeline.add(make_event(AUG_7))
        context = timeline.account_date_context
        assert context.reference_time == first_inserted.effective_date
        assert context.time_zone == "Europe/Paris"
        assert context.reference_date == date(2013, 8, 17)

    def test_compute_local_date(self, make_event, make_timeline):
        timeline = make_timeline(make_event(AUG_7), account_time_zone="Asia/Tokyo")
        instant = datetime(2013, 8, 31, 20, tzinfo=timezone.utc)
        assert timeline.account_date_context.compute_local_date(instant) == date(2013, 9, 1)


class TestTimelineQueries:
    """Account metadata and grouping."""

    def test_flags(self):
        sub = uuid4()
        timeline = BillingEventTimeline(
            account_auto_invoice_off=True,
            recurring_billing_mode=BillingMode.IN_ARREAR,
            subscription_ids_with_auto_invoice_off=[sub],
        )
        assert timeline.is_account_auto_invoice_off
        assert timeline.recurring_billing_mode is BillingMode.IN_ARREAR
        assert timeline.subscription_ids_with_auto_invoice_off == frozenset({sub})
        assert timeline.account_time_zone == "UTC"

    def test_mark_auto_invoice_off(self, subscription_id):
        timeline = BillingEventTimeline()
        timeline.mark_auto_invoice_off(subscription_id)
        assert subscription_id in timeline.subscription_ids_with_auto_invoice_off

    def test_by_subscription(self, make_event, make_timeline):
        """Subsequences keyed in first-event order."""
        other = uuid4()
        a1 = make_event(AUG_7)
        b1 = make_event(AUG_7 + timedelta(days=1), sub_id=other)
        a2 = make_event(AUG_7 + timedelta(days=31))
        timeline = make_timeline(a2, b1, a1)

        grouped = timeline.by_subscription()
        assert list(grouped) == [a1.subscription_id, other]
        assert grouped[a1.subscription_id] == (a1, a2)
        assert timeline.subscription_ids() == (a1.subscription_id, other)
        assert timeline.events_for_subscription(other) == (b1,)

    def test_usages_collected(self, subscription_id, bundle_id):
        usage = Usage(name="api-calls", unit_type="call")
        event = BillingEvent(
            subscription_id=subscription_id,
            bundle_id=bundle_id,
            plan_name="metered",
            phase_name="metered-evergreen",
            effective_date=AUG_7,
            time_zone="UTC",
            billing_cycle_day_local=1,
            billing_period=BillingPeriod.MONTHLY,
            recurring_price=Decimal("0"),
            usages=(usage,),
        )
        timeline = BillingEventTimeline(events=[event])
        assert timeline.usages() == {"api-calls": usage}
