"""
Pytest fixtures for the invoicing test suite.

Provides:
- Structured logging setup and a captured_logs fixture
- Identifier fixtures (account, bundle, subscription)
- A billing event factory and a deterministic clock
"""

import json
import logging
from datetime import date, datetime
from decimal import Decimal
from io import StringIO
from uuid import uuid4

import pytest

from billing_kernel.domain.billing_event import (
    BillingEvent,
    BillingMode,
    BillingPeriod,
    SubscriptionTransitionType,
)
from billing_kernel.domain.clock import DeterministicClock
from billing_kernel.domain.timeline import BillingEventTimeline
from billing_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture billing_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, assembler):
            assembler.generate_invoice(...)
            logs = captured_logs()
            assert any(r["message"] == "invoice_generation_completed" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("billing_kernel")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# =============================================================================
# Domain fixtures
# =============================================================================


@pytest.fixture
def account_id():
    return uuid4()


@pytest.fixture
def bundle_id():
    return uuid4()


@pytest.fixture
def subscription_id():
    return uuid4()


@pytest.fixture
def clock():
    """Clock fixed on 2013-08-07, the start of the reference subscription."""
    return DeterministicClock.on(date(2013, 8, 7))


@pytest.fixture
def make_event(subscription_id, bundle_id):
    """
    Factory for billing events of the default subscription.

    Defaults describe a monthly, BCD 7, in-advance plan in UTC.
    """
    counter = {"n": 0}

    def _make(
        effective_date: datetime,
        *,
        plan_name: str = "pistol-monthly",
        phase_name: str = "pistol-monthly-evergreen",
        fixed_price: Decimal | None = None,
        recurring_price: Decimal | None = None,
        billing_period: BillingPeriod = BillingPeriod.MONTHLY,
        billing_cycle_day: int = 7,
        transition_type: SubscriptionTransitionType = SubscriptionTransitionType.CREATE,
        billing_mode: BillingMode = BillingMode.IN_ADVANCE,
        sub_id=None,
        time_zone: str = "UTC",
    ) -> BillingEvent:
        counter["n"] += 1
        return BillingEvent(
            subscription_id=sub_id or subscription_id,
            bundle_id=bundle_id,
            plan_name=plan_name,
            phase_name=phase_name,
            effective_date=effective_date,
            time_zone=time_zone,
            billing_cycle_day_local=billing_cycle_day,
            billing_period=billing_period,
            transition_type=transition_type,
            fixed_price=fixed_price,
            recurring_price=recurring_price,
            billing_mode=billing_mode,
            total_ordering=counter["n"],
        )

    return _make


@pytest.fixture
def make_timeline():
    """Build a BillingEventTimeline from events."""

    def _make(*events, **kwargs) -> BillingEventTimeline:
        return BillingEventTimeline(events=events, **kwargs)

    return _make
