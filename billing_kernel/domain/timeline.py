"""
BillingEventTimeline -- Ordered per-account collection of billing events.

Responsibility:
    Owns the chronologically sorted events of one account plus the
    account-level metadata the engines consult: auto-invoicing-off flags,
    the recurring billing mode default, the account timezone and the
    account date/timezone context.

Architecture position:
    Kernel > Domain -- pure, in-memory.  Populated by the billing-event
    source collaborator before an invoice run; read-only for engines.

Invariants enforced:
    - Events are totally ordered by (effective_date, total_ordering,
      insertion order).
    - The account date/timezone context is fixed from the first inserted
      event and never changes afterwards, so every date boundary computed
      through it uses the same timezone for the lifetime of the timeline.
    - Adding an event equal to one already present is a no-op.

Failure modes:
    - InvalidTimelineError when the context is requested before any event
      was added.
"""

from __future__ import annotations

import bisect
from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from datetime import date, datetime
from uuid import UUID

from billing_kernel.domain.billing_event import BillingEvent, BillingMode, Usage
from billing_kernel.domain.dates import local_date
from billing_kernel.exceptions import InvalidTimelineError


@dataclass(frozen=True)
class AccountDateAndTimeZoneContext:
    """Account timezone pinned to a reference instant."""

    reference_time: datetime
    time_zone: str

    @property
    def reference_date(self) -> date:
        return local_date(self.reference_time, self.time_zone)

    def compute_local_date(self, instant: datetime) -> date:
        """Account-local calendar date of ``instant``."""
        return local_date(instant, self.time_zone)


class BillingEventTimeline:
    """Sorted billing events of one account with their account metadata."""

    def __init__(
        self,
        *,
        account_auto_invoice_off: bool = False,
        recurring_billing_mode: BillingMode = BillingMode.IN_ADVANCE,
        account_time_zone: str = "UTC",
        subscription_ids_with_auto_invoice_off: Iterable[UUID] = (),
        events: Iterable[BillingEvent] = (),
    ):
        self._account_auto_invoice_off = account_auto_invoice_off
        self._recurring_billing_mode = recurring_billing_mode
        self._account_time_zone = account_time_zone
        self._auto_invoice_off: set[UUID] = set(subscription_ids_with_auto_invoice_off)
        self._keys: list[tuple[datetime, int, int]] = []
        self._events: list[BillingEvent] = []
        self._inserted = 0
        self._context: AccountDateAndTimeZoneContext | None = None
        self.add_all(events)

    # ------------------------------------------------------------------
    # Mutation (population by the event source)
    # ------------------------------------------------------------------

    def add(self, event: BillingEvent) -> bool:
        """Insert an event in order. Returns False if an equal event exists."""
        if event in self._events:
            return False
        if self._context is None:
            self._context = AccountDateAndTimeZoneContext(
                reference_time=event.effective_date,
                time_zone=self._account_time_zone,
            )
        key = (event.effective_date, event.total_ordering, self._inserted)
        self._inserted += 1
        pos = bisect.bisect_right(self._keys, key)
        self._keys.insert(pos, key)
        self._events.insert(pos, event)
        return True

    def add_all(self, events: Iterable[BillingEvent]) -> bool:
        """Insert several events. Returns True if any was added."""
        added = False
        for event in events:
            added = self.add(event) or added
        return added

    def mark_auto_invoice_off(self, subscription_id: UUID) -> None:
        self._auto_invoice_off.add(subscription_id)

    # ------------------------------------------------------------------
    # Read access
    # ------------------------------------------------------------------

    def __iter__(self) -> Iterator[BillingEvent]:
        return iter(tuple(self._events))

    def __len__(self) -> int:
        return len(self._events)

    def __contains__(self, event: object) -> bool:
        return event in self._events

    @property
    def events(self) -> tuple[BillingEvent, ...]:
        return tuple(self._events)

    @property
    def is_account_auto_invoice_off(self) -> bool:
        return self._account_auto_invoice_off

    @property
    def subscription_ids_with_auto_invoice_off(self) -> frozenset[UUID]:
        return frozenset(self._auto_invoice_off)

    @property
    def recurring_billing_mode(self) -> BillingMode:
        return self._recurring_billing_mode

    @property
    def account_time_zone(self) -> str:
        return self._account_time_zone

    @property
    def account_date_context(self) -> AccountDateAndTimeZoneContext:
        if self._context is None:
            raise InvalidTimelineError(
                "account date/timezone context is not initialized because "
                "there is no billing event"
            )
        return self._context

    def subscription_ids(self) -> tuple[UUID, ...]:
        """Subscription ids in order of their first event."""
        seen: dict[UUID, None] = {}
        for event in self._events:
            seen.setdefault(event.subscription_id, None)
        return tuple(seen)

    def events_for_subscription(self, subscription_id: UUID) -> tuple[BillingEvent, ...]:
        return tuple(e for e in self._events if e.subscription_id == subscription_id)

    def by_subscription(self) -> dict[UUID, tuple[BillingEvent, ...]]:
        """Per-subscription subsequences, keyed in first-event order."""
        grouped: dict[UUID, list[BillingEvent]] = {}
        for event in self._events:
            grouped.setdefault(event.subscription_id, []).append(event)
        return {sub_id: tuple(events) for sub_id, events in grouped.items()}

    def usages(self) -> dict[str, Usage]:
        """All usage definitions across events, keyed by usage name."""
        result: dict[str, Usage] = {}
        for event in self._events:
            for usage in event.usages:
                result[usage.name] = usage
        return result

    def __repr__(self) -> str:
        return (
            f"BillingEventTimeline(account_auto_invoice_off="
            f"{self._account_auto_invoice_off}, "
            f"subscription_ids_with_auto_invoice_off="
            f"{sorted(str(s) for s in self._auto_invoice_off)}, "
            f"events={len(self._events)})"
        )
