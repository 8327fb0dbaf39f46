"""
ItemGenerator -- Proposed invoice items from a billing event timeline.

Responsibility:
    Walks each subscription's events pairwise (this event, next event or
    none) and proposes the fixed-price and recurring items due through a
    target date.  The output is the complete from-scratch set of charges
    since the beginning of time; reconciliation against what was already
    invoiced happens in ItemReconciliationTree.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    Uses BillingModeRegistry for proration and the timeline's account
    date/timezone context for every local-date computation.

Invariants enforced:
    - Subscriptions with auto-invoicing off produce nothing.
    - A FIXED item is proposed iff the event carries a fixed price and its
      local effective date is on or before the target date.
    - RECURRING amounts are cycle_count x rate rounded to the currency's
      minor unit; dates are taken verbatim from the cycle boundaries.
    - Items come out in timeline order per subscription.

Failure modes:
    - InvalidDateSequenceError, UnsupportedBillingModeError propagate and
      abort generation.
"""

from __future__ import annotations

import time
from datetime import date
from decimal import ROUND_HALF_UP
from typing import Any
from uuid import UUID

from billing_kernel.domain.billing_event import BillingEvent
from billing_kernel.domain.invoice import InvoiceItem
from billing_kernel.domain.timeline import AccountDateAndTimeZoneContext, BillingEventTimeline
from billing_kernel.domain.values import Currency, Money
from billing_kernel.logging_config import get_logger
from billing_engines.billing_mode import BillingModeRegistry
from billing_engines.tracer import traced_engine

logger = get_logger("engines.item_generator")


class ItemGenerator:
    """Proposes fixed and recurring items for a target date.

    Usage:
        generator = ItemGenerator()
        proposed = generator.generate_items(account_id, timeline, target_date, "USD")
    """

    def __init__(self, rounding: str = ROUND_HALF_UP):
        self._rounding = rounding

    @traced_engine(
        "item_generator", "1.0",
        fingerprint_fields=("account_id", "target_date", "currency"),
    )
    def generate_items(
        self,
        account_id: UUID,
        timeline: BillingEventTimeline,
        target_date: date,
        currency: Currency | str,
        invoice_id: UUID | None = None,
    ) -> tuple[InvoiceItem, ...]:
        """All items due through ``target_date``, in timeline order."""
        if len(timeline) == 0:
            return ()
        if isinstance(currency, str):
            currency = Currency(currency)

        t0 = time.monotonic()
        context = timeline.account_date_context
        auto_invoice_off = timeline.subscription_ids_with_auto_invoice_off
        items: list[InvoiceItem] = []
        trace: list[dict[str, Any]] = []

        for subscription_id, events in timeline.by_subscription().items():
            if subscription_id in auto_invoice_off:
                continue
            for index, this_event in enumerate(events):
                next_event = events[index + 1] if index + 1 < len(events) else None
                produced = self._process_event(
                    account_id, this_event, next_event, target_date, currency,
                    context, invoice_id,
                )
                items.extend(produced)
                trace.append({
                    "event": this_event.to_trace_dict(),
                    "items": [item.to_trace_dict() for item in produced],
                })

        logger.info("invoice_items_generated", extra={
            "account_id": str(account_id),
            "invoice_id": None if invoice_id is None else str(invoice_id),
            "target_date": target_date.isoformat(),
            "item_count": len(items),
            "skipped_subscriptions": sorted(str(s) for s in auto_invoice_off),
            "trace": trace,
            "duration_ms": round((time.monotonic() - t0) * 1000, 2),
        })
        return tuple(items)

    def _process_event(
        self,
        account_id: UUID,
        this_event: BillingEvent,
        next_event: BillingEvent | None,
        target_date: date,
        currency: Currency,
        context: AccountDateAndTimeZoneContext,
        invoice_id: UUID | None,
    ) -> list[InvoiceItem]:
        items: list[InvoiceItem] = []
        start_date = context.compute_local_date(this_event.effective_date)

        fixed = self.generate_fixed_price_item(
            account_id, this_event, start_date, target_date, currency, invoice_id
        )
        if fixed is not None:
            items.append(fixed)

        if not this_event.is_recurring or start_date > target_date:
            return items

        strategy = BillingModeRegistry.get(this_event.billing_mode)
        end_date = (
            None if next_event is None
            else context.compute_local_date(next_event.effective_date)
        )
        cycles = strategy.compute_cycles(
            start_date,
            end_date,
            target_date,
            this_event.billing_cycle_day_local,
            this_event.billing_period,
        )

        rate = this_event.recurring_price
        if rate is None:
            return items
        for cycle in cycles:
            amount = Money.of(cycle.cycle_count * rate, currency).round(self._rounding)
            items.append(InvoiceItem.recurring(
                account_id=account_id,
                subscription_id=this_event.subscription_id,
                bundle_id=this_event.bundle_id,
                plan_name=this_event.plan_name,
                phase_name=this_event.phase_name,
                start_date=cycle.start_date,
                end_date=cycle.end_date,
                amount=amount,
                rate=rate,
                invoice_id=invoice_id,
            ))
        return items

    @staticmethod
    def generate_fixed_price_item(
        account_id: UUID,
        event: BillingEvent,
        start_date: date,
        target_date: date,
        currency: Currency,
        invoice_id: UUID | None = None,
    ) -> InvoiceItem | None:
        """FIXED item for ``event`` if it is priced and due by ``target_date``."""
        if start_date > target_date or event.fixed_price is None:
            return None
        return InvoiceItem.fixed(
            account_id=account_id,
            subscription_id=event.subscription_id,
            bundle_id=event.bundle_id,
            plan_name=event.plan_name,
            phase_name=event.phase_name,
            charge_date=start_date,
            amount=Money.of(event.fixed_price, currency),
            invoice_id=invoice_id,
        )
