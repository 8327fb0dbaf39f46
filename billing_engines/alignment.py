"""
BillingAlignmentResolver -- Billing-cycle-day computation per transition.

Responsibility:
    For one subscription transition, resolve the plan and phase in effect,
    ask the catalog which alignment policy applies, and compute the
    billing-cycle day (BCD) under that policy.

Architecture position:
    Engines -- pure calculation over injected lookup protocols
    (Catalog, SubscriptionLookup).  Runs upstream of the item generator,
    when billing events are built.

Invariants enforced:
    - A CANCEL transition is aligned on the *previous* plan/phase; every
      other transition on the *next* one.
    - ACCOUNT alignment falls back to SUBSCRIPTION alignment when the
      account has no BCD (0).
    - SUBSCRIPTION/BUNDLE BCDs are the day of month of the first non-zero
      recurring charge taken in the system reference timezone (UTC), not in
      the account timezone.

Failure modes:
    - InvalidBillingAlignmentError when the catalog policy is none of
      ACCOUNT / BUNDLE / SUBSCRIPTION, or the effective plan/phase is
      missing from the transition.
    - CatalogEntryNotFoundError propagated from the lookups.
"""

from __future__ import annotations

from datetime import timezone

from billing_kernel.domain.billing_event import SubscriptionTransitionType
from billing_kernel.domain.catalog import (
    AccountInfo,
    BillingAlignment,
    Catalog,
    Plan,
    PlanPhaseSpecifier,
    SubscriptionInfo,
    SubscriptionLookup,
    SubscriptionTransition,
)
from billing_kernel.domain.dates import local_date
from billing_kernel.exceptions import InvalidBillingAlignmentError
from billing_kernel.logging_config import get_logger
from billing_engines.tracer import traced_engine

logger = get_logger("engines.alignment")


class BillingAlignmentResolver:
    """Computes billing-cycle days from catalog alignment policy.

    Usage:
        resolver = BillingAlignmentResolver(catalog, subscriptions)
        bcd = resolver.calculate_bcd(subscription, transition, account)
    """

    def __init__(self, catalog: Catalog, subscriptions: SubscriptionLookup):
        self._catalog = catalog
        self._subscriptions = subscriptions

    def resolve_alignment(self, transition: SubscriptionTransition) -> tuple[Plan, BillingAlignment | None]:
        """Effective plan and the alignment policy the catalog assigns it."""
        is_cancel = transition.transition_type is SubscriptionTransitionType.CANCEL
        plan_name = transition.previous_plan if is_cancel else transition.next_plan
        phase_name = transition.previous_phase if is_cancel else transition.next_phase
        if plan_name is None or phase_name is None:
            raise InvalidBillingAlignmentError(
                "UNRESOLVED",
                f"transition {transition.transition_type.value} has no "
                f"{'previous' if is_cancel else 'next'} plan/phase",
            )

        plan = self._catalog.find_plan(
            plan_name,
            transition.effective_transition_time,
            transition.subscription_start_date,
        )
        phase = self._catalog.find_phase(
            phase_name,
            transition.effective_transition_time,
            transition.subscription_start_date,
        )
        specifier = PlanPhaseSpecifier(
            product_name=plan.product_name,
            product_category=plan.product_category,
            billing_period=phase.billing_period,
            price_list_name=transition.next_price_list,
            phase_type=phase.phase_type,
        )
        alignment = self._catalog.billing_alignment(
            specifier, transition.requested_transition_time
        )
        return plan, alignment

    @traced_engine("billing_alignment", "1.0", fingerprint_fields=("transition",))
    def calculate_bcd(
        self,
        subscription: SubscriptionInfo,
        transition: SubscriptionTransition,
        account: AccountInfo,
    ) -> int:
        """Billing-cycle day for ``subscription`` after ``transition``."""
        plan, alignment = self.resolve_alignment(transition)

        result = -1
        if alignment is BillingAlignment.ACCOUNT:
            result = account.billing_cycle_day
            if result == 0:
                result = self._bcd_from_subscription(subscription, plan)
        elif alignment is BillingAlignment.BUNDLE:
            base = self._subscriptions.get_base_subscription(subscription.bundle_id)
            base_plan = self._catalog.find_plan(
                base.current_plan_name,
                transition.effective_transition_time,
                base.start_date,
            )
            result = self._bcd_from_subscription(base, base_plan)
        elif alignment is BillingAlignment.SUBSCRIPTION:
            result = self._bcd_from_subscription(subscription, plan)

        if result == -1:
            logger.error("billing_alignment_unresolved", extra={
                "subscription_id": str(subscription.id),
                "alignment": str(alignment),
            })
            raise InvalidBillingAlignmentError(str(alignment))

        logger.debug("billing_cycle_day_resolved", extra={
            "subscription_id": str(subscription.id),
            "alignment": alignment.value,
            "bcd": result,
        })
        return result

    @staticmethod
    def _bcd_from_subscription(subscription: SubscriptionInfo, plan: Plan) -> int:
        first_charge = plan.date_of_first_recurring_non_zero_charge(subscription.start_date)
        # System BCD: taken in UTC so that service periods end at the right
        # notification time. The account-local BCD is not computed here.
        return local_date(first_charge, timezone.utc).day
