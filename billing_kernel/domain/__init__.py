"""
Pure domain layer.

Billing events, the event timeline, catalog types and the invoice model.
No dependencies on persistence, network or the system clock (apart from
SystemClock, the sanctioned time boundary). All value objects are
immutable.
"""

from billing_kernel.domain.billing_event import (
    BillingEvent,
    BillingMode,
    BillingPeriod,
    SubscriptionTransitionType,
    Usage,
)
from billing_kernel.domain.catalog import (
    AccountInfo,
    AlignmentRule,
    BillingAlignment,
    Catalog,
    Duration,
    DurationUnit,
    PhaseType,
    Plan,
    PlanPhase,
    PlanPhaseSpecifier,
    ProductCategory,
    StaticCatalog,
    StaticSubscriptionLookup,
    SubscriptionInfo,
    SubscriptionLookup,
    SubscriptionTransition,
)
from billing_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from billing_kernel.domain.currency import CurrencyInfo, CurrencyRegistry
from billing_kernel.domain.invoice import Invoice, InvoiceItem, InvoiceItemType
from billing_kernel.domain.timeline import (
    AccountDateAndTimeZoneContext,
    BillingEventTimeline,
)
from billing_kernel.domain.values import Currency, Money

__all__ = [
    "AccountDateAndTimeZoneContext",
    "AccountInfo",
    "AlignmentRule",
    "BillingAlignment",
    "BillingEvent",
    "BillingEventTimeline",
    "BillingMode",
    "BillingPeriod",
    "Catalog",
    "Clock",
    "Currency",
    "CurrencyInfo",
    "CurrencyRegistry",
    "DeterministicClock",
    "Duration",
    "DurationUnit",
    "Invoice",
    "InvoiceItem",
    "InvoiceItemType",
    "Money",
    "PhaseType",
    "Plan",
    "PlanPhase",
    "PlanPhaseSpecifier",
    "ProductCategory",
    "StaticCatalog",
    "StaticSubscriptionLookup",
    "SubscriptionInfo",
    "SubscriptionLookup",
    "SubscriptionTransition",
    "SubscriptionTransitionType",
    "SystemClock",
    "Usage",
]
