"""
Module: billing_engines
Responsibility:
    Package entrypoint that re-exports the pure calculation engines of the
    invoicing core.  This is the import surface for billing_services.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import billing_kernel (and sibling engine modules).
    MUST NOT import billing_services or billing_config.

Invariants enforced:
    - Purity: engines never read the wall clock.  Target dates and the
      "today" used for validation are passed in by callers.
    - Decimal-only arithmetic for every amount and cycle count.
    - Determinism: identical inputs produce identical items (item ids
      aside).

Audit relevance:
    Engine invocations are traced via ``@traced_engine``
    (see ``billing_engines.tracer``), emitting BILLING_ENGINE_TRACE records.

Usage:
    from billing_engines import ItemGenerator, ItemReconciliationTree
    from billing_engines.alignment import BillingAlignmentResolver
"""

from billing_kernel.logging_config import get_logger

logger = get_logger("engines")

from billing_engines.alignment import BillingAlignmentResolver
from billing_engines.billing_mode import (
    BillingCycle,
    BillingModeRegistry,
    BillingModeStrategy,
    InAdvanceBillingMode,
    billing_mode_strategy,
)
from billing_engines.item_generator import ItemGenerator
from billing_engines.reconciliation import (
    ItemNode,
    ItemReconciliationTree,
    ReconciliationResult,
    SubscriptionItemArena,
)
from billing_engines.tracer import compute_input_fingerprint, traced_engine

__all__ = [
    "BillingAlignmentResolver",
    "BillingCycle",
    "BillingModeRegistry",
    "BillingModeStrategy",
    "InAdvanceBillingMode",
    "ItemGenerator",
    "ItemNode",
    "ItemReconciliationTree",
    "ReconciliationResult",
    "SubscriptionItemArena",
    "billing_mode_strategy",
    "compute_input_fingerprint",
    "traced_engine",
]
