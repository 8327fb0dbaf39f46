"""
ItemReconciliationTree -- Minimal delta between issued and proposed items.

Responsibility:
    Given every item previously invoiced to an account and the complete
    from-scratch proposal through the target date, compute the items a new
    invoice must carry so that issued + new nets to the proposal: new
    positive items for ranges never billed, negative REPAIR_ADJ items for
    ranges billed but no longer (or differently) due.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  Invoked by
    InvoiceAssembler after ItemGenerator.

Algorithm:
    Items are indexed per subscription into an arena (a list of nodes
    addressed by integer handle).  Repairs already on record are folded
    into the node of the item they link to: the item's effective range
    ends where its earliest repair starts and its effective amount is the
    item amount plus the repair amounts.  Then, walking existing nodes in
    date order against the proposals that start on the same day:

    1. identical (kind, plan, phase, rate, range, amount)  -> dropped
    2. recurring, same plan/phase/rate, proposal shorter     -> the existing
       item is kept and a repair covering exactly the unused tail
       [proposal.end, existing.end) brings it down to the proposed amount
    3. anything else                                          -> the existing
       item is repaired over its whole effective range

    Proposals left unmatched are emitted as new items.  Items without a
    subscription id, non-generated kinds, and items of explicitly pinned
    subscriptions pass through untouched and are never repaired.

Invariants enforced:
    - Idempotence: feeding the delta back as existing items and
      reconciling the same proposal again yields an empty delta.
    - Conservation: per subscription, effective existing amounts plus the
      delta equal the proposed amounts.
    - Existing items are never mutated; corrections are new items.
"""

from __future__ import annotations

import time
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from uuid import UUID

from billing_kernel.domain.invoice import InvoiceItem, InvoiceItemType
from billing_kernel.domain.values import Money
from billing_kernel.logging_config import get_logger
from billing_engines.tracer import traced_engine

logger = get_logger("engines.reconciliation")


class NodeSource(str, Enum):
    EXISTING = "EXISTING"
    PROPOSED = "PROPOSED"


@dataclass
class ItemNode:
    """Arena entry for one FIXED or RECURRING item of a subscription."""

    handle: int
    source: NodeSource
    item: InvoiceItem
    effective_end: date | None
    effective_amount: Money
    matched: bool = False

    @property
    def is_active(self) -> bool:
        if self.item.item_type is InvoiceItemType.FIXED:
            return self.effective_end is None
        return self.effective_end is not None and self.effective_end > self.item.start_date

    def sort_key(self) -> tuple:
        end = self.effective_end or self.item.start_date
        return (
            self.item.start_date,
            end,
            0 if self.item.item_type is InvoiceItemType.FIXED else 1,
            self.handle,
        )

    def same_charge(self, other: ItemNode) -> bool:
        """Same kind, plan, phase and rate."""
        a, b = self.item, other.item
        return (
            a.item_type is b.item_type
            and a.plan_name == b.plan_name
            and a.phase_name == b.phase_name
            and a.rate == b.rate
        )


class SubscriptionItemArena:
    """Existing and proposed items of one subscription, handle addressed."""

    def __init__(self, subscription_id: UUID):
        self.subscription_id = subscription_id
        self.nodes: list[ItemNode] = []
        self.existing: list[int] = []
        self.proposed: list[int] = []

    def add_existing(self, item: InvoiceItem, repairs: list[InvoiceItem]) -> int:
        amount = item.amount
        for repair in repairs:
            amount = amount + repair.amount
        if item.item_type is InvoiceItemType.FIXED:
            # any repair on a fixed item cancels it
            effective_end = item.start_date if repairs else None
        else:
            effective_end = min([item.end_date] + [r.start_date for r in repairs])
        return self._append(NodeSource.EXISTING, item, effective_end, amount, self.existing)

    def add_proposed(self, item: InvoiceItem) -> int:
        return self._append(NodeSource.PROPOSED, item, item.end_date, item.amount, self.proposed)

    def _append(
        self,
        source: NodeSource,
        item: InvoiceItem,
        effective_end: date | None,
        amount: Money,
        handles: list[int],
    ) -> int:
        handle = len(self.nodes)
        self.nodes.append(ItemNode(handle, source, item, effective_end, amount))
        handles.append(handle)
        return handle

    def merge(self) -> tuple[list[InvoiceItem], list[InvoiceItem]]:
        """Walk both sides in date order; returns (new_items, repairs)."""
        self.existing.sort(key=lambda h: self.nodes[h].sort_key())
        self.proposed.sort(key=lambda h: self.nodes[h].sort_key())

        by_start: dict[tuple[InvoiceItemType, date], list[int]] = {}
        for handle in self.proposed:
            node = self.nodes[handle]
            by_start.setdefault((node.item.item_type, node.item.start_date), []).append(handle)

        repairs: list[InvoiceItem] = []
        for handle in self.existing:
            existing = self.nodes[handle]
            if not existing.is_active:
                continue
            candidates = [
                self.nodes[h]
                for h in by_start.get((existing.item.item_type, existing.item.start_date), ())
                if not self.nodes[h].matched and self.nodes[h].same_charge(existing)
            ]
            repair = self._match(existing, candidates)
            if repair is not None:
                repairs.append(repair)

        new_items = [
            self.nodes[h].item for h in self.proposed if not self.nodes[h].matched
        ]
        return new_items, repairs

    @staticmethod
    def _match(existing: ItemNode, candidates: list[ItemNode]) -> InvoiceItem | None:
        for proposed in candidates:
            if (
                proposed.effective_end == existing.effective_end
                and proposed.effective_amount == existing.effective_amount
            ):
                proposed.matched = existing.matched = True
                return None

        if existing.item.item_type is InvoiceItemType.RECURRING:
            for proposed in candidates:
                if (
                    proposed.effective_end < existing.effective_end
                    and proposed.effective_amount.amount <= existing.effective_amount.amount
                ):
                    proposed.matched = existing.matched = True
                    return InvoiceItem.repair(
                        existing.item,
                        start_date=proposed.effective_end,
                        end_date=existing.effective_end,
                        amount=proposed.effective_amount - existing.effective_amount,
                    )

        existing.matched = True
        return InvoiceItem.repair(
            existing.item,
            start_date=existing.item.start_date,
            end_date=existing.effective_end if existing.item.end_date else None,
            amount=-existing.effective_amount,
        )


@dataclass(frozen=True)
class ReconciliationResult:
    """
    Outcome of a reconciliation.

    Attributes:
        new_items: Proposed items not yet invoiced
        repair_items: Negative items correcting issued ranges
        pinned_items: Existing items passed through untouched
    """

    new_items: tuple[InvoiceItem, ...] = ()
    repair_items: tuple[InvoiceItem, ...] = ()
    pinned_items: tuple[InvoiceItem, ...] = field(default=())

    @property
    def delta_items(self) -> tuple[InvoiceItem, ...]:
        """Items a new invoice must carry."""
        return self.new_items + self.repair_items

    @property
    def resulting_items(self) -> tuple[InvoiceItem, ...]:
        return self.delta_items + self.pinned_items

    @property
    def is_empty(self) -> bool:
        return not self.delta_items


class ItemReconciliationTree:
    """Reconciles proposed items against previously invoiced items.

    Usage:
        tree = ItemReconciliationTree()
        result = tree.reconcile(existing_items, proposed_items)
        invoice_items = result.delta_items
    """

    @traced_engine("item_reconciliation", "1.0")
    def reconcile(
        self,
        existing_items: Iterable[InvoiceItem],
        proposed_items: Iterable[InvoiceItem],
        pinned_subscription_ids: Iterable[UUID] = (),
    ) -> ReconciliationResult:
        t0 = time.monotonic()
        pinned_subscriptions = frozenset(pinned_subscription_ids)
        existing_items = tuple(existing_items)
        proposed_items = tuple(proposed_items)

        pinned: list[InvoiceItem] = []
        owned: list[InvoiceItem] = []
        for item in existing_items:
            if item.is_pinned or item.subscription_id in pinned_subscriptions:
                pinned.append(item)
            else:
                owned.append(item)

        repairs_by_link: dict[UUID, list[InvoiceItem]] = {}
        charges: list[InvoiceItem] = []
        for item in owned:
            if item.item_type is InvoiceItemType.REPAIR_ADJ:
                repairs_by_link.setdefault(item.linked_item_id, []).append(item)
            else:
                charges.append(item)

        charge_ids = {item.id for item in charges}
        for linked_id, orphans in repairs_by_link.items():
            if linked_id not in charge_ids:
                logger.warning("reconciliation_orphan_repair", extra={
                    "linked_item_id": str(linked_id),
                    "repair_count": len(orphans),
                })
                pinned.extend(orphans)

        arenas: dict[UUID, SubscriptionItemArena] = {}

        def arena_for(subscription_id: UUID) -> SubscriptionItemArena:
            if subscription_id not in arenas:
                arenas[subscription_id] = SubscriptionItemArena(subscription_id)
            return arenas[subscription_id]

        for item in proposed_items:
            arena_for(item.subscription_id).add_proposed(item)
        for item in charges:
            arena_for(item.subscription_id).add_existing(item, repairs_by_link.get(item.id, []))

        new_items: list[InvoiceItem] = []
        repair_items: list[InvoiceItem] = []
        for arena in arenas.values():
            added, repaired = arena.merge()
            new_items.extend(added)
            repair_items.extend(repaired)
            if added or repaired:
                logger.debug("subscription_reconciled", extra={
                    "subscription_id": str(arena.subscription_id),
                    "new_items": len(added),
                    "repair_items": len(repaired),
                })

        result = ReconciliationResult(
            new_items=tuple(new_items),
            repair_items=tuple(repair_items),
            pinned_items=tuple(pinned),
        )
        logger.info("reconciliation_completed", extra={
            "existing_count": len(existing_items),
            "proposed_count": len(proposed_items),
            "new_count": len(new_items),
            "repair_count": len(repair_items),
            "pinned_count": len(pinned),
            "duration_ms": round((time.monotonic() - t0) * 1000, 2),
        })
        return result
