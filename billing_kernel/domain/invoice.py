"""
Invoice -- Immutable invoice and invoice item value objects.

Responsibility:
    Defines the closed set of invoice item kinds as a single tagged value
    type (``InvoiceItem`` with an ``InvoiceItemType`` tag) and the
    ``Invoice`` aggregate handed to the persistence layer.

Architecture position:
    Kernel > Domain -- pure value objects, zero I/O.

Invariants enforced:
    - FIXED items cover a single date (no end date).
    - RECURRING items cover a half-open range [start_date, end_date) with
      end_date after start_date and carry their per-cycle rate.
    - REPAIR_ADJ items are never positive and always reference the item
      they repair through ``linked_item_id``.
    - Items and invoices are frozen; corrections are new items.

Audit relevance:
    Items without a subscription id (credits, external charges, migration
    items) are pinned: reconciliation passes them through and never
    repairs them.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID, uuid4

from billing_kernel.domain.values import Currency, Money


class InvoiceItemType(str, Enum):
    """Kinds of invoice items."""

    FIXED = "FIXED"
    RECURRING = "RECURRING"
    REPAIR_ADJ = "REPAIR_ADJ"
    # Produced outside this core; always pinned during reconciliation
    CREDIT_ADJ = "CREDIT_ADJ"
    ITEM_ADJ = "ITEM_ADJ"
    EXTERNAL_CHARGE = "EXTERNAL_CHARGE"
    MIGRATION = "MIGRATION"


GENERATED_ITEM_TYPES = frozenset({
    InvoiceItemType.FIXED,
    InvoiceItemType.RECURRING,
    InvoiceItemType.REPAIR_ADJ,
})


@dataclass(frozen=True)
class InvoiceItem:
    """
    A single invoice line.

    Attributes:
        item_type: Tag selecting which fields are meaningful
        account_id: Owning account
        start_date: Charge date (FIXED) or range start (RECURRING, REPAIR_ADJ)
        amount: Signed amount
        subscription_id: Owning subscription; None for pinned items
        bundle_id: Bundle of the subscription
        plan_name: Catalog plan
        phase_name: Catalog plan phase
        end_date: Exclusive range end (RECURRING, REPAIR_ADJ)
        rate: Per-cycle recurring rate (RECURRING)
        linked_item_id: Item repaired by this one (REPAIR_ADJ)
        invoice_id: Invoice carrying the item, once assembled
        id: Item identifier
        description: Free text
    """

    item_type: InvoiceItemType
    account_id: UUID
    start_date: date
    amount: Money
    subscription_id: UUID | None = None
    bundle_id: UUID | None = None
    plan_name: str | None = None
    phase_name: str | None = None
    end_date: date | None = None
    rate: Decimal | None = None
    linked_item_id: UUID | None = None
    invoice_id: UUID | None = None
    id: UUID = field(default_factory=uuid4)
    description: str = ""

    def __post_init__(self) -> None:
        if self.item_type is InvoiceItemType.FIXED and self.end_date is not None:
            raise ValueError("FIXED items cover a single date and have no end_date")
        if self.item_type is InvoiceItemType.RECURRING:
            if self.end_date is None or self.end_date <= self.start_date:
                raise ValueError(
                    f"RECURRING item range is empty: [{self.start_date}, {self.end_date})"
                )
        if self.item_type is InvoiceItemType.REPAIR_ADJ:
            if self.linked_item_id is None:
                raise ValueError("REPAIR_ADJ items must reference the repaired item")
            if self.amount.amount > 0:
                raise ValueError("REPAIR_ADJ items cannot be positive")

    # ------------------------------------------------------------------
    # Factories
    # ------------------------------------------------------------------

    @classmethod
    def fixed(
        cls,
        *,
        account_id: UUID,
        subscription_id: UUID,
        bundle_id: UUID,
        plan_name: str,
        phase_name: str,
        charge_date: date,
        amount: Money,
        invoice_id: UUID | None = None,
    ) -> InvoiceItem:
        return cls(
            item_type=InvoiceItemType.FIXED,
            account_id=account_id,
            subscription_id=subscription_id,
            bundle_id=bundle_id,
            plan_name=plan_name,
            phase_name=phase_name,
            start_date=charge_date,
            amount=amount,
            invoice_id=invoice_id,
        )

    @classmethod
    def recurring(
        cls,
        *,
        account_id: UUID,
        subscription_id: UUID,
        bundle_id: UUID,
        plan_name: str,
        phase_name: str,
        start_date: date,
        end_date: date,
        amount: Money,
        rate: Decimal,
        invoice_id: UUID | None = None,
    ) -> InvoiceItem:
        return cls(
            item_type=InvoiceItemType.RECURRING,
            account_id=account_id,
            subscription_id=subscription_id,
            bundle_id=bundle_id,
            plan_name=plan_name,
            phase_name=phase_name,
            start_date=start_date,
            end_date=end_date,
            amount=amount,
            rate=rate,
            invoice_id=invoice_id,
        )

    @classmethod
    def repair(
        cls,
        repaired: InvoiceItem,
        *,
        start_date: date,
        end_date: date | None,
        amount: Money,
        invoice_id: UUID | None = None,
    ) -> InvoiceItem:
        """Negative item cancelling ``repaired`` over [start_date, end_date)."""
        return cls(
            item_type=InvoiceItemType.REPAIR_ADJ,
            account_id=repaired.account_id,
            subscription_id=repaired.subscription_id,
            bundle_id=repaired.bundle_id,
            plan_name=repaired.plan_name,
            phase_name=repaired.phase_name,
            start_date=start_date,
            end_date=end_date,
            amount=amount,
            linked_item_id=repaired.id,
            invoice_id=invoice_id,
        )

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def currency(self) -> Currency:
        return self.amount.currency

    @property
    def is_pinned(self) -> bool:
        """True for items reconciliation must never cancel."""
        return self.subscription_id is None or self.item_type not in GENERATED_ITEM_TYPES

    def with_invoice(self, invoice_id: UUID) -> InvoiceItem:
        return replace(self, invoice_id=invoice_id)

    def to_trace_dict(self) -> dict[str, Any]:
        return {
            "item_type": self.item_type.value,
            "subscription_id": None if self.subscription_id is None else str(self.subscription_id),
            "plan": self.plan_name,
            "phase": self.phase_name,
            "start_date": self.start_date.isoformat(),
            "end_date": None if self.end_date is None else self.end_date.isoformat(),
            "amount": str(self.amount.amount),
            "rate": None if self.rate is None else str(self.rate),
            "linked_item_id": None if self.linked_item_id is None else str(self.linked_item_id),
        }


@dataclass(frozen=True)
class Invoice:
    """
    An assembled invoice.

    Contract:
        Built only when at least one item survives reconciliation.
        Every item carries this invoice's id.
    """

    account_id: UUID
    invoice_date: date
    target_date: date
    currency: Currency
    items: tuple[InvoiceItem, ...] = ()
    id: UUID = field(default_factory=uuid4)

    def __post_init__(self) -> None:
        if isinstance(self.currency, str):
            object.__setattr__(self, "currency", Currency(self.currency))

    @classmethod
    def assemble(
        cls,
        *,
        account_id: UUID,
        invoice_date: date,
        target_date: date,
        currency: Currency | str,
        items: tuple[InvoiceItem, ...] | list[InvoiceItem],
        invoice_id: UUID | None = None,
    ) -> Invoice:
        """Build an invoice, stamping its id on every item."""
        invoice_id = invoice_id or uuid4()
        return cls(
            account_id=account_id,
            invoice_date=invoice_date,
            target_date=target_date,
            currency=currency,
            items=tuple(item.with_invoice(invoice_id) for item in items),
            id=invoice_id,
        )

    @property
    def item_count(self) -> int:
        return len(self.items)

    @property
    def charged_amount(self) -> Money:
        """Sum of all item amounts."""
        total = Money.zero(self.currency)
        for item in self.items:
            total = total + item.amount
        return total
