"""
billing_services.invoice_assembler -- Invoice generation for one account.

Responsibility:
    Top-level "generate invoice" operation: validates the target date,
    aligns it with invoices already issued, asks ItemGenerator for the
    complete proposal, reconciles it against every item previously
    invoiced, and wraps the surviving delta into a new Invoice.

Architecture position:
    Services -- orchestration over engines + kernel.
    Composes ItemGenerator and ItemReconciliationTree (billing_engines),
    takes a Clock and an InvoiceConfig by injection.  Does no I/O: the
    caller loads events and past invoices and persists the result.

Invariants enforced:
    - The target date never moves backwards: it is raised to the latest
      target date among existing invoices.
    - Target dates more than ``max_months_in_future`` whole months after
      today are refused.
    - No empty invoice is ever built; "nothing to bill" is ``None``.
    - Items of subscriptions with auto-invoicing off are passed through
      untouched.

Failure modes:
    - TargetDateTooFarInFutureError: target beyond the configured horizon.
    - InvalidDateSequenceError, UnsupportedBillingModeError,
      CurrencyMismatchError: propagated from the engines; the whole call
      aborts with no partial invoice.

Usage:
    from billing_services.invoice_assembler import InvoiceAssembler

    assembler = InvoiceAssembler(clock=SystemClock(), config=get_invoice_config())
    invoice = assembler.generate_invoice(
        account_id, timeline, existing_invoices, target_date, "USD",
    )
"""

from __future__ import annotations

import time
from collections.abc import Sequence
from datetime import date
from uuid import UUID, uuid4

from billing_config.schema import InvoiceConfig
from billing_kernel.domain.clock import Clock
from billing_kernel.domain.dates import months_between
from billing_kernel.domain.invoice import Invoice, InvoiceItem
from billing_kernel.domain.timeline import BillingEventTimeline
from billing_kernel.domain.values import Currency
from billing_kernel.exceptions import TargetDateTooFarInFutureError
from billing_kernel.logging_config import LogContext, get_logger
from billing_engines.item_generator import ItemGenerator
from billing_engines.reconciliation import ItemReconciliationTree

logger = get_logger("services.invoice_assembler")


class InvoiceAssembler:
    """
    Generates the next invoice of an account.

    Contract:
        Given the account's billing event timeline, its previously issued
        invoices and a target date, return the invoice carrying exactly the
        items needed for issued + new to equal what is due through the
        (adjusted) target date, or ``None`` when nothing is due.

    Non-goals:
        - Does NOT persist invoices, notify, or collect payment.
        - Does NOT serialize concurrent runs for the same account; callers
          do.
    """

    def __init__(
        self,
        clock: Clock,
        config: InvoiceConfig | None = None,
        generator: ItemGenerator | None = None,
        tree: ItemReconciliationTree | None = None,
    ):
        self._clock = clock
        self._config = config or InvoiceConfig()
        self._generator = generator or ItemGenerator(rounding=self._config.rounding)
        self._tree = tree or ItemReconciliationTree()

    @property
    def config(self) -> InvoiceConfig:
        return self._config

    def generate_invoice(
        self,
        account_id: UUID,
        events: BillingEventTimeline | None,
        existing_invoices: Sequence[Invoice] | None,
        target_date: date,
        currency: Currency | str | None = None,
        correlation_id: str | None = None,
    ) -> Invoice | None:
        """The invoice due for ``account_id`` through ``target_date``, or None."""
        currency = Currency(str(currency or self._config.default_currency))
        existing_invoices = tuple(existing_invoices or ())

        with LogContext.bind(account_id=account_id, correlation_id=correlation_id):
            t0 = time.monotonic()
            logger.info("invoice_generation_started", extra={
                "target_date": target_date.isoformat(),
                "currency": currency.code,
                "existing_invoice_count": len(existing_invoices),
            })

            if events is None or len(events) == 0:
                self._skipped("no_billing_events")
                return None
            if events.is_account_auto_invoice_off:
                self._skipped("account_auto_invoice_off")
                return None

            today = self._clock.utc_today()
            self.validate_target_date(today, target_date)
            adjusted_target = self.adjust_target_date(existing_invoices, target_date)

            invoice_id = uuid4()
            with LogContext.bind(invoice_id=invoice_id):
                invoice = self._build_invoice(
                    account_id, events, existing_invoices,
                    today, adjusted_target, currency, invoice_id,
                )
                if invoice is not None:
                    logger.info("invoice_generation_completed", extra={
                        "invoice_date": today.isoformat(),
                        "target_date": adjusted_target.isoformat(),
                        "item_count": invoice.item_count,
                        "charged_amount": str(invoice.charged_amount.amount),
                        "duration_ms": round((time.monotonic() - t0) * 1000, 2),
                    })
                return invoice

    def _build_invoice(
        self,
        account_id: UUID,
        events: BillingEventTimeline,
        existing_invoices: Sequence[Invoice],
        today: date,
        target_date: date,
        currency: Currency,
        invoice_id: UUID,
    ) -> Invoice | None:
        proposed = self._generator.generate_items(
            account_id, events, target_date, currency, invoice_id,
        )
        result = self._tree.reconcile(
            self._existing_items(existing_invoices),
            proposed,
            events.subscription_ids_with_auto_invoice_off,
        )
        if result.is_empty:
            self._skipped("nothing_to_invoice", target_date=target_date)
            return None

        logger.debug("invoice_delta_computed", extra={
            "new_item_count": len(result.new_items),
            "repair_item_count": len(result.repair_items),
            "pinned_item_count": len(result.pinned_items),
        })
        return Invoice.assemble(
            account_id=account_id,
            invoice_date=today,
            target_date=target_date,
            currency=currency,
            items=result.delta_items,
            invoice_id=invoice_id,
        )

    def validate_target_date(self, today: date, target_date: date) -> None:
        """Refuse targets more than the configured whole months ahead."""
        limit = self._config.max_months_in_future
        if months_between(today, target_date) > limit:
            logger.warning("invoice_target_date_rejected", extra={
                "today": today.isoformat(),
                "target_date": target_date.isoformat(),
                "max_months_in_future": limit,
            })
            raise TargetDateTooFarInFutureError(target_date.isoformat(), limit)

    @staticmethod
    def adjust_target_date(existing_invoices: Sequence[Invoice], target_date: date) -> date:
        """Raise ``target_date`` to the latest target already invoiced."""
        adjusted = target_date
        for invoice in existing_invoices:
            if invoice.target_date > adjusted:
                adjusted = invoice.target_date
        if adjusted != target_date:
            logger.info("invoice_target_date_adjusted", extra={
                "requested_target_date": target_date.isoformat(),
                "adjusted_target_date": adjusted.isoformat(),
            })
        return adjusted

    @staticmethod
    def _existing_items(existing_invoices: Sequence[Invoice]) -> list[InvoiceItem]:
        items: list[InvoiceItem] = []
        for invoice in existing_invoices:
            items.extend(invoice.items)
        return items

    @staticmethod
    def _skipped(reason: str, **fields: object) -> None:
        extra: dict[str, object] = {"reason": reason}
        for key, value in fields.items():
            extra[key] = value.isoformat() if isinstance(value, date) else value
        logger.info("invoice_generation_skipped", extra=extra)
