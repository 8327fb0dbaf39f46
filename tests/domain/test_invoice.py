"""Tests for the InvoiceItem tagged value type and the Invoice aggregate."""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from billing_kernel.domain.invoice import Invoice, InvoiceItem, InvoiceItemType
from billing_kernel.domain.values import Money


@pytest.fixture
def recurring_item(account_id, subscription_id, bundle_id):
    return InvoiceItem.recurring(
        account_id=account_id,
        subscription_id=subscription_id,
        bundle_id=bundle_id,
        plan_name="pistol-monthly",
        phase_name="pistol-monthly-evergreen",
        start_date=date(2013, 8, 7),
        end_date=date(2013, 9, 7),
        amount=Money.of("100.00", "USD"),
        rate=Decimal("100.00"),
    )


class TestInvoiceItemValidation:
    """Per-kind field rules."""

    def test_fixed_has_no_end_date(self, account_id):
        with pytest.raises(ValueError, match="FIXED"):
            InvoiceItem(
                item_type=InvoiceItemType.FIXED,
                account_id=account_id,
                start_date=date(2013, 8, 7),
                end_date=date(2013, 8, 8),
                amount=Money.zero("USD"),
            )

    def test_recurring_range_not_empty(self, account_id):
        with pytest.raises(ValueError, match="empty"):
            InvoiceItem(
                item_type=InvoiceItemType.RECURRING,
                account_id=account_id,
                start_date=date(2013, 8, 7),
                end_date=date(2013, 8, 7),
                amount=Money.zero("USD"),
            )

    def test_repair_requires_link(self, account_id):
        with pytest.raises(ValueError, match="reference"):
            InvoiceItem(
                item_type=InvoiceItemType.REPAIR_ADJ,
                account_id=account_id,
                start_date=date(2013, 8, 7),
                amount=Money.of("-1.00", "USD"),
            )

    def test_repair_never_positive(self, recurring_item):
        with pytest.raises(ValueError, match="positive"):
            InvoiceItem.repair(
                recurring_item,
                start_date=date(2013, 8, 10),
                end_date=date(2013, 9, 7),
                amount=Money.of("1.00", "USD"),
            )


class TestInvoiceItemFactories:
    """Factories copy ownership fields."""

    def test_repair_links_and_copies(self, recurring_item):
        repair = InvoiceItem.repair(
            recurring_item,
            start_date=date(2013, 8, 10),
            end_date=date(2013, 9, 7),
            amount=Money.of("-90.32", "USD"),
        )
        assert repair.item_type is InvoiceItemType.REPAIR_ADJ
        assert repair.linked_item_id == recurring_item.id
        assert repair.subscription_id == recurring_item.subscription_id
        assert repair.plan_name == recurring_item.plan_name
        assert repair.rate is None

    def test_ids_are_unique(self, recurring_item, account_id, subscription_id, bundle_id):
        other = InvoiceItem.fixed(
            account_id=account_id,
            subscription_id=subscription_id,
            bundle_id=bundle_id,
            plan_name="p",
            phase_name="p-trial",
            charge_date=date(2013, 8, 7),
            amount=Money.zero("USD"),
        )
        assert other.id != recurring_item.id
        assert other.end_date is None


class TestPinnedItems:
    """Items reconciliation must not cancel."""

    def test_generated_item_not_pinned(self, recurring_item):
        assert not recurring_item.is_pinned

    def test_no_subscription_is_pinned(self, account_id):
        credit = InvoiceItem(
            item_type=InvoiceItemType.CREDIT_ADJ,
            account_id=account_id,
            start_date=date(2013, 8, 7),
            amount=Money.of("-10.00", "USD"),
        )
        assert credit.is_pinned

    def test_external_charge_with_subscription_is_pinned(self, account_id, subscription_id):
        charge = InvoiceItem(
            item_type=InvoiceItemType.EXTERNAL_CHARGE,
            account_id=account_id,
            subscription_id=subscription_id,
            start_date=date(2013, 8, 7),
            amount=Money.of("10.00", "USD"),
        )
        assert charge.is_pinned


class TestInvoice:
    """Invoice assembly."""

    def test_assemble_stamps_invoice_id(self, recurring_item, account_id):
        invoice = Invoice.assemble(
            account_id=account_id,
            invoice_date=date(2013, 8, 7),
            target_date=date(2013, 8, 7),
            currency="usd",
            items=[recurring_item],
        )
        assert invoice.item_count == 1
        assert invoice.items[0].invoice_id == invoice.id
        assert invoice.items[0].id == recurring_item.id
        assert invoice.currency.code == "USD"

    def test_assemble_with_given_id(self, recurring_item, account_id):
        invoice_id = uuid4()
        invoice = Invoice.assemble(
            account_id=account_id,
            invoice_date=date(2013, 8, 7),
            target_date=date(2013, 8, 7),
            currency="USD",
            items=(recurring_item,),
            invoice_id=invoice_id,
        )
        assert invoice.id == invoice_id

    def test_charged_amount(self, recurring_item, account_id):
        repair = InvoiceItem.repair(
            recurring_item,
            start_date=date(2013, 8, 10),
            end_date=date(2013, 9, 7),
            amount=Money.of("-90.32", "USD"),
        )
        invoice = Invoice.assemble(
            account_id=account_id,
            invoice_date=date(2013, 8, 10),
            target_date=date(2013, 8, 10),
            currency="USD",
            items=[recurring_item, repair],
        )
        assert invoice.charged_amount == Money.of("9.68", "USD")
