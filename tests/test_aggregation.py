"""Tests for the summary and filter routines."""

import itertools
from datetime import date
from decimal import Decimal

import pytest

from eazybooks.aggregation import (
    calculate_items_total,
    classify_tax,
    filter_invoices,
    filter_taxes,
    line_amount,
    prepare_line_items,
    summarize_income,
    summarize_taxes,
    with_computed_total,
)
from eazybooks.models import (
    Customer,
    Income,
    IncomeSource,
    IncomeStatus,
    Invoice,
    InvoiceStatus,
    LineItem,
    Tax,
    TaxCategory,
    TaxStatus,
)


TODAY = date(2024, 6, 15)


def income(amount, status, source, user_id="u1"):
    return Income(
        user_id=user_id,
        description=f"{source} {amount}",
        amount=Decimal(str(amount)),
        income_date=date(2024, 6, 1),
        source=source,
        status=status,
    )


def tax(amount, due, status=TaxStatus.PENDING, category=TaxCategory.INCOME):
    return Tax(
        user_id="u1",
        name=f"Tax due {due}",
        category=category,
        amount=Decimal(str(amount)),
        due_date=due,
        status=status,
    )


def invoice(number, customer_name=None, status=InvoiceStatus.SENT):
    return Invoice(
        user_id="u1",
        invoice_number=number,
        customer=Customer(user_id="u1", name=customer_name) if customer_name else None,
        issue_date=date(2024, 6, 1),
        due_date=date(2024, 6, 30),
        status=status,
    )


class TestIncomeSummary:
    """Tests for summarize_income."""

    def test_worked_example(self):
        """Test one received and one pending sale."""
        summary = summarize_income([
            income(100, IncomeStatus.RECEIVED, IncomeSource.SALES),
            income(50, IncomeStatus.PENDING, IncomeSource.SALES),
        ])
        assert summary.total_received == Decimal("100")
        assert summary.total_pending == Decimal("50")
        assert summary.received_count == 1
        assert summary.pending_count == 1
        assert summary.top_source == IncomeSource.SALES
        assert summary.top_amount == Decimal("100")

    def test_permutation_invariance(self):
        """Test totals don't depend on input order."""
        incomes = [
            income("100.10", IncomeStatus.RECEIVED, IncomeSource.SALES),
            income("0.20", IncomeStatus.RECEIVED, IncomeSource.CONSULTING),
            income("50", IncomeStatus.PENDING, IncomeSource.SALES),
            income("75.35", IncomeStatus.RECEIVED, IncomeSource.SERVICES),
            income("10", IncomeStatus.CANCELLED, IncomeSource.OTHER),
        ]
        baseline = summarize_income(incomes)
        for perm in itertools.permutations(incomes):
            summary = summarize_income(perm)
            assert summary.total_received == baseline.total_received
            assert summary.total_pending == baseline.total_pending
            assert summary.by_source == baseline.by_source
            assert summary.top_source == baseline.top_source
            assert summary.top_amount == baseline.top_amount

    def test_empty_input(self):
        """Test no incomes means no top source."""
        summary = summarize_income([])
        assert summary.total_received == Decimal("0")
        assert summary.top_source is None
        assert summary.by_source == {}

    def test_pending_only_source_never_wins(self):
        """Test a source with zero received income is not the top source."""
        summary = summarize_income([income(500, IncomeStatus.PENDING, IncomeSource.CONSULTING)])
        assert summary.by_source == {IncomeSource.CONSULTING: Decimal("0")}
        assert summary.top_source is None

    def test_tie_goes_to_first_source(self):
        """Test ties are broken by first-encountered source."""
        summary = summarize_income([
            income(40, IncomeStatus.RECEIVED, IncomeSource.SERVICES),
            income(40, IncomeStatus.RECEIVED, IncomeSource.SALES),
        ])
        assert summary.top_source == IncomeSource.SERVICES

    def test_cancelled_is_ignored(self):
        """Test cancelled income counts nowhere."""
        summary = summarize_income([income(99, IncomeStatus.CANCELLED, IncomeSource.SALES)])
        assert summary.total_received == Decimal("0")
        assert summary.total_pending == Decimal("0")
        assert summary.received_count == 0


class TestTaxSummary:
    """Tests for summarize_taxes and classify_tax."""

    def test_reclassification_example(self):
        """Test overdue, upcoming and pending buckets on 2024-06-15."""
        summary = summarize_taxes([
            tax(10, date(2024, 6, 1)),
            tax(20, date(2024, 6, 20)),
            tax(40, date(2025, 1, 1)),
        ], TODAY)
        assert summary.overdue == Decimal("10")
        assert summary.upcoming == Decimal("20")
        assert summary.pending == Decimal("40")
        assert summary.total == Decimal("70")
        assert summary.as_of == TODAY

    def test_window_boundaries(self):
        """Test today and today+30 are upcoming; today+31 is pending."""
        assert classify_tax(tax(1, TODAY), TODAY) == "upcoming"
        assert classify_tax(tax(1, date(2024, 7, 15)), TODAY) == "upcoming"
        assert classify_tax(tax(1, date(2024, 7, 16)), TODAY) == "pending"

    def test_custom_window(self):
        """Test the upcoming window is configurable."""
        assert classify_tax(tax(1, date(2024, 6, 20)), TODAY, upcoming_window_days=3) == "pending"

    def test_stored_statuses_count_at_face_value(self):
        """Test paid, overdue and filed taxes are not reclassified."""
        summary = summarize_taxes([
            tax(5, date(2024, 1, 1), TaxStatus.PAID),
            tax(7, date(2030, 1, 1), TaxStatus.OVERDUE),
            tax(11, date(2024, 6, 16), TaxStatus.FILED),
        ], TODAY)
        assert summary.paid == Decimal("5")
        assert summary.overdue == Decimal("7")
        assert summary.upcoming == Decimal("0")
        assert summary.pending == Decimal("0")
        assert summary.total == Decimal("23")

    def test_stored_status_not_mutated(self):
        """Test summarizing leaves records untouched."""
        late = tax(10, date(2024, 6, 1))
        summarize_taxes([late], TODAY)
        assert late.status == TaxStatus.PENDING

    def test_filter_taxes(self):
        """Test category and status filters."""
        taxes = [
            tax(1, TODAY, TaxStatus.PAID, TaxCategory.SALES),
            tax(2, TODAY, TaxStatus.PENDING, TaxCategory.SALES),
            tax(3, TODAY, TaxStatus.PAID, TaxCategory.PAYROLL),
        ]
        assert len(filter_taxes(taxes)) == 3
        assert [t.amount for t in filter_taxes(taxes, category=TaxCategory.SALES)] == [Decimal("1"), Decimal("2")]
        assert [t.amount for t in filter_taxes(taxes, TaxCategory.SALES, TaxStatus.PAID)] == [Decimal("1")]


class TestInvoiceFilter:
    """Tests for filter_invoices."""

    def test_blank_filter_is_identity(self):
        """Test no status and no search return the input unchanged."""
        invoices = [invoice("INV-003"), invoice("INV-001"), invoice("INV-002")]
        assert filter_invoices(invoices, status=None, search="") == invoices

    def test_search_is_case_insensitive(self):
        """Test 'inv-007' finds 'INV-007'."""
        invoices = [invoice("INV-006"), invoice("INV-007")]
        result = filter_invoices(invoices, search="inv-007")
        assert [inv.invoice_number for inv in result] == ["INV-007"]

    def test_search_matches_customer_name(self):
        """Test the term also matches the customer's name."""
        invoices = [invoice("INV-001", "Acme Ltd"), invoice("INV-002", "Globex")]
        result = filter_invoices(invoices, search="ACME")
        assert [inv.invoice_number for inv in result] == ["INV-001"]

    def test_missing_customer_does_not_match(self):
        """Test invoices without a customer only match on number."""
        assert filter_invoices([invoice("INV-001")], search="acme") == []

    def test_status_and_search_combined(self):
        """Test both conditions must hold."""
        invoices = [
            invoice("INV-001", "Acme", InvoiceStatus.PAID),
            invoice("INV-002", "Acme", InvoiceStatus.SENT),
        ]
        result = filter_invoices(invoices, status="paid", search="acme")
        assert [inv.invoice_number for inv in result] == ["INV-001"]

    def test_whitespace_search_matches_everything(self):
        """Test a whitespace-only term is blank."""
        invoices = [invoice("INV-001"), invoice("INV-002")]
        assert filter_invoices(invoices, search="   ") == invoices


class TestLineItems:
    """Tests for line item arithmetic."""

    def test_line_amount(self):
        """Test price * quantity rounded to cents."""
        item = LineItem(description="x", quantity=Decimal("3"), price=Decimal("0.333"))
        assert line_amount(item) == Decimal("1.00")

    def test_items_total(self):
        """Test the total is the sum of line amounts."""
        items = [
            LineItem(description="a", quantity=Decimal("2"), price=Decimal("10.50")),
            LineItem(description="b", quantity=Decimal("1"), price=Decimal("0.25")),
        ]
        assert calculate_items_total(items) == Decimal("21.25")
        assert calculate_items_total([]) == Decimal("0")

    def test_prepare_line_items_copies(self):
        """Test amounts are recomputed on copies."""
        original = LineItem(description="a", quantity=Decimal("2"), price=Decimal("5"))
        prepared = prepare_line_items([original])
        assert prepared[0].amount == Decimal("10.00")
        assert original.amount == Decimal("0")

    def test_with_computed_total(self):
        """Test invoices get item amounts and total filled in."""
        doc = invoice("INV-010").model_copy(update={"items": [
            LineItem(description="a", quantity=Decimal("4"), price=Decimal("2.50")),
        ]})
        computed = with_computed_total(doc)
        assert computed.total_amount == Decimal("10.00")
        assert computed.items[0].amount == Decimal("10.00")
        assert doc.total_amount == Decimal("0")

    @pytest.mark.parametrize("quantity", ["0", "1", "7"])
    def test_zero_price(self, quantity):
        """Test free items contribute nothing."""
        item = LineItem(description="gift", quantity=Decimal(quantity), price=Decimal("0"))
        assert line_amount(item) == Decimal("0.00")
