"""
Summary and Filter Routines

DESIGN DECISION: Aggregation is DETERMINISTIC and storage-free.
Flows fetch records first, then hand the collections to these
functions. Nothing here performs I/O, caches results or mutates the
records it is given.

Money is summed as Decimal so that totals do not depend on the order
records arrive in.

These routines assume well-formed, successfully fetched collections.
An empty collection is fine; error handling belongs to the caller.
"""

from datetime import date, timedelta
from decimal import Decimal
from typing import Iterable, Optional, TypeVar, Union

from eazybooks.models.records import (
    Income,
    IncomeSource,
    IncomeStatus,
    IncomeSummary,
    Invoice,
    InvoiceStatus,
    LineItem,
    Quotation,
    Tax,
    TaxCategory,
    TaxStatus,
    TaxSummary,
)


ZERO = Decimal("0")
DEFAULT_UPCOMING_WINDOW_DAYS = 30


# =============================================================================
# INCOME
# =============================================================================

def summarize_income(incomes: Iterable[Income]) -> IncomeSummary:
    """
    Fold incomes into the figures shown on the income summary cards.

    - received / pending totals and counts
    - per-source totals over received income only
    - the top source by received total; ties go to the source seen first

    A source with no received income is listed in `by_source` with a
    zero total but never becomes the top source.
    """
    total_received = ZERO
    total_pending = ZERO
    received_count = 0
    pending_count = 0
    by_source: dict[IncomeSource, Decimal] = {}

    for income in incomes:
        # dicts keep insertion order, which settles ties below
        by_source.setdefault(income.source, ZERO)

        if income.status == IncomeStatus.RECEIVED:
            total_received += income.amount
            received_count += 1
            by_source[income.source] += income.amount
        elif income.status == IncomeStatus.PENDING:
            total_pending += income.amount
            pending_count += 1

    top_source: Optional[IncomeSource] = None
    top_amount = ZERO
    for source, amount in by_source.items():
        if amount > top_amount:
            top_source = source
            top_amount = amount

    return IncomeSummary(
        total_received=total_received,
        total_pending=total_pending,
        received_count=received_count,
        pending_count=pending_count,
        by_source=by_source,
        top_source=top_source,
        top_amount=top_amount,
    )


# =============================================================================
# TAXES
# =============================================================================

def classify_tax(
    tax: Tax,
    today: date,
    upcoming_window_days: int = DEFAULT_UPCOMING_WINDOW_DAYS,
) -> str:
    """
    Bucket a tax falls into as of `today`.

    Only PENDING taxes are reclassified:
    - due before today           -> "overdue"
    - due within the window      -> "upcoming" (today inclusive)
    - due later                  -> "pending"
    Every other status maps to its own value.
    """
    if tax.status != TaxStatus.PENDING:
        return tax.status.value

    if tax.due_date < today:
        return "overdue"
    if tax.due_date <= today + timedelta(days=upcoming_window_days):
        return "upcoming"
    return "pending"


def summarize_taxes(
    taxes: Iterable[Tax],
    today: date,
    upcoming_window_days: int = DEFAULT_UPCOMING_WINDOW_DAYS,
) -> TaxSummary:
    """
    Totals per bucket as of `today`.

    Recomputed on every call. FILED taxes only count towards `total`.
    """
    totals = {
        "paid": ZERO,
        "pending": ZERO,
        "overdue": ZERO,
        "upcoming": ZERO,
    }
    total = ZERO

    for tax in taxes:
        total += tax.amount
        bucket = classify_tax(tax, today, upcoming_window_days)
        if bucket in totals:
            totals[bucket] += tax.amount

    return TaxSummary(as_of=today, total=total, **totals)


def filter_taxes(
    taxes: Iterable[Tax],
    category: Optional[TaxCategory] = None,
    status: Optional[TaxStatus] = None,
) -> list[Tax]:
    """Taxes matching the category and status filters (None = any)."""
    return [
        tax for tax in taxes
        if (category is None or tax.category == category)
        and (status is None or tax.status == status)
    ]


# =============================================================================
# INVOICES
# =============================================================================

def _contains(haystack: Optional[str], needle: str) -> bool:
    return bool(haystack) and needle in haystack.lower()


def filter_invoices(
    invoices: Iterable[Invoice],
    status: Optional[Union[InvoiceStatus, str]] = None,
    search: Optional[str] = "",
) -> list[Invoice]:
    """
    Invoices matching `status` (if given) and the search term.

    The term matches the invoice number or the customer's name,
    case-insensitively. A blank term matches everything. Input
    order is preserved.
    """
    wanted = InvoiceStatus(status) if status else None
    term = (search or "").strip().lower()

    result = []
    for invoice in invoices:
        if wanted is not None and invoice.status != wanted:
            continue
        if term:
            customer_name = invoice.customer.name if invoice.customer else None
            if not (_contains(invoice.invoice_number, term) or _contains(customer_name, term)):
                continue
        result.append(invoice)
    return result


# =============================================================================
# LINE ITEMS
# =============================================================================

CENT = Decimal("0.01")


def line_amount(item: LineItem) -> Decimal:
    """price * quantity, rounded to cents."""
    return (item.price * item.quantity).quantize(CENT)


def calculate_items_total(items: Iterable[LineItem]) -> Decimal:
    """Sum of the line amounts."""
    return sum((line_amount(item) for item in items), ZERO)


def prepare_line_items(items: Iterable[LineItem]) -> list[LineItem]:
    """Copies of the items with `amount` recomputed from price and quantity."""
    return [
        item.model_copy(update={"amount": line_amount(item)})
        for item in items
    ]


DocumentT = TypeVar("DocumentT", Invoice, Quotation)


def with_computed_total(document: DocumentT) -> DocumentT:
    """Invoice or quotation with item amounts and the total recomputed."""
    items = prepare_line_items(document.items)
    return document.model_copy(
        update={"items": items, "total_amount": calculate_items_total(items)}
    )
