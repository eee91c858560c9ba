"""Summary and filter routines over fetched records."""

from eazybooks.aggregation.summaries import (
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

__all__ = [
    "calculate_items_total",
    "classify_tax",
    "filter_invoices",
    "filter_taxes",
    "line_amount",
    "prepare_line_items",
    "summarize_income",
    "summarize_taxes",
    "with_computed_total",
]
