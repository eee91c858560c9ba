"""
Data Models Package

This package contains all Pydantic models used in EazyBooks.
All data flowing through the system must conform to these schemas.
"""

from eazybooks.models.access import (
    Business,
    Feature,
    Identity,
    Role,
    Tier,
    UserProfile,
)
from eazybooks.models.records import (
    RECORD_TYPES,
    BankTransaction,
    Customer,
    Employee,
    EmployeeStatus,
    Expense,
    ExpenseStatus,
    Income,
    IncomeSource,
    IncomeStatus,
    IncomeSummary,
    Invoice,
    InvoiceStatus,
    LeaveApplication,
    LeaveStatus,
    LineItem,
    OwnedRecord,
    Quotation,
    QuotationStatus,
    Tax,
    TaxCategory,
    TaxStatus,
    TaxSummary,
)
from eazybooks.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Access models
    "Business",
    "Feature",
    "Identity",
    "Role",
    "Tier",
    "UserProfile",
    # Record models
    "RECORD_TYPES",
    "BankTransaction",
    "Customer",
    "Employee",
    "EmployeeStatus",
    "Expense",
    "ExpenseStatus",
    "Income",
    "IncomeSource",
    "IncomeStatus",
    "IncomeSummary",
    "Invoice",
    "InvoiceStatus",
    "LeaveApplication",
    "LeaveStatus",
    "LineItem",
    "OwnedRecord",
    "Quotation",
    "QuotationStatus",
    "Tax",
    "TaxCategory",
    "TaxStatus",
    "TaxSummary",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
