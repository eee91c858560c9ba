"""
Bookkeeping Record Models

These models define the strict schemas for the records a business keeps:
income, taxes, invoices, quotations, expenses, employees, leave and bank
transactions. They are designed to:
1. Enforce type safety at runtime
2. Keep money in Decimal, never float
3. Be serializable for storage and logging
4. Stay scoped to the user that created them

DESIGN DECISION: Every record carries its owner's user_id.
Storage implementations filter on it; there is no cross-user sharing.
"""

from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import ClassVar, Optional
from uuid import uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    model_validator,
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return str(uuid4())


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class IncomeSource(str, Enum):
    """Where a piece of income came from."""
    SALES = "sales"
    SERVICES = "services"
    CONSULTING = "consulting"
    INVESTMENT = "investment"
    OTHER = "other"


class IncomeStatus(str, Enum):
    RECEIVED = "received"
    PENDING = "pending"
    CANCELLED = "cancelled"


class TaxCategory(str, Enum):
    INCOME = "income"
    SALES = "sales"
    PROPERTY = "property"
    PAYROLL = "payroll"
    OTHER = "other"


class TaxStatus(str, Enum):
    """
    Stored tax status.

    A PENDING tax past its due date is still stored as PENDING; the
    tax summary reclassifies it at read time.
    """
    PENDING = "pending"
    PAID = "paid"
    OVERDUE = "overdue"
    FILED = "filed"


class InvoiceStatus(str, Enum):
    DRAFT = "draft"
    SENT = "sent"
    PAID = "paid"
    OVERDUE = "overdue"
    CANCELLED = "cancelled"


class QuotationStatus(str, Enum):
    DRAFT = "draft"
    SENT = "sent"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    EXPIRED = "expired"


class ExpenseStatus(str, Enum):
    RECORDED = "recorded"
    PENDING = "pending"
    REIMBURSED = "reimbursed"
    APPROVED = "approved"


class EmployeeStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    ON_LEAVE = "on_leave"
    TERMINATED = "terminated"


class LeaveStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    CANCELED = "canceled"


# =============================================================================
# BASE RECORD
# =============================================================================

class OwnedRecord(BaseModel):
    """
    Common identity and ownership fields.

    `record_type` names the collection a record lives in
    (one worksheet / table per type).
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    record_type: ClassVar[str] = ""

    id: str = Field(
        default_factory=_new_id,
        description="Unique record ID"
    )
    user_id: str = Field(
        ...,
        min_length=1,
        description="Owning user"
    )
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)


# =============================================================================
# INCOME & TAX
# =============================================================================

class Income(OwnedRecord):
    """A payment received (or expected) by the business."""

    record_type: ClassVar[str] = "incomes"

    description: str = Field(..., min_length=1, max_length=500)
    amount: Decimal = Field(..., ge=0, decimal_places=2)
    income_date: date
    source: IncomeSource
    status: IncomeStatus = IncomeStatus.PENDING
    notes: Optional[str] = Field(default=None, max_length=1000)
    attachment_url: Optional[str] = None


class Tax(OwnedRecord):
    """A tax liability with a due date."""

    record_type: ClassVar[str] = "taxes"

    name: str = Field(..., min_length=1, max_length=200)
    category: TaxCategory
    amount: Decimal = Field(..., ge=0, decimal_places=2)
    due_date: date
    payment_date: Optional[date] = None
    status: TaxStatus = TaxStatus.PENDING
    notes: Optional[str] = Field(default=None, max_length=1000)
    period_start: Optional[date] = None
    period_end: Optional[date] = None
    tax_authority: Optional[str] = None
    tax_id_number: Optional[str] = None

    @model_validator(mode='after')
    def validate_period(self) -> 'Tax':
        """Validate date relationships."""
        if self.period_start and self.period_end:
            if self.period_end < self.period_start:
                raise ValueError("Tax period end cannot be before start")
        return self


# =============================================================================
# CUSTOMERS, INVOICES & QUOTATIONS
# =============================================================================

class Customer(OwnedRecord):
    record_type: ClassVar[str] = "customers"

    name: str = Field(..., min_length=1, max_length=200)
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = Field(default=None, max_length=500)


class LineItem(BaseModel):
    """
    A priced line on an invoice or quotation.

    `amount` is price * quantity; `prepare_line_items` computes it.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    description: str = Field(default="", max_length=500)
    quantity: Decimal = Field(default=Decimal("0"), ge=0)
    price: Decimal = Field(default=Decimal("0"), ge=0)
    amount: Decimal = Field(default=Decimal("0"), ge=0)


class Invoice(OwnedRecord):
    record_type: ClassVar[str] = "invoices"

    invoice_number: str = Field(..., min_length=1, max_length=50)
    customer_id: Optional[str] = None
    customer: Optional[Customer] = Field(
        default=None,
        description="Customer joined in by list queries"
    )
    issue_date: date
    due_date: date
    status: InvoiceStatus = InvoiceStatus.DRAFT
    total_amount: Decimal = Field(default=Decimal("0"), ge=0, decimal_places=2)
    notes: Optional[str] = Field(default=None, max_length=1000)
    items: list[LineItem] = Field(default_factory=list)

    @model_validator(mode='after')
    def validate_dates(self) -> 'Invoice':
        if self.due_date < self.issue_date:
            raise ValueError("Due date cannot be before issue date")
        return self


class Quotation(OwnedRecord):
    record_type: ClassVar[str] = "quotations"

    quotation_number: str = Field(..., min_length=1, max_length=50)
    customer_id: Optional[str] = None
    customer: Optional[Customer] = None
    issue_date: date
    valid_until: date
    status: QuotationStatus = QuotationStatus.DRAFT
    total_amount: Decimal = Field(default=Decimal("0"), ge=0, decimal_places=2)
    notes: Optional[str] = Field(default=None, max_length=1000)
    items: list[LineItem] = Field(default_factory=list)

    @model_validator(mode='after')
    def validate_dates(self) -> 'Quotation':
        if self.valid_until < self.issue_date:
            raise ValueError("Quotation cannot expire before it is issued")
        return self


# =============================================================================
# EXPENSES, PAYROLL & BANK
# =============================================================================

class Expense(OwnedRecord):
    record_type: ClassVar[str] = "expenses"

    category: str = Field(..., min_length=1, max_length=100)
    amount: Decimal = Field(..., ge=0, decimal_places=2)
    description: Optional[str] = Field(default=None, max_length=500)
    expense_date: date
    payment_method: Optional[str] = None
    receipt_url: Optional[str] = None
    status: ExpenseStatus = ExpenseStatus.RECORDED


class Employee(OwnedRecord):
    record_type: ClassVar[str] = "employees"

    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    email: str = Field(..., min_length=3)
    phone: Optional[str] = None
    hire_date: date
    position: str = Field(..., min_length=1, max_length=100)
    department: Optional[str] = None
    salary: Decimal = Field(..., ge=0, decimal_places=2)
    hourly_rate: Optional[Decimal] = Field(default=None, ge=0)
    status: EmployeeStatus = EmployeeStatus.ACTIVE


class LeaveApplication(OwnedRecord):
    record_type: ClassVar[str] = "leave_applications"

    employee_id: str = Field(..., min_length=1)
    start_date: date
    end_date: date
    leave_type: str = Field(..., min_length=1, max_length=50)
    reason: Optional[str] = Field(default=None, max_length=1000)
    status: LeaveStatus = LeaveStatus.PENDING

    @model_validator(mode='after')
    def validate_dates(self) -> 'LeaveApplication':
        if self.end_date < self.start_date:
            raise ValueError("Leave cannot end before it starts")
        return self


class BankTransaction(OwnedRecord):
    record_type: ClassVar[str] = "transactions"

    bank_account_id: str = Field(..., min_length=1)
    amount: Decimal = Field(..., decimal_places=2)
    transaction_date: date
    transaction_type: str = Field(..., min_length=1, max_length=50)
    category: Optional[str] = None
    description: str = Field(..., min_length=1, max_length=500)


RECORD_TYPES: dict[str, type[OwnedRecord]] = {
    model.record_type: model
    for model in (
        Income,
        Tax,
        Customer,
        Invoice,
        Quotation,
        Expense,
        Employee,
        LeaveApplication,
        BankTransaction,
    )
}


# =============================================================================
# SUMMARY MODELS
# =============================================================================

class IncomeSummary(BaseModel):
    """
    Income totals for the summary cards.

    `top_source` is None when no source has any received income.
    """

    total_received: Decimal = Decimal("0")
    total_pending: Decimal = Decimal("0")
    received_count: int = Field(default=0, ge=0)
    pending_count: int = Field(default=0, ge=0)
    by_source: dict[IncomeSource, Decimal] = Field(default_factory=dict)
    top_source: Optional[IncomeSource] = None
    top_amount: Decimal = Decimal("0")


class TaxSummary(BaseModel):
    """
    Tax totals as of a given day.

    Buckets reflect the read-time view, not stored statuses.
    """

    as_of: date
    total: Decimal = Decimal("0")
    paid: Decimal = Decimal("0")
    pending: Decimal = Decimal("0")
    overdue: Decimal = Decimal("0")
    upcoming: Decimal = Decimal("0")
