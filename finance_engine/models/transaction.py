"""
Core Data Models for the Ingestion Engine

These models define the schemas for everything flowing through the engine:
drafts produced by the parsers, the persisted ledger the engine reads back,
accounts, the external extraction contract and the import reports.

DESIGN DECISION: Amounts are always non-negative Decimals. Direction and sign
are orthogonal; a refund is an Income draft flagged `is_refund`, never a
negative number. Models that cross the JSON boundary use camelCase aliases
but accept snake_case names too.
"""

import re
from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel


DEFAULT_CATEGORY = "Other"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def normalize_card_digits(value: Any) -> Optional[str]:
    """Reduce '**** 1234', '1234' or 5551234 to the last four digits."""
    if value is None:
        return None
    digits = re.sub(r"\D", "", str(value))
    if len(digits) < 4:
        return None
    return digits[-4:]


class CamelModel(BaseModel):
    """Base for models serialized as camelCase JSON."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
    )


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class Direction(str, Enum):
    """Money flow direction. Independent of sign."""
    INCOME = "Income"
    EXPENSE = "Expense"


class AccountType(str, Enum):
    CHECKING = "Checking"
    SAVINGS = "Savings"
    CREDIT_CARD = "CreditCard"
    INVESTMENT = "Investment"
    CASH = "Cash"
    OTHER = "Other"


class AccountStatus(str, Enum):
    ACTIVE = "Active"
    ARCHIVED = "Archived"


class InstallmentStatus(str, Enum):
    """Billing state of one installment of a group."""
    PAID = "Paid"          # Already billed on or before the current statement
    PENDING = "Pending"    # Future installment


class ExtractionMethod(str, Enum):
    REGEX = "regex"
    AI = "ai"


class DuplicateDecision(str, Enum):
    """
    Caller's answer to a duplicate warning.

    CRITICAL: The engine never picks one of these by itself.
    """
    DISCARD = "discard"            # Drop the drafts that match existing rows
    FORCE_IMPORT = "force_import"  # Import everything anyway
    CANCEL = "cancel"              # Abort the whole import


class ImportSource(str, Enum):
    LEDGER_SHEET = "ledger_sheet"
    FLAT_FILE = "flat_file"
    DOCUMENT = "document"


# =============================================================================
# TRANSACTIONS
# =============================================================================

class InstallmentInfo(CamelModel):
    """Position of a transaction inside an installment plan."""

    current: int = Field(..., ge=1, description="Installment number (1-based)")
    total: int = Field(..., ge=1, description="Number of installments in the plan")

    @model_validator(mode="after")
    def validate_position(self) -> "InstallmentInfo":
        if self.current > self.total:
            raise ValueError(
                f"Installment {self.current} is beyond plan total {self.total}"
            )
        return self


class TransactionItem(CamelModel):
    """Line item of a single-document extraction (receipt, invoice)."""

    description: str = Field(..., min_length=1, max_length=200)
    quantity: Optional[Decimal] = Field(default=None, ge=0)
    unit_price: Optional[Decimal] = None
    total_price: Decimal


class DraftTransaction(CamelModel):
    """
    Normalized transaction candidate, not yet persisted.

    Produced by a parser or the extraction normalizer, possibly expanded
    into an installment group, then handed to storage in one batch.
    """

    date: date
    description: str = Field(..., min_length=1, max_length=300)
    amount: Decimal = Field(..., ge=0, description="Non-negative amount")
    direction: Direction
    category: str = Field(default=DEFAULT_CATEGORY, min_length=1)

    installment: Optional[InstallmentInfo] = None
    installment_status: Optional[InstallmentStatus] = None
    group_id: Optional[UUID] = Field(
        default=None,
        description="Shared by all members of an expanded installment group"
    )

    institution: Optional[str] = None
    card_last_digits: Optional[str] = Field(default=None, pattern=r"^\d{4}$")
    account_id: Optional[str] = None
    payment_method: Optional[str] = None
    cost_center: Optional[str] = None
    notes: Optional[str] = None
    is_refund: bool = False
    items: list[TransactionItem] = Field(default_factory=list)

    # Provenance for diagnostics
    source_tab: Optional[str] = None
    source_row: Optional[int] = None

    @field_validator("card_last_digits", mode="before")
    @classmethod
    def normalize_digits(cls, v: Any) -> Optional[str]:
        return normalize_card_digits(v)

    @field_validator("category", mode="before")
    @classmethod
    def default_blank_category(cls, v: Any) -> Any:
        if v is None or (isinstance(v, str) and not v.strip()):
            return DEFAULT_CATEGORY
        return v

    @model_validator(mode="after")
    def validate_refund_direction(self) -> "DraftTransaction":
        """Refunds are always incoming money."""
        if self.is_refund and self.direction != Direction.INCOME:
            raise ValueError("A refund must have direction Income")
        return self


class ExistingTransaction(DraftTransaction):
    """A persisted transaction as returned by the storage collaborator."""

    id: str
    dashboard_id: Optional[str] = None
    installment_group_id: Optional[str] = None
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)


class TransactionFilters(BaseModel):
    """Filters understood by `find_many`. All optional, all inclusive."""

    dashboard_id: Optional[str] = None
    date_from: Optional[date] = None
    date_to: Optional[date] = None
    direction: Optional[Direction] = None
    category: Optional[str] = None
    account_id: Optional[str] = None

    def matches(self, transaction: ExistingTransaction) -> bool:
        if self.dashboard_id and transaction.dashboard_id != self.dashboard_id:
            return False
        if self.date_from and transaction.date < self.date_from:
            return False
        if self.date_to and transaction.date > self.date_to:
            return False
        if self.direction and transaction.direction != self.direction:
            return False
        if self.category and transaction.category.lower() != self.category.lower():
            return False
        if self.account_id and transaction.account_id != self.account_id:
            return False
        return True


# =============================================================================
# ACCOUNTS
# =============================================================================

class Account(CamelModel):
    """
    A named money container.

    Billing-cycle fields only make sense for credit cards.
    """

    id: str
    name: str = Field(..., min_length=1)
    type: AccountType
    institution: Optional[str] = None
    card_last_digits: Optional[str] = Field(default=None, pattern=r"^\d{4}$")
    closing_day: Optional[int] = Field(default=None, ge=1, le=31)
    due_day: Optional[int] = Field(default=None, ge=1, le=31)
    status: AccountStatus = AccountStatus.ACTIVE
    holder_name: Optional[str] = None
    dashboard_id: Optional[str] = None

    @field_validator("card_last_digits", mode="before")
    @classmethod
    def normalize_digits(cls, v: Any) -> Optional[str]:
        return normalize_card_digits(v)

    @model_validator(mode="after")
    def validate_card_fields(self) -> "Account":
        if self.type != AccountType.CREDIT_CARD:
            if self.closing_day is not None or self.due_day is not None:
                raise ValueError("closingDay/dueDay are only allowed on CreditCard accounts")
            if self.card_last_digits is not None:
                raise ValueError("cardLastDigits is only allowed on CreditCard accounts")
        return self

    @property
    def has_billing_cycle(self) -> bool:
        return self.closing_day is not None and self.due_day is not None


class AccountProposal(CamelModel):
    """An account the caller may create when resolution found nothing."""

    name: str
    type: AccountType
    institution: Optional[str] = None
    card_last_digits: Optional[str] = None
    holder_name: Optional[str] = None


# =============================================================================
# EXTERNAL EXTRACTION CONTRACT
# =============================================================================

class StatementInfo(CamelModel):
    """Metadata of the statement a multi-transaction extraction came from."""

    institution: Optional[str] = None
    card_last_digits: Optional[str] = None
    due_date: Optional[str] = None
    total_amount: Optional[Decimal] = None
    credit_limit: Optional[Decimal] = None
    period_start: Optional[str] = None
    period_end: Optional[str] = None
    holder_name: Optional[str] = None


class ExtractedLine(CamelModel):
    """
    One line of a card statement as returned by the extraction service.

    Values are kept raw (dates as text, signed amounts); the normalizer
    turns them into drafts.
    """

    merchant: Optional[str] = None
    date: Optional[str] = None
    amount: Decimal = Decimal("0")
    category: Optional[str] = None
    description: Optional[str] = None
    installment_info: Optional[str] = None
    card_last_digits: Optional[str] = None
    is_refund: bool = False

    @field_validator("is_refund", mode="before")
    @classmethod
    def null_is_false(cls, v: Any) -> Any:
        return False if v is None else v

    @field_validator("amount", mode="before")
    @classmethod
    def null_amount_is_zero(cls, v: Any) -> Any:
        return 0 if v is None else v


class ExtractionResult(CamelModel):
    """
    Output of the document-extraction service.

    Either a single transaction (merchant/date/amount/items) or, when
    `is_multi_transaction` is set, a statement with many lines.
    """

    merchant: Optional[str] = None
    date: Optional[str] = None
    amount: Decimal = Decimal("0")
    category: Optional[str] = None
    items: Optional[list[TransactionItem]] = None
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    extraction_method: ExtractionMethod = Field(
        default=ExtractionMethod.AI,
        validation_alias=AliasChoices("extractionMethod", "method", "extraction_method"),
    )
    is_multi_transaction: bool = False
    transactions: list[ExtractedLine] = Field(default_factory=list)
    statement_info: Optional[StatementInfo] = None

    @field_validator("transactions", mode="before")
    @classmethod
    def null_is_empty(cls, v: Any) -> Any:
        return [] if v is None else v

    @field_validator("amount", "confidence", "is_multi_transaction", mode="before")
    @classmethod
    def null_is_zero(cls, v: Any) -> Any:
        return 0 if v is None else v


# =============================================================================
# PARSER OUTPUT
# =============================================================================

class Diagnostic(CamelModel):
    """A row- or line-level problem reported back to the user."""

    tab: Optional[str] = None
    row: Optional[int] = None
    message: str
    code: str = "row_parse_error"


class MonthSummary(CamelModel):
    count: int = 0
    income: Decimal = Decimal("0")
    expense: Decimal = Decimal("0")


class ImportSummary(CamelModel):
    """Totals shown to the user before confirming an import."""

    total_transactions: int = 0
    total_income: Decimal = Decimal("0")
    total_expense: Decimal = Decimal("0")
    by_month: dict[str, MonthSummary] = Field(
        default_factory=dict,
        description="Keyed by 'YYYY-MM'"
    )
    installments_count: int = Field(default=0, description="Installment plans read from a plans tab")
    debtors_count: int = 0
    recurring_count: int = 0

    @classmethod
    def from_transactions(cls, transactions: list[DraftTransaction]) -> "ImportSummary":
        summary = cls()
        for tx in transactions:
            key = f"{tx.date.year:04d}-{tx.date.month:02d}"
            month = summary.by_month.setdefault(key, MonthSummary())
            month.count += 1
            if tx.direction == Direction.INCOME:
                month.income += tx.amount
                summary.total_income += tx.amount
            else:
                month.expense += tx.amount
                summary.total_expense += tx.amount
        summary.total_transactions = len(transactions)
        summary.by_month = dict(sorted(summary.by_month.items()))
        return summary


class RecurringExpense(CamelModel):
    """
    A fixed monthly expense read from a ledger's fixed-expenses tab.

    A template for future entries, not a ledger row: it is returned to the
    caller and never written by an import.
    """

    description: str = Field(..., min_length=1, max_length=300)
    amount: Decimal = Field(..., ge=0)
    category: str = "Despesa Fixa"
    frequency: str = "MONTHLY"
    source_tab: Optional[str] = None
    source_row: Optional[int] = None


class ParseResult(CamelModel):
    """Output of the ledger sheet and flat file parsers."""

    transactions: list[DraftTransaction] = Field(default_factory=list)
    errors: list[Diagnostic] = Field(default_factory=list)
    summary: ImportSummary = Field(default_factory=ImportSummary)
    recurring: list[RecurringExpense] = Field(default_factory=list)


class SkippedPayment(CamelModel):
    """A statement line held back as a probable statement payment."""

    index: int
    description: str
    amount: Decimal


class NormalizedExtraction(CamelModel):
    """Output of the extraction normalizer."""

    transactions: list[DraftTransaction] = Field(default_factory=list)
    errors: list[Diagnostic] = Field(default_factory=list)
    skipped_payments: list[SkippedPayment] = Field(default_factory=list)
    refund_count: int = 0
    selected_total: Decimal = Decimal("0")
    statement: Optional[StatementInfo] = None
    statement_due_date: Optional[date] = None
    extraction_method: ExtractionMethod = ExtractionMethod.AI
    confidence: float = 0.0


# =============================================================================
# INSTALLMENTS
# =============================================================================

class InstallmentGroup(CamelModel):
    """
    The full series of drafts produced from one installment purchase.

    Exactly one member per installment number in 1..total, all sharing
    the group id and amount.
    """

    group_id: UUID = Field(default_factory=uuid4)
    total: int = Field(..., ge=1)
    members: list[DraftTransaction]

    @model_validator(mode="after")
    def validate_members(self) -> "InstallmentGroup":
        numbers = sorted(
            m.installment.current for m in self.members if m.installment is not None
        )
        if numbers != list(range(1, self.total + 1)) or len(self.members) != self.total:
            raise ValueError(
                f"Installment group must contain exactly one member per number 1..{self.total}"
            )
        if any(m.group_id != self.group_id for m in self.members):
            raise ValueError("All installment members must share the group id")
        if len({m.amount for m in self.members}) > 1:
            raise ValueError("All installment members must share the same amount")
        return self


# =============================================================================
# IMPORT FLOW
# =============================================================================

class ImportPreview(CamelModel):
    """
    Everything the user reviews before an import is committed.

    CRITICAL: Nothing in a preview has been persisted yet.
    """

    preview_id: UUID = Field(default_factory=uuid4)
    correlation_id: UUID = Field(default_factory=uuid4)
    source: ImportSource
    transactions: list[DraftTransaction] = Field(default_factory=list)
    errors: list[Diagnostic] = Field(default_factory=list)
    summary: ImportSummary = Field(default_factory=ImportSummary)
    duplicates: dict[int, str] = Field(
        default_factory=dict,
        description="Draft index -> id of the matching existing transaction"
    )
    skipped_payments: list[SkippedPayment] = Field(default_factory=list)
    statement: Optional[StatementInfo] = None
    statement_due_date: Optional[date] = None
    selected_total: Optional[Decimal] = None
    recurring: list[RecurringExpense] = Field(default_factory=list)


class ImportReport(CamelModel):
    """
    Result of committing a preview.

    Counts and diagnostics are always returned together so the user can
    reconcile them against the source document.
    """

    imported: int = 0
    skipped_as_payment: int = 0
    skipped_as_duplicate: int = 0
    flagged_as_refund: int = 0
    cancelled: bool = False
    errors: list[Diagnostic] = Field(default_factory=list)
    account_proposals: list[AccountProposal] = Field(default_factory=list)
    group_ids: list[UUID] = Field(default_factory=list)
