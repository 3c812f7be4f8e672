"""
Core Data Models for PairLedger

These models define the strict schemas for all data flowing through the ledger.
They are designed to:
1. Enforce type safety at runtime
2. Reject impossible amounts before they reach the balance engine
3. Be serializable for storage and logging
4. Support the audit trail

DESIGN DECISION: Money is Decimal everywhere. The balance engine relies on
exact sums; floats only enter through user input and are converted on the way in.
"""

from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)

from pairledger.exceptions import NonPositiveAmountError
from pairledger.models.period import PERIOD_PATTERN


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Treat a naive timestamp as UTC so stored timestamps stay comparable."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class SplitPolicy(str, Enum):
    """
    How an expense is shared between the two parties.

    EQUAL: both parties carry half, whoever paid.
    PAYER_OWED_FULL: the party who did not pay owes the payer the whole amount.

    Values match what users see on the expense form.
    """
    EQUAL = "50/50"
    PAYER_OWED_FULL = "100%"


# =============================================================================
# PARTIES
# =============================================================================

class Party(BaseModel):
    """One of the two people sharing expenses."""
    model_config = ConfigDict(str_strip_whitespace=True, frozen=True)

    id: str = Field(
        ...,
        min_length=1,
        max_length=100,
        description="Stable user identifier"
    )
    name: str = Field(
        ...,
        min_length=1,
        max_length=100,
        description="Display name"
    )
    email: Optional[str] = Field(
        default=None,
        max_length=200,
    )


# =============================================================================
# LEDGER RECORDS
# =============================================================================

class Expense(BaseModel):
    """
    A logged cost paid by one party.

    CRITICAL: amount must be positive. A zero or negative amount raises
    NonPositiveAmountError straight out of construction (it is not wrapped
    in a pydantic ValidationError), so callers can tell a bad amount apart
    from a malformed form.

    Payer membership is NOT checked here: the model does not know who the
    two parties are. The balance engine checks it.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(
        default_factory=uuid4,
        description="Unique expense ID"
    )
    amount: Decimal = Field(
        ...,
        decimal_places=2,
        description="Amount in the ledger currency"
    )
    description: str = Field(
        default="",
        max_length=500,
    )
    category: str = Field(
        default="Other",
        min_length=1,
        max_length=100,
        description="Expense category (e.g. Groceries, Utilities)"
    )
    location: str = Field(
        default="",
        max_length=200,
        description="Where the money was spent"
    )
    payer_id: str = Field(
        ...,
        min_length=1,
        description="Party who paid"
    )
    split_policy: SplitPolicy = Field(
        default=SplitPolicy.EQUAL,
        description="How the cost is shared"
    )
    period: str = Field(
        ...,
        pattern=PERIOD_PATTERN,
        description="Month bucket, YYYY-MM"
    )
    expense_date: date = Field(
        ...,
        description="Day the expense happened"
    )
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @field_validator('amount')
    @classmethod
    def reject_non_positive(cls, v: Decimal) -> Decimal:
        if v <= 0:
            raise NonPositiveAmountError(v, "expense")
        return v

    @field_validator('created_at', 'updated_at')
    @classmethod
    def normalise_timestamps(cls, v: datetime) -> datetime:
        return as_utc(v)


class SettlementDirection(BaseModel):
    """Who pays whom."""
    model_config = ConfigDict(frozen=True)

    from_user_id: str = Field(..., min_length=1)
    to_user_id: str = Field(..., min_length=1)

    @model_validator(mode='after')
    def validate_distinct(self) -> 'SettlementDirection':
        if self.from_user_id == self.to_user_id:
            raise ValueError("A settlement cannot go from a party to itself")
        return self


class Settlement(BaseModel):
    """
    A recorded transfer that pays down the balance for a period.

    CRITICAL: Settlements are append-only ledger entries.
    The model is frozen; "unsettling" deletes the row, it never edits it.
    """
    model_config = ConfigDict(str_strip_whitespace=True, frozen=True)

    id: UUID = Field(default_factory=uuid4)
    from_user_id: str = Field(
        ...,
        min_length=1,
        description="Party who paid down their debt"
    )
    to_user_id: str = Field(
        ...,
        min_length=1,
        description="Party who received the money"
    )
    amount: Decimal = Field(
        ...,
        decimal_places=2,
        description="Amount actually transferred"
    )
    period: str = Field(
        ...,
        pattern=PERIOD_PATTERN,
    )
    recorded_at: datetime = Field(
        default_factory=utcnow,
        description="When the settlement was written"
    )
    notes: Optional[str] = Field(default=None, max_length=500)
    recorded_by: Optional[str] = Field(
        default=None,
        description="Party who pressed 'mark as settled'"
    )

    @field_validator('amount')
    @classmethod
    def reject_non_positive(cls, v: Decimal) -> Decimal:
        if v <= 0:
            raise NonPositiveAmountError(v, "settlement")
        return v

    @field_validator('recorded_at')
    @classmethod
    def normalise_recorded_at(cls, v: datetime) -> datetime:
        return as_utc(v)

    @model_validator(mode='after')
    def validate_parties(self) -> 'Settlement':
        if self.from_user_id == self.to_user_id:
            raise ValueError("Settlement parties must differ")
        return self

    @property
    def direction(self) -> SettlementDirection:
        return SettlementDirection(
            from_user_id=self.from_user_id,
            to_user_id=self.to_user_id,
        )


# =============================================================================
# DERIVED RESULTS (never persisted)
# =============================================================================

class BalanceResult(BaseModel):
    """
    Outcome of one balance computation.

    Sign convention for net_balance:
    - positive: party B owes party A
    - negative: party A owes party B

    This is a projection. It is recomputed from the full period data
    every time and never stored.
    """
    model_config = ConfigDict(frozen=True)

    period: Optional[str] = None
    party_a_id: str
    party_b_id: str

    net_balance: Decimal = Field(
        ...,
        description="Outstanding balance after settlements"
    )
    expense_balance: Decimal = Field(
        ...,
        description="Party A's position from expenses alone"
    )
    net_settled_a_to_b: Decimal = Field(
        default=Decimal("0"),
        description="Sum of A->B transfers minus sum of B->A transfers"
    )
    total_equal: Decimal = Field(default=Decimal("0"))
    fair_share: Decimal = Field(default=Decimal("0"))
    paid_equal: dict[str, Decimal] = Field(default_factory=dict)
    owed_full: dict[str, Decimal] = Field(default_factory=dict)
    expense_count: int = Field(default=0, ge=0)
    settlement_count: int = Field(default=0, ge=0)


class SettlementRecommendation(BaseModel):
    """
    What should happen next for a period.

    amount is rounded UP to the minor currency unit: it is what we show
    and what we record. exact_amount keeps the unrounded figure.
    """
    model_config = ConfigDict(frozen=True)

    direction: Optional[SettlementDirection] = None
    amount: Decimal = Field(default=Decimal("0"), ge=0)
    exact_amount: Decimal = Field(default=Decimal("0"), ge=0)
    is_settled: bool = Field(
        ...,
        description="Balance is within the settled threshold"
    )

    @property
    def needs_settlement(self) -> bool:
        return self.direction is not None


class PeriodSummary(BaseModel):
    """
    Spending totals for a period.

    total_expenses counts every expense, whatever its split policy.
    equal_split_total is the 50/50 pool the balance is computed from.
    """

    period: str
    total_expenses: Decimal = Decimal("0")
    equal_split_total: Decimal = Decimal("0")
    payer_owed_full_total: Decimal = Decimal("0")
    paid_by_party: dict[str, Decimal] = Field(default_factory=dict)
    category_totals: dict[str, Decimal] = Field(default_factory=dict)
    location_totals: dict[str, Decimal] = Field(default_factory=dict)
    expense_count: int = Field(default=0, ge=0)

    @property
    def split_policy_totals(self) -> dict[str, Decimal]:
        return {
            SplitPolicy.EQUAL.value: self.equal_split_total,
            SplitPolicy.PAYER_OWED_FULL.value: self.payer_owed_full_total,
        }


class PeriodOverview(BaseModel):
    """Everything a screen needs to show one period's settlement state."""

    period: str
    party_a: Party
    party_b: Party
    balance: BalanceResult
    recommendation: SettlementRecommendation
    is_settled: bool = Field(
        ...,
        description="At least one settlement is recorded for the period"
    )
    settlements: list[Settlement] = Field(
        default_factory=list,
        description="Newest first"
    )
    summary: PeriodSummary
    previous_period_unsettled: bool = Field(
        default=False,
        description="Previous period has expenses but no settlement"
    )


# =============================================================================
# VALIDATION MODELS
# =============================================================================

class ValidationIssue(BaseModel):
    """A single validation issue found."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'unknown_payer', 'period_locked', 'suspicious_value')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        ...,
        pattern="^(error|warning|info)$",
        description="Issue severity"
    )
    suggested_fix: Optional[str] = None


class ValidationResult(BaseModel):
    """
    Result of the two-stage expense validation.

    Stage 1: Schema validation (pydantic, before this object exists)
    Stage 2: Semantic validation (parties, period lock, sanity checks)
    """

    expense_id: UUID
    validated_at: datetime = Field(default_factory=utcnow)

    is_valid: bool = Field(
        ...,
        description="No error-level issues"
    )
    issues: list[ValidationIssue] = Field(default_factory=list)
    warnings: list[str] = Field(
        default_factory=list,
        description="Non-blocking warnings"
    )

    @property
    def has_errors(self) -> bool:
        """Check if there are any error-level issues."""
        return any(issue.severity == "error" for issue in self.issues)

    @property
    def error_count(self) -> int:
        """Count error-level issues."""
        return sum(1 for issue in self.issues if issue.severity == "error")
