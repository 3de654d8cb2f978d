"""
Core Data Models for SplitLedger

These models define the value types that flow through the engine.
They are designed to:
1. Be immutable (frozen) so every transition returns a new value
2. Provide clear validation error messages at the store boundary
3. Be serializable for storage and logging

DESIGN DECISION: Nothing derived is stored. Whether an expense is
settled, and what a balance is, are always computed from the shares.
"""

from datetime import date, datetime
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

from splitledger.models.money import Money


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class SplitPolicy(str, Enum):
    """
    Rule used to derive shares from a total.

    Attached to an expense; changed only by an edit that re-validates.
    """
    EQUAL = "equal"
    PERCENTAGE = "percentage"
    UNEQUAL = "unequal"


class ParticipantRole(str, Enum):
    """Role a participant plays in one expense."""
    PAYER = "payer"
    SPLIT_MEMBER = "split_member"


class ShareState(str, Enum):
    """
    Settlement state of a single share.

    OWED -> SETTLED is the only transition. Reopening a share is an
    edit that replaces it.
    """
    OWED = "owed"
    SETTLED = "settled"


class ExpenseCategory(str, Enum):
    """Supported expense categories."""
    FOOD = "food"
    TRANSPORT = "transport"
    ENTERTAINMENT = "entertainment"
    SHOPPING = "shopping"
    UTILITIES = "utilities"
    HEALTHCARE = "healthcare"
    TRAVEL = "travel"
    OTHER = "other"


class BalanceDirection(str, Enum):
    """Which way money flows between actor and counterparty."""
    OWED_TO_ACTOR = "owed_to_actor"   # counterparty owes actor
    ACTOR_OWES = "actor_owes"         # actor owes counterparty
    SETTLED_UP = "settled_up"


class ClaimStatus(str, Enum):
    """Status of one expense as seen by a pair of users."""
    FRIEND_OWES = "friend_owes"
    USER_OWES = "user_owes"
    SETTLED = "settled"


# =============================================================================
# PARTICIPANTS AND SHARES
# =============================================================================

class Participant(BaseModel):
    """
    A user taking part in an expense.

    The same user may be the payer of one expense and a split member
    of another.
    """
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    user_id: str = Field(
        ...,
        min_length=1,
        description="Opaque user identifier"
    )
    role: ParticipantRole = Field(
        default=ParticipantRole.SPLIT_MEMBER,
        description="Role in this expense"
    )
    display_name: Optional[str] = Field(
        default=None,
        max_length=200,
        description="Name shown in balance messages"
    )

    @classmethod
    def member(cls, user_id: str, display_name: Optional[str] = None) -> "Participant":
        return cls(user_id=user_id, display_name=display_name)

    @classmethod
    def payer(cls, user_id: str, display_name: Optional[str] = None) -> "Participant":
        return cls(
            user_id=user_id,
            role=ParticipantRole.PAYER,
            display_name=display_name,
        )


class Share(BaseModel):
    """
    One participant's portion of one expense.

    A settled share is terminal: editing the expense mints new shares.
    """
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    share_id: UUID = Field(
        default_factory=uuid4,
        description="Unique share identifier"
    )
    participant_id: str = Field(
        ...,
        min_length=1,
        description="User who owes (or paid) this share"
    )
    amount: Money = Field(
        ...,
        description="Share amount"
    )
    percentage: Optional[Decimal] = Field(
        default=None,
        ge=0,
        le=100,
        description="Percentage of the total (percentage policy only)"
    )
    settled: bool = Field(
        default=False,
        description="Has this share been paid back?"
    )
    settled_at: Optional[datetime] = Field(
        default=None,
        description="When the share was settled"
    )

    @model_validator(mode='after')
    def validate_settlement(self) -> 'Share':
        if self.settled_at is not None and not self.settled:
            raise ValueError("settled_at requires settled=True")
        return self

    @property
    def state(self) -> ShareState:
        return ShareState.SETTLED if self.settled else ShareState.OWED


# =============================================================================
# EXPENSE
# =============================================================================

class Expense(BaseModel):
    """
    A shared cost with one payer and a set of per-participant shares.

    The payer's own share, if present, never counts as owed.
    """
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    id: UUID = Field(
        default_factory=uuid4,
        description="Unique expense ID"
    )
    title: str = Field(
        default="",
        max_length=200,
        description="Short description shown in lists"
    )
    notes: Optional[str] = Field(
        default=None,
        max_length=1000
    )
    amount: Money = Field(
        ...,
        description="Total paid"
    )
    payer_id: str = Field(
        ...,
        min_length=1,
        description="User who paid the expense"
    )
    policy: SplitPolicy = Field(
        default=SplitPolicy.UNEQUAL,
        description="How the shares were derived"
    )
    shares: tuple[Share, ...] = Field(
        default_factory=tuple,
        description="Order-irrelevant set of shares"
    )
    group_id: Optional[str] = Field(
        default=None,
        description="Group the expense belongs to; None for friend-to-friend"
    )
    expense_date: date = Field(
        default_factory=date.today,
        description="Date of the expense"
    )
    category: ExpenseCategory = Field(
        default=ExpenseCategory.OTHER
    )

    @field_validator('amount')
    @classmethod
    def validate_amount(cls, v: Money) -> Money:
        if v.minor_units <= 0:
            raise ValueError("Expense amount must be greater than zero")
        return v

    @property
    def is_settled(self) -> bool:
        """True iff every share is settled."""
        return all(share.settled for share in self.shares)

    @property
    def all_participants_paid(self) -> bool:
        """True iff every share except the payer's own is settled."""
        return all(
            share.settled
            for share in self.shares
            if share.participant_id != self.payer_id
        )

    @property
    def is_group_expense(self) -> bool:
        return self.group_id is not None

    @property
    def participant_ids(self) -> list[str]:
        """Payer first, then share holders in share order, no repeats."""
        ids = [self.payer_id]
        for share in self.shares:
            if share.participant_id not in ids:
                ids.append(share.participant_id)
        return ids

    def share_for(self, participant_id: str) -> Optional[Share]:
        """The participant's share, or None if they have none."""
        for share in self.shares:
            if share.participant_id == participant_id:
                return share
        return None

    def outstanding_shares(self) -> list[Share]:
        """Unsettled shares owed to the payer."""
        return [
            share
            for share in self.shares
            if not share.settled and share.participant_id != self.payer_id
        ]

    def replace_shares(self, shares: list[Share]) -> "Expense":
        """New expense value with the given shares."""
        return self.model_copy(update={"shares": tuple(shares)})


# =============================================================================
# BALANCES
# =============================================================================

class Balance(BaseModel):
    """
    Signed net position between an actor and a counterparty (or group).

    Positive: the counterparty owes the actor.
    Negative: the actor owes the counterparty.
    Never stored; recomputed on demand.
    """
    model_config = ConfigDict(frozen=True)

    actor_id: str
    counterparty_id: Optional[str] = None
    group_id: Optional[str] = None
    amount: Money
    direction: BalanceDirection
    message: str = Field(
        ...,
        description="Human-readable summary, e.g. 'Alex owes you $45.00'"
    )
    expense_count: int = Field(
        default=0,
        ge=0,
        description="Expenses that contributed a claim"
    )

    @property
    def is_settled_up(self) -> bool:
        return self.amount.is_zero()

    @property
    def display_amount(self) -> str:
        """Signed rendering: '+$25.50' / '-$15.75'."""
        return self.amount.format(signed=True)


class BalanceTotals(BaseModel):
    """
    Running per-counterparty totals for one actor.

    Folding a page adds its claims; pages must not be folded twice.
    Values are signed minor units with the Balance sign convention.
    """
    model_config = ConfigDict(frozen=True)

    actor_id: str
    currency: str
    per_counterparty: dict[str, int] = Field(default_factory=dict)
    claim_counts: dict[str, int] = Field(
        default_factory=dict,
        description="Expenses with an open claim, per counterparty"
    )
    expenses_folded: int = Field(default=0, ge=0)

    @property
    def counterparties(self) -> list[str]:
        return sorted(self.claim_counts)

    def amount_with(self, counterparty_id: str) -> Money:
        return Money(
            minor_units=self.per_counterparty.get(counterparty_id, 0),
            currency=self.currency,
        )

    @property
    def net(self) -> Money:
        """Actor's overall position across all counterparties."""
        return Money(
            minor_units=sum(self.per_counterparty.values()),
            currency=self.currency,
        )


# =============================================================================
# VALIDATION MODELS
# =============================================================================

class ValidationErrorCode(str, Enum):
    """Why a share set was rejected. Always recoverable by re-editing."""
    AMOUNT_MISMATCH = "amount_mismatch"
    PERCENTAGE_MISMATCH = "percentage_mismatch"
    EMPTY_SHARE_SET = "empty_share_set"
    MISSING_SHARE_AMOUNT = "missing_share_amount"
    DUPLICATE_PARTICIPANT = "duplicate_participant"
    NEGATIVE_SHARE = "negative_share"
    CURRENCY_MISMATCH = "currency_mismatch"


class ValidationMode(str, Enum):
    """Interactive input allows rounding slack; commit is strict."""
    INTERACTIVE = "interactive"
    COMMIT = "commit"


class ValidationIssue(BaseModel):
    """A single validation issue found."""

    code: ValidationErrorCode
    field: str = Field(
        ...,
        description="Field with the issue"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        default="error",
        pattern="^(error|warning|info)$",
        description="Issue severity"
    )
    suggested_fix: Optional[str] = None


class ValidationResult(BaseModel):
    """
    Result of the two-stage share validation.

    Stage 1: Structure (participants, duplicates, signs, currency)
    Stage 2: Reconciliation (amount sum, percentage sum)
    """

    policy: SplitPolicy
    mode: ValidationMode
    structure_valid: bool
    reconciliation_valid: bool
    is_valid: bool
    expense_amount: Money
    shares_total: Money
    difference: Money = Field(
        ...,
        description="expense_amount - shares_total; positive means under-allocated"
    )
    tolerance_minor_units: int = Field(ge=0)
    issues: list[ValidationIssue] = Field(default_factory=list)

    @property
    def has_errors(self) -> bool:
        return any(issue.severity == "error" for issue in self.issues)

    @property
    def error_count(self) -> int:
        return sum(1 for issue in self.issues if issue.severity == "error")

    @property
    def error_codes(self) -> list[ValidationErrorCode]:
        return [issue.code for issue in self.issues if issue.severity == "error"]

    def has_code(self, code: ValidationErrorCode) -> bool:
        return code in self.error_codes


# =============================================================================
# FLOW RESULTS (what the presentation layer receives)
# =============================================================================

class SplitProposal(BaseModel):
    """
    Computed shares for a form that is still being edited.

    success=False means the input could not be split at all
    (error_message explains); validation problems leave success=True
    and are listed in `validation`.
    """

    success: bool
    policy: Optional[SplitPolicy] = None
    shares: list[Share] = Field(default_factory=list)
    validation: Optional[ValidationResult] = None
    error_field: Optional[str] = None
    error_message: Optional[str] = None

    @property
    def can_commit(self) -> bool:
        return self.success and self.validation is not None and self.validation.is_valid


class ExpenseCommitResult(BaseModel):
    """Outcome of creating or editing an expense."""

    success: bool
    expense: Optional[Expense] = None
    validation: Optional[ValidationResult] = None
    error_field: Optional[str] = None
    error_message: Optional[str] = None


class SettlementBatch(BaseModel):
    """
    New expense values produced by one settle action.

    The caller persists `expenses` together; nothing is applied until then.
    """

    expenses: list[Expense] = Field(default_factory=list)
    settled_share_ids: list[UUID] = Field(default_factory=list)
    settled_at: datetime

    @property
    def settled_count(self) -> int:
        return len(self.settled_share_ids)

    @property
    def is_empty(self) -> bool:
        return not self.settled_share_ids


class GroupSummary(BaseModel):
    """Totals for one group as seen by one member."""

    group_id: str
    actor_id: str
    total_spent: Money
    expense_count: int = Field(ge=0)
    net: Balance
    member_balances: dict[str, Balance] = Field(default_factory=dict)
