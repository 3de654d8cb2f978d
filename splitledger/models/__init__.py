"""
Data Models Package

This package contains the Money primitive and all Pydantic models used
by the SplitLedger engine.
"""

from splitledger.models.money import (
    CurrencyMismatchError,
    Money,
    add,
    allocate_evenly,
    distribute_residual,
    multiply_by_fraction,
    round_half_up,
    subtract,
    sum_money,
)
from splitledger.models.expense import (
    Balance,
    BalanceDirection,
    BalanceTotals,
    ClaimStatus,
    Expense,
    ExpenseCategory,
    ExpenseCommitResult,
    GroupSummary,
    Participant,
    ParticipantRole,
    SettlementBatch,
    Share,
    ShareState,
    SplitPolicy,
    SplitProposal,
    ValidationErrorCode,
    ValidationIssue,
    ValidationMode,
    ValidationResult,
)
from splitledger.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Money
    "CurrencyMismatchError",
    "Money",
    "add",
    "allocate_evenly",
    "distribute_residual",
    "multiply_by_fraction",
    "round_half_up",
    "subtract",
    "sum_money",
    # Ledger models
    "Balance",
    "BalanceDirection",
    "BalanceTotals",
    "ClaimStatus",
    "Expense",
    "ExpenseCategory",
    "ExpenseCommitResult",
    "GroupSummary",
    "Participant",
    "ParticipantRole",
    "SettlementBatch",
    "Share",
    "ShareState",
    "SplitPolicy",
    "SplitProposal",
    "ValidationErrorCode",
    "ValidationIssue",
    "ValidationMode",
    "ValidationResult",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
