"""
Tests for SplitLedger

Test strategy:
1. Unit tests for individual components (money, calculator, validator,
   tracker, aggregator)
2. Integration tests for flows (with in-memory store and audit sink)
3. No real I/O in tests
"""

import pytest
from datetime import date, datetime, timezone
from decimal import Decimal
from uuid import uuid4

from splitledger.models.expense import (
    Balance,
    BalanceDirection,
    BalanceTotals,
    Expense,
    ExpenseCategory,
    Participant,
    ParticipantRole,
    Share,
    SplitPolicy,
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
from splitledger.models.money import Money


def usd(minor_units: int) -> Money:
    return Money(minor_units=minor_units, currency="USD")


class TestLedgerModels:
    """Tests for ledger Pydantic models."""

    def test_participant_roles(self):
        """Test Participant helpers."""
        payer = Participant.payer("a", "Alex")
        member = Participant.member("b")
        assert payer.role == ParticipantRole.PAYER
        assert member.role == ParticipantRole.SPLIT_MEMBER
        assert payer.display_name == "Alex"

    def test_participant_strips_whitespace(self):
        """Test that whitespace is stripped from ids."""
        assert Participant(user_id="  a  ").user_id == "a"

    def test_share_rejects_settled_at_without_settled(self):
        """Test that a timestamp needs the settled flag."""
        with pytest.raises(ValueError):
            Share(
                participant_id="b",
                amount=usd(100),
                settled_at=datetime.now(timezone.utc),
            )

    def test_share_percentage_bounds(self):
        """Test that percentages stay within 0-100."""
        with pytest.raises(ValueError):
            Share(participant_id="b", amount=usd(100), percentage=Decimal("101"))

    def test_share_is_frozen(self):
        """Test that shares cannot be mutated in place."""
        share = Share(participant_id="b", amount=usd(100))
        with pytest.raises(ValueError):
            share.settled = True

    def test_expense_defaults(self):
        """Test Expense model creation."""
        expense = Expense(
            amount=usd(9000),
            payer_id="a",
            shares=(Share(participant_id="b", amount=usd(4500)),),
        )
        assert expense.policy == SplitPolicy.UNEQUAL
        assert expense.category == ExpenseCategory.OTHER
        assert expense.expense_date == date.today()
        assert expense.is_group_expense is False

    def test_expense_rejects_non_positive_amount(self):
        """Test that the total must be positive."""
        with pytest.raises(ValueError):
            Expense(amount=usd(0), payer_id="a")

    def test_expense_derived_state(self):
        """Test is_settled, participant_ids and outstanding_shares."""
        expense = Expense(
            amount=usd(900),
            payer_id="a",
            shares=(
                Share(participant_id="a", amount=usd(300)),
                Share(
                    participant_id="b",
                    amount=usd(300),
                    settled=True,
                    settled_at=datetime.now(timezone.utc),
                ),
                Share(participant_id="c", amount=usd(300)),
            ),
            group_id="trip",
        )
        assert expense.is_settled is False
        assert expense.all_participants_paid is False
        assert expense.participant_ids == ["a", "b", "c"]
        assert [s.participant_id for s in expense.outstanding_shares()] == ["c"]
        assert expense.share_for("z") is None
        assert expense.is_group_expense is True

    def test_expense_without_shares_is_settled(self):
        """Test that an expense with no shares owes nothing."""
        assert Expense(amount=usd(100), payer_id="a").is_settled is True

    def test_balance_properties(self):
        """Test Balance helpers."""
        balance = Balance(
            actor_id="a",
            counterparty_id="b",
            amount=usd(2550),
            direction=BalanceDirection.OWED_TO_ACTOR,
            message="b owes you $25.50",
        )
        assert balance.display_amount == "+$25.50"
        assert balance.is_settled_up is False

    def test_balance_totals(self):
        """Test per-counterparty lookups."""
        totals = BalanceTotals(
            actor_id="a",
            currency="USD",
            per_counterparty={"b": 500, "c": -200},
            claim_counts={"b": 1, "c": 1},
        )
        assert totals.amount_with("b") == usd(500)
        assert totals.amount_with("z") == usd(0)
        assert totals.net == usd(300)
        assert totals.counterparties == ["b", "c"]


class TestAuditModels:
    """Tests for audit models."""

    def test_audit_event_creation(self):
        """Test AuditEvent model creation."""
        event = AuditEvent(
            event_type=AuditEventType.SPLIT_COMPUTED,
            description="Test event",
        )
        assert event.event_type == AuditEventType.SPLIT_COMPUTED
        assert event.severity == AuditSeverity.INFO
        assert event.timestamp.tzinfo is not None

    def test_audit_event_to_log_dict(self):
        """Test conversion to log dictionary."""
        event = AuditEvent(
            event_type=AuditEventType.EXPENSE_COMMITTED,
            description="Expense created",
            details={"payer_id": "a"},
        )
        log_dict = event.to_log_dict()
        assert "event_id" in log_dict
        assert log_dict["event_type"] == "expense_committed"
        assert log_dict["details"]["payer_id"] == "a"

    def test_audit_event_to_row(self):
        """Test conversion to a flat row."""
        event = AuditEvent(
            event_type=AuditEventType.SHARE_SETTLED,
            description="Share settled",
            actor_id="a",
            is_user_action=True,
        )
        row = event.to_row()
        assert len(row) == 12  # Expected number of columns
        assert row[2] == "share_settled"  # event_type
        assert row[6] == "a"  # actor_id
        assert row[11] == "True"  # is_user_action

    def test_audit_event_builder_share_settled(self):
        """Test building a share settled event."""
        share_id = uuid4()
        correlation_id = uuid4()
        event = AuditEventBuilder.share_settled(
            expense_id=uuid4(),
            share_id=share_id,
            participant_id="b",
            amount="$45.00",
            actor_id="a",
            correlation_id=correlation_id,
        )
        assert event.event_type == AuditEventType.SHARE_SETTLED
        assert event.entity_id == share_id
        assert event.correlation_id == correlation_id
        assert event.is_user_action is True

    def test_audit_event_builder_validation(self):
        """Test that validation outcome picks the event type."""
        passed = AuditEventBuilder.validation_finished(
            is_valid=True, mode="commit", issues=[], actor_id=None, correlation_id=None,
        )
        failed = AuditEventBuilder.validation_finished(
            is_valid=False,
            mode="commit",
            issues=[{"code": "amount_mismatch"}],
            actor_id=None,
            correlation_id=None,
        )
        assert passed.event_type == AuditEventType.VALIDATION_PASSED
        assert failed.event_type == AuditEventType.VALIDATION_FAILED
        assert failed.severity == AuditSeverity.WARNING

    def test_audit_event_builder_store_error(self):
        """Test that store errors are logged as errors."""
        event = AuditEventBuilder.store_error(
            operation="save_expenses",
            error_message="timeout",
            correlation_id=None,
        )
        assert event.severity == AuditSeverity.ERROR
        assert event.error_message == "timeout"


class TestValidationResult:
    """Tests for ValidationResult model."""

    def _result(self, issues):
        return ValidationResult(
            policy=SplitPolicy.EQUAL,
            mode=ValidationMode.COMMIT,
            structure_valid=True,
            reconciliation_valid=not issues,
            is_valid=not issues,
            expense_amount=usd(1000),
            shares_total=usd(1000),
            difference=usd(0),
            tolerance_minor_units=0,
            issues=issues,
        )

    def test_validation_result_has_errors(self):
        """Test has_errors property."""
        result = self._result([
            ValidationIssue(
                code=ValidationErrorCode.AMOUNT_MISMATCH,
                field="amount",
                message="Does not add up",
            ),
        ])
        assert result.has_errors is True
        assert result.error_count == 1
        assert result.has_code(ValidationErrorCode.AMOUNT_MISMATCH)

    def test_validation_result_warnings_only(self):
        """Test result with only warnings."""
        result = self._result([
            ValidationIssue(
                code=ValidationErrorCode.AMOUNT_MISMATCH,
                field="amount",
                message="Minor issue",
                severity="warning",
            ),
        ])
        assert result.has_errors is False
        assert result.error_count == 0


class TestExpenseCategories:
    """Tests for expense categories."""

    def test_all_categories_exist(self):
        """Test that the client's categories are available."""
        for cat in [
            "food", "transport", "entertainment", "shopping",
            "utilities", "healthcare", "travel", "other",
        ]:
            assert ExpenseCategory(cat) is not None

    def test_category_values(self):
        """Test category values."""
        assert ExpenseCategory.FOOD.value == "food"
        assert ExpenseCategory.HEALTHCARE.value == "healthcare"
