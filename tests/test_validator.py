"""
Tests for the Split Validator

Validation never raises: every failure comes back as a ValidationIssue
the form can show while staying editable.
"""

import pytest
from decimal import Decimal

from splitledger.config import LedgerSettings
from splitledger.models.expense import (
    Share,
    SplitPolicy,
    ValidationErrorCode,
    ValidationMode,
)
from splitledger.models.money import Money
from splitledger.validation import SplitValidator


def usd(minor_units: int) -> Money:
    return Money(minor_units=minor_units, currency="USD")


def share(participant_id: str, minor_units: int, percentage=None, currency="USD") -> Share:
    return Share(
        participant_id=participant_id,
        amount=Money(minor_units=minor_units, currency=currency),
        percentage=percentage,
    )


@pytest.fixture
def validator():
    return SplitValidator(LedgerSettings())


class TestAmountReconciliation:
    """Tests for the share sum check."""

    def test_one_cent_short_fails_at_commit(self, validator):
        """Test that 50.00 + 49.99 does not reconcile with 100.00."""
        result = validator.validate(
            usd(10000), [share("a", 5000), share("b", 4999)], SplitPolicy.EQUAL
        )
        assert result.is_valid is False
        assert result.has_code(ValidationErrorCode.AMOUNT_MISMATCH)

    def test_exact_split_passes(self, validator):
        """Test that 50.00 + 50.00 reconciles with 100.00."""
        result = validator.validate(
            usd(10000), [share("a", 5000), share("b", 5000)], SplitPolicy.EQUAL
        )
        assert result.is_valid is True
        assert result.issues == []

    def test_one_cent_allowed_while_editing(self, validator):
        """Test the interactive tolerance."""
        result = validator.validate(
            usd(10000),
            [share("a", 5000), share("b", 4999)],
            SplitPolicy.UNEQUAL,
            mode=ValidationMode.INTERACTIVE,
        )
        assert result.is_valid is True
        assert result.tolerance_minor_units == 1

    def test_two_cents_rejected_while_editing(self, validator):
        """Test that the interactive tolerance is a single minor unit."""
        result = validator.validate(
            usd(10000),
            [share("a", 5000), share("b", 4998)],
            SplitPolicy.UNEQUAL,
            mode=ValidationMode.INTERACTIVE,
        )
        assert result.has_code(ValidationErrorCode.AMOUNT_MISMATCH)

    def test_explicit_tolerance_override(self, validator):
        """Test that callers can pass their own tolerance."""
        result = validator.validate(
            usd(10000),
            [share("a", 5000), share("b", 4995)],
            SplitPolicy.UNEQUAL,
            tolerance_minor_units=5,
        )
        assert result.is_valid is True

    def test_difference_reports_under(self, validator):
        """Test the remaining amount when shares fall short."""
        result = validator.validate(
            usd(10000), [share("a", 5000), share("b", 4000)], SplitPolicy.UNEQUAL
        )
        assert result.difference == usd(1000)
        assert result.shares_total == usd(9000)
        assert "$10.00 under" in result.issues[0].message

    def test_difference_reports_over(self, validator):
        """Test the remaining amount when shares exceed the total."""
        result = validator.validate(
            usd(10000), [share("a", 6000), share("b", 5000)], SplitPolicy.UNEQUAL
        )
        assert result.difference == usd(-1000)
        assert "$10.00 over" in result.issues[0].message

    def test_remaining(self):
        """Test the live form hint."""
        remaining = SplitValidator.remaining(usd(9000), [share("a", 4500)])
        assert remaining == usd(4500)


class TestPercentageReconciliation:
    """Tests for the percentage sum check."""

    def test_percentages_must_sum_to_100(self, validator):
        """Test that 50% + 40% is rejected."""
        result = validator.validate(
            usd(10000),
            [share("a", 5000, Decimal("50")), share("b", 5000, Decimal("40"))],
            SplitPolicy.PERCENTAGE,
        )
        assert result.has_code(ValidationErrorCode.PERCENTAGE_MISMATCH)
        assert not result.has_code(ValidationErrorCode.AMOUNT_MISMATCH)

    def test_percentage_within_tolerance(self, validator):
        """Test that a hundredth of a percent of slack is accepted."""
        result = validator.validate(
            usd(10000),
            [
                share("a", 3333, Decimal("33.33")),
                share("b", 3333, Decimal("33.33")),
                share("c", 3334, Decimal("33.33")),
            ],
            SplitPolicy.PERCENTAGE,
        )
        assert result.is_valid is True

    def test_percentage_commit_allows_rounding_cent(self, validator):
        """Test that independently rounded percentage shares may be a cent off."""
        result = validator.validate(
            usd(5),
            [share("a", 3, Decimal("50")), share("b", 3, Decimal("50"))],
            SplitPolicy.PERCENTAGE,
        )
        assert result.is_valid is True
        assert result.tolerance_minor_units == 1

    def test_equal_policy_ignores_percentages(self, validator):
        """Test that informational percentages are not checked for EQUAL."""
        result = validator.validate(
            usd(1000),
            [
                share("a", 334, Decimal("33.33")),
                share("b", 333, Decimal("33.33")),
                share("c", 333, Decimal("33.33")),
            ],
            SplitPolicy.EQUAL,
        )
        assert result.is_valid is True


class TestStructure:
    """Tests for stage 1 structural checks."""

    def test_single_participant_is_rejected(self, validator):
        """Test that an expense must involve someone else."""
        result = validator.validate(usd(1000), [share("a", 1000)], SplitPolicy.EQUAL)
        assert result.has_code(ValidationErrorCode.EMPTY_SHARE_SET)
        assert result.structure_valid is False

    def test_payer_counts_as_participant(self, validator):
        """Test that the payer plus one share holder is enough."""
        result = validator.validate(
            usd(4500), [share("b", 4500)], SplitPolicy.UNEQUAL, payer_id="a"
        )
        assert result.is_valid is True

    def test_no_shares(self, validator):
        """Test that an empty share set is rejected."""
        result = validator.validate(usd(1000), [], SplitPolicy.EQUAL, payer_id="a")
        assert result.has_code(ValidationErrorCode.EMPTY_SHARE_SET)

    def test_reconciliation_skipped_when_structure_fails(self, validator):
        """Test that stage 2 only runs after stage 1 passes."""
        result = validator.validate(usd(1000), [share("a", 1)], SplitPolicy.EQUAL)
        assert result.reconciliation_valid is False
        assert not result.has_code(ValidationErrorCode.AMOUNT_MISMATCH)

    def test_duplicate_participant(self, validator):
        """Test that a participant may hold only one share."""
        result = validator.validate(
            usd(1000), [share("a", 500), share("a", 500)], SplitPolicy.EQUAL
        )
        assert result.has_code(ValidationErrorCode.DUPLICATE_PARTICIPANT)

    def test_negative_share(self, validator):
        """Test that negative shares are rejected."""
        result = validator.validate(
            usd(1000), [share("a", 1500), share("b", -500)], SplitPolicy.UNEQUAL
        )
        assert result.has_code(ValidationErrorCode.NEGATIVE_SHARE)

    def test_currency_mismatch(self, validator):
        """Test that shares must be in the expense currency."""
        result = validator.validate(
            usd(1000), [share("a", 500), share("b", 500, currency="EUR")], SplitPolicy.EQUAL
        )
        assert result.has_code(ValidationErrorCode.CURRENCY_MISMATCH)

    def test_missing_amount_for_unequal(self, validator):
        """Test that every participant needs an amount."""
        result = validator.validate(
            usd(1000), [share("a", 1000), share("b", 0)], SplitPolicy.UNEQUAL
        )
        assert result.has_code(ValidationErrorCode.MISSING_SHARE_AMOUNT)
        assert "amounts" in result.issues[0].message

    def test_zero_share_allowed_for_equal(self, validator):
        """Test that a one-cent expense split two ways is still valid."""
        result = validator.validate(
            usd(1), [share("a", 1), share("b", 0)], SplitPolicy.EQUAL
        )
        assert result.is_valid is True


class TestTolerances:
    """Tests for configurable tolerances."""

    def test_tolerance_for(self, validator):
        """Test the default tolerance table."""
        assert validator.tolerance_for(SplitPolicy.EQUAL, ValidationMode.COMMIT) == 0
        assert validator.tolerance_for(SplitPolicy.UNEQUAL, ValidationMode.COMMIT) == 0
        assert validator.tolerance_for(SplitPolicy.PERCENTAGE, ValidationMode.COMMIT) == 1
        assert validator.tolerance_for(SplitPolicy.EQUAL, ValidationMode.INTERACTIVE) == 1

    def test_custom_settings(self):
        """Test that tolerances come from settings."""
        validator = SplitValidator(LedgerSettings(commit_tolerance_minor_units=2))
        result = validator.validate(
            usd(10000), [share("a", 5000), share("b", 4998)], SplitPolicy.UNEQUAL
        )
        assert result.is_valid is True


class TestUserFriendlySummary:
    """Tests for the form summary."""

    def test_valid_summary(self, validator):
        """Test the success message."""
        result = validator.validate(
            usd(10000), [share("a", 5000), share("b", 5000)], SplitPolicy.EQUAL
        )
        assert "Ready to save" in validator.get_user_friendly_summary(result)

    def test_invalid_summary_lists_issues(self, validator):
        """Test that the summary names each problem and the remainder."""
        result = validator.validate(
            usd(10000), [share("a", 5000), share("b", 4000)], SplitPolicy.UNEQUAL
        )
        summary = validator.get_user_friendly_summary(result)
        assert "do not add up" in summary
        assert "Remaining: $10.00 (under)" in summary
