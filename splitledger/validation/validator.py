"""
Two-Stage Share Validation

DESIGN DECISION: Validation happens in two distinct stages:

STAGE 1 - STRUCTURE:
- At least two parties (payer plus one other)
- No participant listed twice
- No negative shares, no foreign currency
- No blank shares when amounts or percentages are entered by hand

STAGE 2 - RECONCILIATION:
- Shares add up to the expense amount (within tolerance)
- Percentages add up to 100 (percentage policy)

Stage 2 only runs when stage 1 passes.

TOLERANCE:
- INTERACTIVE mode (form still open): interactive tolerance for every policy
- COMMIT mode (about to persist, the default): commit tolerance, except
  PERCENTAGE which keeps its own slack because its shares are rounded
  independently

IMPORTANT: Validation NEVER fixes shares. It reports issues so the
caller can re-prompt.
"""

from decimal import Decimal
from typing import Optional, Sequence

from splitledger.config import LedgerSettings, get_settings
from splitledger.models.expense import (
    Share,
    SplitPolicy,
    ValidationErrorCode,
    ValidationIssue,
    ValidationMode,
    ValidationResult,
)
from splitledger.models.money import Money


ONE_HUNDRED = Decimal(100)


class SplitValidator:
    """
    Checks that a set of shares reconciles to its expense.

    Pure: no storage, no logging. Callers must run it before
    persisting or re-persisting an expense.
    """

    def __init__(self, settings: Optional[LedgerSettings] = None):
        self._settings = settings or get_settings().ledger

    def tolerance_for(self, policy: SplitPolicy, mode: ValidationMode) -> int:
        """Allowed |sum(shares) - amount| in minor units."""
        if mode == ValidationMode.INTERACTIVE:
            return self._settings.interactive_tolerance_minor_units
        if policy == SplitPolicy.PERCENTAGE:
            return self._settings.percentage_commit_tolerance_minor_units
        return self._settings.commit_tolerance_minor_units

    @staticmethod
    def remaining(expense_amount: Money, shares: Sequence[Share]) -> Money:
        """
        What is left to allocate: positive when under, negative when over.

        Shares in another currency are ignored.
        """
        allocated = sum(
            share.amount.minor_units
            for share in shares
            if share.amount.currency == expense_amount.currency
        )
        return Money(
            minor_units=expense_amount.minor_units - allocated,
            currency=expense_amount.currency,
        )

    def _validate_structure(
        self,
        expense_amount: Money,
        shares: Sequence[Share],
        policy: SplitPolicy,
        payer_id: Optional[str],
    ) -> list[ValidationIssue]:
        """Stage 1: who is in the split and whether each share is usable."""
        issues = []

        parties = {share.participant_id for share in shares}
        if payer_id:
            parties.add(payer_id)
        if len(parties) < self._settings.min_participants:
            issues.append(ValidationIssue(
                code=ValidationErrorCode.EMPTY_SHARE_SET,
                field="shares",
                message="Please add at least one other person to split with",
                suggested_fix="Add a friend or group member to the expense",
            ))

        seen = set()
        for share in shares:
            if share.participant_id in seen:
                issues.append(ValidationIssue(
                    code=ValidationErrorCode.DUPLICATE_PARTICIPANT,
                    field="shares",
                    message=f"{share.participant_id} appears more than once",
                    suggested_fix="Give each person a single share",
                ))
            seen.add(share.participant_id)

        for share in shares:
            if share.amount.currency != expense_amount.currency:
                issues.append(ValidationIssue(
                    code=ValidationErrorCode.CURRENCY_MISMATCH,
                    field="shares",
                    message=(
                        f"Share of {share.participant_id} is in "
                        f"{share.amount.currency}, expense is in {expense_amount.currency}"
                    ),
                ))
            elif share.amount.minor_units < 0:
                issues.append(ValidationIssue(
                    code=ValidationErrorCode.NEGATIVE_SHARE,
                    field="shares",
                    message=f"Share of {share.participant_id} is negative",
                    suggested_fix="Split amounts must be zero or more",
                ))

        if policy != SplitPolicy.EQUAL:
            blank = [s.participant_id for s in shares if s.amount.minor_units == 0]
            if blank:
                what = "percentages" if policy == SplitPolicy.PERCENTAGE else "amounts"
                issues.append(ValidationIssue(
                    code=ValidationErrorCode.MISSING_SHARE_AMOUNT,
                    field="shares",
                    message=f"Please enter {what} for all participants",
                    suggested_fix=f"Missing for: {', '.join(blank)}",
                ))

        return issues

    def _validate_reconciliation(
        self,
        expense_amount: Money,
        shares: Sequence[Share],
        policy: SplitPolicy,
        tolerance: int,
    ) -> list[ValidationIssue]:
        """Stage 2: do the numbers add up?"""
        issues = []

        difference = self.remaining(expense_amount, shares)
        if abs(difference.minor_units) > tolerance:
            state = "under" if difference.is_positive() else "over"
            issues.append(ValidationIssue(
                code=ValidationErrorCode.AMOUNT_MISMATCH,
                field="amount",
                message=(
                    "Split amounts do not add up to the total expense amount "
                    f"({abs(difference).format()} {state})"
                ),
                suggested_fix=f"Shares must total {expense_amount.format()}",
            ))

        if policy == SplitPolicy.PERCENTAGE:
            total_pct = sum((share.percentage or Decimal(0)) for share in shares)
            if abs(total_pct - ONE_HUNDRED) > self._settings.percentage_tolerance:
                issues.append(ValidationIssue(
                    code=ValidationErrorCode.PERCENTAGE_MISMATCH,
                    field="percentage",
                    message=f"Split percentages must add up to 100% (currently {total_pct}%)",
                    suggested_fix="Adjust the percentages",
                ))

        return issues

    def validate(
        self,
        expense_amount: Money,
        shares: Sequence[Share],
        policy: SplitPolicy,
        payer_id: Optional[str] = None,
        mode: ValidationMode = ValidationMode.COMMIT,
        tolerance_minor_units: Optional[int] = None,
    ) -> ValidationResult:
        """
        Run the two-stage validation.

        Args:
            expense_amount: The expense total
            shares: Shares to check
            policy: Split policy the shares were derived with
            payer_id: Payer, counted as a party even without a share
            mode: COMMIT before persisting, INTERACTIVE while editing
            tolerance_minor_units: Explicit override of the mode tolerance

        Returns:
            ValidationResult listing every issue found
        """
        policy = SplitPolicy(policy)
        tolerance = (
            tolerance_minor_units
            if tolerance_minor_units is not None
            else self.tolerance_for(policy, mode)
        )

        structure_issues = self._validate_structure(
            expense_amount, shares, policy, payer_id
        )
        structure_valid = not any(i.severity == "error" for i in structure_issues)

        reconciliation_issues = []
        reconciliation_valid = False
        if structure_valid:
            reconciliation_issues = self._validate_reconciliation(
                expense_amount, shares, policy, tolerance
            )
            reconciliation_valid = not any(
                i.severity == "error" for i in reconciliation_issues
            )

        difference = self.remaining(expense_amount, shares)
        return ValidationResult(
            policy=policy,
            mode=mode,
            structure_valid=structure_valid,
            reconciliation_valid=reconciliation_valid,
            is_valid=structure_valid and reconciliation_valid,
            expense_amount=expense_amount,
            shares_total=expense_amount - difference,
            difference=difference,
            tolerance_minor_units=tolerance,
            issues=structure_issues + reconciliation_issues,
        )

    def get_user_friendly_summary(self, result: ValidationResult) -> str:
        """
        Summary shown above the split form.

        The form always stays editable; this only explains what to fix.
        """
        if result.is_valid:
            return "✅ Split adds up. Ready to save."

        lines = ["❌ Please fix the split before saving:"]
        for issue in result.issues:
            if issue.severity == "error":
                lines.append(f"   • {issue.message}")
                if issue.suggested_fix:
                    lines.append(f"     💡 {issue.suggested_fix}")

        if not result.difference.is_zero():
            state = "under" if result.difference.is_positive() else "over"
            lines.append("")
            lines.append(f"Remaining: {abs(result.difference).format()} ({state})")

        return "\n".join(lines)
