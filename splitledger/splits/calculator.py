"""
Split Calculator

Turns a total, a split policy and an ordered participant list into
one Share per participant.

POLICIES:
- EQUAL: total / count, leftover minor units go to the first
  participants in input order. Percentage is informational (100 / count).
- PERCENTAGE: each share is total * percentage / 100, rounded half-up
  on its own. Percentages are NOT checked to sum to 100 here; the
  validator reports that.
- UNEQUAL: amounts are supplied by the caller and passed through.

Participant order matters: it decides who receives leftover minor units.

The calculator is pure. It never logs, never persists, and returns
unsettled shares only.
"""

from decimal import Decimal, InvalidOperation
from typing import Mapping, Optional, Sequence, Union

from splitledger.config import get_settings
from splitledger.models.expense import Participant, Share, SplitPolicy
from splitledger.models.money import (
    Money,
    allocate_evenly,
    distribute_residual,
    multiply_by_fraction,
)


ONE_HUNDRED = Decimal(100)
PERCENT_PLACES = Decimal("0.01")

ParticipantLike = Union[Participant, str]


class InvalidInputError(Exception):
    """Calculator input is malformed and cannot be split."""

    def __init__(self, field: str, message: str):
        self.field = field
        self.message = message
        super().__init__(f"{field}: {message}")


def _participant_ids(participants: Sequence[ParticipantLike]) -> list[str]:
    ids = []
    for participant in participants:
        user_id = participant.user_id if isinstance(participant, Participant) else participant
        if not isinstance(user_id, str) or not user_id.strip():
            raise InvalidInputError("participants", "Participant ids must be non-empty strings")
        ids.append(user_id.strip())
    if len(ids) != len(set(ids)):
        raise InvalidInputError("participants", "Each participant may appear only once")
    return ids


def parse_percentage(value) -> Decimal:
    """
    Parse a percentage typed by a user (0-100).

    Floats are read through their shortest repr, so 33.3 stays 33.3.
    """
    if isinstance(value, bool):
        raise InvalidInputError("percentages", "Percentage must be a number")
    try:
        if isinstance(value, float):
            value = str(value)
        parsed = Decimal(value.strip() if isinstance(value, str) else value)
    except (InvalidOperation, TypeError, ValueError):
        raise InvalidInputError("percentages", f"Not a number: {value!r}") from None
    if not parsed.is_finite():
        raise InvalidInputError("percentages", f"Not a finite number: {value!r}")
    if parsed < 0 or parsed > ONE_HUNDRED:
        raise InvalidInputError("percentages", f"Percentage must be between 0 and 100, got {parsed}")
    return parsed


class SplitCalculator:
    """
    Computes per-participant shares for a new or edited expense.

    Usage:
        shares = SplitCalculator().compute(
            Money.from_major("10.00"), SplitPolicy.EQUAL, ["a", "b", "c"]
        )
        # [3.34, 3.33, 3.33]
    """

    def __init__(self, distribute_percentage_remainder: Optional[bool] = None):
        """
        Args:
            distribute_percentage_remainder: Override the setting that hands
                rounding residue out in input order when percentages sum
                to exactly 100.
        """
        if distribute_percentage_remainder is None:
            distribute_percentage_remainder = (
                get_settings().ledger.distribute_percentage_remainder
            )
        self._distribute_remainder = distribute_percentage_remainder

    def compute(
        self,
        amount: Money,
        policy: SplitPolicy,
        participants: Sequence[ParticipantLike],
        percentages: Optional[Mapping[str, object]] = None,
        amounts: Optional[Mapping[str, Money]] = None,
    ) -> list[Share]:
        """
        Compute one unsettled share per participant, in input order.

        Args:
            amount: Expense total (must be positive)
            policy: Split policy
            participants: Ordered participants (objects or user ids)
            percentages: participant id -> percentage (PERCENTAGE only);
                missing participants get 0
            amounts: participant id -> Money (UNEQUAL only);
                missing participants get zero

        Raises:
            InvalidInputError: empty or duplicate participants, non-positive
                amount, unparseable or out-of-range percentages, negative
                or foreign-currency amounts
        """
        if amount.minor_units <= 0:
            raise InvalidInputError("amount", "Amount must be greater than zero")
        if not participants:
            raise InvalidInputError("participants", "At least one participant is required")

        ids = _participant_ids(participants)
        try:
            policy = SplitPolicy(policy)
        except ValueError:
            raise InvalidInputError("policy", f"Unknown split policy: {policy!r}") from None

        if policy == SplitPolicy.EQUAL:
            return self._equal(amount, ids)
        if policy == SplitPolicy.PERCENTAGE:
            return self._percentage(amount, ids, percentages or {})
        return self._unequal(amount, ids, amounts or {})

    def _equal(self, amount: Money, ids: list[str]) -> list[Share]:
        pieces = allocate_evenly(amount, len(ids))
        percentage = (ONE_HUNDRED / len(ids)).quantize(PERCENT_PLACES)
        return [
            Share(participant_id=user_id, amount=piece, percentage=percentage)
            for user_id, piece in zip(ids, pieces)
        ]

    def _percentage(
        self,
        amount: Money,
        ids: list[str],
        percentages: Mapping[str, object],
    ) -> list[Share]:
        unknown = set(percentages) - set(ids)
        if unknown:
            raise InvalidInputError(
                "percentages",
                f"Percentages given for non-participants: {sorted(unknown)}",
            )

        parsed = [parse_percentage(percentages.get(user_id, 0)) for user_id in ids]
        pieces = [multiply_by_fraction(amount, pct, ONE_HUNDRED) for pct in parsed]

        # Only residue from rounding is handed out; a sum other than 100
        # is the caller's mistake and stays visible to the validator.
        if self._distribute_remainder and sum(parsed) == ONE_HUNDRED:
            # 0% participants never receive residue
            eligible = [index for index, pct in enumerate(parsed) if pct > 0]
            adjusted = distribute_residual([pieces[index] for index in eligible], amount)
            for index, piece in zip(eligible, adjusted):
                pieces[index] = piece

        return [
            Share(participant_id=user_id, amount=piece, percentage=pct)
            for user_id, piece, pct in zip(ids, pieces, parsed)
        ]

    def _unequal(
        self,
        amount: Money,
        ids: list[str],
        amounts: Mapping[str, Money],
    ) -> list[Share]:
        unknown = set(amounts) - set(ids)
        if unknown:
            raise InvalidInputError(
                "amounts",
                f"Amounts given for non-participants: {sorted(unknown)}",
            )

        shares = []
        for user_id in ids:
            share_amount = amounts.get(user_id)
            if share_amount is None:
                share_amount = Money.zero(amount.currency)
            if share_amount.currency != amount.currency:
                raise InvalidInputError(
                    "amounts",
                    f"Amount for {user_id} is in {share_amount.currency}, "
                    f"expense is in {amount.currency}",
                )
            if share_amount.minor_units < 0:
                raise InvalidInputError("amounts", f"Amount for {user_id} is negative")
            shares.append(Share(participant_id=user_id, amount=share_amount))
        return shares
