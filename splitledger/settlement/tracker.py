"""
Settlement State Tracker

Per-share state machine:

    OWED --mark_settled--> SETTLED

SETTLED is terminal for a share. There is no "un-settle": reopening a
share means editing the expense, which mints a new share.

An expense is settled when every one of its shares is settled.

DESIGN DECISION: Every transition returns NEW values. Batch operations
(settle_all, settle_between) build the complete set of updated expenses
in memory first and hand it back as one SettlementBatch. The caller
persists the batch in a single call; until then nothing is applied.
"""

from datetime import datetime, timezone
from typing import Callable, Optional, Sequence

from splitledger.models.expense import Expense, SettlementBatch, Share


Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class SettlementTracker:
    """Marks shares and expenses as settled."""

    def __init__(self, clock: Optional[Clock] = None):
        self._clock = clock or utc_now

    def mark_settled(self, share: Share, at: Optional[datetime] = None) -> Share:
        """
        Settle one share.

        An already settled share is returned unchanged, keeping its
        original settled_at.
        """
        if share.settled:
            return share
        return share.model_copy(
            update={"settled": True, "settled_at": at or self._clock()}
        )

    def settle_share(
        self,
        expense: Expense,
        participant_id: str,
        at: Optional[datetime] = None,
    ) -> SettlementBatch:
        """
        Settle one participant's share of one expense ("settle your split").

        Returns an empty batch if the participant has no outstanding share.
        """
        at = at or self._clock()
        share = expense.share_for(participant_id)
        if share is None or share.settled:
            return SettlementBatch(settled_at=at)

        settled = self.mark_settled(share, at)
        updated = expense.replace_shares([
            settled if s.share_id == share.share_id else s for s in expense.shares
        ])
        return SettlementBatch(
            expenses=[updated],
            settled_share_ids=[settled.share_id],
            settled_at=at,
        )

    def settle_all(self, expense: Expense, at: Optional[datetime] = None) -> SettlementBatch:
        """
        Settle every share of one expense with a single timestamp.

        Already settled shares are left as they are.
        """
        at = at or self._clock()
        newly_settled = []
        shares = []
        for share in expense.shares:
            if share.settled:
                shares.append(share)
            else:
                settled = self.mark_settled(share, at)
                newly_settled.append(settled.share_id)
                shares.append(settled)

        if not newly_settled:
            return SettlementBatch(settled_at=at)

        return SettlementBatch(
            expenses=[expense.replace_shares(shares)],
            settled_share_ids=newly_settled,
            settled_at=at,
        )

    def settle_between(
        self,
        actor_id: str,
        counterparty_id: str,
        expenses: Sequence[Expense],
        at: Optional[datetime] = None,
    ) -> SettlementBatch:
        """
        Settle up two users: clear every outstanding direct claim between them.

        - Expenses the actor paid: the counterparty's share is settled.
        - Expenses the counterparty paid: the actor's share is settled.
        - Other expenses (and other participants' shares) are untouched.

        Afterwards their net balance over `expenses` is zero.
        """
        at = at or self._clock()
        updated_expenses = []
        settled_ids = []

        for expense in expenses:
            if expense.payer_id == actor_id:
                debtor = counterparty_id
            elif expense.payer_id == counterparty_id:
                debtor = actor_id
            else:
                continue
            if debtor == expense.payer_id:
                continue

            batch = self.settle_share(expense, debtor, at)
            updated_expenses.extend(batch.expenses)
            settled_ids.extend(batch.settled_share_ids)

        return SettlementBatch(
            expenses=updated_expenses,
            settled_share_ids=settled_ids,
            settled_at=at,
        )
