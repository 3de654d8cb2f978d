"""
Balance Aggregator

Nets many expenses into one signed balance between two parties.

For each expense, only the DIRECT claim implied by who paid counts:
- actor paid        -> counterparty's unsettled share is owed TO the actor (+)
- counterparty paid -> actor's unsettled share is owed BY the actor (-)
- anyone else paid  -> no direct claim between the pair, skip

So netBalance(A, B) == -netBalance(B, A) for any expense set.

Sums are commutative and associative, which is what makes paging work:
fold() adds one page into running totals without revisiting earlier
pages. Folding the same page twice double counts; that is the caller's
responsibility.

Nothing here is stored. Balances are recomputed whenever the expense
set changes.
"""

from typing import Iterable, Optional, Sequence

from splitledger.config import get_settings
from splitledger.models.expense import (
    Balance,
    BalanceDirection,
    BalanceTotals,
    ClaimStatus,
    Expense,
)
from splitledger.models.money import CurrencyMismatchError, Money, add


class BalanceAggregator:
    """Computes pairwise, group and per-friend balances."""

    def __init__(self, currency: Optional[str] = None, settled_up_text: Optional[str] = None):
        self._currency = currency or get_settings().ledger.default_currency
        self._settled_up_text = settled_up_text or get_settings().display.settled_up_text

    # -- per expense ---------------------------------------------------------

    @staticmethod
    def direct_claim(expense: Expense, actor_id: str, counterparty_id: str) -> int:
        """
        Signed minor units this expense contributes to actor's balance
        with counterparty. Zero when there is no outstanding direct claim.
        """
        if actor_id == counterparty_id:
            return 0
        if expense.payer_id == actor_id:
            share = expense.share_for(counterparty_id)
            if share is not None and not share.settled:
                return share.amount.minor_units
        elif expense.payer_id == counterparty_id:
            share = expense.share_for(actor_id)
            if share is not None and not share.settled:
                return -share.amount.minor_units
        return 0

    def claim_status(self, expense: Expense, actor_id: str, counterparty_id: str) -> ClaimStatus:
        """How one expense reads in the actor's list with a friend."""
        claim = self.direct_claim(expense, actor_id, counterparty_id)
        if claim > 0:
            return ClaimStatus.FRIEND_OWES
        if claim < 0:
            return ClaimStatus.USER_OWES
        return ClaimStatus.SETTLED

    # -- pairwise ------------------------------------------------------------

    def net_balance(
        self,
        actor_id: str,
        counterparty_id: str,
        expenses: Iterable[Expense],
        counterparty_name: Optional[str] = None,
    ) -> Balance:
        """
        Net balance between actor and counterparty over `expenses`.

        Positive: counterparty owes actor. Negative: actor owes counterparty.
        """
        expenses = list(expenses)
        total = Money.zero(self._currency_of(expenses))
        contributing = 0
        for expense in expenses:
            claim = self.direct_claim(expense, actor_id, counterparty_id)
            if claim == 0:
                continue
            total = add(total, Money(minor_units=claim, currency=expense.amount.currency))
            contributing += 1

        return self._build_balance(
            actor_id=actor_id,
            amount=total,
            counterparty_id=counterparty_id,
            name=counterparty_name or counterparty_id,
            expense_count=contributing,
        )

    # -- paging --------------------------------------------------------------

    def empty_totals(self, actor_id: str, currency: Optional[str] = None) -> BalanceTotals:
        return BalanceTotals(actor_id=actor_id, currency=currency or self._currency)

    def fold(self, totals: BalanceTotals, page: Sequence[Expense]) -> BalanceTotals:
        """
        Add one page of expenses to running per-counterparty totals.

        Every counterparty of the actor is covered, so
        fold(...).amount_with(b) == net_balance(actor, b, all pages).amount.
        """
        actor_id = totals.actor_id
        per_counterparty = dict(totals.per_counterparty)
        claim_counts = dict(totals.claim_counts)
        # The first expense folded fixes the currency of the totals.
        currency = totals.currency
        if totals.expenses_folded == 0 and page:
            currency = page[0].amount.currency

        def add_claim(counterparty_id: str, minor_units: int) -> None:
            if minor_units == 0:
                return
            per_counterparty[counterparty_id] = per_counterparty.get(counterparty_id, 0) + minor_units
            claim_counts[counterparty_id] = claim_counts.get(counterparty_id, 0) + 1

        for expense in page:
            if expense.amount.currency != currency:
                raise CurrencyMismatchError(currency, expense.amount.currency)
            if expense.payer_id == actor_id:
                for share in expense.outstanding_shares():
                    add_claim(share.participant_id, share.amount.minor_units)
            else:
                share = expense.share_for(actor_id)
                if share is not None and not share.settled:
                    add_claim(expense.payer_id, -share.amount.minor_units)

        return totals.model_copy(update={
            "currency": currency,
            "per_counterparty": per_counterparty,
            "claim_counts": claim_counts,
            "expenses_folded": totals.expenses_folded + len(page),
        })

    def balance_from_totals(
        self,
        totals: BalanceTotals,
        counterparty_id: str,
        counterparty_name: Optional[str] = None,
    ) -> Balance:
        """Balance with one counterparty out of folded totals."""
        return self._build_balance(
            actor_id=totals.actor_id,
            amount=totals.amount_with(counterparty_id),
            counterparty_id=counterparty_id,
            name=counterparty_name or counterparty_id,
            expense_count=totals.claim_counts.get(counterparty_id, 0),
        )

    def balances_by_counterparty(
        self,
        actor_id: str,
        expenses: Sequence[Expense],
        names: Optional[dict[str, str]] = None,
        include_settled: bool = False,
    ) -> dict[str, Balance]:
        """
        One balance per person the actor shares expenses with.

        Settled-up counterparties are left out unless include_settled.
        """
        names = names or {}
        totals = self.fold(self.empty_totals(actor_id), expenses)
        counterparties = set(totals.claim_counts)
        if include_settled:
            for expense in expenses:
                if actor_id in expense.participant_ids:
                    counterparties.update(expense.participant_ids)
            counterparties.discard(actor_id)

        balances = {}
        for counterparty_id in sorted(counterparties):
            balance = self.balance_from_totals(
                totals, counterparty_id, names.get(counterparty_id)
            )
            if balance.is_settled_up and not include_settled:
                continue
            balances[counterparty_id] = balance
        return balances

    # -- groups --------------------------------------------------------------

    def group_net_balance(
        self,
        actor_id: str,
        group_id: str,
        expenses: Iterable[Expense],
        group_name: Optional[str] = None,
    ) -> Balance:
        """
        Actor's position inside one group.

        Positive: the other members owe the actor (outstanding shares of
        expenses the actor paid). Negative: the actor's own outstanding
        shares of expenses others paid.
        """
        in_group = [e for e in expenses if e.group_id == group_id]
        totals = self.fold(self.empty_totals(actor_id), in_group)
        contributing = sum(1 for e in in_group if self._has_open_claim(e, actor_id))
        return self._build_balance(
            actor_id=actor_id,
            amount=totals.net,
            group_id=group_id,
            name=group_name or group_id,
            expense_count=contributing,
        )

    @staticmethod
    def _has_open_claim(expense: Expense, actor_id: str) -> bool:
        if expense.payer_id == actor_id:
            return bool(expense.outstanding_shares())
        share = expense.share_for(actor_id)
        return share is not None and not share.settled

    def group_total(self, group_id: str, expenses: Iterable[Expense]) -> Money:
        """Total spent in a group, settled or not."""
        in_group = [e for e in expenses if e.group_id == group_id]
        total = Money.zero(self._currency_of(in_group))
        for expense in in_group:
            total = add(total, expense.amount)
        return total

    def _currency_of(self, expenses: Sequence[Expense]) -> str:
        if expenses:
            return expenses[0].amount.currency
        return self._currency

    # -- rendering -----------------------------------------------------------

    def balance_message(self, amount: Money, name: str) -> str:
        """'Alex owes you $45.00' / 'You owe Alex $15.75' / settled text."""
        if amount.is_zero():
            return self._settled_up_text
        if amount.is_positive():
            return f"{name} owes you {amount.format()}"
        return f"You owe {name} {amount.format()}"

    def _build_balance(
        self,
        actor_id: str,
        amount: Money,
        name: str,
        expense_count: int,
        counterparty_id: Optional[str] = None,
        group_id: Optional[str] = None,
    ) -> Balance:
        if amount.is_zero():
            direction = BalanceDirection.SETTLED_UP
        elif amount.is_positive():
            direction = BalanceDirection.OWED_TO_ACTOR
        else:
            direction = BalanceDirection.ACTOR_OWES

        return Balance(
            actor_id=actor_id,
            counterparty_id=counterparty_id,
            group_id=group_id,
            amount=amount,
            direction=direction,
            message=self.balance_message(amount, name),
            expense_count=expense_count,
        )
