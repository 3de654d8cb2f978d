"""
Ledger Orchestrator for SplitLedger

This module ties together the pure engine components and defines the
flows the presentation layer calls:
1. Expense entry (form input → split → validate → expense)
2. Settlement (share / expense / settle up with a friend)
3. Balance queries (friend, group, friends list, paged store reads)

DESIGN DECISION: The orchestrator enforces the boundaries:
- No expense is built from shares that do not reconcile
- Calculator input errors come back as typed results, never raised
- Every step is audited; the core modules themselves never log

The flows hold no ledger state. Every call works on the expenses the
caller hands in (or reads from the configured store) and balances are
recomputed from scratch each time.
"""

from datetime import date
from typing import Mapping, Optional, Sequence, Union
from uuid import UUID

from splitledger.audit import AuditLogger, create_correlation_id
from splitledger.balances import BalanceAggregator
from splitledger.config import get_settings
from splitledger.models.audit import AuditEventBuilder
from splitledger.models.expense import (
    Balance,
    BalanceTotals,
    Expense,
    ExpenseCategory,
    ExpenseCommitResult,
    GroupSummary,
    SettlementBatch,
    SplitPolicy,
    SplitProposal,
    ValidationMode,
    ValidationResult,
)
from splitledger.models.money import Money, NumberLike
from splitledger.settlement import SettlementTracker
from splitledger.splits import InvalidInputError, SplitCalculator
from splitledger.splits.calculator import ParticipantLike
from splitledger.storage import (
    AuditStorageInterface,
    ExpenseStoreInterface,
    StorageError,
)
from splitledger.validation import SplitValidator


MoneyLike = Union[Money, NumberLike]


def _as_money(value: MoneyLike, currency: Optional[str], field: str) -> Money:
    """Parse form input into Money; presentation values arrive in major units."""
    if isinstance(value, Money):
        return value
    try:
        return Money.from_major(value, currency)
    except (TypeError, ValueError) as e:
        raise InvalidInputError(field, f"Not a valid amount: {value!r}") from e


def _as_amounts(
    amounts: Optional[Mapping[str, MoneyLike]],
    currency: str,
) -> Optional[dict[str, Money]]:
    if amounts is None:
        return None
    return {
        user_id: _as_money(value, currency, f"amounts.{user_id}")
        for user_id, value in amounts.items()
    }


def _issue_dicts(result: ValidationResult) -> list[dict]:
    return [
        {"code": i.code.value, "field": i.field, "message": i.message}
        for i in result.issues
    ]


class ExpenseEntryFlow:
    """
    Orchestrates creating and editing an expense.

    Flow:
    1. Propose → compute shares while the form is edited (interactive tolerance)
    2. Commit → recompute, validate strictly, build the Expense
    3. Save → persist through the store, if one is configured

    A rejected split is never fatal: the caller re-prompts with the issues.
    """

    def __init__(
        self,
        calculator: Optional[SplitCalculator] = None,
        validator: Optional[SplitValidator] = None,
        expense_store: Optional[ExpenseStoreInterface] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._calculator = calculator or SplitCalculator()
        self._validator = validator or SplitValidator()
        self._expense_store = expense_store
        self._audit_logger = audit_logger

    @property
    def validator(self) -> SplitValidator:
        return self._validator

    def propose_split(
        self,
        amount: MoneyLike,
        policy: SplitPolicy,
        participants: Sequence[ParticipantLike],
        percentages: Optional[Mapping[str, object]] = None,
        amounts: Optional[Mapping[str, MoneyLike]] = None,
        payer_id: Optional[str] = None,
        currency: Optional[str] = None,
        actor_id: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> SplitProposal:
        """
        Compute and check shares for a form that is still being edited.

        Returns:
            SplitProposal. success=False only when the input cannot be
            split at all; reconciliation problems are in `validation`.
        """
        correlation_id = correlation_id or create_correlation_id()
        try:
            shares, total, policy = self._compute(
                amount, policy, participants, percentages, amounts, currency
            )
        except InvalidInputError as e:
            self._audit_rejected(e, actor_id, correlation_id)
            return SplitProposal(
                success=False,
                policy=policy if isinstance(policy, SplitPolicy) else None,
                error_field=e.field,
                error_message=e.message,
            )

        validation = self._validator.validate(
            total, shares, policy, payer_id=payer_id, mode=ValidationMode.INTERACTIVE
        )

        if self._audit_logger:
            self._audit_logger.log(AuditEventBuilder.split_computed(
                policy=policy.value,
                amount=str(total),
                participant_count=len(shares),
                actor_id=actor_id,
                correlation_id=correlation_id,
            ))

        return SplitProposal(
            success=True,
            policy=policy,
            shares=shares,
            validation=validation,
        )

    def commit_expense(
        self,
        amount: MoneyLike,
        payer_id: str,
        policy: SplitPolicy,
        participants: Sequence[ParticipantLike],
        percentages: Optional[Mapping[str, object]] = None,
        amounts: Optional[Mapping[str, MoneyLike]] = None,
        title: str = "",
        notes: Optional[str] = None,
        group_id: Optional[str] = None,
        category: ExpenseCategory = ExpenseCategory.OTHER,
        expense_date: Optional[date] = None,
        currency: Optional[str] = None,
        actor_id: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> ExpenseCommitResult:
        """
        Build a new expense from form input.

        Shares are recomputed and validated with the commit tolerance.
        The expense is saved when a store is configured.

        Raises:
            StorageError: the configured store rejected the write
        """
        correlation_id = correlation_id or create_correlation_id()
        fields = {
            "title": title,
            "notes": notes,
            "payer_id": payer_id,
            "group_id": group_id,
            "category": category,
        }
        if expense_date is not None:
            fields["expense_date"] = expense_date

        return self._build_and_save(
            fields, amount, policy, participants, percentages, amounts,
            currency, edited=False, actor_id=actor_id, correlation_id=correlation_id,
        )

    def edit_expense(
        self,
        expense: Expense,
        amount: Optional[MoneyLike] = None,
        policy: Optional[SplitPolicy] = None,
        participants: Optional[Sequence[ParticipantLike]] = None,
        percentages: Optional[Mapping[str, object]] = None,
        amounts: Optional[Mapping[str, MoneyLike]] = None,
        title: Optional[str] = None,
        notes: Optional[str] = None,
        category: Optional[ExpenseCategory] = None,
        expense_date: Optional[date] = None,
        actor_id: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> ExpenseCommitResult:
        """
        Edit an existing expense.

        The id is kept. Every share is replaced by a new unsettled share,
        so an edit is also how a settled share is reopened. Omitted
        inputs fall back to the expense's current values.

        Raises:
            StorageError: the configured store rejected the write
        """
        correlation_id = correlation_id or create_correlation_id()
        policy = policy or expense.policy
        if participants is None:
            participants = [share.participant_id for share in expense.shares]
        if percentages is None and policy == SplitPolicy.PERCENTAGE:
            percentages = {
                share.participant_id: share.percentage
                for share in expense.shares
                if share.percentage is not None
            }
        if amounts is None and policy == SplitPolicy.UNEQUAL:
            amounts = {share.participant_id: share.amount for share in expense.shares}

        fields = {
            "id": expense.id,
            "title": expense.title if title is None else title,
            "notes": expense.notes if notes is None else notes,
            "payer_id": expense.payer_id,
            "group_id": expense.group_id,
            "category": category or expense.category,
            "expense_date": expense_date or expense.expense_date,
        }
        return self._build_and_save(
            fields,
            expense.amount if amount is None else amount,
            policy, participants, percentages, amounts,
            expense.amount.currency,
            edited=True, actor_id=actor_id, correlation_id=correlation_id,
        )

    def _compute(self, amount, policy, participants, percentages, amounts, currency):
        total = _as_money(amount, currency, "amount")
        try:
            policy = SplitPolicy(policy)
        except ValueError:
            raise InvalidInputError("policy", f"Unknown split policy: {policy!r}") from None
        shares = self._calculator.compute(
            total,
            policy,
            participants,
            percentages=percentages,
            amounts=_as_amounts(amounts, total.currency),
        )
        return shares, total, policy

    def _build_and_save(
        self,
        fields: dict,
        amount: MoneyLike,
        policy: SplitPolicy,
        participants: Sequence[ParticipantLike],
        percentages: Optional[Mapping[str, object]],
        amounts: Optional[Mapping[str, MoneyLike]],
        currency: Optional[str],
        edited: bool,
        actor_id: Optional[str],
        correlation_id: UUID,
    ) -> ExpenseCommitResult:
        try:
            shares, total, policy = self._compute(
                amount, policy, participants, percentages, amounts, currency
            )
        except InvalidInputError as e:
            self._audit_rejected(e, actor_id, correlation_id)
            return ExpenseCommitResult(
                success=False,
                error_field=e.field,
                error_message=e.message,
            )

        validation = self._validator.validate(
            total, shares, policy, payer_id=fields["payer_id"], mode=ValidationMode.COMMIT
        )

        if self._audit_logger:
            self._audit_logger.log(AuditEventBuilder.validation_finished(
                is_valid=validation.is_valid,
                mode=validation.mode.value,
                issues=_issue_dicts(validation),
                actor_id=actor_id,
                correlation_id=correlation_id,
            ))

        if not validation.is_valid:
            return ExpenseCommitResult(
                success=False,
                validation=validation,
                error_message=self._validator.get_user_friendly_summary(validation),
            )

        expense = Expense(amount=total, policy=policy, shares=tuple(shares), **fields)

        if self._expense_store is not None:
            try:
                self._expense_store.save_expenses([expense])
            except StorageError as e:
                if self._audit_logger:
                    self._audit_logger.log_store_error(
                        operation="save_expenses",
                        error_message=str(e),
                        correlation_id=correlation_id,
                    )
                raise

        if self._audit_logger:
            self._audit_logger.log(AuditEventBuilder.expense_committed(
                expense_id=expense.id,
                amount=str(expense.amount),
                payer_id=expense.payer_id,
                edited=edited,
                actor_id=actor_id,
                correlation_id=correlation_id,
            ))

        return ExpenseCommitResult(success=True, expense=expense, validation=validation)

    def _audit_rejected(
        self,
        error: InvalidInputError,
        actor_id: Optional[str],
        correlation_id: UUID,
    ) -> None:
        if self._audit_logger:
            self._audit_logger.log(AuditEventBuilder.split_input_rejected(
                field=error.field,
                message=error.message,
                actor_id=actor_id,
                correlation_id=correlation_id,
            ))


class SettlementFlow:
    """
    Orchestrates settling shares.

    Each action builds a SettlementBatch in memory first, then persists
    the whole batch with a single store call. If the store fails, nothing
    is reported as settled.
    """

    def __init__(
        self,
        tracker: Optional[SettlementTracker] = None,
        expense_store: Optional[ExpenseStoreInterface] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._tracker = tracker or SettlementTracker()
        self._expense_store = expense_store
        self._audit_logger = audit_logger

    def settle_share(
        self,
        expense: Expense,
        participant_id: str,
        actor_id: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> SettlementBatch:
        """Settle one participant's share of one expense."""
        correlation_id = correlation_id or create_correlation_id()
        batch = self._tracker.settle_share(expense, participant_id)
        self._persist(batch, correlation_id)

        if self._audit_logger:
            for updated in batch.expenses:
                share = updated.share_for(participant_id)
                self._audit_logger.log(AuditEventBuilder.share_settled(
                    expense_id=updated.id,
                    share_id=share.share_id,
                    participant_id=participant_id,
                    amount=str(share.amount),
                    actor_id=actor_id,
                    correlation_id=correlation_id,
                ))
        return batch

    def settle_expense(
        self,
        expense: Expense,
        actor_id: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> SettlementBatch:
        """Settle every share of one expense."""
        correlation_id = correlation_id or create_correlation_id()
        batch = self._tracker.settle_all(expense)
        self._persist(batch, correlation_id)

        if self._audit_logger and not batch.is_empty:
            self._audit_logger.log(AuditEventBuilder.expense_settled(
                expense_id=expense.id,
                share_count=batch.settled_count,
                actor_id=actor_id,
                correlation_id=correlation_id,
            ))
        return batch

    def settle_up(
        self,
        actor_id: str,
        counterparty_id: str,
        expenses: Sequence[Expense],
        correlation_id: Optional[UUID] = None,
    ) -> SettlementBatch:
        """
        Settle up with a friend: clear every direct claim between the two.

        Afterwards their net balance over `expenses` is zero.
        """
        correlation_id = correlation_id or create_correlation_id()
        batch = self._tracker.settle_between(actor_id, counterparty_id, expenses)
        self._persist(batch, correlation_id)

        if self._audit_logger:
            self._audit_logger.log(AuditEventBuilder.settle_up_completed(
                actor_id=actor_id,
                counterparty_id=counterparty_id,
                expense_count=len(batch.expenses),
                share_count=batch.settled_count,
                correlation_id=correlation_id,
            ))
        return batch

    def _persist(self, batch: SettlementBatch, correlation_id: UUID) -> None:
        if self._expense_store is None or batch.is_empty:
            return
        try:
            self._expense_store.save_expenses(batch.expenses)
        except StorageError as e:
            if self._audit_logger:
                self._audit_logger.log_store_error(
                    operation="save_expenses",
                    error_message=str(e),
                    correlation_id=correlation_id,
                )
            raise


class BalanceQueryFlow:
    """
    Orchestrates read-side balance queries.

    Balances are derived values: nothing here is cached or stored.
    """

    def __init__(
        self,
        aggregator: Optional[BalanceAggregator] = None,
        expense_store: Optional[ExpenseStoreInterface] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._aggregator = aggregator or BalanceAggregator()
        self._expense_store = expense_store
        self._audit_logger = audit_logger

    @property
    def aggregator(self) -> BalanceAggregator:
        return self._aggregator

    def balance_with_friend(
        self,
        actor_id: str,
        friend_id: str,
        expenses: Sequence[Expense],
        friend_name: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> Balance:
        """"What is my balance with friend X?" over a caller-supplied batch."""
        balance = self._aggregator.net_balance(actor_id, friend_id, expenses, friend_name)
        self._audit_balance(actor_id, f"friend:{friend_id}", balance, correlation_id)
        return balance

    def group_summary(
        self,
        actor_id: str,
        group_id: str,
        expenses: Sequence[Expense],
        group_name: Optional[str] = None,
        member_names: Optional[dict[str, str]] = None,
        correlation_id: Optional[UUID] = None,
    ) -> GroupSummary:
        """Group total, the actor's net position and per-member balances."""
        in_group = [e for e in expenses if e.group_id == group_id]
        net = self._aggregator.group_net_balance(actor_id, group_id, in_group, group_name)
        self._audit_balance(actor_id, f"group:{group_id}", net, correlation_id)

        return GroupSummary(
            group_id=group_id,
            actor_id=actor_id,
            total_spent=self._aggregator.group_total(group_id, in_group),
            expense_count=len(in_group),
            net=net,
            member_balances=self._aggregator.balances_by_counterparty(
                actor_id, in_group, names=member_names, include_settled=True
            ),
        )

    def friends_balances(
        self,
        actor_id: str,
        expenses: Sequence[Expense],
        names: Optional[dict[str, str]] = None,
        include_settled: bool = False,
    ) -> dict[str, Balance]:
        """One balance per friend, settled-up friends hidden by default."""
        return self._aggregator.balances_by_counterparty(
            actor_id, expenses, names=names, include_settled=include_settled
        )

    def fold_page(
        self,
        totals: BalanceTotals,
        page: Sequence[Expense],
        page_number: int,
        correlation_id: Optional[UUID] = None,
    ) -> BalanceTotals:
        """
        Fold one page into running totals.

        Each page must be folded exactly once; the caller tracks which
        pages were already folded.
        """
        totals = self._aggregator.fold(totals, page)
        if self._audit_logger:
            self._audit_logger.log(AuditEventBuilder.page_folded(
                actor_id=totals.actor_id,
                page=page_number,
                expense_count=len(page),
                correlation_id=correlation_id,
            ))
        return totals

    def totals_from_store(
        self,
        actor_id: str,
        counterparty_id: Optional[str] = None,
        group_id: Optional[str] = None,
        page_size: int = 20,
        correlation_id: Optional[UUID] = None,
    ) -> BalanceTotals:
        """
        Read every page from the store in order and fold it once.

        Raises:
            StorageError: no store is configured, or a page read failed
        """
        if self._expense_store is None:
            raise StorageError("Expense store not configured")
        correlation_id = correlation_id or create_correlation_id()

        totals = self._aggregator.empty_totals(actor_id)
        page_number = 1
        while True:
            try:
                page = self._expense_store.list_expenses(
                    actor_id,
                    page=page_number,
                    limit=page_size,
                    counterparty_id=counterparty_id,
                    group_id=group_id,
                )
            except StorageError as e:
                if self._audit_logger:
                    self._audit_logger.log_store_error(
                        operation=f"list_expenses(page={page_number})",
                        error_message=str(e),
                        correlation_id=correlation_id,
                    )
                raise
            totals = self.fold_page(totals, page.expenses, page_number, correlation_id)
            if not page.has_more:
                return totals
            page_number += 1

    def balance_from_store(
        self,
        actor_id: str,
        counterparty_id: str,
        counterparty_name: Optional[str] = None,
        page_size: int = 20,
        correlation_id: Optional[UUID] = None,
    ) -> Balance:
        """
        Balance with one counterparty, computed from paged store reads.

        Raises:
            StorageError: no store is configured, or a page read failed
        """
        correlation_id = correlation_id or create_correlation_id()
        totals = self.totals_from_store(
            actor_id,
            counterparty_id=counterparty_id,
            page_size=page_size,
            correlation_id=correlation_id,
        )
        balance = self._aggregator.balance_from_totals(
            totals, counterparty_id, counterparty_name
        )
        self._audit_balance(actor_id, f"friend:{counterparty_id}", balance, correlation_id)
        return balance

    def _audit_balance(
        self,
        actor_id: str,
        scope: str,
        balance: Balance,
        correlation_id: Optional[UUID],
    ) -> None:
        if self._audit_logger:
            self._audit_logger.log(AuditEventBuilder.balance_computed(
                actor_id=actor_id,
                scope=scope,
                amount=balance.display_amount,
                expense_count=balance.expense_count,
                correlation_id=correlation_id,
            ))


def create_ledger_components(
    audit_storage: Optional[AuditStorageInterface] = None,
    expense_store: Optional[ExpenseStoreInterface] = None,
) -> tuple[ExpenseEntryFlow, SettlementFlow, BalanceQueryFlow]:
    """
    Factory function to create all ledger components.

    Args:
        audit_storage: Audit sink. If None, audit events are only logged locally.
        expense_store: External expense store. If None, flows work purely
                       on caller-supplied expenses and never persist.

    Returns:
        (expense_entry_flow, settlement_flow, balance_query_flow)
    """
    settings = get_settings()
    audit_logger = AuditLogger(audit_storage)

    entry_flow = ExpenseEntryFlow(
        calculator=SplitCalculator(settings.ledger.distribute_percentage_remainder),
        validator=SplitValidator(settings.ledger),
        expense_store=expense_store,
        audit_logger=audit_logger,
    )
    settlement_flow = SettlementFlow(
        expense_store=expense_store,
        audit_logger=audit_logger,
    )
    query_flow = BalanceQueryFlow(
        aggregator=BalanceAggregator(
            currency=settings.ledger.default_currency,
            settled_up_text=settings.display.settled_up_text,
        ),
        expense_store=expense_store,
        audit_logger=audit_logger,
    )
    return entry_flow, settlement_flow, query_flow
