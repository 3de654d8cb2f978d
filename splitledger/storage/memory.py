"""
In-Memory Storage Implementation

Used by tests and by callers that have not wired a real store yet.
Expenses are kept in their record shape and decoded on the way out,
so the store exercises the same codec a remote backend would.
"""

import math
from typing import Optional
from uuid import UUID

from splitledger.models.audit import AuditEvent
from splitledger.models.expense import Expense
from splitledger.storage.interface import (
    AuditStorageInterface,
    ExpensePage,
    ExpenseStoreInterface,
)
from splitledger.storage.records import expense_from_record, expense_to_record


class InMemoryExpenseStore(ExpenseStoreInterface):
    """Paged expense store backed by a dict of records."""

    def __init__(self, expenses: Optional[list[Expense]] = None):
        self._records: dict[str, dict] = {}
        self.list_calls = 0
        if expenses:
            self.save_expenses(expenses)

    def _matches(
        self,
        record: dict,
        user_id: str,
        counterparty_id: Optional[str],
        group_id: Optional[str],
        settled: Optional[bool],
    ) -> bool:
        people = {record["payer"]} | {share["participant"] for share in record["shares"]}
        if user_id not in people:
            return False
        if counterparty_id is not None and counterparty_id not in people:
            return False
        if group_id is not None and record["groupId"] != group_id:
            return False
        if settled is not None and record["isSettled"] != settled:
            return False
        return True

    def list_expenses(
        self,
        user_id: str,
        page: int = 1,
        limit: int = 20,
        counterparty_id: Optional[str] = None,
        group_id: Optional[str] = None,
        settled: Optional[bool] = None,
    ) -> ExpensePage:
        if page < 1 or limit < 1:
            raise ValueError("page and limit must be positive")
        self.list_calls += 1

        matching = [
            record for record in self._records.values()
            if self._matches(record, user_id, counterparty_id, group_id, settled)
        ]
        # Newest first; dict order keeps insertion order for equal dates
        matching.sort(key=lambda r: r["date"], reverse=True)

        start = (page - 1) * limit
        return ExpensePage(
            expenses=[expense_from_record(r) for r in matching[start:start + limit]],
            page=page,
            pages=math.ceil(len(matching) / limit),
            total=len(matching),
        )

    def get_expense(self, expense_id: UUID) -> Optional[Expense]:
        record = self._records.get(str(expense_id))
        return expense_from_record(record) if record else None

    def save_expenses(self, expenses: list[Expense]) -> int:
        # Encode everything first so a bad expense leaves the store untouched
        records = [expense_to_record(expense) for expense in expenses]
        for record in records:
            self._records[record["id"]] = record
        return len(records)

    def delete_expense(self, expense_id: UUID) -> bool:
        return self._records.pop(str(expense_id), None) is not None

    def __len__(self) -> int:
        return len(self._records)


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only list of audit events."""

    def __init__(self):
        self.events: list[AuditEvent] = []

    def append_event(self, event: AuditEvent) -> bool:
        self.events.append(event)
        return True

    def get_events_by_correlation_id(self, correlation_id: UUID) -> list[AuditEvent]:
        events = [e for e in self.events if e.correlation_id == correlation_id]
        return sorted(events, key=lambda e: e.timestamp)
