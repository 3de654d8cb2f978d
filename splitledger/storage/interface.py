"""
Abstract Storage Interface

DESIGN DECISION: The engine performs no I/O. Expense records live in an
external store that the engine treats as a blocking, sequential
collaborator. This module only defines the contract, so that:
1. Any backend (REST API, database) can be plugged in
2. Tests use in-memory storage
3. Business logic stays decoupled from storage

The store pages its results. Pages are folded one at a time by the
balance aggregator; fetching each page exactly once is the caller's job.
"""

from abc import ABC, abstractmethod
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field

from splitledger.models.audit import AuditEvent
from splitledger.models.expense import Expense


class ExpensePage(BaseModel):
    """One page of expenses returned by a store."""

    expenses: list[Expense] = Field(default_factory=list)
    page: int = Field(ge=1, description="1-based page number")
    pages: int = Field(ge=0, description="Total number of pages")
    total: int = Field(ge=0, description="Total number of matching expenses")

    @property
    def has_more(self) -> bool:
        return self.page < self.pages


class ExpenseStoreInterface(ABC):
    """
    Abstract interface for the external expense store.

    Any store implementation must implement these methods.
    """

    @abstractmethod
    def list_expenses(
        self,
        user_id: str,
        page: int = 1,
        limit: int = 20,
        counterparty_id: Optional[str] = None,
        group_id: Optional[str] = None,
        settled: Optional[bool] = None,
    ) -> ExpensePage:
        """
        List expenses the user takes part in, newest first.

        Args:
            user_id: User whose expenses to list
            page: 1-based page number
            limit: Page size
            counterparty_id: Only expenses shared with this user
            group_id: Only expenses of this group
            settled: Filter on the expense's settled state

        Returns:
            The requested page
        """
        pass

    @abstractmethod
    def get_expense(self, expense_id: UUID) -> Optional[Expense]:
        """Retrieve an expense by ID, or None."""
        pass

    @abstractmethod
    def save_expenses(self, expenses: list[Expense]) -> int:
        """
        Insert or replace expenses in one call.

        Returns:
            Number of expenses written

        Raises:
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    def delete_expense(self, expense_id: UUID) -> bool:
        """
        Delete an expense outright.

        Returns:
            True if it existed
        """
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event. Returns True if logged successfully."""
        pass

    @abstractmethod
    def get_events_by_correlation_id(self, correlation_id: UUID) -> list[AuditEvent]:
        """All events of one correlation ID, in chronological order."""
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass
