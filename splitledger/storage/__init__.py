"""Storage package: store contract, record codec and in-memory stores."""

from splitledger.storage.interface import (
    AuditStorageInterface,
    ExpensePage,
    ExpenseStoreInterface,
    StorageError,
)
from splitledger.storage.memory import InMemoryAuditStorage, InMemoryExpenseStore
from splitledger.storage.records import (
    RecordFormatError,
    expense_from_record,
    expense_to_record,
)

__all__ = [
    "AuditStorageInterface",
    "ExpensePage",
    "ExpenseStoreInterface",
    "StorageError",
    "InMemoryAuditStorage",
    "InMemoryExpenseStore",
    "RecordFormatError",
    "expense_from_record",
    "expense_to_record",
]
