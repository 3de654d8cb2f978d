"""
Tests for the store boundary: record codec and in-memory stores.
"""

from datetime import date, datetime, timezone
from decimal import Decimal
from uuid import uuid4

import pytest

from splitledger.models.audit import AuditEventBuilder
from splitledger.models.expense import (
    Expense,
    ExpenseCategory,
    Share,
    SplitPolicy,
)
from splitledger.models.money import Money
from splitledger.storage import (
    InMemoryAuditStorage,
    InMemoryExpenseStore,
    RecordFormatError,
    expense_from_record,
    expense_to_record,
)


def usd(minor_units: int) -> Money:
    return Money(minor_units=minor_units, currency="USD")


def make_expense(payer: str, shares: dict[str, int], **kwargs) -> Expense:
    return Expense(
        amount=usd(sum(shares.values())),
        payer_id=payer,
        shares=tuple(
            Share(participant_id=pid, amount=usd(amount)) for pid, amount in shares.items()
        ),
        **kwargs,
    )


class TestRecordCodec:
    """Tests for converting store records."""

    def test_parse_record(self):
        """Test the documented record shape."""
        expense = expense_from_record({
            "amount": "90.00",
            "payer": "a",
            "shares": [
                {"participant": "b", "amount": "45.00", "settled": False},
                {
                    "participant": "c",
                    "amount": 45,
                    "percentage": "50",
                    "settled": True,
                    "settledAt": "2024-06-01T12:00:00Z",
                },
            ],
            "groupId": "trip",
            "date": "2024-05-30",
            "category": "food",
        }, default_currency="USD")

        assert expense.amount == usd(9000)
        assert expense.payer_id == "a"
        assert expense.share_for("b").amount == usd(4500)
        assert expense.share_for("c").percentage == Decimal("50")
        assert expense.share_for("c").settled_at == datetime(2024, 6, 1, 12, tzinfo=timezone.utc)
        assert expense.group_id == "trip"
        assert expense.expense_date == date(2024, 5, 30)
        assert expense.category == ExpenseCategory.FOOD

    def test_float_amounts_are_rounded_on_entry(self):
        """Test that numbers from the API become exact minor units."""
        expense = expense_from_record({
            "amount": 33.335,
            "payer": "a",
            "shares": [{"participant": "b", "amount": 33.335}],
        }, default_currency="USD")
        assert expense.amount.minor_units == 3334

    def test_embedded_user_objects(self):
        """Test that populated user objects are reduced to their id."""
        expense = expense_from_record({
            "amount": "10.00",
            "payer": {"_id": "a", "name": "Alex"},
            "shares": [{"user": {"_id": "b"}, "amount": "10.00"}],
        }, default_currency="USD")
        assert expense.payer_id == "a"
        assert expense.share_for("b") is not None

    def test_settled_at_ignored_when_not_settled(self):
        """Test that a stray timestamp does not make a share invalid."""
        expense = expense_from_record({
            "amount": "10.00",
            "payer": "a",
            "shares": [{
                "participant": "b",
                "amount": "10.00",
                "settled": False,
                "settledAt": "2024-06-01T12:00:00Z",
            }],
        }, default_currency="USD")
        assert expense.share_for("b").settled_at is None

    @pytest.mark.parametrize("record", [
        {"payer": "a"},
        {"amount": "abc", "payer": "a"},
        {"amount": "10.00"},
        {"amount": "10.00", "payer": "a", "category": "rent"},
        {"amount": "0", "payer": "a"},
        {"amount": "10.00", "payer": "a", "shares": [
            {"participant": "b", "amount": "10.00", "percentage": "abc"},
        ]},
        {"amount": "10.00", "payer": "a", "shares": [
            {"participant": "b", "amount": "10.00", "settled": True, "settledAt": 1717243200},
        ]},
    ])
    def test_bad_records(self, record):
        """Test that malformed records raise RecordFormatError."""
        with pytest.raises(RecordFormatError):
            expense_from_record(record, default_currency="USD")

    def test_round_trip(self):
        """Test that encoding then decoding keeps the expense."""
        expense = make_expense(
            "a", {"b": 4500, "c": 4500},
            title="Dinner",
            policy=SplitPolicy.EQUAL,
            group_id="trip",
            category=ExpenseCategory.FOOD,
        )
        record = expense_to_record(expense)
        assert record["amount"] == "90.00"
        assert record["shares"][0]["settledAt"] is None
        assert expense_from_record(record) == expense


class TestInMemoryExpenseStore:
    """Tests for the paged in-memory store."""

    @pytest.fixture
    def store(self):
        expenses = [
            make_expense("a", {"b": 100 * day}, expense_date=date(2024, 6, day))
            for day in range(1, 6)
        ]
        expenses.append(make_expense("c", {"d": 100}, expense_date=date(2024, 6, 9)))
        return InMemoryExpenseStore(expenses)

    def test_pages(self, store):
        """Test page count and newest-first order."""
        first = store.list_expenses("a", page=1, limit=2)
        assert first.total == 5
        assert first.pages == 3
        assert first.has_more is True
        assert [e.expense_date.day for e in first.expenses] == [5, 4]

        last = store.list_expenses("a", page=3, limit=2)
        assert [e.expense_date.day for e in last.expenses] == [1]
        assert last.has_more is False

    def test_filters(self, store):
        """Test user and counterparty filters."""
        assert store.list_expenses("d").total == 1
        assert store.list_expenses("a", counterparty_id="d").total == 0
        assert store.list_expenses("z").pages == 0

    def test_save_replaces_by_id(self, store):
        """Test that saving an existing id overwrites it."""
        expense = store.list_expenses("c").expenses[0]
        settled = expense.replace_shares([
            s.model_copy(update={"settled": True, "settled_at": datetime.now(timezone.utc)})
            for s in expense.shares
        ])
        assert store.save_expenses([settled]) == 1
        assert len(store) == 6
        assert store.get_expense(expense.id).is_settled is True
        assert store.list_expenses("c", settled=False).total == 0

    def test_delete(self, store):
        """Test deleting an expense."""
        expense = store.list_expenses("c").expenses[0]
        assert store.delete_expense(expense.id) is True
        assert store.delete_expense(expense.id) is False
        assert store.get_expense(expense.id) is None

    def test_invalid_page(self, store):
        """Test that pages are 1-based."""
        with pytest.raises(ValueError):
            store.list_expenses("a", page=0)


class TestInMemoryAuditStorage:
    """Tests for the in-memory audit sink."""

    def test_events_by_correlation_id(self):
        """Test lookup of one action's events."""
        storage = InMemoryAuditStorage()
        correlation_id = uuid4()
        storage.append_event(AuditEventBuilder.store_error("x", "boom", correlation_id))
        storage.append_event(AuditEventBuilder.store_error("y", "boom", None))

        events = storage.get_events_by_correlation_id(correlation_id)
        assert len(events) == 1
        assert events[0].details["operation"] == "x"
