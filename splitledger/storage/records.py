"""
Expense Record Codec

Converts between the external store's record shape and engine models:

    {
        "id": "...",
        "amount": "90.00",
        "currency": "USD",
        "payer": "user-a",
        "policy": "equal",
        "shares": [
            {"participant": "user-b", "amount": "45.00",
             "percentage": "50", "settled": false, "settledAt": null}
        ],
        "groupId": null,
        "date": "2024-06-01",
        "category": "food",
        "title": "Dinner"
    }

Amounts cross the boundary in MAJOR units (strings preferred, numbers
accepted) and are rounded half-up to minor units on the way in. This is
the only place store data is parsed.
"""

from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Optional
from uuid import UUID

from splitledger.models.expense import (
    Expense,
    ExpenseCategory,
    Share,
    SplitPolicy,
)
from splitledger.models.money import Money


class RecordFormatError(ValueError):
    """A store record does not have the expected shape."""
    pass


def _participant_id(value: Any) -> str:
    # The API sometimes embeds the user object instead of its id
    if isinstance(value, dict):
        value = value.get("_id") or value.get("id")
    if not value:
        raise RecordFormatError("Missing participant id")
    return str(value)


def _parse_datetime(value: Optional[str]) -> Optional[datetime]:
    if value is None or isinstance(value, datetime):
        return value
    if not isinstance(value, str):
        raise RecordFormatError(f"Unsupported timestamp: {value!r}")
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


def _parse_date(value: Any) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        return _parse_datetime(value).date() if "T" in value else date.fromisoformat(value)
    raise RecordFormatError(f"Unsupported date: {value!r}")


def _parse_percentage(value: Any) -> Optional[Decimal]:
    if value is None:
        return None
    try:
        return Decimal(str(value))
    except InvalidOperation as e:
        raise RecordFormatError(f"Invalid percentage: {value!r}") from e


def share_from_record(record: dict, currency: str) -> Share:
    settled = bool(record.get("settled", False))
    return Share(
        **({"share_id": UUID(str(record["id"]))} if record.get("id") else {}),
        participant_id=_participant_id(record.get("participant") or record.get("user")),
        amount=Money.from_major(record["amount"], currency),
        percentage=_parse_percentage(record.get("percentage")),
        settled=settled,
        settled_at=_parse_datetime(record.get("settledAt")) if settled else None,
    )


def expense_from_record(record: dict, default_currency: Optional[str] = None) -> Expense:
    """
    Build an Expense from a store record.

    Raises:
        RecordFormatError: missing keys or unparseable values
    """
    try:
        currency = record.get("currency") or default_currency
        amount = Money.from_major(record["amount"], currency)
        shares = tuple(
            share_from_record(share, amount.currency)
            for share in record.get("shares") or record.get("splitWith") or []
        )
        fields = {
            "amount": amount,
            "payer_id": _participant_id(record.get("payer") or record.get("paidBy")),
            "policy": SplitPolicy(record.get("policy") or SplitPolicy.UNEQUAL),
            "shares": shares,
            "group_id": record.get("groupId"),
            "category": ExpenseCategory(record.get("category") or ExpenseCategory.OTHER),
            "title": record.get("title") or record.get("description") or "",
            "notes": record.get("notes"),
        }
        if record.get("date"):
            fields["expense_date"] = _parse_date(record["date"])
        if record.get("id") or record.get("_id"):
            fields["id"] = UUID(str(record.get("id") or record.get("_id")))
        return Expense(**fields)
    except RecordFormatError:
        raise
    except (KeyError, TypeError, ValueError) as e:
        raise RecordFormatError(f"Invalid expense record: {e}") from e


def share_to_record(share: Share) -> dict:
    record = {
        "id": str(share.share_id),
        "participant": share.participant_id,
        "amount": str(share.amount.to_major()),
        "settled": share.settled,
        "settledAt": share.settled_at.isoformat() if share.settled_at else None,
    }
    if share.percentage is not None:
        record["percentage"] = str(share.percentage)
    return record


def expense_to_record(expense: Expense) -> dict:
    """Serialize an Expense to the store's record shape."""
    return {
        "id": str(expense.id),
        "title": expense.title,
        "notes": expense.notes,
        "amount": str(expense.amount.to_major()),
        "currency": expense.amount.currency,
        "payer": expense.payer_id,
        "policy": expense.policy.value,
        "shares": [share_to_record(share) for share in expense.shares],
        "isSettled": expense.is_settled,
        "groupId": expense.group_id,
        "date": expense.expense_date.isoformat(),
        "category": expense.category.value,
    }
