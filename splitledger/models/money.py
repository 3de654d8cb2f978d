"""
Money Primitive and Minor-Unit Arithmetic

DESIGN DECISION: Amounts are integers in the currency's minor unit
(cents for USD). Floating point is accepted ONLY when parsing user
or store input, and is rounded to minor units immediately.

Rounding policy everywhere is HALF-UP (ties away from zero), so that
repeated application gives the same answer on every run.

When a total is divided, the leftover minor units are handed out one
at a time in input order. The pieces always add back to the total.
"""

from decimal import Decimal, InvalidOperation
from fractions import Fraction
from typing import Optional, Sequence, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from splitledger.config import get_settings


# Currencies whose minor unit is not 1/100
CURRENCY_EXPONENTS: dict[str, int] = {
    "JPY": 0,
    "KRW": 0,
    "VND": 0,
    "BHD": 3,
    "KWD": 3,
    "OMR": 3,
}

CURRENCY_SYMBOLS: dict[str, str] = {
    "USD": "$",
    "CAD": "$",
    "AUD": "$",
    "EUR": "€",
    "GBP": "£",
    "INR": "₹",
    "JPY": "¥",
}

NumberLike = Union[int, str, float, Decimal, Fraction]


class CurrencyMismatchError(ValueError):
    """Arithmetic attempted across two different currencies."""

    def __init__(self, left: str, right: str):
        self.left = left
        self.right = right
        super().__init__(f"Cannot combine {left} with {right}")


def currency_exponent(currency: str) -> int:
    """Number of decimal places in the currency's minor unit."""
    return CURRENCY_EXPONENTS.get(currency.upper(), 2)


def _default_currency() -> str:
    return get_settings().ledger.default_currency


def _round_fraction_half_up(value: Fraction) -> int:
    """Round an exact fraction to the nearest integer, ties away from zero."""
    magnitude = abs(value)
    whole, rest = divmod(magnitude.numerator, magnitude.denominator)
    if 2 * rest >= magnitude.denominator:
        whole += 1
    return -whole if value < 0 else whole


def _to_fraction(value: NumberLike) -> Fraction:
    """Convert a parsed number to an exact fraction."""
    if isinstance(value, bool):
        raise TypeError("Booleans are not amounts")
    if isinstance(value, float):
        # Go through the shortest repr so 0.1 means 1/10, not the binary value
        value = Decimal(str(value))
    elif isinstance(value, str):
        try:
            value = Decimal(value.strip())
        except InvalidOperation:
            raise ValueError(f"Not a number: {value!r}") from None
    if isinstance(value, Decimal) and not value.is_finite():
        raise ValueError(f"Not a finite number: {value}")
    return Fraction(value)


class Money(BaseModel):
    """
    An exact amount of one currency.

    Signed: balances use negative values for "actor owes".
    """
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    minor_units: int = Field(
        ...,
        strict=True,
        description="Amount in minor units (e.g. cents)"
    )
    currency: str = Field(
        default_factory=_default_currency,
        description="ISO 4217 currency code"
    )

    @field_validator('currency')
    @classmethod
    def validate_currency(cls, v: str) -> str:
        v = v.upper()
        if len(v) != 3 or not v.isalpha():
            raise ValueError(f"Invalid currency code: {v!r}")
        return v

    # -- construction -------------------------------------------------------

    @classmethod
    def zero(cls, currency: Optional[str] = None) -> "Money":
        return cls(minor_units=0, currency=currency or _default_currency())

    @classmethod
    def from_major(cls, value: NumberLike, currency: Optional[str] = None) -> "Money":
        """
        Parse a major-unit amount ("25.50", 25.5, Decimal("25.5")).

        This is the input boundary: the value is rounded half-up
        to the currency's minor unit.
        """
        currency = (currency or _default_currency()).upper()
        return cls(
            minor_units=round_half_up(value, currency),
            currency=currency,
        )

    # -- inspection ---------------------------------------------------------

    @property
    def exponent(self) -> int:
        return currency_exponent(self.currency)

    def to_major(self) -> Decimal:
        """Exact major-unit value, e.g. Decimal('25.50')."""
        return Decimal(self.minor_units).scaleb(-self.exponent)

    def is_zero(self) -> bool:
        return self.minor_units == 0

    def is_positive(self) -> bool:
        return self.minor_units > 0

    def is_negative(self) -> bool:
        return self.minor_units < 0

    # -- arithmetic ---------------------------------------------------------

    def __add__(self, other: "Money") -> "Money":
        return add(self, other)

    def __sub__(self, other: "Money") -> "Money":
        return subtract(self, other)

    def __neg__(self) -> "Money":
        return Money(minor_units=-self.minor_units, currency=self.currency)

    def __abs__(self) -> "Money":
        return Money(minor_units=abs(self.minor_units), currency=self.currency)

    def _check_currency(self, other: "Money") -> None:
        if self.currency != other.currency:
            raise CurrencyMismatchError(self.currency, other.currency)

    def __lt__(self, other: "Money") -> bool:
        self._check_currency(other)
        return self.minor_units < other.minor_units

    def __le__(self, other: "Money") -> bool:
        self._check_currency(other)
        return self.minor_units <= other.minor_units

    def __gt__(self, other: "Money") -> bool:
        self._check_currency(other)
        return self.minor_units > other.minor_units

    def __ge__(self, other: "Money") -> bool:
        self._check_currency(other)
        return self.minor_units >= other.minor_units

    # -- rendering ----------------------------------------------------------

    def format(self, signed: bool = False) -> str:
        """
        Render for display: "$25.50", or "+$25.50" / "-$15.75" when signed.

        Unsigned rendering shows the magnitude only.
        """
        symbol = currency_symbol(self.currency)
        magnitude = f"{abs(self.to_major()):,.{self.exponent}f}"
        body = f"{symbol}{magnitude}" if symbol else f"{magnitude} {self.currency}"
        if not signed or self.minor_units == 0:
            return body
        return f"+{body}" if self.minor_units > 0 else f"-{body}"

    def __str__(self) -> str:
        sign = "-" if self.minor_units < 0 else ""
        return f"{sign}{self.format()}"


def currency_symbol(currency: str) -> str:
    """Symbol for a currency, honouring display overrides. Empty if unknown."""
    overrides = get_settings().display.currency_symbols
    return overrides.get(currency, CURRENCY_SYMBOLS.get(currency, ""))


# =============================================================================
# ARITHMETIC
# =============================================================================

def add(a: Money, b: Money) -> Money:
    """Exact sum of two amounts of the same currency."""
    a._check_currency(b)
    return Money(minor_units=a.minor_units + b.minor_units, currency=a.currency)


def subtract(a: Money, b: Money) -> Money:
    """Exact difference of two amounts of the same currency."""
    a._check_currency(b)
    return Money(minor_units=a.minor_units - b.minor_units, currency=a.currency)


def sum_money(amounts: Sequence[Money], currency: Optional[str] = None) -> Money:
    """Sum a sequence of amounts; an empty sequence gives zero."""
    total = Money.zero(currency or (amounts[0].currency if amounts else None))
    for amount in amounts:
        total = add(total, amount)
    return total


def multiply_by_fraction(
    amount: Money,
    numerator: NumberLike,
    denominator: NumberLike,
) -> Money:
    """
    amount * numerator / denominator, rounded half-up to a minor unit.

    Used for percentage splits (numerator=percentage, denominator=100).
    The product is computed exactly before the single rounding step.
    """
    den = _to_fraction(denominator)
    if den == 0:
        raise ZeroDivisionError("denominator must not be zero")
    exact = Fraction(amount.minor_units) * _to_fraction(numerator) / den
    return Money(
        minor_units=_round_fraction_half_up(exact),
        currency=amount.currency,
    )


def round_half_up(value: NumberLike, currency: Optional[str] = None) -> int:
    """
    Round a major-unit value to whole minor units, ties away from zero.

    round_half_up("12.345") == 1235 for a two-decimal currency.
    """
    exponent = currency_exponent(currency or _default_currency())
    return _round_fraction_half_up(_to_fraction(value) * 10 ** exponent)


def allocate_evenly(amount: Money, count: int) -> list[Money]:
    """
    Split an amount into `count` pieces that add back up exactly.

    The first (remainder) pieces get one extra minor unit, so
    $10.00 three ways is [3.34, 3.33, 3.33].
    """
    if count <= 0:
        raise ValueError("count must be positive")
    base, remainder = divmod(abs(amount.minor_units), count)
    sign = -1 if amount.minor_units < 0 else 1
    return [
        Money(
            minor_units=sign * (base + (1 if index < remainder else 0)),
            currency=amount.currency,
        )
        for index in range(count)
    ]


def distribute_residual(pieces: Sequence[Money], target: Money) -> list[Money]:
    """
    Nudge pieces by one minor unit each, in order, until they sum to target.

    A positive residual adds to the first pieces, a negative one takes
    from the first pieces that still have something to give. Pieces are
    non-negative and the residual is small (rounding residue).
    """
    residual = target.minor_units - sum_money(list(pieces), target.currency).minor_units
    adjusted = list(pieces)
    if not adjusted:
        return adjusted
    step = 1 if residual > 0 else -1
    index = 0
    while residual != 0:
        slot = index % len(adjusted)
        index += 1
        if step < 0 and adjusted[slot].minor_units <= 0:
            continue
        adjusted[slot] = Money(
            minor_units=adjusted[slot].minor_units + step,
            currency=target.currency,
        )
        residual -= step
    return adjusted
