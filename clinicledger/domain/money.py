"""Fixed-precision, non-negative money amounts."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from clinicledger.domain.errors import InvalidAmount, NegativeMoney

# Smallest currency unit the clinic bills in (tiyin for UZS).
DEFAULT_SCALE = Decimal("0.01")


def to_decimal(value: Decimal | int | str) -> Decimal:
    """Convert user input to Decimal, refusing floats and garbage."""
    if isinstance(value, bool) or isinstance(value, float):
        raise InvalidAmount(f"Amount must be Decimal, int or str, got {type(value).__name__}")
    if isinstance(value, Decimal):
        number = value
    else:
        try:
            number = Decimal(str(value).strip().replace(",", ""))
        except InvalidOperation:
            raise InvalidAmount(f"Not a valid amount: {value!r}") from None
    if not number.is_finite():
        raise InvalidAmount(f"Not a finite amount: {value!r}")
    return number


def quantize(number: Decimal, scale: Decimal = DEFAULT_SCALE) -> Decimal:
    """Round half-up to ``scale``; values too large for the context are invalid."""
    try:
        return number.quantize(scale, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        raise InvalidAmount(f"Amount out of range: {number}") from None


@dataclass(frozen=True, order=True)
class Money:
    """A non-negative amount quantized to the smallest currency unit."""

    amount: Decimal

    def __post_init__(self) -> None:
        if not isinstance(self.amount, Decimal):
            raise InvalidAmount(f"Money amount must be Decimal, got {type(self.amount).__name__}")
        if self.amount < 0:
            raise NegativeMoney(f"Money cannot be negative: {self.amount}")

    @classmethod
    def of(cls, value: Money | Decimal | int | str, scale: Decimal = DEFAULT_SCALE) -> Money:
        if isinstance(value, Money):
            return value
        return cls(quantize(to_decimal(value), scale))

    @classmethod
    def zero(cls) -> Money:
        return cls(quantize(Decimal("0")))

    def is_zero(self) -> bool:
        return self.amount == 0

    def __add__(self, other: Money) -> Money:
        if not isinstance(other, Money):
            return NotImplemented
        return Money(self.amount + other.amount)

    def __sub__(self, other: Money) -> Money:
        if not isinstance(other, Money):
            return NotImplemented
        return Money(self.amount - other.amount)

    def __bool__(self) -> bool:
        return not self.is_zero()

    def __str__(self) -> str:
        return f"{self.amount}"

    def __format__(self, spec: str) -> str:
        return format(self.amount, spec)


def sum_money(values: Iterable[Money]) -> Money:
    total = Money.zero()
    for value in values:
        total = total + value
    return total
