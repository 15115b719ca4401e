# Overview: Fixed-precision money arithmetic for line and transaction totals.

"""
Money arithmetic.

All amounts are Decimal. Aggregation runs at full precision and rounds to
cents (half-up) only when a value is about to be stored or shown, so summing
many lines never compounds rounding error.

Invariant kept by compute_totals(): total == subtotal + tax, exactly, on the
rounded values.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Iterable

CENT = Decimal("0.01")
ZERO = Decimal("0")


@dataclass(frozen=True)
class Totals:
    subtotal: Decimal
    tax: Decimal
    total: Decimal

    def to_dict(self) -> dict:
        return {
            "subtotal": f"{self.subtotal:.2f}",
            "tax": f"{self.tax:.2f}",
            "total": f"{self.total:.2f}",
        }


def to_decimal(value) -> Decimal:
    """
    Parse a number from JSON/str/int/float into Decimal.

    Floats go through str() so 2.99 becomes Decimal("2.99"), not the binary
    expansion. Raises ValueError for anything unparseable or non-finite.
    """
    if isinstance(value, bool):
        raise ValueError("boolean is not a number")
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, (int, float, str)):
        try:
            result = Decimal(str(value).strip())
        except InvalidOperation:
            raise ValueError(f"not a number: {value!r}")
    else:
        raise ValueError(f"not a number: {value!r}")
    if not result.is_finite():
        raise ValueError(f"not a finite number: {value!r}")
    return result


def to_money(value) -> Decimal:
    """Round to cents, half-up."""
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def line_amounts(unit_price, quantity: int, tax_rate) -> tuple[Decimal, Decimal, Decimal]:
    """
    Full-precision (subtotal, tax, total) for one line.

    subtotal = price * quantity
    tax      = subtotal * rate
    total    = subtotal + tax
    """
    line_subtotal = to_decimal(unit_price) * quantity
    line_tax = line_subtotal * to_decimal(tax_rate)
    return line_subtotal, line_tax, line_subtotal + line_tax


def compute_totals(lines: Iterable) -> Totals:
    """
    Recompute transaction totals from scratch over ``lines``.

    Each line only needs ``unit_price``, ``quantity`` and ``tax_rate``.
    """
    subtotal = ZERO
    tax = ZERO
    for line in lines:
        line_subtotal, line_tax, _ = line_amounts(line.unit_price, line.quantity, line.tax_rate)
        subtotal += line_subtotal
        tax += line_tax

    subtotal = to_money(subtotal)
    tax = to_money(tax)
    return Totals(subtotal=subtotal, tax=tax, total=subtotal + tax)


def format_money(value) -> str:
    return f"{to_money(value):.2f}"
