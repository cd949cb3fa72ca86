"""
Money -- cent-exact Decimal helpers for tax arithmetic.

Responsibility:
    Coerce caller-supplied amounts and rates into Decimal, round to cents
    half-up, clamp bases at zero, and split an amount across tax lines
    without losing or inventing a cent.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Invariants enforced:
    - Decimal-only arithmetic: floats are rejected at the boundary because
      0.1 + 0.2 style drift breaks cent conservation.
    - ``allocate_by_weight`` always returns shares summing exactly to the
      amount, and no share exceeds its weight.

Failure modes:
    - InvalidInputError from ``to_money`` / ``to_rate`` on floats, booleans,
      non-numeric strings and non-finite values.
"""

from __future__ import annotations

from collections.abc import Sequence
from decimal import ROUND_DOWN, ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

from autotax_kernel.exceptions import InvalidInputError

ZERO = Decimal("0")
CENT = Decimal("0.01")


def round_money(value: Decimal) -> Decimal:
    """Round to cents, half-up."""
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def floor_to_cent(value: Decimal) -> Decimal:
    """Truncate a non-negative amount to whole cents."""
    return value.quantize(CENT, rounding=ROUND_DOWN)


def clamp_non_negative(value: Decimal) -> Decimal:
    return value if value > ZERO else ZERO


def _to_decimal(value: Any, field: str) -> Decimal:
    if isinstance(value, bool) or isinstance(value, float):
        raise InvalidInputError(field, "must be a decimal string or integer, not float/bool", value)
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, (int, str)):
        try:
            result = Decimal(value)
        except InvalidOperation:
            raise InvalidInputError(field, "not a number", value) from None
    else:
        raise InvalidInputError(field, f"unsupported type {type(value).__name__}", value)
    if not result.is_finite():
        raise InvalidInputError(field, "must be finite", value)
    return result


def to_money(value: Any, field: str) -> Decimal:
    """Coerce a monetary amount to Decimal (no rounding applied)."""
    return _to_decimal(value, field)


def to_rate(value: Any, field: str) -> Decimal:
    """Coerce a rate (0.0725 style fraction) to Decimal."""
    return _to_decimal(value, field)


def allocate_by_weight(amount: Decimal, weights: Sequence[Decimal]) -> tuple[Decimal, ...]:
    """
    Split ``amount`` across ``weights`` in proportion, exact to the cent.

    Each share is first truncated to cents; leftover cents then go one at a
    time to the shares with the largest truncated fraction (earlier index
    wins ties). Requires 0 <= amount <= sum(weights) and cent-valued
    weights, which guarantees no share exceeds its own weight.
    """
    total = sum(weights, ZERO)
    if not weights or total == ZERO or amount == ZERO:
        return tuple(ZERO for _ in weights)

    exact = [amount * w / total for w in weights]
    shares = [floor_to_cent(e) for e in exact]
    leftover = int((amount - sum(shares, ZERO)) / CENT)

    order = sorted(
        range(len(weights)),
        key=lambda i: (-(exact[i] - shares[i]), i),
    )
    for i in order[:leftover]:
        shares[i] += CENT
    return tuple(shares)
