# Overview: Dozen/piece quantity arithmetic used by every finished-goods stock mutation.

from __future__ import annotations

from decimal import Decimal
from typing import NamedTuple

PIECES_PER_DOZEN = 12


class DozenPieces(NamedTuple):
    dozen: int
    pcs: int


def to_pieces(dozen: int, pcs: int) -> int:
    return dozen * PIECES_PER_DOZEN + pcs


def from_pieces(pieces: int) -> DozenPieces:
    """Split a non-negative piece total into (dozen, 0 <= pcs < 12)."""
    dozen, pcs = divmod(pieces, PIECES_PER_DOZEN)
    return DozenPieces(dozen, pcs)


def to_decimal(value) -> Decimal:
    """
    Decimal view of a stored continuous quantity.

    Goes through str() so 0.1 stays 0.1 instead of its binary expansion.
    """
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def to_float(value: Decimal) -> float | int:
    """Store integral quantities as int, everything else as float."""
    if value == value.to_integral_value():
        return int(value)
    return float(value)
