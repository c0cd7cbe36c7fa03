"""
Money helpers.

Entries store amounts in major currency units with four decimal
places. Several API operations take integer cents instead, so the
conversions live here in one place.
"""

from decimal import Decimal, ROUND_HALF_UP

CENT = Decimal("0.01")
FOUR_PLACES = Decimal("0.0001")


def to_decimal(value) -> Decimal:
    """
    Coerce a database aggregate to a 4-place Decimal.

    SQLite hands back floats for SUM over NUMERIC columns; going
    through str() keeps the value exact before quantizing.
    """
    if value is None:
        return Decimal("0.0000")
    return Decimal(str(value)).quantize(FOUR_PLACES)


def cents_to_amount(cents: int) -> Decimal:
    return (Decimal(cents) / 100).quantize(FOUR_PLACES)


def amount_to_cents(amount: Decimal) -> int:
    return int((amount * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def round_cents(amount: Decimal) -> Decimal:
    """Round half up to whole cents."""
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def within_tolerance(difference: Decimal, tolerance: Decimal) -> bool:
    """True when |difference| does not exceed tolerance (inclusive)."""
    return abs(difference) <= tolerance
