"""Money helpers. Amounts are Decimal throughout and quantized to cents."""

from decimal import ROUND_HALF_UP, Decimal

CENT = Decimal("0.01")
ZERO = Decimal("0.00")


def quantize_money(amount: Decimal | int | str | None) -> Decimal:
    if amount is None:
        return ZERO
    if not isinstance(amount, Decimal):
        amount = Decimal(str(amount))
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def within_tolerance(left: Decimal, right: Decimal, tolerance: Decimal) -> bool:
    """True when ``left`` and ``right`` differ by no more than ``tolerance``."""
    return abs(left - right) <= tolerance
