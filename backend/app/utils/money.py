"""Fixed-point money helpers.

Amounts are stored as integer paise. Rupee values only exist at the API edge
as ``Decimal`` with two places.
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

PAISE_PER_RUPEE = 100
TWO_PLACES = Decimal("0.01")


def to_paise(rupees: Decimal | int | str) -> int:
    """Convert a rupee amount to integer paise.

    Raises:
        ValueError: if the value is not a number or has sub-paisa precision
    """
    try:
        value = Decimal(str(rupees))
    except InvalidOperation as e:
        raise ValueError(f"Not a money amount: {rupees!r}") from e
    if not value.is_finite():
        raise ValueError(f"Not a money amount: {rupees!r}")
    if value != value.quantize(TWO_PLACES):
        raise ValueError(f"Amount has more than two decimal places: {rupees!r}")
    return int(value * PAISE_PER_RUPEE)


def to_rupees(paise: int) -> Decimal:
    """Convert integer paise to a two-place rupee ``Decimal``."""
    return (Decimal(paise) / PAISE_PER_RUPEE).quantize(TWO_PLACES)


def percent_of(paise: int, percent: int) -> int:
    """``percent`` of an amount, rounded half-up to the paisa."""
    share = Decimal(paise) * percent / 100
    return int(share.quantize(Decimal("1"), rounding=ROUND_HALF_UP))
