"""Major-to-minor currency unit conversion."""

from decimal import ROUND_HALF_UP, Decimal


MINOR_UNITS_PER_MAJOR = Decimal(100)


def to_minor_units(price: Decimal | float | int | str) -> int:
    """Convert a major-unit price to an integer minor-unit amount.

    Rounds half away from zero at the cent boundary: 19.999 -> 2000,
    19.991 -> 1999. Floats go through `str()` so 9.99 stays 9.99.
    """

    amount = price if isinstance(price, Decimal) else Decimal(str(price))
    if not amount.is_finite():
        raise ValueError(f"price must be finite, got {price!r}")
    if amount < 0:
        raise ValueError(f"price must not be negative, got {price!r}")
    return int((amount * MINOR_UNITS_PER_MAJOR).quantize(Decimal(1), rounding=ROUND_HALF_UP))
