"""
Decimal String Utilities

Exchanges take prices and quantities as decimal strings and are strict about
tick and lot sizes. These helpers validate and canonicalize such strings
without changing their precision: "0.0010" stays "0.0010", exponent
notation such as "1E-3" is written out as "0.001", and nothing is rounded.
"""

from decimal import Decimal, InvalidOperation
from typing import Optional, Union


def canonical_decimal(value: Union[str, int, Decimal], allow_zero: bool = False) -> str:
    """
    Validate a decimal value and return its canonical string form.

    Args:
        value: Decimal string (preferred), int or Decimal
        allow_zero: Accept "0" (used for venue-reported amounts)

    Returns:
        str: Plain positional decimal string with the original precision

    Raises:
        ValueError: If the value is not a finite, non-negative decimal
                    (or is zero when allow_zero is False)

    Examples:
        >>> canonical_decimal("0.0010")
        '0.0010'
        >>> canonical_decimal("1E-3")
        '0.001'
        >>> canonical_decimal(" +25 ")
        '25'
    """
    if isinstance(value, bool) or isinstance(value, float):
        # floats already lost the caller's precision
        raise ValueError(f"Decimal values must be strings, got {type(value).__name__}")

    text = value.strip() if isinstance(value, str) else str(value)
    if not text:
        raise ValueError("Decimal value is empty")

    try:
        number = Decimal(text)
    except InvalidOperation:
        raise ValueError(f"Not a decimal number: {value!r}")

    if not number.is_finite():
        raise ValueError(f"Decimal value must be finite: {value!r}")
    if number.is_signed() and number != 0:
        raise ValueError(f"Decimal value must not be negative: {value!r}")
    if number == 0 and not allow_zero:
        raise ValueError(f"Decimal value must be greater than zero: {value!r}")

    # format "f" writes exponents out positionally and keeps trailing zeros
    return format(abs(number), "f")


def optional_decimal(value: Optional[Union[str, int, Decimal]], allow_zero: bool = True) -> Optional[str]:
    """Canonicalize a venue-reported decimal, passing None and "" through as None."""
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    return canonical_decimal(value, allow_zero=allow_zero)


def is_zero(value: Optional[str]) -> bool:
    """True when a decimal string is absent or numerically zero."""
    if value is None:
        return True
    try:
        return Decimal(value) == 0
    except InvalidOperation:
        return False
