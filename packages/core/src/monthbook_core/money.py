"""Integer-cent helpers.

All amounts in the state document are integer cents. Decimal is used at the
conversion edges so that parsing "35.99" never goes through a binary float.
"""

import math
import re
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Optional, Union

Number = Union[int, float, Decimal]

_STRIP_PATTERN = re.compile(r"[\s\u20ac]|EUR", re.IGNORECASE)


def euros_to_cents(euros: Number) -> int:
    """Convert a euro amount to cents, rounding half away from zero."""
    value = Decimal(str(euros)) * 100
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def cents_to_euros(cents: int) -> Decimal:
    return (Decimal(cents) / 100).quantize(Decimal("0.01"))


def parse_euro_amount(text: str) -> Optional[int]:
    """Parse user input such as ``"1 200,50 €"`` into cents.

    Accepts a comma or a dot as decimal separator and ignores spaces,
    non-breaking spaces and the euro sign.

    Returns:
        The amount in cents, or None when the text is not a finite number.
    """
    if not isinstance(text, str):
        return None
    cleaned = _STRIP_PATTERN.sub("", text).replace(",", ".")
    if not cleaned or cleaned.count(".") > 1:
        return None
    try:
        value = Decimal(cleaned)
    except InvalidOperation:
        return None
    if not value.is_finite():
        return None
    return euros_to_cents(value)


def format_eur(cents: int) -> str:
    """Format cents the French way, e.g. ``1 234,50 €``."""
    sign = "-" if cents < 0 else ""
    euros, rest = divmod(abs(int(cents)), 100)
    grouped = f"{euros:,}".replace(",", " ")
    return f"{sign}{grouped},{rest:02d} €"


def share_cents(amount_cents: int, percent: Number) -> int:
    """Return ``amount * percent / 100`` rounded half away from zero.

    Works for signed amounts, so a carried credit (negative) splits the same
    way a debt does.
    """
    value = Decimal(amount_cents) * Decimal(str(percent)) / Decimal(100)
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def is_finite_number(value: object) -> bool:
    """True for ints and finite floats/Decimals, False for bools and the rest."""
    if isinstance(value, bool):
        return False
    if isinstance(value, int):
        return True
    if isinstance(value, float):
        return math.isfinite(value)
    if isinstance(value, Decimal):
        return value.is_finite()
    return False
