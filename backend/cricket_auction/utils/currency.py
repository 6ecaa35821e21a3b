"""Currency helpers.

Amounts are integers in rupees everywhere inside the service. Wire payloads
express prices as ``{"value": 1.5, "unit": "Crores"}`` and are converted once
at the API boundary.
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any

from cricket_auction.utils.errors import ValidationError

LAKH = 100_000
CRORE = 10_000_000


class CurrencyUnit(str, Enum):
    LAKHS = "Lakhs"
    CRORES = "Crores"


_MULTIPLIERS = {
    CurrencyUnit.LAKHS: LAKH,
    CurrencyUnit.CRORES: CRORE,
}


def parse_amount(value: Any, unit: str | CurrencyUnit) -> int:
    """Convert a ``{value, unit}`` pair to an integer rupee amount.

    Args:
        value: Numeric value (int, float, or numeric string)
        unit: ``Lakhs`` or ``Crores``

    Returns:
        Amount in rupees

    Raises:
        ValidationError: If the value is not numeric, is negative, or the
            unit is unknown
    """
    try:
        unit = CurrencyUnit(unit)
    except ValueError:
        raise ValidationError(
            f"Unknown currency unit: {unit}",
            details={"unit": str(unit), "allowed": [u.value for u in CurrencyUnit]},
        )

    if isinstance(value, bool):
        raise ValidationError("Price value must be numeric", details={"value": value})

    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValidationError("Price value must be numeric", details={"value": value})

    if not amount.is_finite():
        raise ValidationError("Price value must be numeric", details={"value": str(value)})
    if amount < 0:
        raise ValidationError("Price must not be negative", details={"value": str(value)})

    # Decimal keeps 1.1 Crores at exactly 11,000,000
    return int((amount * _MULTIPLIERS[unit]).to_integral_value())


def format_amount(amount: int) -> str:
    """Human-readable rupee amount for log lines.

    >>> format_amount(15_000_000)
    '₹1.50 Cr'
    >>> format_amount(2_500_000)
    '₹25.00 L'
    >>> format_amount(50_000)
    '₹50,000'
    """
    if amount >= CRORE:
        return f"₹{amount / CRORE:.2f} Cr"
    if amount >= LAKH:
        return f"₹{amount / LAKH:.2f} L"
    return f"₹{amount:,}"
