"""Amount parsing utilities."""

import re
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

from networth.domain.errors import ParseError

CENT = Decimal("0.01")

# "45.00" or "-3.5": a lone dot followed by one or two digits is a decimal point
_PLAIN_DECIMAL = re.compile(r"^[+-]?\d+\.\d{1,2}$")


def round_currency(amount: Decimal) -> Decimal:
    """Round an amount to cents (half-up)."""
    return Decimal(amount).quantize(CENT, rounding=ROUND_HALF_UP)


def parse_localized_amount(amount_str: str) -> Decimal:
    """Parse a locale-formatted amount string into a Decimal.

    Handles formats:
    - "1.234,56" (dot thousands separator, comma decimal separator)
    - "1234,56"
    - "115.000,00"
    - "1234" and "45.00" (plain decimal)

    Args:
        amount_str: Amount string

    Returns:
        Decimal amount

    Raises:
        ParseError: If amount string cannot be parsed
    """
    if amount_str is None or not str(amount_str).strip():
        raise ParseError("Empty amount string")

    cleaned = str(amount_str).strip().replace(" ", "").replace("\u00a0", "")

    if "," in cleaned or not _PLAIN_DECIMAL.match(cleaned):
        cleaned = cleaned.replace(".", "").replace(",", ".")

    try:
        amount = Decimal(cleaned)
    except InvalidOperation:
        raise ParseError(f"Could not parse amount '{amount_str}'")

    if not amount.is_finite():
        raise ParseError(f"Could not parse amount '{amount_str}'")
    return amount
