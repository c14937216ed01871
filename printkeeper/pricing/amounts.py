"""
Price amount validation and display formatting.

Amounts travel as decimal strings. They are parsed with Decimal, never
float, and are only usable when finite and within [0, MAX_VALID_PRICE].

The upper bound rejects obviously corrupt ingested values (misplaced
decimal points, cents stored as dollars). It is not a business rule.
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

MIN_VALID_PRICE = Decimal("0")
MAX_VALID_PRICE = Decimal("1000")

UNAVAILABLE_DISPLAY = "N/A"


def parse_price(value: object) -> Decimal | None:
    """
    Parse an amount into a Decimal.

    Accepts decimal strings (a leading "$" is tolerated), ints, floats and
    Decimals. Booleans are not amounts.

    Returns:
        The amount, or None if absent, unparseable, non-finite or out of range.
    """
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, Decimal):
        amount = value
    elif isinstance(value, int | float):
        # str() first so floats keep their shortest repr instead of binary noise
        amount = _to_decimal(str(value))
    elif isinstance(value, str):
        amount = _to_decimal(value.strip().removeprefix("$").strip())
    else:
        return None

    if amount is None or not amount.is_finite():
        return None
    if amount < MIN_VALID_PRICE or amount > MAX_VALID_PRICE:
        return None
    # -0 compares equal to 0
    return abs(amount)


def _to_decimal(text: str) -> Decimal | None:
    if not text:
        return None
    try:
        return Decimal(text)
    except InvalidOperation:
        return None


def is_valid_price(value: object) -> bool:
    """True if value is a usable amount."""
    return parse_price(value) is not None


def price_text(value: object) -> str | None:
    """
    The amount as a string, or None if it is not a usable amount.

    Strings are returned verbatim (minus a leading "$", and the sign of a
    negative zero) so catalog values pass through untouched.
    """
    if parse_price(value) is None:
        return None
    if isinstance(value, str):
        return value.strip().removeprefix("$").strip().removeprefix("-")
    return str(value).removeprefix("-")


def format_price(price: object, show_currency: bool = True, precision: int = 2) -> str:
    """
    Format a price for display.

    Args:
        price: Amount in any form accepted by parse_price
        show_currency: Prefix with "$"
        precision: Decimal places

    Returns:
        "N/A" when the price is absent or invalid, otherwise e.g. "$3.00".
    """
    amount = parse_price(price)
    if amount is None:
        return UNAVAILABLE_DISPLAY

    quantum = Decimal(1).scaleb(-precision)
    formatted = f"{amount.quantize(quantum, rounding=ROUND_HALF_UP):f}"
    return f"${formatted}" if show_currency else formatted
