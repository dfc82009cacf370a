"""Currency formatting helpers.

Amounts default to Philippine Peso. Rates can be quoted in other currencies,
so ``format_amount`` knows the symbols creators commonly use.
"""

import re
from decimal import ROUND_HALF_UP, Decimal

type Amount = Decimal | float | int

CURRENCY_CODE = "PHP"
CURRENCY_SYMBOL = "₱"
DECIMAL_PLACES = 2

CURRENCY_SYMBOLS: dict[str, str] = {
    "PHP": "₱",
    "USD": "$",
    "EUR": "€",
    "GBP": "£",
    "JPY": "¥",
    "KRW": "₩",
    "INR": "₹",
}

_LEADING_NUMBER = re.compile(r"^[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?")

_COMPACT_STEPS = (
    (Decimal(1_000_000_000), "B"),
    (Decimal(1_000_000), "M"),
    (Decimal(1_000), "K"),
)


def _quantize(amount: Amount, places: int) -> Decimal:
    exponent = Decimal(1).scaleb(-places)
    return Decimal(str(amount)).quantize(exponent, rounding=ROUND_HALF_UP)


def _group(amount: Amount, places: int) -> tuple[str, str]:
    value = _quantize(amount, places)
    sign = "-" if value < 0 else ""
    return sign, f"{abs(value):,.{places}f}"


def symbol_for(currency: str) -> str:
    """Return the display prefix for a currency code, e.g. ``"USD" -> "$"``."""
    code = currency.upper()
    return CURRENCY_SYMBOLS.get(code, f"{code} ")


def format_currency(amount: Amount, show_symbol: bool = True) -> str:
    """Format an amount as pesos with two decimals, e.g. ``₱1,234.50``."""
    sign, digits = _group(amount, DECIMAL_PLACES)
    symbol = CURRENCY_SYMBOL if show_symbol else ""
    return f"{sign}{symbol}{digits}"


def format_currency_no_decimals(amount: Amount) -> str:
    sign, digits = _group(amount, 0)
    return f"{sign}{CURRENCY_SYMBOL}{digits}"


def format_currency_compact(amount: Amount) -> str:
    """Abbreviate large amounts: ``₱1.5K``, ``₱2.3M``, ``₱1.0B``.

    Amounts below one thousand use the full two-decimal format.
    """
    value = Decimal(str(amount))
    for step, suffix in _COMPACT_STEPS:
        if abs(value) >= step:
            return f"{CURRENCY_SYMBOL}{_quantize(value / step, 1)}{suffix}"
    return format_currency(value)


def format_amount(amount: Amount, currency: str = CURRENCY_CODE) -> str:
    """Format a rate for display in emails, e.g. ``$1,500`` or ``CHF 200``."""
    value = Decimal(str(amount))
    places = 0 if value == value.to_integral_value() else DECIMAL_PLACES
    sign, digits = _group(value, places)
    return f"{sign}{symbol_for(currency)}{digits}"


def parse_currency(value: str) -> float:
    """Parse a formatted peso string back to a number.

    The symbol, thousands separators and whitespace are ignored. Anything
    that does not start with a number parses as ``0``.
    """
    cleaned = re.sub(r"\s", "", value.replace(CURRENCY_SYMBOL, "").replace(",", ""))
    match = _LEADING_NUMBER.match(cleaned)
    if match is None:
        return 0.0
    return float(match.group(0))


def cents_to_pesos(cents: int) -> float:
    return cents / 100


def pesos_to_cents(pesos: Amount) -> int:
    return int(_quantize(Decimal(str(pesos)) * 100, 0))
