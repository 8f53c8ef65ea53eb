"""Money helpers: Decimal coercion and minor-unit rounding."""

from decimal import ROUND_HALF_UP, Decimal

ZERO = Decimal("0")

# Minor-unit digits for the currencies the storefront can be configured with.
MINOR_UNITS = {
    "KES": 2,
    "UGX": 0,
    "TZS": 2,
    "USD": 2,
    "EUR": 2,
    "GBP": 2,
    "JPY": 0,
    "INR": 2,
    "ZAR": 2,
}


def to_decimal(value: Decimal | int | float | str) -> Decimal:
    """Coerce a number to Decimal without inheriting float noise."""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    return Decimal(value)


def minor_digits(currency: str) -> int:
    try:
        return MINOR_UNITS[currency.upper()]
    except KeyError:
        raise ValueError(f"Unsupported currency: {currency}") from None


def round_minor(amount: Decimal, digits: int = 2) -> Decimal:
    """Round half-up to the currency's minor unit (``digits`` decimal places)."""
    quantum = Decimal(1).scaleb(-digits)
    return to_decimal(amount).quantize(quantum, rounding=ROUND_HALF_UP)


def format_money(amount: Decimal | int | float, currency: str = "KES") -> str:
    digits = MINOR_UNITS.get(currency.upper(), 2)
    return f"{currency.upper()} {round_minor(to_decimal(amount), digits):,}"
