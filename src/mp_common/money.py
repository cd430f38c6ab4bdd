"""Integer arithmetic utilities for minor currency units.

All prices, taxes, fees and totals are int minor units (paise for INR).
No float, no Decimal.
"""

_CURRENCY_SYMBOLS = {"INR": "₹", "USD": "$", "EUR": "€"}


def minor_to_display(amount: int, currency: str = "INR") -> str:
    """Convert minor units to display string: 29500 -> '₹295.00', -1200 -> '-₹12.00'."""
    symbol = _CURRENCY_SYMBOLS.get(currency.upper(), f"{currency.upper()} ")
    if amount < 0:
        abs_amount = -amount
        return f"-{symbol}{abs_amount // 100:,}.{abs_amount % 100:02d}"
    return f"{symbol}{amount // 100:,}.{amount % 100:02d}"


def calculate_tax(amount: int, rate_bps: int) -> int:
    """Tax rounded half-up to the nearest minor unit.

    tax = round_half_up(amount * rate_bps / 10000)
    Using integer arithmetic: (a * bps + 5000) // 10000
    """
    if amount == 0 or rate_bps == 0:
        return 0
    return (amount * rate_bps + 5000) // 10000
