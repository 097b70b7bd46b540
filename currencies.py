"""
Currency table

Static conversion rates expressed as units per one USD. The rates are fixed
constants and are not refreshed from any live source.
"""

from typing import Dict, List, NamedTuple


BASE_CURRENCY = "USD"


class Currency(NamedTuple):
    code: str
    symbol: str
    rate: float


CURRENCIES: List[Currency] = [
    Currency("USD", "$", 1.0),
    Currency("EUR", "€", 0.92),
    Currency("GBP", "£", 0.79),
    Currency("JPY", "¥", 149.50),
    Currency("CAD", "C$", 1.36),
    Currency("AUD", "A$", 1.53),
    Currency("INR", "₹", 83.12),
]

CURRENCY_BY_CODE: Dict[str, Currency] = {c.code: c for c in CURRENCIES}
CURRENCY_CODES = tuple(CURRENCY_BY_CODE)


def is_known_currency(code: str) -> bool:
    return code in CURRENCY_BY_CODE


def currency_symbol(code: str) -> str:
    currency = CURRENCY_BY_CODE.get(code)
    return currency.symbol if currency else "$"


def convert(amount: float, from_code: str, to_code: str) -> float:
    """Convert an amount between currencies, always routing through USD.

    Unknown codes raise KeyError; callers validate codes on the way in.
    """
    if from_code == to_code:
        return amount
    base_amount = amount / CURRENCY_BY_CODE[from_code].rate
    return base_amount * CURRENCY_BY_CODE[to_code].rate
