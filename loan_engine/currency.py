"""
Currency Support Module

Loan amounts are integers in minor currency units (cents, satang, ...). This
module validates ISO 4217 codes and renders minor-unit amounts for logs and
audit metadata. It never converts between currencies.
"""

from decimal import Decimal
from enum import Enum
from typing import Optional
import re

from .exceptions import InvalidCurrencyCode


_CODE_PATTERN = re.compile(r"^[A-Z]{3}$")

DEFAULT_PRECISION = 2


class Currency(Enum):
    """ISO 4217 Currency Codes with minor-unit precision"""
    USD = ("USD", 2)  # US Dollar
    EUR = ("EUR", 2)  # Euro
    GBP = ("GBP", 2)  # British Pound
    CAD = ("CAD", 2)  # Canadian Dollar
    CHF = ("CHF", 2)  # Swiss Franc
    SGD = ("SGD", 2)  # Singapore Dollar
    THB = ("THB", 2)  # Thai Baht
    JPY = ("JPY", 0)  # Japanese Yen
    VND = ("VND", 0)  # Vietnamese Dong
    KRW = ("KRW", 0)  # South Korean Won
    KWD = ("KWD", 3)  # Kuwaiti Dinar

    def __init__(self, code: str, precision: int):
        self.code = code
        self.precision = precision

    @classmethod
    def from_code(cls, code: str) -> Optional['Currency']:
        """Look up a currency by code, None if it is not listed"""
        return cls.__members__.get(code)


def normalize_currency_code(code: str) -> str:
    """
    Normalize a currency code to its upper-case ISO 4217 form

    Args:
        code: Currency code as supplied by the caller

    Returns:
        Upper-case three-letter code

    Raises:
        InvalidCurrencyCode: If the value is not a three-letter code
    """
    if not isinstance(code, str):
        raise InvalidCurrencyCode(f"Currency code must be a string, got {type(code).__name__}")

    normalized = code.strip().upper()
    if not _CODE_PATTERN.match(normalized):
        raise InvalidCurrencyCode(f"Invalid currency code: {code!r}")
    return normalized


def minor_unit_precision(code: str) -> int:
    """Number of minor-unit digits for a currency code"""
    currency = Currency.from_code(code)
    if currency is None:
        return DEFAULT_PRECISION
    return currency.precision


def format_minor_units(amount: int, code: str) -> str:
    """
    Format an integer minor-unit amount for display

    >>> format_minor_units(333334, "USD")
    'USD 3,333.34'
    >>> format_minor_units(10000, "VND")
    'VND 10,000'
    """
    precision = minor_unit_precision(code)
    major = Decimal(amount).scaleb(-precision)
    return f"{code} {major:,.{precision}f}"
