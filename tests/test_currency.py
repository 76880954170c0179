"""
Test suite for currency module

Tests currency code validation and minor-unit formatting.
"""

import pytest

from loan_engine.currency import (
    Currency, format_minor_units, minor_unit_precision, normalize_currency_code
)
from loan_engine.exceptions import InvalidCurrencyCode


class TestCurrencyCodes:
    """Test currency code handling"""

    def test_normalize(self):
        assert normalize_currency_code("USD") == "USD"
        assert normalize_currency_code(" sgd ") == "SGD"

    def test_unlisted_code_accepted(self):
        """Test that well-formed codes outside the enum are accepted"""
        assert normalize_currency_code("IDR") == "IDR"

    @pytest.mark.parametrize("code", ["", "US", "USDD", "U$D", "123", None, 840])
    def test_invalid_codes(self, code):
        with pytest.raises(InvalidCurrencyCode):
            normalize_currency_code(code)

    def test_lookup(self):
        assert Currency.from_code("VND") is Currency.VND
        assert Currency.from_code("IDR") is None

    def test_precision(self):
        assert minor_unit_precision("USD") == 2
        assert minor_unit_precision("JPY") == 0
        assert minor_unit_precision("KWD") == 3
        assert minor_unit_precision("IDR") == 2  # Default for unlisted codes


class TestFormatting:
    """Test display formatting of minor-unit amounts"""

    def test_two_decimal_currency(self):
        assert format_minor_units(333334, "USD") == "USD 3,333.34"
        assert format_minor_units(5, "EUR") == "EUR 0.05"
        assert format_minor_units(0, "USD") == "USD 0.00"

    def test_zero_decimal_currency(self):
        assert format_minor_units(10000, "VND") == "VND 10,000"

    def test_three_decimal_currency(self):
        assert format_minor_units(1234, "KWD") == "KWD 1.234"
