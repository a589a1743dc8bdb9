"""
Unit tests per la conversione importi in lettere.
"""

from decimal import Decimal

import pytest

from invoicing.core.exceptions import BusinessValidationError, UnsupportedCurrencyError
from invoicing.services.amount_in_words import (
    SUPPORTED_CURRENCIES,
    number_to_words,
    to_words,
)


class TestNumberToWords:
    """Tests for integer conversion."""

    def test_zero(self):
        assert number_to_words(0) == "Zero"

    def test_teens_and_tens(self):
        """Test 10-19 senza trattino, decine composte con trattino."""
        assert number_to_words(13) == "Thirteen"
        assert number_to_words(40) == "Forty"
        assert number_to_words(99) == "Ninety-Nine"

    def test_hundreds(self):
        assert number_to_words(105) == "One Hundred Five"
        assert number_to_words(120) == "One Hundred Twenty"

    def test_scales_skip_empty_groups(self):
        """Test gruppi a zero non producono la scala (1.000.001)."""
        assert number_to_words(1_000_001) == "One Million One"
        assert number_to_words(2_000_000_000) == "Two Billion"

    def test_trillions(self):
        assert number_to_words(3 * 10**12) == "Three Trillion"

    def test_too_large(self):
        with pytest.raises(ValueError):
            number_to_words(10**15)

    def test_negative_rejected(self):
        with pytest.raises(ValueError):
            number_to_words(-1)


class TestToWords:
    """Tests for monetary amounts."""

    def test_legal_usd(self):
        """Test formato legale: maiuscolo con ONLY."""
        result = to_words(Decimal("1234.56"), "USD", "legal", True)
        assert result == "ONE THOUSAND TWO HUNDRED THIRTY-FOUR DOLLARS AND FIFTY-SIX CENTS ONLY"

    def test_standard_usd(self):
        assert to_words(Decimal("1234.56")) == (
            "One Thousand Two Hundred Thirty-Four Dollars and Fifty-Six Cents"
        )

    def test_singular_units(self):
        assert to_words(Decimal("1.01"), "USD") == "One Dollar and One Cent"

    def test_only_cents(self):
        assert to_words(Decimal("0.01"), "USD") == "Zero Dollars and One Cent"

    def test_zero_cents_omitted(self):
        assert to_words(Decimal("100.00"), "EUR") == "One Hundred Euros"

    def test_exclude_decimals(self):
        assert to_words(Decimal("5.75"), "USD", include_decimals=False) == "Five Dollars"

    def test_formal_format(self):
        """Test formato formale: solo l'iniziale maiuscola."""
        assert to_words(Decimal("21"), "USD", "formal") == "Twenty-one dollars only"

    def test_negative_amount(self):
        """Test il prefisso Negative è applicato dopo la formattazione."""
        assert to_words(Decimal("-5"), "USD", "legal") == "Negative FIVE DOLLARS ONLY"

    def test_gbp_pence(self):
        assert to_words(Decimal("2.50"), "GBP") == "Two Pounds and Fifty Pence"
        assert to_words(Decimal("1.01"), "GBP") == "One Pound and One Penny"

    def test_inr_paise(self):
        assert to_words(Decimal("10.02"), "INR") == "Ten Rupees and Two Paise"

    def test_jpy_same_plural(self):
        assert to_words(Decimal("2"), "JPY") == "Two Yen"

    def test_currency_case_insensitive(self):
        assert to_words(Decimal("1"), "usd") == "One Dollar"

    def test_accepts_float_and_string(self):
        assert to_words("3.10", "USD") == "Three Dollars and Ten Cents"
        assert to_words(0.1, "USD") == "Zero Dollars and Ten Cents"

    def test_cents_rounded_half_up(self):
        assert to_words(Decimal("1.005"), "USD") == "One Dollar and One Cent"

    def test_unsupported_currency(self):
        with pytest.raises(UnsupportedCurrencyError) as exc_info:
            to_words(Decimal("10"), "XYZ")
        assert exc_info.value.error_code == "UNSUPPORTED_CURRENCY"
        assert exc_info.value.status_code == 400

    def test_supported_currencies(self):
        assert set(SUPPORTED_CURRENCIES) == {"USD", "EUR", "GBP", "INR", "JPY", "CAD", "AUD"}

    def test_deterministic(self):
        assert to_words(Decimal("987654.32"), "CAD") == to_words(Decimal("987654.32"), "CAD")

    def test_largest_supported_amount(self):
        words = to_words(Decimal("999999999999999.99"), "USD")
        assert words.startswith("Nine Hundred Ninety-Nine Trillion")
        assert words.endswith("and Ninety-Nine Cents")

    @pytest.mark.parametrize("amount", ["1000000000000000", "-1e15", "1e30"])
    def test_amount_too_large(self, amount):
        """Test oltre i trilioni: errore di validazione 422, non ValueError."""
        with pytest.raises(BusinessValidationError) as exc_info:
            to_words(Decimal(amount), "USD")
        assert exc_info.value.error_code == "AMOUNT_TOO_LARGE"
        assert exc_info.value.status_code == 422
