"""Tests for Indian-English amount-in-words conversion."""

from decimal import Decimal

import pytest

from invoice_engine.amount_words import integer_to_words, to_words, two_digit_words


class TestToWords:
    def test_zero(self):
        assert to_words(0) == "Zero Rupees Only"

    def test_one_lakh(self):
        assert to_words(100000) == "One Lakh Rupees Only"

    def test_hundreds(self):
        assert to_words(Decimal("400.00")) == "Four Hundred Rupees Only"
        assert to_words(472) == "Four Hundred Seventy Two Rupees Only"

    def test_rupees_and_paise(self):
        assert to_words(1234.5) == "One Thousand Two Hundred Thirty Four Rupees and Fifty Paise Only"

    def test_paise_only(self):
        assert to_words(Decimal("0.50")) == "Fifty Paise Only"
        assert to_words("0.07") == "Seven Paise Only"

    def test_crore(self):
        assert to_words(12345678) == (
            "One Crore Twenty Three Lakh Forty Five Thousand Six Hundred Seventy Eight Rupees Only"
        )

    def test_hundreds_of_crores(self):
        assert to_words(1000000000) == "One Hundred Crore Rupees Only"

    def test_paise_rounding_carries_into_rupees(self):
        assert to_words(Decimal("99.999")) == "One Hundred Rupees Only"

    def test_formatted_string_input(self):
        assert to_words("1,50,000.00") == "One Lakh Fifty Thousand Rupees Only"

    def test_teens_in_thousands(self):
        assert to_words(19015) == "Nineteen Thousand Fifteen Rupees Only"


class TestIntegerToWords:
    @pytest.mark.parametrize("number, words", [
        (1, "One"),
        (10, "Ten"),
        (20, "Twenty"),
        (99, "Ninety Nine"),
        (101, "One Hundred One"),
        (1000, "One Thousand"),
        (250000, "Two Lakh Fifty Thousand"),
        (9999999, "Ninety Nine Lakh Ninety Nine Thousand Nine Hundred Ninety Nine"),
        (10000000, "One Crore"),
    ])
    def test_groupings(self, number, words):
        assert integer_to_words(number) == words

    def test_zero_is_empty(self):
        assert integer_to_words(0) == ""

    def test_two_digit_words(self):
        assert two_digit_words(7) == "Seven"
        assert two_digit_words(13) == "Thirteen"
        assert two_digit_words(40) == "Forty"
        assert two_digit_words(85) == "Eighty Five"
