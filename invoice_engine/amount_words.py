"""Amount-in-words conversion using the Indian numbering system (Thousand, Lakh, Crore)."""

import logging
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, List

from .utils import parse_decimal

logger = logging.getLogger(__name__)

UNITS = ["", "One", "Two", "Three", "Four", "Five", "Six", "Seven", "Eight", "Nine"]
TEENS = [
    "Ten", "Eleven", "Twelve", "Thirteen", "Fourteen",
    "Fifteen", "Sixteen", "Seventeen", "Eighteen", "Nineteen",
]
TENS = ["", "", "Twenty", "Thirty", "Forty", "Fifty", "Sixty", "Seventy", "Eighty", "Ninety"]

CRORE = 10_000_000
LAKH = 100_000
THOUSAND = 1_000
HUNDRED = 100


def to_words(amount: Any) -> str:
    """
    Convert a non-negative currency amount to Indian-English words.

    Examples:
    - 0 → "Zero Rupees Only"
    - 100000 → "One Lakh Rupees Only"
    - 1234.5 → "One Thousand Two Hundred Thirty Four Rupees and Fifty Paise Only"
    - 0.75 → "Seventy Five Paise Only"
    """
    value = parse_decimal(amount)
    rupees = int(value)
    paise = int(((value - rupees) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
    if paise == 100:
        rupees += 1
        paise = 0

    if rupees == 0 and paise == 0:
        return "Zero Rupees Only"

    parts = []
    if rupees:
        parts.append(f"{integer_to_words(rupees)} Rupees")
    if paise:
        paise_words = f"{two_digit_words(paise)} Paise"
        parts.append(f"and {paise_words}" if rupees else paise_words)
    parts.append("Only")

    return " ".join(parts)


def integer_to_words(number: int) -> str:
    """Spell a positive integer with Crore / Lakh / Thousand / Hundred groupings."""
    if number == 0:
        return ""

    words: List[str] = []

    crores, number = divmod(number, CRORE)
    if crores:
        words.append(f"{integer_to_words(crores)} Crore")

    lakhs, number = divmod(number, LAKH)
    if lakhs:
        words.append(f"{two_digit_words(lakhs)} Lakh")

    thousands, number = divmod(number, THOUSAND)
    if thousands:
        words.append(f"{two_digit_words(thousands)} Thousand")

    hundreds, number = divmod(number, HUNDRED)
    if hundreds:
        words.append(f"{UNITS[hundreds]} Hundred")

    if number:
        words.append(two_digit_words(number))

    return " ".join(words)


def two_digit_words(number: int) -> str:
    """Spell 1-99 using ones, teens and tens."""
    if number < 10:
        return UNITS[number]
    if number < 20:
        return TEENS[number - 10]
    ten, unit = divmod(number, 10)
    return TENS[ten] + (f" {UNITS[unit]}" if unit else "")
