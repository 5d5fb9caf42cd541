"""Utility functions for decimal parsing, money rounding and display formatting."""

import logging
import re
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Optional

logger = logging.getLogger(__name__)

PAISA = Decimal("0.01")

# Timestamps at or above this magnitude are taken to be in milliseconds.
MILLISECOND_THRESHOLD = 10 ** 12

NOT_AVAILABLE = "N/A"


def parse_decimal(text: Any, strict: bool = False) -> Decimal:
    """
    Parse a text value into a Decimal.

    Handles:
    - Plain numbers: "1234.56"
    - Numbers already typed as int / float / Decimal
    - Comma as thousands separator: "1,234.56"
    - Currency prefix: "₹1234.56" or "Rs. 1234.56"
    - Empty/blank values: "" or "-" or "N/A" → Decimal("0.00")
    - Non-numeric text → Decimal("0.00") with warning, or ValueError when strict
    """
    if text is None:
        return Decimal("0.00")

    if isinstance(text, Decimal):
        return text

    if isinstance(text, int):
        return Decimal(text)

    if isinstance(text, float):
        # str() keeps the shortest repr, avoiding binary float noise
        return Decimal(str(text))

    text = str(text).strip()

    if text in ("", "—", "-", "–", "N/A", "n/a", "NA", "na", "None", "none"):
        return Decimal("0.00")

    text = re.sub(r'^(Rs\.?|INR)\s*', '', text, flags=re.IGNORECASE)
    text = re.sub(r'[₹$€£¥]', '', text).strip()
    text = text.replace(',', '')

    try:
        value = Decimal(text)
    except (InvalidOperation, ValueError):
        if strict:
            raise ValueError(f"'{text}' is not a valid amount")
        logger.warning(f"Could not parse '{text}' as Decimal, defaulting to 0.00")
        return Decimal("0.00")

    if strict and not value.is_finite():
        raise ValueError(f"'{text}' is not a finite amount")
    return value


def parse_percentage(text: Any, strict: bool = False) -> Decimal:
    """
    Parse a percentage value into a Decimal.

    Examples:
    - "18%" → Decimal("18")
    - 12 → Decimal("12")
    - "" → Decimal("0.00")
    """
    if text is None:
        return Decimal("0.00")

    if isinstance(text, (int, float, Decimal)):
        return parse_decimal(text, strict)

    text = str(text).strip()

    if text in ("", "—", "-", "–", "N/A", "n/a"):
        return Decimal("0.00")

    text = text.replace('%', '').strip()

    try:
        value = Decimal(text)
    except (InvalidOperation, ValueError):
        if strict:
            raise ValueError(f"'{text}' is not a valid percentage")
        logger.warning(f"Could not parse percentage '{text}', defaulting to 0.00")
        return Decimal("0.00")

    if strict and not value.is_finite():
        raise ValueError(f"'{text}' is not a finite percentage")
    return value


def clean_text(text: Any) -> str:
    """Strip whitespace from a text value, mapping None to an empty string."""
    if text is None:
        return ""
    return str(text).strip()


def money(value: Any) -> Decimal:
    """Round to 2 decimals (half-up) consistently for money values."""
    return parse_decimal(value).quantize(PAISA, rounding=ROUND_HALF_UP)


def format_money(value: Any) -> str:
    """Format a money value as a plain 2-decimal string, e.g. "1234.50"."""
    return f"{money(value):.2f}"


def format_rate(value: Any) -> str:
    """Format a GST rate for display: "18", "2.5", "0"."""
    rate = parse_decimal(value)
    if rate == rate.to_integral_value():
        return str(int(rate))
    return format(rate.normalize(), "f")


def sanitize_file_name(text: str) -> str:
    """Replace every non-alphanumeric character with an underscore."""
    return re.sub(r'[^a-zA-Z0-9]', '_', text)


def parse_invoice_datetime(value: Any) -> Optional[datetime]:
    """
    Parse an invoice creation timestamp.

    Accepts a Unix timestamp in seconds or milliseconds (as a number or a
    numeric string), an ISO-8601 string, or a date / datetime. Timezone-aware
    values are converted to local time. Returns None for missing, unparseable
    or epoch values.
    """
    if value is None or value == "":
        return None

    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)
    elif isinstance(value, (int, float, Decimal)) and not isinstance(value, bool):
        parsed = _from_timestamp(float(value))
    else:
        text = str(value).strip()
        if re.fullmatch(r'-?\d+(\.\d+)?', text):
            parsed = _from_timestamp(float(text))
        else:
            try:
                parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
            except ValueError:
                logger.warning(f"Could not parse invoice date '{text}'")
                return None

    if parsed is None:
        return None

    if parsed.replace(tzinfo=None) == datetime(1970, 1, 1):
        return None

    # Aware values are shown in local time, like numeric timestamps
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone()

    return parsed


def _from_timestamp(timestamp: float) -> Optional[datetime]:
    if timestamp <= 0:
        return None
    if timestamp >= MILLISECOND_THRESHOLD:
        timestamp = timestamp / 1000
    try:
        return datetime.fromtimestamp(timestamp)
    except (OverflowError, OSError, ValueError):
        logger.warning(f"Timestamp out of range: {timestamp}")
        return None


def format_invoice_date(value: Any) -> str:
    """Format an invoice timestamp as DD/MM/YYYY, or "N/A"."""
    parsed = parse_invoice_datetime(value)
    if parsed is None:
        return NOT_AVAILABLE
    return parsed.strftime("%d/%m/%Y")


def format_invoice_time(value: Any) -> str:
    """Format an invoice timestamp as hh:mm AM/PM, or "N/A"."""
    parsed = parse_invoice_datetime(value)
    if parsed is None:
        return NOT_AVAILABLE
    return parsed.strftime("%I:%M %p")


def mask_account_number(account_number: Any) -> str:
    """Mask a bank account number so only its last 4 digits remain visible."""
    digits = re.sub(r'\s+', '', clean_text(account_number))
    if not digits:
        return ""
    return "****" + digits[-4:]
