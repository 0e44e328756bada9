"""
Field formatters for the merchant application PDF.

Every form value is untrusted: it may be empty, padded, or not what the label says.
Each FieldKind maps to one pure formatter so coercion happens in a single place.

Sensitive identifiers (principal SSN, bank account number) are always masked to
their last four digits. There is no switch to disable this.
"""
import re
from datetime import date
from enum import Enum
from typing import Any, Callable, Dict

PLACEHOLDER = "—"
NOT_AVAILABLE = "N/A"
MASK_GLYPH = "•"

_ISO_DATE_RE = re.compile(r"^(\d{4})-(\d{1,2})-(\d{1,2})(?:[T ].*)?$")
_US_DATE_RE = re.compile(r"^(\d{1,2})[/-](\d{1,2})[/-](\d{4})$")


class FieldKind(str, Enum):
    TEXT = "text"
    DATE = "date"
    TAX_ID = "tax_id"
    CURRENCY = "currency"
    PHONE = "phone"
    PERCENT = "percent"
    MASKED_SSN = "masked_ssn"
    MASKED_DIGITS = "masked_digits"


def safe_text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def digits_only(value: Any) -> str:
    return re.sub(r"\D", "", safe_text(value))


def parse_date(value: Any) -> date | None:
    """Parse ISO (YYYY-MM-DD[...]) or M/D/YYYY, M-D-YYYY. Returns None if invalid."""
    text = safe_text(value)
    if not text:
        return None
    match = _ISO_DATE_RE.match(text)
    if match:
        year, month, day = (int(g) for g in match.groups())
    else:
        match = _US_DATE_RE.match(text)
        if not match:
            return None
        month, day, year = (int(g) for g in match.groups())
    try:
        return date(year, month, day)
    except ValueError:
        return None


def format_text(value: Any) -> str:
    return safe_text(value) or PLACEHOLDER


def format_date(value: Any) -> str:
    parsed = parse_date(value)
    if parsed is None:
        return NOT_AVAILABLE
    return f"{parsed.month:02d}/{parsed.day:02d}/{parsed.year:04d}"


def format_tax_id(value: Any) -> str:
    """Employer tax ID: DD-DDDDDDD when exactly nine digits are present."""
    raw = safe_text(value)
    digits = digits_only(raw)
    if len(digits) == 9:
        return f"{digits[:2]}-{digits[2:]}"
    return raw or NOT_AVAILABLE


def format_currency(value: Any) -> str:
    digits = digits_only(value)
    if not digits:
        return NOT_AVAILABLE
    return f"${int(digits):,}"


def format_phone(value: Any) -> str:
    raw = safe_text(value)
    if not raw:
        return PLACEHOLDER
    digits = digits_only(raw)
    if len(digits) == 11 and digits.startswith("1"):
        digits = digits[1:]
    if len(digits) == 10:
        return f"({digits[:3]}) {digits[3:6]}-{digits[6:]}"
    return raw


def format_percent(value: Any) -> str:
    raw = safe_text(value).rstrip("%").strip()
    if not raw:
        return PLACEHOLDER
    return f"{raw}%"


def mask_ssn(value: Any) -> str:
    if not safe_text(value):
        return PLACEHOLDER
    digits = digits_only(value)
    if len(digits) < 4:
        return f"{MASK_GLYPH * 3}-{MASK_GLYPH * 2}-{MASK_GLYPH * 4}"
    return f"{MASK_GLYPH * 3}-{MASK_GLYPH * 2}-{digits[-4:]}"


def mask_digits(value: Any) -> str:
    if not safe_text(value):
        return PLACEHOLDER
    digits = digits_only(value)
    if len(digits) < 4:
        return MASK_GLYPH * 6
    return f"{MASK_GLYPH * 4}{digits[-4:]}"


FORMATTERS: Dict[FieldKind, Callable[[Any], str]] = {
    FieldKind.TEXT: format_text,
    FieldKind.DATE: format_date,
    FieldKind.TAX_ID: format_tax_id,
    FieldKind.CURRENCY: format_currency,
    FieldKind.PHONE: format_phone,
    FieldKind.PERCENT: format_percent,
    FieldKind.MASKED_SSN: mask_ssn,
    FieldKind.MASKED_DIGITS: mask_digits,
}


def format_field(kind: FieldKind, value: Any) -> str:
    """Format a raw form value for display according to its kind."""
    return FORMATTERS[kind](value)
