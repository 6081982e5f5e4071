"""Turn loosely typed cell / JSON values into column values. Every failure raises ValidationError (422)."""
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Optional, Type, Union

from campusops.core.exceptions import ValidationError

RawValue = Optional[Union[str, int, float, date]]


def clean_text(value: RawValue) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    text = str(value).strip()
    return text or None


def parse_date(value: RawValue, label: str) -> Optional[date]:
    """Accepts date objects or YYYY-MM-DD text."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = clean_text(value)
    if text is None:
        return None
    try:
        return datetime.strptime(text[:10], "%Y-%m-%d").date()
    except ValueError:
        raise ValidationError(f"Invalid {label} format (expected YYYY-MM-DD): {text}")


def parse_decimal(value: RawValue, label: str) -> Optional[Decimal]:
    text = clean_text(value)
    if text is None:
        return None
    try:
        number = Decimal(text.replace(",", ""))
    except InvalidOperation:
        raise ValidationError(f"Invalid {label}: {text}")
    if not number.is_finite() or number < 0:
        raise ValidationError(f"Invalid {label}: {text}")
    return number


def parse_int(value: RawValue, label: str) -> Optional[int]:
    number = parse_decimal(value, label)
    if number is None:
        return None
    if number != number.to_integral_value():
        raise ValidationError(f"Invalid {label} (expected a whole number): {value}")
    return int(number)


def parse_choice(value: RawValue, choices: Type[Enum], label: str) -> Optional[str]:
    """Case-insensitive match against an Enum's values; returns the canonical spelling."""
    text = clean_text(value)
    if text is None:
        return None
    for choice in choices:
        if choice.value.lower() == text.lower():
            return choice.value
    allowed = ", ".join(c.value for c in choices)
    raise ValidationError(f"Invalid {label}: {text}. Allowed values: {allowed}")
