"""
Input validation helper functions.
Provides validation for common input types.
"""

import re

from utils.errors import ValidationError
from utils.messages import MESSAGES


def validate_email(email: str) -> bool:
    """
    Validate email format.

    Args:
        email: Email address to validate

    Returns:
        True if valid email format
    """
    if not email or not isinstance(email, str):
        return False

    pattern = r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$'
    return bool(re.match(pattern, email))


def validate_phone(phone: str) -> bool:
    """
    Validate phone number format.
    Accepts an optional leading + and 7 to 15 digits.

    Args:
        phone: Phone number to validate

    Returns:
        True if valid phone format
    """
    if not phone:
        return False

    # Remove spaces and common separators
    cleaned = re.sub(r'[\s\-\(\)\.]', '', phone)
    return bool(re.match(r'^\+?[0-9]{7,15}$', cleaned))


def parse_id(value, field: str = 'id') -> int:
    """
    Parse a positive integer record id.

    Raises:
        ValidationError: If the value is missing or not a positive integer
    """
    if value is None or value == '':
        raise ValidationError(MESSAGES['field_required'].format(field=field), field=field)
    if isinstance(value, bool):
        raise ValidationError(MESSAGES['invalid_id'].format(field=field), field=field)
    try:
        parsed = int(value)
    except (TypeError, ValueError):
        raise ValidationError(MESSAGES['invalid_id'].format(field=field), field=field)
    if parsed < 1:
        raise ValidationError(MESSAGES['invalid_id'].format(field=field), field=field)
    return parsed


def optional_text(value, field: str, max_length: int) -> str:
    """
    Normalize an optional free-text field.

    Returns:
        Stripped text or None when empty

    Raises:
        ValidationError: If the text exceeds max_length
    """
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(MESSAGES['invalid_id'].format(field=field), field=field)
    text = value.strip()
    if len(text) > max_length:
        raise ValidationError(MESSAGES['text_too_long'].format(field=field), field=field)
    return text or None


def required_text(value, field: str, max_length: int = 200) -> str:
    """
    Normalize a required free-text field.

    Raises:
        ValidationError: If missing, blank or too long
    """
    text = optional_text(value, field, max_length)
    if not text:
        raise ValidationError(MESSAGES['field_required'].format(field=field), field=field)
    return text
