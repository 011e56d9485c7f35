"""Timezone-aware date/time helpers for the scheduling engine."""

from datetime import date, datetime, timezone
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from flask import current_app

from utils.errors import ValidationError
from utils.messages import MESSAGES

DB_FORMAT = '%Y-%m-%d %H:%M:%S'


def get_timezone(name: Optional[str] = None) -> ZoneInfo:
    """Get a provider timezone, falling back to the configured default."""
    tz_name = name or current_app.config.get('TIMEZONE', 'UTC')
    try:
        return ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError):
        raise ValidationError(f"Unknown timezone: {tz_name}")


def get_now() -> datetime:
    """Get the current instant as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def parse_instant(value, field: str = 'scheduled_at') -> datetime:
    """
    Parse an ISO-8601 timestamp into an aware UTC datetime.

    Accepts a trailing 'Z'. Naive timestamps are rejected because they do not
    name an absolute instant.

    Raises:
        ValidationError: If the value is missing, unparseable or naive
    """
    if isinstance(value, datetime):
        parsed = value
    else:
        if not value or not isinstance(value, str):
            raise ValidationError(MESSAGES['field_required'].format(field=field), field=field)
        text = value.strip()
        if text.endswith('Z'):
            text = text[:-1] + '+00:00'
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            raise ValidationError(MESSAGES['invalid_datetime'], field=field)

    if parsed.tzinfo is None or parsed.utcoffset() is None:
        raise ValidationError(MESSAGES['naive_datetime'], field=field)
    return parsed.astimezone(timezone.utc)


def parse_date(value, field: str = 'date') -> date:
    """Parse a YYYY-MM-DD string (or pass a date through)."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(value)
    except (TypeError, ValueError):
        raise ValidationError(MESSAGES['invalid_date'], field=field)


def to_db(value: Optional[datetime]) -> Optional[str]:
    """Serialize an aware datetime for storage (UTC, second precision)."""
    if value is None:
        return None
    return value.astimezone(timezone.utc).strftime(DB_FORMAT)


def from_db(value) -> Optional[datetime]:
    """Deserialize a stored instant into an aware UTC datetime."""
    if value is None or value == '':
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    return datetime.strptime(value, DB_FORMAT).replace(tzinfo=timezone.utc)


def to_iso(value: Optional[datetime]) -> Optional[str]:
    """Format an instant for API output (ISO-8601 with offset)."""
    if value is None:
        return None
    return value.isoformat()
