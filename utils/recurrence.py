"""
Recurrence expander.

Turns one booking request (pattern, start, end date) into the ordered list of
occurrence instants. Pure: no database access, no clock reads.
"""

import uuid
from datetime import date, datetime, timedelta, timezone
from typing import List, Optional

from dateutil.relativedelta import relativedelta

from utils.errors import ValidationError
from utils.messages import MESSAGES

RECURRENCE_PATTERNS = {
    'NONE': 'One-time',
    'WEEKLY': 'Weekly',
    'BIWEEKLY': 'Every 2 weeks',
    'MONTHLY': 'Monthly',
}

PATTERN_DAYS = {
    'WEEKLY': 7,
    'BIWEEKLY': 14,
}

DEFAULT_RECURRENCE_DAYS = 90
MAX_OCCURRENCES = 52


def normalize_pattern(pattern: Optional[str]) -> str:
    """
    Normalize a recurrence pattern name (None means NONE).

    Raises:
        ValidationError: If the pattern is unknown
    """
    if pattern is None or pattern == '':
        return 'NONE'
    value = str(pattern).strip().upper()
    if value not in RECURRENCE_PATTERNS:
        raise ValidationError(MESSAGES['invalid_recurrence'], field='recurrence')
    return value


def get_recurrence_label(pattern: str) -> str:
    """Human-readable label for a pattern."""
    return RECURRENCE_PATTERNS.get(pattern, RECURRENCE_PATTERNS['NONE'])


def get_default_recurrence_end_date(start: datetime) -> datetime:
    """Default series horizon when the caller gives no end date."""
    return start + timedelta(days=DEFAULT_RECURRENCE_DAYS)


def generate_series_id() -> str:
    """Fresh opaque identifier shared by all members of one series."""
    return f"series_{uuid.uuid4().hex}"


def expand(
    pattern: str,
    start: datetime,
    end_date=None,
    tz=None,
    max_occurrences: int = MAX_OCCURRENCES
) -> List[datetime]:
    """
    Expand a recurrence into occurrence instants.

    Occurrences keep the start's wall-clock time in the provider timezone.
    The end boundary is inclusive: an occurrence equal to end_date is kept,
    one strictly after it is not. When end_date is a plain date, every
    occurrence falling on that local day is kept. The start itself is
    always the first occurrence, even when end_date is earlier.

    Args:
        pattern: NONE, WEEKLY, BIWEEKLY or MONTHLY
        start: First occurrence (aware datetime)
        end_date: Inclusive bound (aware datetime or date); defaults to
            start + DEFAULT_RECURRENCE_DAYS
        tz: Timezone whose wall clock is preserved (defaults to UTC)
        max_occurrences: Longest series accepted

    Returns:
        list: Strictly increasing aware datetimes in UTC

    Raises:
        ValidationError: If the series would run past max_occurrences
    """
    pattern = normalize_pattern(pattern)
    if start.tzinfo is None:
        raise ValidationError(MESSAGES['naive_datetime'], field='scheduled_at')

    start_utc = start.astimezone(timezone.utc)
    if pattern == 'NONE':
        return [start_utc]

    tz = tz or timezone.utc
    if end_date is None:
        end_date = get_default_recurrence_end_date(start_utc)

    local_start = start.astimezone(tz).replace(tzinfo=None)

    def within_bound(occurrence: datetime) -> bool:
        if isinstance(end_date, datetime):
            return occurrence <= end_date
        if isinstance(end_date, date):
            return occurrence.astimezone(tz).date() <= end_date
        raise ValidationError(MESSAGES['invalid_date'], field='recurrence_end_date')

    occurrences = [start_utc]
    step = 1
    while True:
        if pattern == 'MONTHLY':
            local_next = local_start + relativedelta(months=step)
        else:
            local_next = local_start + timedelta(days=PATTERN_DAYS[pattern] * step)

        occurrence = local_next.replace(tzinfo=tz).astimezone(timezone.utc)
        if not within_bound(occurrence):
            break
        if len(occurrences) >= max_occurrences:
            raise ValidationError(
                MESSAGES['series_too_long'].format(max=max_occurrences),
                field='recurrence_end_date', max_occurrences=max_occurrences
            )
        occurrences.append(occurrence)
        step += 1

    return occurrences
