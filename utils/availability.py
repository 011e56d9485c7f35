"""
Availability calculator.

Pure functions that turn a provider's operating schedule plus its existing
reservations into a per-day grid of pickable slots. No database access and
no clock reads: "now" is always passed in.

This is the read path used to render options. It is advisory only; the
write path re-checks every candidate with the conflict guard.
"""

from datetime import date, datetime, time, timedelta, timezone
from typing import Iterable, List, Optional

from utils.errors import ValidationError
from utils.messages import MESSAGES

DAY_NAMES = ['Mon', 'Tue', 'Wed', 'Thu', 'Fri', 'Sat', 'Sun']

ACTIVE_STATUSES = ('PENDING', 'CONFIRMED')
DEFAULT_DURATION_MINUTES = 30
DEFAULT_SLOT_MINUTES = 30


# =============================================================================
# PARSING
# =============================================================================

def parse_time(value: str) -> time:
    """
    Parse a wall-clock "HH:MM" string.

    Raises:
        ValidationError: If the string is not a valid time of day
    """
    try:
        hours, minutes = value.split(':')
        return time(int(hours), int(minutes))
    except (AttributeError, ValueError):
        raise ValidationError(f"Invalid time of day: {value!r}")


def parse_operating_days(value) -> set:
    """Normalize operating days from a CSV string or an iterable of names."""
    if not value:
        return set()
    if isinstance(value, str):
        value = value.split(',')
    days = {d.strip()[:3].title() for d in value if d and d.strip()}
    unknown = days - set(DAY_NAMES)
    if unknown:
        raise ValidationError(f"Unknown weekday(s): {', '.join(sorted(unknown))}")
    return days


def _minutes(t: time) -> int:
    return t.hour * 60 + t.minute


def format_time_string(minutes: int) -> str:
    """Format minutes since midnight as "HH:MM"."""
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


# =============================================================================
# OVERLAP
# =============================================================================

def _busy_intervals(reservations: Iterable[dict]) -> list:
    """Active reservations as (start, end) instant pairs."""
    intervals = []
    for res in reservations:
        scheduled_at = res.get('scheduled_at')
        if scheduled_at is None:
            continue
        if res.get('status') not in ACTIVE_STATUSES:
            continue
        duration = res.get('duration') or DEFAULT_DURATION_MINUTES
        intervals.append((scheduled_at, scheduled_at + timedelta(minutes=duration)))
    return intervals


def overlaps(start: datetime, end: datetime, intervals: list) -> bool:
    """Half-open overlap test: touching intervals do not overlap."""
    for busy_start, busy_end in intervals:
        if start < busy_end and end > busy_start:
            return True
    return False


# =============================================================================
# CALCULATOR
# =============================================================================

def compute_availability(
    schedule: dict,
    reservations: Iterable[dict],
    horizon_days: int = 14,
    slot_width_minutes: int = DEFAULT_SLOT_MINUTES,
    *,
    now: datetime,
    tz=None,
    min_notice: Optional[timedelta] = None
) -> List[dict]:
    """
    Generate the slot grid for [today, today + horizon_days).

    Args:
        schedule: {'opening_time': 'HH:MM', 'closing_time': 'HH:MM',
                   'operating_days': ['Mon', ...] or 'Mon,Tue,...'}
        reservations: Dicts with 'scheduled_at' (aware datetime or None),
            'duration' (minutes or None) and 'status'
        horizon_days: Number of days to emit (>= 1)
        slot_width_minutes: Slot length in minutes (> 0)
        now: Evaluation instant (aware)
        tz: Provider timezone; wall-clock schedule times are read in it
            (defaults to UTC)
        min_notice: If given, slots starting before now + min_notice are
            emitted but marked unavailable

    Returns:
        list of day dicts, one per day, in date order:
            {
                'date': date,
                'date_string': 'YYYY-MM-DD',
                'day_of_week': int (Mon=0 .. Sun=6),
                'day_name': 'Mon',
                'is_open': bool,
                'slots': [{'time': 'HH:MM', 'start': datetime,
                           'end': datetime, 'available': bool}, ...]
            }

    Raises:
        ValidationError: On a bad horizon, slot width or schedule
    """
    if not isinstance(horizon_days, int) or horizon_days < 1:
        raise ValidationError("horizon_days must be at least 1")
    if not isinstance(slot_width_minutes, int) or slot_width_minutes <= 0:
        raise ValidationError(MESSAGES['invalid_slot_width'])

    tz = tz or timezone.utc
    opening = _minutes(parse_time(schedule['opening_time']))
    closing = _minutes(parse_time(schedule['closing_time']))
    if opening >= closing:
        raise ValidationError("Opening time must be before closing time")
    open_days = parse_operating_days(schedule.get('operating_days'))

    busy = _busy_intervals(reservations)
    notice_cutoff = now + min_notice if min_notice else None
    today = now.astimezone(tz).date()

    result = []
    for offset in range(horizon_days):
        day = today + timedelta(days=offset)
        day_name = DAY_NAMES[day.weekday()]
        is_open = day_name in open_days

        day_availability = {
            'date': day,
            'date_string': day.isoformat(),
            'day_of_week': day.weekday(),
            'day_name': day_name,
            'is_open': is_open,
            'slots': [],
        }

        if is_open:
            day_availability['slots'] = _day_slots(
                day, opening, closing, slot_width_minutes, tz, busy, now, notice_cutoff
            )

        result.append(day_availability)

    return result


def _day_slots(day: date, opening: int, closing: int, width: int, tz,
               busy: list, now: datetime, notice_cutoff) -> list:
    slots = []
    current = opening
    while current + width <= closing:
        start = datetime.combine(day, time(current // 60, current % 60), tzinfo=tz)
        # closing is at most 23:59, so the end always stays on the same day
        end_minutes = current + width
        end = datetime.combine(day, time(end_minutes // 60, end_minutes % 60), tzinfo=tz)

        # Past slots are never offered
        if start >= now:
            available = not overlaps(start, end, busy)
            if notice_cutoff is not None and start < notice_cutoff:
                available = False
            slots.append({
                'time': format_time_string(current),
                'start': start,
                'end': end,
                'available': available,
            })

        current += width
    return slots


# =============================================================================
# LOOKUP HELPERS
# =============================================================================

def get_slots_for_date(availability: List[dict], date_string: str) -> List[dict]:
    """Get the slots of one day, or [] if the day is not in the grid."""
    for day in availability:
        if day['date_string'] == date_string:
            return day['slots']
    return []


def is_slot_available(availability: List[dict], start: datetime) -> bool:
    """Check whether a slot starting at this instant is offered and free."""
    for day in availability:
        for slot in day['slots']:
            if slot['start'] == start:
                return slot['available']
    return False


def get_available_slots_count(day: dict) -> int:
    """Number of free slots in one day."""
    return sum(1 for slot in day['slots'] if slot['available'])


def format_time_for_display(value: str) -> str:
    """Format "13:30" as "1:30 PM"."""
    t = parse_time(value)
    suffix = 'PM' if t.hour >= 12 else 'AM'
    hour = t.hour % 12 or 12
    return f"{hour}:{t.minute:02d} {suffix}"


def serialize_availability(availability: List[dict]) -> List[dict]:
    """JSON-friendly copy of a slot grid (instants as ISO-8601)."""
    return [
        {
            'date': day['date_string'],
            'day_of_week': day['day_of_week'],
            'day_name': day['day_name'],
            'is_open': day['is_open'],
            'available_count': get_available_slots_count(day),
            'slots': [
                {
                    'time': slot['time'],
                    'start': slot['start'].isoformat(),
                    'end': slot['end'].isoformat(),
                    'available': slot['available'],
                }
                for slot in day['slots']
            ],
        }
        for day in availability
    ]
