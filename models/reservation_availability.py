"""
Conflict detection and slot availability for providers.

Two views of the same question:
- has_conflict / check_time_slot_conflict: the write-path guard, run inside
  the writer's BEGIN IMMEDIATE transaction.
- get_available_slots: the read path, an advisory slot grid for pickers.
"""

import logging
from datetime import datetime, timedelta
from typing import Iterable, List, Optional

from flask import current_app

from database import get_db
from models.provider import get_bookable_provider, get_operating_schedule
from models.reservation_state import (
    ACTIVE_STATUSES, TIMED_TYPES, LEAD_TIME_HOURS, row_to_reservation
)
from utils.availability import compute_availability, DEFAULT_SLOT_MINUTES
from utils.datetime_helpers import get_now, get_timezone, to_db
from utils.errors import ValidationError
from utils.messages import MESSAGES

logger = logging.getLogger(__name__)

CONFLICT_WINDOW_MINUTES = 30


# =============================================================================
# CONFLICT GUARD
# =============================================================================

def has_conflict(
    candidate: datetime,
    provider_id: int,
    existing: Iterable[dict],
    exclude_reservation_id: int = None
) -> bool:
    """
    Check a candidate instant against a provider's reservations.

    A conflict is an active timed reservation of the same provider starting
    less than 30 minutes before or after the candidate. Exactly 30 minutes
    apart is not a conflict.

    Args:
        candidate: Aware datetime being requested
        provider_id: Provider ID
        existing: Reservation dicts with 'id', 'provider_id', 'status',
            'scheduled_at' (aware datetime or None) and optionally 'type'
        exclude_reservation_id: Reservation whose own slot is ignored (reschedule)

    Returns:
        bool: True if the candidate conflicts
    """
    window = timedelta(minutes=CONFLICT_WINDOW_MINUTES)

    for res in existing:
        if res.get('provider_id') != provider_id:
            continue
        if exclude_reservation_id is not None and res.get('id') == exclude_reservation_id:
            continue
        if res.get('status') not in ACTIVE_STATUSES:
            continue
        if res.get('type', 'TOUR') not in TIMED_TYPES:
            continue
        scheduled_at = res.get('scheduled_at')
        if scheduled_at is None:
            continue
        if abs(candidate - scheduled_at) < window:
            return True

    return False


def check_time_slot_conflict(
    provider_id: int,
    candidate: datetime,
    exclude_reservation_id: int = None,
    cursor=None
) -> Optional[dict]:
    """
    Find an active reservation within the conflict window of a candidate.

    Same rule as has_conflict, run as a range query. Callers pass the cursor
    of their open BEGIN IMMEDIATE transaction so the answer cannot change
    before their insert lands.

    Args:
        provider_id: Provider ID
        candidate: Aware datetime being requested
        exclude_reservation_id: Reservation ID to exclude (for reschedule)
        cursor: Active transaction cursor

    Returns:
        dict: The conflicting reservation, or None
    """
    cur = cursor or get_db().cursor()
    window = timedelta(minutes=CONFLICT_WINDOW_MINUTES)

    query = '''
        SELECT id, provider_id, client_id, type, status, scheduled_at, duration, series_id
        FROM reservations
        WHERE provider_id = ?
          AND status IN ('PENDING', 'CONFIRMED')
          AND type IN ('TOUR', 'APPOINTMENT')
          AND scheduled_at IS NOT NULL
          AND scheduled_at > ?
          AND scheduled_at < ?
    '''
    params = [provider_id, to_db(candidate - window), to_db(candidate + window)]

    # Exclude specific reservation (for reschedule)
    if exclude_reservation_id:
        query += ' AND id != ?'
        params.append(exclude_reservation_id)

    query += ' ORDER BY scheduled_at LIMIT 1'

    cur.execute(query, params)
    return row_to_reservation(cur.fetchone())


def find_series_conflicts(
    provider_id: int,
    occurrences: List[datetime],
    cursor=None
) -> Optional[datetime]:
    """
    Check every occurrence of a series.

    Returns:
        datetime: The first conflicting occurrence, or None if all are free
    """
    for occurrence in occurrences:
        if check_time_slot_conflict(provider_id, occurrence, cursor=cursor):
            return occurrence
    return None


# =============================================================================
# SLOT GRID (READ PATH)
# =============================================================================

def get_provider_reservations_between(provider_id: int, start: datetime, end: datetime) -> List[dict]:
    """Active timed reservations of a provider in [start, end)."""
    db = get_db()
    cursor = db.cursor()
    cursor.execute('''
        SELECT id, provider_id, type, status, scheduled_at, duration
        FROM reservations
        WHERE provider_id = ?
          AND status IN ('PENDING', 'CONFIRMED')
          AND type IN ('TOUR', 'APPOINTMENT')
          AND scheduled_at >= ?
          AND scheduled_at < ?
        ORDER BY scheduled_at
    ''', (provider_id, to_db(start), to_db(end)))
    return [row_to_reservation(row) for row in cursor.fetchall()]


def get_available_slots(provider_id: int, days_ahead: int = 14, now: datetime = None) -> dict:
    """
    Compute the bookable slot grid of a provider.

    Slots inside the 24-hour lead time are shown but unavailable, matching
    the write-path rule.

    Args:
        provider_id: Provider ID
        days_ahead: Days to include, 1..AVAILABILITY_MAX_DAYS
        now: Evaluation instant

    Returns:
        dict: {'provider': dict, 'timezone': str, 'days': [DayAvailability]}

    Raises:
        ValidationError: If days_ahead is out of range
        NotFound: If the provider is missing or not bookable
    """
    max_days = current_app.config.get('AVAILABILITY_MAX_DAYS', 60)
    if not isinstance(days_ahead, int) or not 1 <= days_ahead <= max_days:
        raise ValidationError(MESSAGES['invalid_horizon'].format(max=max_days), field='days')

    now = now or get_now()
    provider = get_bookable_provider(provider_id)
    tz = get_timezone(provider['timezone'])

    # One extra day on each side covers timezone offsets
    window_start = now - timedelta(days=1)
    window_end = now + timedelta(days=days_ahead + 1)
    reservations = get_provider_reservations_between(provider_id, window_start, window_end)

    days = compute_availability(
        get_operating_schedule(provider),
        reservations,
        horizon_days=days_ahead,
        slot_width_minutes=DEFAULT_SLOT_MINUTES,
        now=now,
        tz=tz,
        min_notice=timedelta(hours=LEAD_TIME_HOURS)
    )

    logger.debug(f"Availability for provider {provider_id}: {days_ahead} days from {now.isoformat()}")
    return {
        'provider': provider,
        'timezone': str(tz),
        'days': days,
    }
