"""
Reservation CRUD operations.
Handles booking creation (single, recurring series, enrollment requests)
and client rescheduling.

Every check-then-write runs inside BEGIN IMMEDIATE: the conflict check and
the insert see the same database state, and a concurrent writer for the
same slot waits and then observes our row.
"""

import logging
import sqlite3
from datetime import date, datetime, timezone

from database import immediate_transaction
from models.provider import get_bookable_provider, get_capabilities
from models.reservation_availability import check_time_slot_conflict, find_series_conflicts
from models.reservation_state import (
    RESCHEDULABLE_STATUSES, format_when, is_valid_booking_time,
    load_reservation, LEAD_TIME_HOURS
)
from models.subject import subject_belongs_to_client
from utils.availability import DEFAULT_DURATION_MINUTES
from utils.datetime_helpers import get_now, get_timezone, parse_date, parse_instant, to_db
from utils.errors import InvalidTransition, NotFound, SlotTaken, TooSoon, ValidationError
from utils.messages import MESSAGES
from utils.rate_limit import enforce_limit
from utils.recurrence import expand, generate_series_id, normalize_pattern
from utils.validators import optional_text, parse_id

logger = logging.getLogger(__name__)

NOTES_MAX_LENGTH = 1000
ENROLLMENT_SCHEDULES = ('full-time', 'part-time', 'before-after')


# =============================================================================
# HELPERS
# =============================================================================

def _resolve_subject(client_id: int, subject_id, capabilities: dict):
    """Validate the subject against the client and the provider's profile."""
    label = capabilities['subject_label']
    if subject_id is None or subject_id == '':
        if capabilities['subject_required']:
            raise ValidationError(MESSAGES['subject_required'].format(subject=label), field='subject_id')
        return None

    subject_id = parse_id(subject_id, 'subject_id')
    if not subject_belongs_to_client(subject_id, client_id, capabilities['subject_kind']):
        raise NotFound(MESSAGES['subject_not_found'].format(subject=label.capitalize()))
    return subject_id


def _parse_end_date(value):
    """Series end: a plain YYYY-MM-DD date or an aware ISO instant."""
    if value is None or value == '':
        return None
    if isinstance(value, datetime):
        return parse_instant(value, 'recurrence_end_date')
    if isinstance(value, date):
        return value
    if isinstance(value, str) and len(value.strip()) == 10:
        return parse_date(value.strip(), 'recurrence_end_date')
    return parse_instant(value, 'recurrence_end_date')


def _check_lead_time(scheduled_at: datetime, now: datetime) -> None:
    if not is_valid_booking_time(scheduled_at, now):
        logger.info(f"Booking rejected: {scheduled_at.isoformat()} is inside the {LEAD_TIME_HOURS}h lead time")
        raise TooSoon(
            MESSAGES['too_soon_booking'].format(hours=LEAD_TIME_HOURS),
            scheduled_at=scheduled_at.isoformat()
        )


def _insert_reservation(cursor, provider: dict, client_id: int, subject_id, res_type: str,
                        scheduled_at, notes, series_id=None, recurrence='NONE',
                        recurrence_end_date=None) -> int:
    cursor.execute('''
        INSERT INTO reservations (
            provider_id, client_id, subject_id, type, status,
            scheduled_at, duration, series_id, recurrence,
            recurrence_end_date, notes
        ) VALUES (?, ?, ?, ?, 'PENDING', ?, ?, ?, ?, ?, ?)
    ''', (
        provider['id'], client_id, subject_id, res_type,
        to_db(scheduled_at),
        DEFAULT_DURATION_MINUTES if scheduled_at else None,
        series_id, recurrence, to_db(recurrence_end_date), notes
    ))
    return cursor.lastrowid


# =============================================================================
# CREATE
# =============================================================================

def create_single(client_id: int, provider_id, subject_id, scheduled_at,
                  notes: str = None, now: datetime = None) -> dict:
    """
    Book one tour or appointment.

    Args:
        client_id: Acting client
        provider_id: Provider to book
        subject_id: Child / family member (optional for medical providers)
        scheduled_at: Aware datetime or ISO-8601 string with offset
        notes: Optional notes
        now: Evaluation instant

    Returns:
        dict: The new PENDING reservation

    Raises:
        ValidationError, NotFound, TooSoon, SlotTaken, TooManyRequests
    """
    now = now or get_now()
    enforce_limit(f"user:{client_id}", 'booking', now)
    return _create_single(client_id, provider_id, subject_id, scheduled_at, notes, now)


def _create_single(client_id, provider_id, subject_id, scheduled_at, notes, now) -> dict:
    provider_id = parse_id(provider_id, 'provider_id')
    scheduled_at = parse_instant(scheduled_at)
    notes = optional_text(notes, 'notes', NOTES_MAX_LENGTH)

    provider = get_bookable_provider(provider_id)
    capabilities = get_capabilities(provider['kind'])
    subject_id = _resolve_subject(client_id, subject_id, capabilities)
    _check_lead_time(scheduled_at, now)

    try:
        with immediate_transaction() as cursor:
            conflict = check_time_slot_conflict(provider_id, scheduled_at, cursor=cursor)
            if conflict:
                raise SlotTaken(MESSAGES['slot_taken'], scheduled_at=scheduled_at.isoformat())

            reservation_id = _insert_reservation(
                cursor, provider, client_id, subject_id,
                capabilities['reservation_type'], scheduled_at, notes
            )
    except sqlite3.IntegrityError as e:
        logger.warning(f"Slot uniqueness violation for provider {provider_id}: {e}")
        raise SlotTaken(MESSAGES['slot_taken'], scheduled_at=scheduled_at.isoformat())
    except SlotTaken:
        logger.info(f"Slot taken: provider {provider_id} at {scheduled_at.isoformat()}")
        raise

    logger.info(f"Reservation {reservation_id} created: provider {provider_id}, "
                f"client {client_id}, at {scheduled_at.isoformat()}")
    return load_reservation(reservation_id)


def create_series(client_id: int, provider_id, subject_id, scheduled_at, pattern,
                  end_date=None, notes: str = None, now: datetime = None) -> dict:
    """
    Book a recurring series atomically.

    Every occurrence is lead-time and conflict checked before anything is
    written; all occurrences are then inserted in the same transaction with
    one series ID. Any failure leaves no rows behind.

    Args:
        pattern: NONE, WEEKLY, BIWEEKLY or MONTHLY (NONE books a single visit)
        end_date: Inclusive bound, YYYY-MM-DD or ISO instant
            (defaults to 90 days after the start)

    Returns:
        dict: {'series_id': str or None, 'reservations': [dict]}

    Raises:
        ValidationError, NotFound, TooSoon, SlotTaken, TooManyRequests
    """
    now = now or get_now()
    pattern = normalize_pattern(pattern)
    enforce_limit(f"user:{client_id}", 'booking', now)

    if pattern == 'NONE':
        reservation = _create_single(client_id, provider_id, subject_id, scheduled_at, notes, now)
        return {'series_id': None, 'reservations': [reservation]}

    provider_id = parse_id(provider_id, 'provider_id')
    scheduled_at = parse_instant(scheduled_at)
    end_date = _parse_end_date(end_date)
    notes = optional_text(notes, 'notes', NOTES_MAX_LENGTH)

    provider = get_bookable_provider(provider_id)
    capabilities = get_capabilities(provider['kind'])
    subject_id = _resolve_subject(client_id, subject_id, capabilities)
    tz = get_timezone(provider['timezone'])

    occurrences = expand(pattern, scheduled_at, end_date, tz=tz)
    for occurrence in occurrences:
        _check_lead_time(occurrence, now)

    series_id = generate_series_id()
    reservation_ids = []

    try:
        with immediate_transaction() as cursor:
            blocked = find_series_conflicts(provider_id, occurrences, cursor=cursor)
            if blocked:
                raise SlotTaken(
                    MESSAGES['series_slot_taken'].format(when=format_when(blocked, provider['timezone'])),
                    scheduled_at=blocked.isoformat()
                )

            for occurrence in occurrences:
                reservation_ids.append(_insert_reservation(
                    cursor, provider, client_id, subject_id,
                    capabilities['reservation_type'], occurrence, notes,
                    series_id=series_id, recurrence=pattern,
                    recurrence_end_date=occurrences[-1]
                ))
    except sqlite3.IntegrityError as e:
        logger.warning(f"Slot uniqueness violation in series for provider {provider_id}: {e}")
        raise SlotTaken(MESSAGES['slot_taken'])
    except SlotTaken:
        logger.info(f"Series rejected for provider {provider_id}: slot taken")
        raise

    logger.info(f"Series {series_id} created: {len(reservation_ids)} {pattern} reservations "
                f"for client {client_id} at provider {provider_id}")
    return {
        'series_id': series_id,
        'reservations': [load_reservation(rid) for rid in reservation_ids],
    }


def create_booking(client_id: int, data: dict, now: datetime = None) -> dict:
    """
    Single entry point for booking requests.

    Args:
        client_id: Acting client
        data: Request data with keys:
            - provider_id (required)
            - scheduled_at (required, ISO-8601 with offset)
            - subject_id (required for daycares)
            - recurrence (optional, default NONE)
            - recurrence_end_date (optional)
            - notes (optional)

    Returns:
        dict: {'reservation_ids': [int], 'series_id': str or None,
               'reservations': [dict]}
    """
    result = create_series(
        client_id,
        data.get('provider_id'),
        data.get('subject_id'),
        data.get('scheduled_at'),
        data.get('recurrence'),
        end_date=data.get('recurrence_end_date'),
        notes=data.get('notes'),
        now=now
    )
    return {
        'reservation_ids': [r['id'] for r in result['reservations']],
        'series_id': result['series_id'],
        'reservations': result['reservations'],
    }


def create_enrollment_request(client_id: int, provider_id, subject_id, desired_start_date,
                              schedule: str, program_id=None, notes: str = None,
                              now: datetime = None) -> dict:
    """
    Ask a daycare for an enrollment spot.

    Enrollment requests carry no visit time, so neither the lead time nor
    the conflict window applies. The request details are kept in notes.

    Returns:
        dict: The new PENDING ENROLLMENT reservation
    """
    now = now or get_now()
    enforce_limit(f"user:{client_id}", 'booking', now)

    provider_id = parse_id(provider_id, 'provider_id')
    provider = get_bookable_provider(provider_id)
    capabilities = get_capabilities(provider['kind'])
    if not capabilities['accepts_enrollment']:
        raise ValidationError(MESSAGES['enrollment_not_supported'])

    subject_id = _resolve_subject(client_id, subject_id, capabilities)

    if schedule not in ENROLLMENT_SCHEDULES:
        raise ValidationError(MESSAGES['invalid_schedule'], field='schedule')
    start_date = parse_date(desired_start_date, 'desired_start_date')
    if start_date < now.astimezone(get_timezone(provider['timezone'])).date():
        raise ValidationError("Desired start date cannot be in the past", field='desired_start_date')
    if program_id not in (None, ''):
        program_id = parse_id(program_id, 'program_id')
    notes = optional_text(notes, 'notes', NOTES_MAX_LENGTH)

    lines = [
        f"Schedule: {schedule}",
        f"Desired Start: {start_date.isoformat()}",
        f"Program ID: {program_id}" if program_id else None,
        f"Additional Notes: {notes}" if notes else None,
    ]
    enrollment_notes = '\n'.join(line for line in lines if line)

    with immediate_transaction() as cursor:
        reservation_id = _insert_reservation(
            cursor, provider, client_id, subject_id, 'ENROLLMENT', None, enrollment_notes
        )

    logger.info(f"Enrollment request {reservation_id} created for provider {provider_id}")
    return load_reservation(reservation_id)


# =============================================================================
# RESCHEDULE
# =============================================================================

def reschedule(client_id: int, reservation_id: int, new_scheduled_at,
               now: datetime = None) -> dict:
    """
    Move a reservation to a new time.

    The reservation goes back to PENDING for provider re-confirmation and
    a "Rescheduled from <old time>" line is appended to its notes.

    Returns:
        dict: The updated reservation

    Raises:
        NotFound, InvalidTransition, TooSoon, SlotTaken, ValidationError
    """
    now = now or get_now()
    new_scheduled_at = parse_instant(new_scheduled_at)

    try:
        with immediate_transaction() as cursor:
            reservation = load_reservation(reservation_id, cursor)
            if not reservation or reservation['client_id'] != client_id:
                raise NotFound(MESSAGES['booking_not_found'])
            if reservation['status'] not in RESCHEDULABLE_STATUSES:
                raise InvalidTransition(
                    MESSAGES['cannot_reschedule'].format(current=reservation['status']),
                    current=reservation['status'], target='PENDING'
                )
            if reservation['scheduled_at'] is None:
                raise ValidationError(MESSAGES['cannot_reschedule'].format(current=reservation['type']))

            _check_lead_time(new_scheduled_at, now)

            conflict = check_time_slot_conflict(
                reservation['provider_id'], new_scheduled_at,
                exclude_reservation_id=reservation_id, cursor=cursor
            )
            if conflict:
                raise SlotTaken(MESSAGES['slot_taken'], scheduled_at=new_scheduled_at.isoformat())

            previous = reservation['scheduled_at'].astimezone(timezone.utc)
            trail = f"Rescheduled from {previous.isoformat().replace('+00:00', 'Z')}"
            notes = f"{reservation['notes']}\n\n{trail}" if reservation['notes'] else trail

            cursor.execute('''
                UPDATE reservations
                SET scheduled_at = ?,
                    status = 'PENDING',
                    confirmed_at = NULL,
                    reminder_sent_at = NULL,
                    notes = ?,
                    updated_at = CURRENT_TIMESTAMP
                WHERE id = ?
            ''', (to_db(new_scheduled_at), notes, reservation_id))
    except sqlite3.IntegrityError as e:
        logger.warning(f"Slot uniqueness violation on reschedule of {reservation_id}: {e}")
        raise SlotTaken(MESSAGES['slot_taken'], scheduled_at=new_scheduled_at.isoformat())

    logger.info(f"Reservation {reservation_id} rescheduled to {new_scheduled_at.isoformat()}")
    return load_reservation(reservation_id)
