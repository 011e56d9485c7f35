"""
Reservation state management functions.
Handles status transitions, the cancellation policy, provider-side
confirmation, and reminder dispatch.
"""

import logging
from datetime import datetime, timedelta
from typing import Optional, Tuple

from database import get_db, immediate_transaction
from models.provider import can_manage_provider
from utils.datetime_helpers import get_now, get_timezone, to_db, from_db
from utils.errors import NotFound, TooSoon, InvalidTransition, Unauthorized
from utils.messages import MESSAGES
from utils.notifications import notify

logger = logging.getLogger(__name__)


# =============================================================================
# CONSTANTS
# =============================================================================

LEAD_TIME_HOURS = 24

ACTIVE_STATUSES = ('PENDING', 'CONFIRMED')
TIMED_TYPES = ('TOUR', 'APPOINTMENT')

VALID_TRANSITIONS = {
    'PENDING': {'CONFIRMED', 'CANCELLED'},
    'CONFIRMED': {'COMPLETED', 'NO_SHOW', 'CANCELLED'},
    'CANCELLED': set(),
    'COMPLETED': set(),
    'NO_SHOW': set(),
}

# Reschedule is the only way back to PENDING
RESCHEDULABLE_STATUSES = ('PENDING', 'CONFIRMED')

INSTANT_FIELDS = ('scheduled_at', 'recurrence_end_date', 'confirmed_at',
                  'cancelled_at', 'reminder_sent_at')

CLIENT_CANCEL_REASON = 'Cancelled by client'
PROVIDER_DECLINE_REASON = 'Declined by provider'


# =============================================================================
# POLICY
# =============================================================================

def validate_transition(current: str, target: str) -> None:
    """
    Check a status change against the transition table.

    Raises:
        InvalidTransition: If target is not reachable from current
    """
    if target not in VALID_TRANSITIONS.get(current, set()):
        raise InvalidTransition(
            MESSAGES['invalid_transition'].format(current=current, target=target),
            current=current, target=target
        )


def hours_until(scheduled_at: datetime, now: datetime) -> float:
    """Hours from now until scheduled_at (negative when in the past)."""
    return (scheduled_at - now).total_seconds() / 3600


def can_cancel(scheduled_at: Optional[datetime], now: datetime) -> Tuple[bool, Optional[float]]:
    """
    Check the 24-hour cancellation rule.

    Args:
        scheduled_at: Reservation instant (None for untimed requests)
        now: Evaluation instant

    Returns:
        tuple: (allowed, hours_remaining); hours_remaining is None when untimed
    """
    if scheduled_at is None:
        return True, None
    remaining = hours_until(scheduled_at, now)
    return remaining >= LEAD_TIME_HOURS, remaining


def is_valid_booking_time(scheduled_at: datetime, now: datetime) -> bool:
    """A booking or reschedule target must be at least 24 hours away."""
    return scheduled_at >= now + timedelta(hours=LEAD_TIME_HOURS)


def format_when(scheduled_at: Optional[datetime], tz_name: str = None) -> str:
    """Human-readable instant in the provider timezone."""
    if scheduled_at is None:
        return 'a date to be arranged'
    local = scheduled_at.astimezone(get_timezone(tz_name))
    return local.strftime('%a %b %d, %Y at %I:%M %p')


# =============================================================================
# ROW LOADING
# =============================================================================

def row_to_reservation(row) -> Optional[dict]:
    """Reservation row as a dict with instants parsed to aware datetimes."""
    if row is None:
        return None
    reservation = dict(row)
    for field in INSTANT_FIELDS:
        if field in reservation:
            reservation[field] = from_db(reservation[field])
    return reservation


def load_reservation(reservation_id: int, cursor=None) -> Optional[dict]:
    """
    Load one reservation with its provider's name, kind and timezone.

    Args:
        reservation_id: Reservation ID
        cursor: Cursor of an open transaction (defaults to a fresh one)
    """
    cur = cursor or get_db().cursor()
    cur.execute('''
        SELECT r.*,
               p.name AS provider_name,
               p.kind AS provider_kind,
               p.timezone AS provider_timezone
        FROM reservations r
        JOIN providers p ON r.provider_id = p.id
        WHERE r.id = ?
    ''', (reservation_id,))
    return row_to_reservation(cur.fetchone())


def _load_client_reservation(cursor, client_id: int, reservation_id: int) -> dict:
    reservation = load_reservation(reservation_id, cursor)
    # Other clients' bookings are reported as missing
    if not reservation or reservation['client_id'] != client_id:
        raise NotFound(MESSAGES['booking_not_found'])
    return reservation


def _load_provider_reservation(cursor, user_id: int, reservation_id: int) -> dict:
    reservation = load_reservation(reservation_id, cursor)
    if not reservation:
        raise NotFound(MESSAGES['booking_not_found'])
    if not can_manage_provider(reservation['provider_id'], user_id):
        raise Unauthorized(MESSAGES['permission_denied'])
    return reservation


def _notification_payload(reservation: dict) -> dict:
    return {
        'reservation_id': reservation['id'],
        'provider_name': reservation['provider_name'],
        'when': format_when(reservation['scheduled_at'], reservation['provider_timezone']),
    }


# =============================================================================
# CLIENT CANCELLATION
# =============================================================================

def cancel(client_id: int, reservation_id: int, reason: str = None,
           now: datetime = None) -> dict:
    """
    Cancel one of the client's reservations.

    Args:
        client_id: Acting client
        reservation_id: Reservation to cancel
        reason: Optional reason (defaults to "Cancelled by client")
        now: Evaluation instant

    Returns:
        dict: The updated reservation

    Raises:
        NotFound: Missing or not the client's reservation
        InvalidTransition: Not PENDING/CONFIRMED
        TooSoon: Less than 24 hours before the scheduled time
    """
    now = now or get_now()
    reason = reason or CLIENT_CANCEL_REASON

    with immediate_transaction() as cursor:
        reservation = _load_client_reservation(cursor, client_id, reservation_id)
        validate_transition(reservation['status'], 'CANCELLED')

        allowed, remaining = can_cancel(reservation['scheduled_at'], now)
        if not allowed:
            logger.info(f"Cancel rejected for reservation {reservation_id}: {remaining:.1f}h remaining")
            raise TooSoon(
                MESSAGES['too_soon_cancel'].format(hours=LEAD_TIME_HOURS, remaining=round(max(remaining, 0), 1)),
                hours_remaining=round(remaining, 1)
            )

        cursor.execute('''
            UPDATE reservations
            SET status = 'CANCELLED',
                cancelled_at = ?,
                cancel_reason = ?,
                updated_at = CURRENT_TIMESTAMP
            WHERE id = ?
        ''', (to_db(now), reason, reservation_id))

    logger.info(f"Reservation {reservation_id} cancelled by client {client_id}")
    return load_reservation(reservation_id)


def cancel_series(client_id: int, series_id: str, reason: str = None,
                  now: datetime = None) -> int:
    """
    Cancel every future active member of a series, or none of them.

    Members already in the past are left untouched. If any future member
    is inside the 24-hour window the whole call is rejected.

    Returns:
        int: Number of reservations cancelled

    Raises:
        NotFound: The client has no active reservation in this series
        TooSoon: Names the first occurrence inside the window
    """
    now = now or get_now()
    reason = reason or CLIENT_CANCEL_REASON

    with immediate_transaction() as cursor:
        cursor.execute('''
            SELECT r.id, r.scheduled_at, p.timezone AS provider_timezone
            FROM reservations r
            JOIN providers p ON r.provider_id = p.id
            WHERE r.series_id = ?
              AND r.client_id = ?
              AND r.status IN ('PENDING', 'CONFIRMED')
            ORDER BY r.scheduled_at
        ''', (series_id, client_id))
        members = [row_to_reservation(row) for row in cursor.fetchall()]

        if not members:
            raise NotFound(MESSAGES['series_not_found'])

        future = [m for m in members if m['scheduled_at'] and m['scheduled_at'] > now]

        for member in future:
            allowed, _ = can_cancel(member['scheduled_at'], now)
            if not allowed:
                when = format_when(member['scheduled_at'], member['provider_timezone'])
                logger.info(f"Series {series_id} cancel blocked by reservation {member['id']}")
                raise TooSoon(
                    MESSAGES['too_soon_series'].format(when=when, hours=LEAD_TIME_HOURS),
                    reservation_id=member['id'],
                    scheduled_at=member['scheduled_at'].isoformat()
                )

        for member in future:
            cursor.execute('''
                UPDATE reservations
                SET status = 'CANCELLED',
                    cancelled_at = ?,
                    cancel_reason = ?,
                    updated_at = CURRENT_TIMESTAMP
                WHERE id = ?
            ''', (to_db(now), reason, member['id']))

    logger.info(f"Series {series_id}: {len(future)} reservations cancelled by client {client_id}")
    return len(future)


# =============================================================================
# PROVIDER-SIDE TRANSITIONS
# =============================================================================

def _provider_transition(user_id: int, reservation_id: int, target: str,
                         now: datetime, reason: str = None) -> dict:
    with immediate_transaction() as cursor:
        reservation = _load_provider_reservation(cursor, user_id, reservation_id)
        validate_transition(reservation['status'], target)

        if target == 'CONFIRMED':
            cursor.execute('''
                UPDATE reservations
                SET status = 'CONFIRMED', confirmed_at = ?, updated_at = CURRENT_TIMESTAMP
                WHERE id = ?
            ''', (to_db(now), reservation_id))
        elif target == 'CANCELLED':
            cursor.execute('''
                UPDATE reservations
                SET status = 'CANCELLED', cancelled_at = ?, cancel_reason = ?,
                    updated_at = CURRENT_TIMESTAMP
                WHERE id = ?
            ''', (to_db(now), reason, reservation_id))
        else:
            cursor.execute('''
                UPDATE reservations
                SET status = ?, updated_at = CURRENT_TIMESTAMP
                WHERE id = ?
            ''', (target, reservation_id))

    logger.info(f"Reservation {reservation_id}: {reservation['status']} -> {target} by user {user_id}")
    return load_reservation(reservation_id)


def confirm_reservation(user_id: int, reservation_id: int, now: datetime = None) -> dict:
    """
    Confirm a pending reservation and notify the client.

    Returns:
        dict: {'reservation': dict, 'notification': delivery result}
    """
    now = now or get_now()
    reservation = _provider_transition(user_id, reservation_id, 'CONFIRMED', now)
    result = notify(reservation['client_id'], 'booking_confirmed', _notification_payload(reservation))
    return {'reservation': reservation, 'notification': result}


def decline_reservation(user_id: int, reservation_id: int, reason: str = None,
                        now: datetime = None) -> dict:
    """
    Decline (cancel) a reservation from the provider side.

    No lead-time rule applies to the provider.

    Returns:
        dict: {'reservation': dict, 'notification': delivery result}
    """
    now = now or get_now()
    reservation = _provider_transition(
        user_id, reservation_id, 'CANCELLED', now, reason=reason or PROVIDER_DECLINE_REASON
    )
    result = notify(reservation['client_id'], 'booking_declined', _notification_payload(reservation))
    return {'reservation': reservation, 'notification': result}


def mark_completed(user_id: int, reservation_id: int, now: datetime = None) -> dict:
    """CONFIRMED -> COMPLETED."""
    return _provider_transition(user_id, reservation_id, 'COMPLETED', now or get_now())


def mark_no_show(user_id: int, reservation_id: int, now: datetime = None) -> dict:
    """CONFIRMED -> NO_SHOW."""
    return _provider_transition(user_id, reservation_id, 'NO_SHOW', now or get_now())


# =============================================================================
# REMINDERS
# =============================================================================

def send_upcoming_reminders(now: datetime = None, within_hours: int = 24) -> dict:
    """
    Remind clients of confirmed visits starting within the next window.

    Each reservation is stamped before delivery so a reminder goes out once.

    Returns:
        dict: {'sent': int, 'failed': int}
    """
    now = now or get_now()
    until = now + timedelta(hours=within_hours)

    with immediate_transaction() as cursor:
        cursor.execute('''
            SELECT r.*,
                   p.name AS provider_name,
                   p.kind AS provider_kind,
                   p.timezone AS provider_timezone
            FROM reservations r
            JOIN providers p ON r.provider_id = p.id
            WHERE r.status = 'CONFIRMED'
              AND r.scheduled_at > ?
              AND r.scheduled_at <= ?
              AND r.reminder_sent_at IS NULL
            ORDER BY r.scheduled_at
        ''', (to_db(now), to_db(until)))
        due = [row_to_reservation(row) for row in cursor.fetchall()]

        for reservation in due:
            cursor.execute(
                'UPDATE reservations SET reminder_sent_at = ? WHERE id = ?',
                (to_db(now), reservation['id'])
            )

    sent = failed = 0
    for reservation in due:
        result = notify(reservation['client_id'], 'booking_reminder', _notification_payload(reservation))
        if result['delivered']:
            sent += 1
        else:
            failed += 1

    logger.info(f"Reminders: {sent} sent, {failed} failed")
    return {'sent': sent, 'failed': failed}
