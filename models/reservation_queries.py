"""
Reservation listing and lookup.
Read-only views for clients and provider staff.
"""

from datetime import datetime
from typing import List

from database import get_db
from models.provider import can_manage_provider
from models.reservation_state import load_reservation, row_to_reservation
from utils.datetime_helpers import get_now, to_db, to_iso
from utils.errors import NotFound, ValidationError
from utils.messages import MESSAGES

CLIENT_FILTERS = ('upcoming', 'past')
PROVIDER_FILTERS = ('pending', 'confirmed', 'past')

_DETAIL_SELECT = '''
    SELECT r.*,
           p.name AS provider_name,
           p.kind AS provider_kind,
           p.timezone AS provider_timezone,
           s.first_name || COALESCE(' ' || s.last_name, '') AS subject_name,
           u.first_name || COALESCE(' ' || u.last_name, '') AS client_name,
           u.email AS client_email
    FROM reservations r
    JOIN providers p ON r.provider_id = p.id
    JOIN users u ON r.client_id = u.id
    LEFT JOIN subjects s ON r.subject_id = s.id
'''


def serialize_reservation(reservation: dict) -> dict:
    """JSON-friendly copy of a reservation (instants as ISO-8601)."""
    if reservation is None:
        return None
    data = dict(reservation)
    for field in ('scheduled_at', 'recurrence_end_date', 'confirmed_at',
                  'cancelled_at', 'reminder_sent_at'):
        if isinstance(data.get(field), datetime):
            data[field] = to_iso(data[field])
    return data


def get_reservation_by_id(reservation_id: int, user_id: int) -> dict:
    """
    Get one reservation if the user may see it.

    Visible to the booking client, the provider's staff and admins.

    Raises:
        NotFound: Missing or not visible to the user
    """
    reservation = load_reservation(reservation_id)
    if not reservation:
        raise NotFound(MESSAGES['booking_not_found'])
    if reservation['client_id'] != user_id and not can_manage_provider(reservation['provider_id'], user_id):
        raise NotFound(MESSAGES['booking_not_found'])
    return reservation


def get_client_reservations(client_id: int, filter: str = 'upcoming', now: datetime = None) -> List[dict]:
    """
    List a client's reservations.

    Args:
        client_id: Client user ID
        filter: 'upcoming' (active, not yet started, plus untimed requests)
            or 'past' (started or closed)
        now: Evaluation instant

    Returns:
        list: Reservation dicts, soonest first for upcoming, latest first for past
    """
    if filter not in CLIENT_FILTERS:
        raise ValidationError(MESSAGES['invalid_filter'], field='filter')
    now = now or get_now()

    if filter == 'upcoming':
        where = '''
            AND r.status IN ('PENDING', 'CONFIRMED')
            AND (r.scheduled_at IS NULL OR r.scheduled_at >= ?)
        '''
        order = 'ORDER BY r.scheduled_at IS NULL, r.scheduled_at ASC, r.id'
    else:
        where = '''
            AND (r.status IN ('CANCELLED', 'COMPLETED', 'NO_SHOW') OR r.scheduled_at < ?)
        '''
        order = 'ORDER BY r.scheduled_at DESC, r.id DESC'

    db = get_db()
    cursor = db.cursor()
    cursor.execute(f'''
        {_DETAIL_SELECT}
        WHERE r.client_id = ?
        {where}
        {order}
    ''', (client_id, to_db(now)))
    return [row_to_reservation(row) for row in cursor.fetchall()]


def get_series_reservations(client_id: int, series_id: str) -> List[dict]:
    """
    List every member of one of the client's series, in time order.

    Raises:
        NotFound: No reservation of this client carries the series ID
    """
    db = get_db()
    cursor = db.cursor()
    cursor.execute(f'''
        {_DETAIL_SELECT}
        WHERE r.client_id = ? AND r.series_id = ?
        ORDER BY r.scheduled_at
    ''', (client_id, series_id))
    rows = cursor.fetchall()
    if not rows:
        raise NotFound(MESSAGES['series_not_found'])
    return [row_to_reservation(row) for row in rows]


def get_provider_reservations(provider_id: int, filter: str = 'pending', now: datetime = None) -> List[dict]:
    """
    List a provider's reservations for the staff portal.

    Args:
        filter: 'pending' (awaiting a decision), 'confirmed' (upcoming
            confirmed visits) or 'past'
    """
    if filter not in PROVIDER_FILTERS:
        raise ValidationError(MESSAGES['invalid_filter'], field='filter')
    now = now or get_now()

    params = [provider_id]
    if filter == 'pending':
        where = "AND r.status = 'PENDING'"
        order = 'ORDER BY r.scheduled_at IS NULL, r.scheduled_at ASC, r.id'
    elif filter == 'confirmed':
        where = "AND r.status = 'CONFIRMED' AND (r.scheduled_at IS NULL OR r.scheduled_at >= ?)"
        params.append(to_db(now))
        order = 'ORDER BY r.scheduled_at ASC, r.id'
    else:
        where = "AND (r.status IN ('CANCELLED', 'COMPLETED', 'NO_SHOW') OR r.scheduled_at < ?)"
        params.append(to_db(now))
        order = 'ORDER BY r.scheduled_at DESC, r.id DESC'

    db = get_db()
    cursor = db.cursor()
    cursor.execute(f'''
        {_DETAIL_SELECT}
        WHERE r.provider_id = ?
        {where}
        {order}
    ''', params)
    return [row_to_reservation(row) for row in cursor.fetchall()]


def get_provider_reservation_stats(provider_id: int, now: datetime = None) -> dict:
    """
    Dashboard counters for a provider.

    Returns:
        dict: {'pending', 'upcoming_confirmed', 'completed', 'cancelled',
               'no_show', 'total'}
    """
    now = now or get_now()
    db = get_db()
    cursor = db.cursor()
    cursor.execute('''
        SELECT
            COUNT(*) AS total,
            SUM(CASE WHEN status = 'PENDING' THEN 1 ELSE 0 END) AS pending,
            SUM(CASE WHEN status = 'CONFIRMED' AND scheduled_at >= ? THEN 1 ELSE 0 END) AS upcoming_confirmed,
            SUM(CASE WHEN status = 'COMPLETED' THEN 1 ELSE 0 END) AS completed,
            SUM(CASE WHEN status = 'CANCELLED' THEN 1 ELSE 0 END) AS cancelled,
            SUM(CASE WHEN status = 'NO_SHOW' THEN 1 ELSE 0 END) AS no_show
        FROM reservations
        WHERE provider_id = ?
    ''', (to_db(now), provider_id))
    row = cursor.fetchone()
    return {key: row[key] or 0 for key in
            ('pending', 'upcoming_confirmed', 'completed', 'cancelled', 'no_show', 'total')}
