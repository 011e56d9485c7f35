"""
Waitlist model.
Ordered per-provider waiting list with atomic position renumbering.

Active entries (notified_at IS NULL) of a provider always hold positions
1..N. Every operation that moves positions runs its renumbering inside the
same BEGIN IMMEDIATE transaction as the change that caused it.
"""

import logging
from datetime import datetime
from typing import List, Optional

from database import get_db, immediate_transaction
from models.provider import MANAGER_ROLES, can_manage_provider, get_bookable_provider
from utils.datetime_helpers import get_now, parse_date, to_db, from_db, to_iso
from utils.errors import InvalidTransition, NotFound, Unauthorized, ValidationError
from utils.messages import MESSAGES
from utils.notifications import notify
from utils.rate_limit import enforce_limit
from utils.validators import (
    optional_text, parse_id, required_text, validate_email, validate_phone
)

logger = logging.getLogger(__name__)

TEXT_MAX_LENGTH = 500


# =============================================================================
# HELPERS
# =============================================================================

def _row_to_entry(row) -> Optional[dict]:
    if row is None:
        return None
    entry = dict(row)
    entry['notified_at'] = from_db(entry.get('notified_at'))
    return entry


def serialize_entry(entry: dict) -> dict:
    """JSON-friendly copy of an entry."""
    data = dict(entry)
    data['notified_at'] = to_iso(entry.get('notified_at'))
    data['is_active'] = entry.get('notified_at') is None
    return data


def _normalize_email(email) -> str:
    if not isinstance(email, str) or not validate_email(email.strip()):
        raise ValidationError(MESSAGES['invalid_email'], field='client_email')
    return email.strip().lower()


def _load_entry(cursor, entry_id: int) -> dict:
    cursor.execute('''
        SELECT w.*, p.name AS provider_name
        FROM waitlist_entries w
        JOIN providers p ON w.provider_id = p.id
        WHERE w.id = ?
    ''', (entry_id,))
    entry = _row_to_entry(cursor.fetchone())
    if not entry:
        raise NotFound(MESSAGES['entry_not_found'])
    return entry


def _load_managed_entry(cursor, user_id: int, entry_id: int) -> dict:
    entry = _load_entry(cursor, entry_id)
    if not can_manage_provider(entry['provider_id'], user_id, MANAGER_ROLES):
        raise Unauthorized(MESSAGES['permission_denied'])
    return entry


def _active_count(cursor, provider_id: int) -> int:
    cursor.execute('''
        SELECT COUNT(*) FROM waitlist_entries
        WHERE provider_id = ? AND notified_at IS NULL
    ''', (provider_id,))
    return cursor.fetchone()[0]


def renumber_after(cursor, provider_id: int, position: int) -> int:
    """
    Close the gap left at a position.

    Must run inside the caller's transaction, right after the entry at
    `position` stopped being active.

    Returns:
        int: Number of entries moved up
    """
    cursor.execute('''
        UPDATE waitlist_entries
        SET position = position - 1,
            updated_at = CURRENT_TIMESTAMP
        WHERE provider_id = ?
          AND position > ?
          AND notified_at IS NULL
    ''', (provider_id, position))
    return cursor.rowcount


# =============================================================================
# CLIENT OPERATIONS
# =============================================================================

def join(data: dict, now: datetime = None) -> dict:
    """
    Add a client to a provider's waitlist.

    Args:
        data: Entry data with keys:
            - provider_id (required)
            - client_name (required)
            - client_email (required)
            - client_phone (optional)
            - desired_date (required, YYYY-MM-DD)
            - reason_for_visit (optional)
            - notes (optional)
        now: Evaluation instant

    Returns:
        dict: The new entry (position = previous last + 1)

    Raises:
        ValidationError: Invalid data or already waiting for this provider
        NotFound: Provider missing or not bookable
        TooManyRequests: Too many joins from this email
    """
    now = now or get_now()
    email = _normalize_email(data.get('client_email'))
    enforce_limit(f"email:{email}", 'waitlist', now)

    provider_id = parse_id(data.get('provider_id'), 'provider_id')
    name = required_text(data.get('client_name'), 'client_name')
    phone = optional_text(data.get('client_phone'), 'client_phone', 30)
    if phone and not validate_phone(phone):
        raise ValidationError("Invalid phone number", field='client_phone')
    if not data.get('desired_date'):
        raise ValidationError(MESSAGES['field_required'].format(field='desired_date'), field='desired_date')
    desired_date = parse_date(data.get('desired_date'), 'desired_date')
    reason = optional_text(data.get('reason_for_visit'), 'reason_for_visit', TEXT_MAX_LENGTH)
    notes = optional_text(data.get('notes'), 'notes', TEXT_MAX_LENGTH)

    get_bookable_provider(provider_id)

    with immediate_transaction() as cursor:
        cursor.execute('''
            SELECT id FROM waitlist_entries
            WHERE provider_id = ? AND client_email = ? AND notified_at IS NULL
        ''', (provider_id, email))
        if cursor.fetchone():
            raise ValidationError(MESSAGES['waitlist_duplicate'], field='client_email')

        cursor.execute('''
            SELECT COALESCE(MAX(position), 0) FROM waitlist_entries
            WHERE provider_id = ? AND notified_at IS NULL
        ''', (provider_id,))
        position = cursor.fetchone()[0] + 1

        cursor.execute('''
            INSERT INTO waitlist_entries (
                provider_id, client_name, client_email, client_phone,
                desired_date, reason_for_visit, notes, position
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
        ''', (provider_id, name, email, phone, desired_date.isoformat(), reason, notes, position))
        entry_id = cursor.lastrowid

    logger.info(f"Waitlist entry {entry_id} joined provider {provider_id} at position {position}")
    return get_entry(entry_id)


def leave(provider_id: int, email: str) -> dict:
    """
    Remove a client's own active entry.

    Returns:
        dict: The removed entry

    Raises:
        NotFound: No active entry for this email at the provider
    """
    email = _normalize_email(email)

    with immediate_transaction() as cursor:
        cursor.execute('''
            SELECT * FROM waitlist_entries
            WHERE provider_id = ? AND client_email = ? AND notified_at IS NULL
        ''', (provider_id, email))
        entry = _row_to_entry(cursor.fetchone())
        if not entry:
            raise NotFound(MESSAGES['entry_not_found'])

        cursor.execute('DELETE FROM waitlist_entries WHERE id = ?', (entry['id'],))
        renumber_after(cursor, provider_id, entry['position'])

    logger.info(f"Waitlist entry {entry['id']} left provider {provider_id}")
    return entry


# =============================================================================
# PROVIDER OPERATIONS
# =============================================================================

def remove(user_id: int, entry_id: int) -> dict:
    """
    Delete any entry of the user's provider.

    Returns:
        dict: The removed entry
    """
    with immediate_transaction() as cursor:
        entry = _load_managed_entry(cursor, user_id, entry_id)
        cursor.execute('DELETE FROM waitlist_entries WHERE id = ?', (entry_id,))
        if entry['notified_at'] is None:
            renumber_after(cursor, entry['provider_id'], entry['position'])

    logger.info(f"Waitlist entry {entry_id} removed by user {user_id}")
    return entry


def reorder(user_id: int, entry_id: int, new_position: int) -> dict:
    """Move an active entry to a new position. See update_entry."""
    return update_entry(user_id, entry_id, position=new_position)


def update_entry(user_id: int, entry_id: int, position=None, notes=None) -> dict:
    """
    Update an entry's position and/or notes.

    Moving from P_old to P_new shifts the entries in between by one
    (up when moving down the list, down when moving up) and then places the
    entry at P_new. Equal positions are a no-op.

    Raises:
        ValidationError: Position outside 1..N
        InvalidTransition: Entry was already notified
    """
    notes = optional_text(notes, 'notes', TEXT_MAX_LENGTH) if notes is not None else None

    with immediate_transaction() as cursor:
        entry = _load_managed_entry(cursor, user_id, entry_id)

        if position is not None:
            new_position = parse_id(position, 'position')
            if entry['notified_at'] is not None:
                raise InvalidTransition(MESSAGES['waitlist_already_notified'])

            total = _active_count(cursor, entry['provider_id'])
            if new_position > total:
                raise ValidationError(
                    MESSAGES['waitlist_invalid_position'].format(max=total), field='position'
                )

            old_position = entry['position']
            if new_position > old_position:
                cursor.execute('''
                    UPDATE waitlist_entries
                    SET position = position - 1, updated_at = CURRENT_TIMESTAMP
                    WHERE provider_id = ?
                      AND position > ?
                      AND position <= ?
                      AND notified_at IS NULL
                ''', (entry['provider_id'], old_position, new_position))
            elif new_position < old_position:
                cursor.execute('''
                    UPDATE waitlist_entries
                    SET position = position + 1, updated_at = CURRENT_TIMESTAMP
                    WHERE provider_id = ?
                      AND position >= ?
                      AND position < ?
                      AND notified_at IS NULL
                ''', (entry['provider_id'], new_position, old_position))

            if new_position != old_position:
                cursor.execute('''
                    UPDATE waitlist_entries
                    SET position = ?, updated_at = CURRENT_TIMESTAMP
                    WHERE id = ?
                ''', (new_position, entry_id))
                logger.info(f"Waitlist entry {entry_id} moved {old_position} -> {new_position}")

        if notes is not None:
            cursor.execute('''
                UPDATE waitlist_entries
                SET notes = ?, updated_at = CURRENT_TIMESTAMP
                WHERE id = ?
            ''', (notes, entry_id))

    return get_entry(entry_id)


def _promote(user_id: int, now: datetime, select_entry) -> dict:
    """
    Mark the entry chosen by select_entry notified, then notify it.

    select_entry runs inside the write transaction, so the entry it picks
    cannot be promoted by anyone else before this call commits.
    """
    now = now or get_now()

    with immediate_transaction() as cursor:
        entry = select_entry(cursor)
        if entry['notified_at'] is not None:
            raise InvalidTransition(MESSAGES['waitlist_already_notified'])

        cursor.execute('''
            UPDATE waitlist_entries
            SET notified_at = ?, updated_at = CURRENT_TIMESTAMP
            WHERE id = ? AND notified_at IS NULL
        ''', (to_db(now), entry['id']))
        renumber_after(cursor, entry['provider_id'], entry['position'])

    logger.info(f"Waitlist entry {entry['id']} promoted by user {user_id}")

    result = notify(entry['client_email'], 'waitlist_spot_available', {
        'provider_name': entry['provider_name'],
        'entry_id': entry['id'],
        'client_name': entry['client_name'],
    })
    return {'entry': get_entry(entry['id']), 'notification': result}


def promote(user_id: int, entry_id: int, now: datetime = None) -> dict:
    """
    Tell an entry a spot is available.

    Marks the entry notified (once, irreversibly), closes its gap in the
    same transaction, commits, then sends the notification. A delivery
    failure is reported in the result and never undoes the promotion.

    Returns:
        dict: {'entry': dict, 'notification': delivery result}

    Raises:
        InvalidTransition: Entry was already notified
    """
    return _promote(user_id, now, lambda cursor: _load_managed_entry(cursor, user_id, entry_id))


def promote_next(user_id: int, provider_id: int, now: datetime = None) -> dict:
    """
    Promote whoever is first in line.

    Raises:
        NotFound: The waitlist is empty
        Unauthorized: User does not manage the provider
    """
    if not can_manage_provider(provider_id, user_id, MANAGER_ROLES):
        raise Unauthorized(MESSAGES['permission_denied'])

    def head_of_line(cursor) -> dict:
        cursor.execute('''
            SELECT id FROM waitlist_entries
            WHERE provider_id = ? AND notified_at IS NULL
            ORDER BY position
            LIMIT 1
        ''', (provider_id,))
        row = cursor.fetchone()
        if not row:
            raise NotFound(MESSAGES['entry_not_found'])
        return _load_entry(cursor, row['id'])

    return _promote(user_id, now, head_of_line)


# =============================================================================
# READ OPERATIONS
# =============================================================================

def get_entry(entry_id: int) -> Optional[dict]:
    """Get entry by ID, or None."""
    db = get_db()
    row = db.execute('''
        SELECT w.*, p.name AS provider_name
        FROM waitlist_entries w
        JOIN providers p ON w.provider_id = p.id
        WHERE w.id = ?
    ''', (entry_id,)).fetchone()
    return _row_to_entry(row)


def get_waitlist_position(provider_id: int, email: str) -> Optional[dict]:
    """
    Where a client stands in a provider's line.

    Returns:
        dict: {'entry_id', 'position', 'total'} or None if not waiting
    """
    email = _normalize_email(email)
    db = get_db()
    cursor = db.cursor()
    cursor.execute('''
        SELECT id, position FROM waitlist_entries
        WHERE provider_id = ? AND client_email = ? AND notified_at IS NULL
    ''', (provider_id, email))
    row = cursor.fetchone()
    if not row:
        return None
    return {
        'entry_id': row['id'],
        'position': row['position'],
        'total': _active_count(cursor, provider_id),
    }


def get_client_waitlist_entries(email: str) -> List[dict]:
    """All of a client's entries across providers, active first."""
    email = _normalize_email(email)
    db = get_db()
    cursor = db.cursor()
    cursor.execute('''
        SELECT w.*, p.name AS provider_name
        FROM waitlist_entries w
        JOIN providers p ON w.provider_id = p.id
        WHERE w.client_email = ?
        ORDER BY w.notified_at IS NOT NULL, w.created_at DESC, w.id DESC
    ''', (email,))
    return [_row_to_entry(row) for row in cursor.fetchall()]


def get_waitlist_for_provider(provider_id: int) -> dict:
    """
    A provider's waitlist for the staff portal.

    Returns:
        dict: {'entries': [...active by position, then notified...],
               'stats': {'active', 'notified', 'total'}}
    """
    db = get_db()
    cursor = db.cursor()
    cursor.execute('''
        SELECT w.*, p.name AS provider_name
        FROM waitlist_entries w
        JOIN providers p ON w.provider_id = p.id
        WHERE w.provider_id = ?
        ORDER BY w.notified_at IS NOT NULL, w.position, w.notified_at
    ''', (provider_id,))
    entries = [_row_to_entry(row) for row in cursor.fetchall()]

    active = sum(1 for e in entries if e['notified_at'] is None)
    return {
        'entries': entries,
        'stats': {
            'active': active,
            'notified': len(entries) - active,
            'total': len(entries),
        },
    }


def check_positions_contiguous(provider_id: int) -> bool:
    """True iff the active positions of a provider are exactly 1..N."""
    db = get_db()
    rows = db.execute('''
        SELECT position FROM waitlist_entries
        WHERE provider_id = ? AND notified_at IS NULL
        ORDER BY position
    ''', (provider_id,)).fetchall()
    positions = [row['position'] for row in rows]
    return positions == list(range(1, len(positions) + 1))
