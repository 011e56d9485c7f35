"""
Provider model.
Daycares and medical practices, their staff, and the capability profile
that decides what each kind of provider can be booked for.
"""

import re
from typing import Optional

from database import get_db
from utils.errors import NotFound, ValidationError
from utils.messages import MESSAGES
from utils.availability import parse_operating_days, parse_time


# =============================================================================
# CAPABILITY PROFILES
# =============================================================================

PROVIDER_KINDS = {
    'daycare': {
        'reservation_type': 'TOUR',
        'subject_kind': 'child',
        'subject_label': 'child',
        'subject_required': True,
        'accepts_enrollment': True,
    },
    'medical': {
        'reservation_type': 'APPOINTMENT',
        'subject_kind': 'family_member',
        'subject_label': 'family member',
        'subject_required': False,
        'accepts_enrollment': False,
    },
}

STAFF_ROLES = ('owner', 'manager', 'staff')
MANAGER_ROLES = ('owner', 'manager')


def get_capabilities(kind: str) -> dict:
    """
    Get the capability profile for a provider kind.

    Raises:
        ValidationError: If the kind is unknown
    """
    profile = PROVIDER_KINDS.get(kind)
    if profile is None:
        raise ValidationError(f"Unknown provider kind: {kind}")
    return profile


# =============================================================================
# QUERIES
# =============================================================================

def get_provider(provider_id: int) -> Optional[dict]:
    """
    Get provider by ID, regardless of status.

    Returns:
        Provider dict or None if not found
    """
    db = get_db()
    cursor = db.cursor()
    cursor.execute('SELECT * FROM providers WHERE id = ?', (provider_id,))
    row = cursor.fetchone()
    return dict(row) if row else None


def get_bookable_provider(provider_id: int) -> dict:
    """
    Get a provider that currently accepts bookings.

    Raises:
        NotFound: If missing, deleted or not approved
    """
    provider = get_provider(provider_id)
    if not provider or provider['deleted_at'] or provider['status'] != 'APPROVED':
        raise NotFound(MESSAGES['provider_not_found'])
    return provider


def get_operating_schedule(provider: dict) -> dict:
    """Extract the operating schedule in the shape the calculator expects."""
    return {
        'opening_time': provider['opening_time'],
        'closing_time': provider['closing_time'],
        'operating_days': parse_operating_days(provider['operating_days']),
    }


# =============================================================================
# STAFF
# =============================================================================

def get_staff_role(provider_id: int, user_id: int) -> Optional[str]:
    """Role of a user at a provider, or None if not staff."""
    db = get_db()
    cursor = db.cursor()
    cursor.execute('''
        SELECT role FROM provider_staff
        WHERE provider_id = ? AND user_id = ?
    ''', (provider_id, user_id))
    row = cursor.fetchone()
    return row['role'] if row else None


def is_provider_staff(provider_id: int, user_id: int, roles: tuple = STAFF_ROLES) -> bool:
    """Check whether a user holds one of the given roles at the provider."""
    return get_staff_role(provider_id, user_id) in roles


def can_manage_provider(provider_id: int, user_id: int, roles: tuple = STAFF_ROLES) -> bool:
    """Staff with one of the roles, or a platform admin."""
    if is_provider_staff(provider_id, user_id, roles):
        return True
    db = get_db()
    row = db.execute('SELECT role FROM users WHERE id = ?', (user_id,)).fetchone()
    return bool(row) and row['role'] == 'ADMIN'


def get_staff_provider_id(user_id: int) -> Optional[int]:
    """
    Get the provider a staff user works for.

    Staff accounts belong to a single provider; the owner row wins if a
    user was ever attached twice.
    """
    db = get_db()
    cursor = db.cursor()
    cursor.execute('''
        SELECT provider_id FROM provider_staff
        WHERE user_id = ?
        ORDER BY CASE role WHEN 'owner' THEN 0 WHEN 'manager' THEN 1 ELSE 2 END, id
        LIMIT 1
    ''', (user_id,))
    row = cursor.fetchone()
    return row['provider_id'] if row else None


# =============================================================================
# CREATE
# =============================================================================

def _slugify(name: str) -> str:
    return re.sub(r'[^a-z0-9]+', '-', name.lower()).strip('-')


def create_provider(name: str, kind: str, opening_time: str = '08:00',
                    closing_time: str = '17:00', operating_days='Mon,Tue,Wed,Thu,Fri',
                    timezone: str = None, status: str = 'APPROVED',
                    email: str = None, phone: str = None) -> int:
    """
    Create a provider.

    Args:
        name: Display name (slug is derived from it)
        kind: 'daycare' or 'medical'
        opening_time: "HH:MM"
        closing_time: "HH:MM", after opening_time
        operating_days: CSV or iterable of weekday names
        timezone: IANA name (None means the configured default)
        status: PENDING, APPROVED or SUSPENDED

    Returns:
        int: New provider ID

    Raises:
        ValidationError: On an unknown kind or an invalid schedule
    """
    get_capabilities(kind)
    if parse_time(opening_time) >= parse_time(closing_time):
        raise ValidationError("Opening time must be before closing time")
    days = parse_operating_days(operating_days)
    # Keep Mon..Sun order in storage
    days_csv = ','.join(d for d in ('Mon', 'Tue', 'Wed', 'Thu', 'Fri', 'Sat', 'Sun') if d in days)

    with get_db() as conn:
        slug = _slugify(name)
        existing = conn.execute(
            'SELECT COUNT(*) FROM providers WHERE slug = ? OR slug LIKE ?',
            (slug, f'{slug}-%')
        ).fetchone()[0]
        if existing:
            slug = f'{slug}-{existing + 1}'

        cursor = conn.execute('''
            INSERT INTO providers (
                name, slug, kind, status, email, phone,
                opening_time, closing_time, operating_days, timezone
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        ''', (name, slug, kind, status, email, phone,
              opening_time, closing_time, days_csv, timezone))
        return cursor.lastrowid


def add_staff(provider_id: int, user_id: int, role: str = 'staff') -> int:
    """Attach a user to a provider with a staff role."""
    if role not in STAFF_ROLES:
        raise ValidationError(f"Invalid staff role: {role}")
    with get_db() as conn:
        cursor = conn.execute('''
            INSERT INTO provider_staff (provider_id, user_id, role)
            VALUES (?, ?, ?)
        ''', (provider_id, user_id, role))
        return cursor.lastrowid
