"""
Subject model.
Children and family members a client books visits for.
"""

from database import get_db
from utils.errors import ValidationError

SUBJECT_KINDS = ('child', 'family_member')


def create_subject(client_id: int, kind: str, first_name: str,
                   last_name: str = None, date_of_birth: str = None) -> int:
    """
    Create a subject owned by a client.

    Returns:
        int: New subject ID
    """
    if kind not in SUBJECT_KINDS:
        raise ValidationError(f"Invalid subject kind: {kind}")
    if not first_name or not first_name.strip():
        raise ValidationError("first_name is required", field='first_name')

    with get_db() as conn:
        cursor = conn.execute('''
            INSERT INTO subjects (client_id, kind, first_name, last_name, date_of_birth)
            VALUES (?, ?, ?, ?, ?)
        ''', (client_id, kind, first_name.strip(), last_name, date_of_birth))
        return cursor.lastrowid


def get_subject(subject_id: int) -> dict:
    """Get subject by ID, or None."""
    db = get_db()
    cursor = db.cursor()
    cursor.execute('SELECT * FROM subjects WHERE id = ?', (subject_id,))
    row = cursor.fetchone()
    return dict(row) if row else None


def subject_belongs_to_client(subject_id: int, client_id: int, kind: str = None) -> bool:
    """
    Ownership check: does this client own this subject (of this kind)?

    Args:
        subject_id: Subject ID
        client_id: Client user ID
        kind: Optional subject kind the provider requires

    Returns:
        bool
    """
    subject = get_subject(subject_id)
    if not subject or subject['client_id'] != client_id:
        return False
    return kind is None or subject['kind'] == kind


def get_client_subjects(client_id: int) -> list:
    """List a client's subjects."""
    db = get_db()
    cursor = db.cursor()
    cursor.execute('''
        SELECT * FROM subjects
        WHERE client_id = ?
        ORDER BY first_name, id
    ''', (client_id,))
    return [dict(row) for row in cursor.fetchall()]
