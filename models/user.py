"""
User model and data access functions.
Handles account lookup, password checks, and Flask-Login integration.
"""

from werkzeug.security import generate_password_hash, check_password_hash
from database import get_db

USER_ROLES = ('CLIENT', 'PROVIDER', 'ADMIN')


class User:
    """
    User class for Flask-Login integration.
    Wraps database row dictionary with required Flask-Login properties.
    """

    def __init__(self, user_dict):
        """
        Initialize User from database row.

        Args:
            user_dict: Dictionary with user data from database
        """
        self.id = user_dict['id']
        self.email = user_dict['email']
        self.first_name = user_dict.get('first_name')
        self.last_name = user_dict.get('last_name')
        self.role = user_dict['role']
        self.active = user_dict['active']
        self.created_at = user_dict.get('created_at')
        self.last_login = user_dict.get('last_login')

    @property
    def full_name(self):
        parts = [self.first_name, self.last_name]
        return ' '.join(p for p in parts if p) or self.email

    @property
    def is_authenticated(self):
        """Required by Flask-Login."""
        return True

    @property
    def is_active(self):
        """Required by Flask-Login."""
        return self.active == 1

    @property
    def is_anonymous(self):
        """Required by Flask-Login."""
        return False

    @property
    def is_admin(self):
        return self.role == 'ADMIN'

    def get_id(self):
        """Required by Flask-Login. Returns user ID as unicode string."""
        return str(self.id)

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'email': self.email,
            'first_name': self.first_name,
            'last_name': self.last_name,
            'role': self.role,
        }


def get_user_by_id(user_id: int) -> dict:
    """
    Get user by ID.

    Args:
        user_id: User ID

    Returns:
        User dict or None if not found
    """
    db = get_db()
    cursor = db.cursor()
    cursor.execute('SELECT * FROM users WHERE id = ?', (user_id,))
    row = cursor.fetchone()
    return dict(row) if row else None


def get_user_by_email(email: str) -> dict:
    """
    Get user by email (case-insensitive).

    Args:
        email: Email to search for

    Returns:
        User dict or None if not found
    """
    db = get_db()
    cursor = db.cursor()
    cursor.execute('SELECT * FROM users WHERE email = ? COLLATE NOCASE', (email,))
    row = cursor.fetchone()
    return dict(row) if row else None


def create_user(email: str, password: str, first_name: str = None,
                last_name: str = None, role: str = 'CLIENT', phone: str = None) -> int:
    """
    Create new user.

    Args:
        email: Unique email
        password: Plain text password (will be hashed)
        first_name: Optional first name
        last_name: Optional last name
        role: CLIENT, PROVIDER or ADMIN
        phone: Optional phone

    Returns:
        New user ID

    Raises:
        ValueError: If the role is unknown
    """
    if role not in USER_ROLES:
        raise ValueError(f"Invalid role: {role}")

    password_hash = generate_password_hash(password)

    with get_db() as conn:
        cursor = conn.execute('''
            INSERT INTO users (email, password_hash, first_name, last_name, phone, role)
            VALUES (?, ?, ?, ?, ?, ?)
        ''', (email.strip().lower(), password_hash, first_name, last_name, phone, role))
        return cursor.lastrowid


def check_password(user_dict: dict, password: str) -> bool:
    """
    Verify password against stored hash.

    Args:
        user_dict: User dict with password_hash
        password: Plain text password to check

    Returns:
        True if password matches
    """
    if not user_dict or not password:
        return False
    return check_password_hash(user_dict['password_hash'], password)


def update_last_login(user_id: int) -> None:
    """Stamp the user's last successful login."""
    with get_db() as conn:
        conn.execute('UPDATE users SET last_login = CURRENT_TIMESTAMP WHERE id = ?', (user_id,))
