"""
Database seed data.
Initial data population for fresh database installations.
"""

import os

from werkzeug.security import generate_password_hash


def seed_database(db):
    """Insert initial seed data (platform administrator account)."""
    admin_email = os.environ.get('ADMIN_EMAIL', 'admin@carebook.local')
    admin_password = os.environ.get('ADMIN_PASSWORD', 'admin123')

    db.execute('''
        INSERT INTO users (email, password_hash, first_name, last_name, role)
        VALUES (?, ?, 'Platform', 'Admin', 'ADMIN')
    ''', (admin_email, generate_password_hash(admin_password)))
