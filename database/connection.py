"""
Database connection management.
Handles per-request connections, write transactions, initialization, and teardown.
"""

import logging
import os
import sqlite3
from contextlib import contextmanager

from flask import g, current_app

logger = logging.getLogger(__name__)


def get_db():
    """
    Get the request-scoped database connection with row factory.

    Each app context (request, CLI command, worker thread) gets its own
    connection. The busy timeout bounds how long a writer waits for the
    SQLite write lock held by another connection.

    Returns:
        sqlite3.Connection: Database connection object
    """
    if 'db' not in g:
        db_path = current_app.config.get('DATABASE_PATH', 'instance/carebook.db')
        if db_path != ':memory:' and os.path.dirname(db_path):
            os.makedirs(os.path.dirname(db_path), exist_ok=True)
        g.db = sqlite3.connect(
            db_path,
            timeout=current_app.config.get('DATABASE_TIMEOUT', 10),
            detect_types=sqlite3.PARSE_DECLTYPES
        )
        g.db.row_factory = sqlite3.Row
        # Enable foreign key constraints
        g.db.execute('PRAGMA foreign_keys = ON')
        # Enable WAL mode for better concurrency
        g.db.execute('PRAGMA journal_mode = WAL')
    return g.db


def close_db(e=None):
    """
    Close database connection.

    Args:
        e: Exception if any (from Flask teardown context)
    """
    db = g.pop('db', None)
    if db is not None:
        db.close()


@contextmanager
def immediate_transaction(db=None):
    """
    Run a block inside a BEGIN IMMEDIATE transaction.

    BEGIN IMMEDIATE takes the database write lock up front, so any
    check-then-write done inside the block is serialized against every other
    writer: a conflict check cannot be invalidated by a concurrent insert
    before our own insert lands. Commits on success, rolls back on any
    exception and re-raises it.

    Usage:
        with immediate_transaction() as cursor:
            cursor.execute('SELECT ...')
            cursor.execute('INSERT ...')

    Args:
        db: Connection to use (defaults to get_db())

    Yields:
        sqlite3.Cursor bound to the open transaction
    """
    db = db or get_db()
    cursor = db.cursor()
    cursor.execute('BEGIN IMMEDIATE')
    try:
        yield cursor
    except Exception:
        db.rollback()
        raise
    db.commit()


def init_db():
    """
    Initialize database: drop existing tables, create new schema, insert seed data.
    WARNING: This will delete all existing data!
    """
    from database.schema import drop_tables, create_tables, create_indexes
    from database.seed import seed_database

    db = get_db()

    # Drop existing tables (in reverse order of dependencies)
    drop_tables(db)

    # Create all tables
    create_tables(db)

    # Create indexes
    create_indexes(db)

    # Insert seed data
    seed_database(db)

    db.commit()
    logger.info("Database initialized successfully")
