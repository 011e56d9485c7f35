"""
Database schema definitions.
Table creation, indexes, and structure management.

Absolute instants (scheduled_at, cancelled_at, notified_at, ...) are stored
as UTC text 'YYYY-MM-DD HH:MM:SS' so string order equals time order.
See utils.datetime_helpers.to_db / from_db.
"""


def drop_tables(db):
    """Drop all existing tables."""
    # Disable foreign key constraints before dropping
    db.execute('PRAGMA foreign_keys = OFF')

    tables = [
        'rate_limit_events',
        'notifications',
        'waitlist_entries',
        'reservations',
        'subjects',
        'provider_staff',
        'providers',
        'users'
    ]

    for table in tables:
        db.execute(f'DROP TABLE IF EXISTS {table}')

    # Re-enable foreign key constraints
    db.execute('PRAGMA foreign_keys = ON')


def create_tables(db):
    """Create all database tables."""

    # 1. Users
    db.execute('''
        CREATE TABLE users (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            email TEXT UNIQUE NOT NULL,
            password_hash TEXT NOT NULL,
            first_name TEXT,
            last_name TEXT,
            phone TEXT,
            role TEXT NOT NULL DEFAULT 'CLIENT' CHECK(role IN ('CLIENT', 'PROVIDER', 'ADMIN')),
            active INTEGER DEFAULT 1,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            last_login TIMESTAMP
        )
    ''')

    # 2. Providers (daycares and medical practices share one table)
    db.execute('''
        CREATE TABLE providers (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            name TEXT NOT NULL,
            slug TEXT UNIQUE NOT NULL,
            kind TEXT NOT NULL CHECK(kind IN ('daycare', 'medical')),
            status TEXT NOT NULL DEFAULT 'PENDING' CHECK(status IN ('PENDING', 'APPROVED', 'SUSPENDED')),
            email TEXT,
            phone TEXT,
            opening_time TEXT NOT NULL DEFAULT '08:00',
            closing_time TEXT NOT NULL DEFAULT '17:00',
            operating_days TEXT NOT NULL DEFAULT 'Mon,Tue,Wed,Thu,Fri',
            timezone TEXT,
            accepting_new_clients INTEGER DEFAULT 1,
            deleted_at TEXT,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            CHECK(opening_time < closing_time)
        )
    ''')

    db.execute('''
        CREATE TABLE provider_staff (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            provider_id INTEGER NOT NULL REFERENCES providers(id) ON DELETE CASCADE,
            user_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            role TEXT NOT NULL DEFAULT 'staff' CHECK(role IN ('owner', 'manager', 'staff')),
            UNIQUE(provider_id, user_id)
        )
    ''')

    # 3. Subjects (children / family members owned by a client)
    db.execute('''
        CREATE TABLE subjects (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            client_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            kind TEXT NOT NULL CHECK(kind IN ('child', 'family_member')),
            first_name TEXT NOT NULL,
            last_name TEXT,
            date_of_birth DATE,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )
    ''')

    # 4. Reservations (tours, appointments, enrollment requests)
    db.execute('''
        CREATE TABLE reservations (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            provider_id INTEGER NOT NULL REFERENCES providers(id),
            client_id INTEGER NOT NULL REFERENCES users(id),
            subject_id INTEGER REFERENCES subjects(id),
            type TEXT NOT NULL CHECK(type IN ('TOUR', 'APPOINTMENT', 'ENROLLMENT')),
            status TEXT NOT NULL DEFAULT 'PENDING'
                CHECK(status IN ('PENDING', 'CONFIRMED', 'CANCELLED', 'COMPLETED', 'NO_SHOW')),
            scheduled_at TEXT,
            duration INTEGER,
            series_id TEXT,
            recurrence TEXT NOT NULL DEFAULT 'NONE'
                CHECK(recurrence IN ('NONE', 'WEEKLY', 'BIWEEKLY', 'MONTHLY')),
            recurrence_end_date TEXT,
            notes TEXT,
            confirmed_at TEXT,
            cancelled_at TEXT,
            cancel_reason TEXT,
            reminder_sent_at TEXT,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )
    ''')

    # 5. Waitlist
    db.execute('''
        CREATE TABLE waitlist_entries (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            provider_id INTEGER NOT NULL REFERENCES providers(id) ON DELETE CASCADE,
            client_name TEXT NOT NULL,
            client_email TEXT NOT NULL,
            client_phone TEXT,
            desired_date DATE NOT NULL,
            reason_for_visit TEXT,
            notes TEXT,
            position INTEGER NOT NULL CHECK(position >= 1),
            notified_at TEXT,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )
    ''')

    # 6. In-app notifications
    db.execute('''
        CREATE TABLE notifications (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            user_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            type TEXT NOT NULL,
            title TEXT NOT NULL,
            body TEXT,
            data TEXT,
            read_at TEXT,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )
    ''')

    # 7. Rate limiting window
    db.execute('''
        CREATE TABLE rate_limit_events (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            actor_key TEXT NOT NULL,
            bucket TEXT NOT NULL,
            created_at TEXT NOT NULL
        )
    ''')


def create_indexes(db):
    """Create database indexes for performance and integrity."""

    # Providers
    db.execute('CREATE INDEX idx_providers_status ON providers(status)')
    db.execute('CREATE INDEX idx_provider_staff_user ON provider_staff(user_id)')

    # Subjects
    db.execute('CREATE INDEX idx_subjects_client ON subjects(client_id)')

    # Reservations
    db.execute('CREATE INDEX idx_reservations_provider_time ON reservations(provider_id, scheduled_at)')
    db.execute('CREATE INDEX idx_reservations_client ON reservations(client_id, status)')
    db.execute('CREATE INDEX idx_reservations_series ON reservations(series_id) WHERE series_id IS NOT NULL')

    # Two active timed reservations can never share the exact same instant.
    # The +/-30 minute window itself is enforced under BEGIN IMMEDIATE.
    db.execute('''
        CREATE UNIQUE INDEX idx_reservations_active_slot
        ON reservations(provider_id, scheduled_at)
        WHERE status IN ('PENDING', 'CONFIRMED')
          AND type IN ('TOUR', 'APPOINTMENT')
          AND scheduled_at IS NOT NULL
    ''')

    # Waitlist
    db.execute('''
        CREATE INDEX idx_waitlist_active_position
        ON waitlist_entries(provider_id, position)
        WHERE notified_at IS NULL
    ''')
    db.execute('CREATE INDEX idx_waitlist_email ON waitlist_entries(client_email)')

    # Notifications
    db.execute('CREATE INDEX idx_notifications_user ON notifications(user_id, read_at)')

    # Rate limiting
    db.execute('CREATE INDEX idx_rate_limit_lookup ON rate_limit_events(actor_key, bucket, created_at)')
