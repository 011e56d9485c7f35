"""
Pytest configuration and fixtures.
Ensures tests use an isolated test database, not the production database.
"""

import os
import pytest
import tempfile
from datetime import datetime, timezone

# Set test database path BEFORE importing app
# This ensures all tests use an isolated database
TEST_DB_PATH = os.path.join(tempfile.gettempdir(), 'carebook_test.db')
os.environ['DATABASE_PATH'] = TEST_DB_PATH

# Monday 2025-06-02 12:00 UTC
NOW = datetime(2025, 6, 2, 12, 0, tzinfo=timezone.utc)

CLIENT_EMAIL = 'parent@example.com'
OWNER_EMAIL = 'owner@sunnydays.example'
PASSWORD = 'secret123'


@pytest.fixture(scope='session', autouse=True)
def setup_test_environment():
    """Set up test environment before any tests run."""
    # Ensure test database path is set
    os.environ['DATABASE_PATH'] = TEST_DB_PATH
    os.environ['FLASK_ENV'] = 'test'

    yield

    # Cleanup: remove test database after all tests
    for path in (TEST_DB_PATH, TEST_DB_PATH + '-wal', TEST_DB_PATH + '-shm'):
        if os.path.exists(path):
            try:
                os.remove(path)
            except PermissionError:
                pass  # Windows may have file locked


@pytest.fixture
def app():
    """Create test application with isolated database."""
    from app import create_app
    from database import init_db

    # Ensure test database path
    os.environ['DATABASE_PATH'] = TEST_DB_PATH

    app = create_app('test')
    app.config['TESTING'] = True
    app.config['WTF_CSRF_ENABLED'] = False
    app.config['RATELIMIT_ENABLED'] = False
    app.config['DATABASE_PATH'] = TEST_DB_PATH
    app.config['TIMEZONE'] = 'UTC'

    with app.app_context():
        init_db()
        yield app


@pytest.fixture
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture
def now():
    """Fixed evaluation instant (a Monday noon, UTC)."""
    return NOW


@pytest.fixture
def client_user(app):
    """A client (parent / patient) account."""
    from models.user import create_user
    return create_user(CLIENT_EMAIL, PASSWORD, first_name='Pat', last_name='Parent', role='CLIENT')


@pytest.fixture
def other_client(app):
    """A second client account."""
    from models.user import create_user
    return create_user('other@example.com', PASSWORD, first_name='Olive', role='CLIENT')


@pytest.fixture
def daycare(app):
    """Approved daycare open Mon-Fri 08:00-17:00 UTC."""
    from models.provider import create_provider
    return create_provider('Sunny Days', 'daycare', timezone='UTC')


@pytest.fixture
def medical(app):
    """Approved medical practice open Mon-Fri 09:00-12:00 UTC."""
    from models.provider import create_provider
    return create_provider('Family Clinic', 'medical', opening_time='09:00',
                           closing_time='12:00', timezone='UTC')


@pytest.fixture
def child(app, client_user):
    """A child owned by client_user."""
    from models.subject import create_subject
    return create_subject(client_user, 'child', 'Alex', 'Parent')


@pytest.fixture
def owner(app, daycare):
    """Owner account of the daycare."""
    from models.user import create_user
    from models.provider import add_staff
    user_id = create_user(OWNER_EMAIL, PASSWORD, first_name='Olga', last_name='Owner', role='PROVIDER')
    add_staff(daycare, user_id, 'owner')
    return user_id


def login(client, email, password=PASSWORD):
    """Log a test client in through the JSON endpoint."""
    response = client.post('/auth/login', json={'email': email, 'password': password})
    assert response.status_code == 200, response.get_json()
    return response


@pytest.fixture
def client_session(client, client_user):
    """Test client logged in as client_user."""
    login(client, CLIENT_EMAIL)
    return client


@pytest.fixture
def owner_session(app, owner):
    """Separate test client logged in as the daycare owner."""
    session = app.test_client()
    login(session, OWNER_EMAIL)
    return session
