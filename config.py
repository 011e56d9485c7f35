"""
CareBook configuration.
One class per environment; create_app() picks one by name.
"""

import os
from datetime import timedelta


class Config:
    """Settings shared by every environment."""

    SECRET_KEY = os.environ.get('SECRET_KEY') or 'dev-secret-key-change-in-production'

    # SQLite storage
    DATABASE_PATH = os.environ.get('DATABASE_PATH') or 'instance/carebook.db'
    # Seconds a writer waits for the SQLite write lock before giving up
    DATABASE_TIMEOUT = float(os.environ.get('DATABASE_TIMEOUT', 10))

    # Sessions and CSRF
    WTF_CSRF_ENABLED = True
    WTF_CSRF_TIME_LIMIT = 3600
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = 'Lax'
    SESSION_COOKIE_SECURE = False
    PERMANENT_SESSION_LIFETIME = timedelta(
        hours=int(os.environ.get('SESSION_TIMEOUT_HOURS', 8))
    )

    # Fallback for providers without their own timezone
    TIMEZONE = os.environ.get('TIMEZONE', 'America/Los_Angeles')

    # Rate limiting: bucket -> (requests, window seconds)
    RATELIMIT_ENABLED = os.environ.get('RATELIMIT_ENABLED', 'true').lower() == 'true'
    RATE_LIMITS = {
        'booking': (10, 60),
        'waitlist': (10, 60 * 60),
    }

    # Availability picker
    AVAILABILITY_DEFAULT_DAYS = 14
    AVAILABILITY_MAX_DAYS = 60

    APP_NAME = 'CareBook'
    APP_VERSION = '1.0.0'


class DevelopmentConfig(Config):
    """Local development."""

    DEBUG = True
    TESTING = False
    WTF_CSRF_SSL_STRICT = False


class ProductionConfig(Config):
    """Production behind gunicorn."""

    DEBUG = False
    TESTING = False
    SESSION_COOKIE_SECURE = os.environ.get('SESSION_COOKIE_SECURE', 'true').lower() == 'true'
    WTF_CSRF_SSL_STRICT = SESSION_COOKIE_SECURE
    PREFERRED_URL_SCHEME = 'https' if SESSION_COOKIE_SECURE else 'http'

    @classmethod
    def validate(cls) -> None:
        """
        Refuse to start with development defaults.

        Raises:
            ValueError: If SECRET_KEY or DATABASE_PATH is missing or weak
        """
        secret_key = os.environ.get('SECRET_KEY')
        if not secret_key:
            raise ValueError("SECRET_KEY environment variable must be set in production")
        if len(secret_key) < 32:
            raise ValueError("SECRET_KEY must be at least 32 characters in production")
        if not os.environ.get('DATABASE_PATH'):
            raise ValueError("DATABASE_PATH environment variable must be set in production")


class TestConfig(Config):
    """Test runs (pytest)."""

    TESTING = True
    DEBUG = True
    WTF_CSRF_ENABLED = False
    RATELIMIT_ENABLED = False
    DATABASE_PATH = os.environ.get('DATABASE_PATH', ':memory:')
    DATABASE_TIMEOUT = 5.0
    SECRET_KEY = 'test-secret-key'


config = {
    'development': DevelopmentConfig,
    'production': ProductionConfig,
    'test': TestConfig,
    'default': DevelopmentConfig
}
