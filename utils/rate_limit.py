"""
Sliding-window rate limiting backed by the application database.

Buckets and their limits come from config RATE_LIMITS:

    RATE_LIMITS = {'booking': (10, 60), 'waitlist': (10, 3600)}

Usage:
    from utils.rate_limit import enforce_limit

    enforce_limit(f"user:{client_id}", 'booking')   # raises TooManyRequests
"""

import logging
import math
from datetime import datetime, timedelta
from typing import Optional, Tuple

from flask import current_app

from database import immediate_transaction
from utils.datetime_helpers import get_now, to_db, from_db
from utils.errors import TooManyRequests
from utils.messages import MESSAGES

logger = logging.getLogger(__name__)


def check_limit(actor_key: str, bucket: str, now: Optional[datetime] = None) -> Tuple[bool, int]:
    """
    Record one hit for actor_key in bucket if the window allows it.

    Args:
        actor_key: Who is acting (user id, email, IP)
        bucket: Bucket name from RATE_LIMITS
        now: Evaluation instant (defaults to get_now())

    Returns:
        tuple: (allowed, retry_after_seconds); retry_after is 0 when allowed
    """
    if not current_app.config.get('RATELIMIT_ENABLED', True):
        return True, 0

    limits = current_app.config.get('RATE_LIMITS', {})
    if bucket not in limits:
        logger.warning(f"Unknown rate limit bucket '{bucket}', allowing request")
        return True, 0

    max_requests, window_seconds = limits[bucket]
    now = now or get_now()
    window_start = to_db(now - timedelta(seconds=window_seconds))

    with immediate_transaction() as cursor:
        cursor.execute('''
            DELETE FROM rate_limit_events
            WHERE actor_key = ? AND bucket = ? AND created_at <= ?
        ''', (actor_key, bucket, window_start))

        cursor.execute('''
            SELECT COUNT(*) AS hits, MIN(created_at) AS oldest
            FROM rate_limit_events
            WHERE actor_key = ? AND bucket = ?
        ''', (actor_key, bucket))
        row = cursor.fetchone()

        if row['hits'] >= max_requests:
            oldest = from_db(row['oldest'])
            expires = oldest + timedelta(seconds=window_seconds)
            retry_after = max(1, math.ceil((expires - now).total_seconds()))
            return False, retry_after

        cursor.execute('''
            INSERT INTO rate_limit_events (actor_key, bucket, created_at)
            VALUES (?, ?, ?)
        ''', (actor_key, bucket, to_db(now)))

    return True, 0


def enforce_limit(actor_key: str, bucket: str, now: Optional[datetime] = None) -> None:
    """
    Check the limit and raise when denied.

    Raises:
        TooManyRequests: With retry_after seconds
    """
    allowed, retry_after = check_limit(actor_key, bucket, now)
    if not allowed:
        logger.warning(f"Rate limit hit: bucket={bucket} actor={actor_key} retry_after={retry_after}s")
        raise TooManyRequests(MESSAGES['too_many_requests'], retry_after=retry_after)
