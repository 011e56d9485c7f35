"""
Notification collaborator.

Fire-and-forget delivery of user-facing notices (booking confirmed,
reminders, waitlist spot available). Callers invoke notify() only after
their state change has committed; a delivery failure is reported in the
returned result and never rolls anything back.

The backend is pluggable per application:

    from utils.notifications import register_notifier

    def push_backend(recipient, template_kind, message, payload):
        ...  # raise DeliveryFailure on error

    register_notifier(app, push_backend)

The default backend stores an in-app notification row for recipients that
have an account and logs the email that an external mailer would send.
"""

import json
import logging
from typing import Optional, Union

from flask import current_app

from database import get_db
from utils.errors import DeliveryFailure

logger = logging.getLogger(__name__)

NOTIFICATION_TEMPLATES = {
    'booking_confirmed': {
        'title': 'Booking confirmed',
        'body': 'Your visit with {provider_name} on {when} is confirmed.',
    },
    'booking_declined': {
        'title': 'Booking declined',
        'body': '{provider_name} could not accept your request for {when}.',
    },
    'booking_reminder': {
        'title': 'Upcoming visit',
        'body': 'Reminder: your visit with {provider_name} is on {when}.',
    },
    'waitlist_spot_available': {
        'title': 'A spot is available!',
        'body': 'A spot is now available with {provider_name}. Book soon!',
    },
}


def register_notifier(app, backend) -> None:
    """Install a notification backend on the app."""
    app.extensions['notifier'] = backend


def render_template_kind(template_kind: str, payload: dict) -> dict:
    """Render title/body for a template kind."""
    template = NOTIFICATION_TEMPLATES.get(template_kind)
    if template is None:
        raise DeliveryFailure(f"Unknown notification template: {template_kind}")
    values = {'provider_name': 'your provider', 'when': ''}
    values.update(payload or {})
    return {
        'title': template['title'].format(**values),
        'body': template['body'].format(**values),
    }


def _lookup_user_id(recipient: Union[int, str]) -> Optional[int]:
    db = get_db()
    if isinstance(recipient, int):
        row = db.execute('SELECT id FROM users WHERE id = ?', (recipient,)).fetchone()
    else:
        row = db.execute('SELECT id FROM users WHERE email = ?', (recipient,)).fetchone()
    return row['id'] if row else None


def in_app_notifier(recipient, template_kind: str, message: dict, payload: dict) -> dict:
    """
    Default backend: in-app notification row plus a logged email.

    Returns:
        dict: {'channels': [...], 'notification_id': int or None}
    """
    channels = []
    notification_id = None

    user_id = _lookup_user_id(recipient)
    if user_id is not None:
        with get_db() as conn:
            cursor = conn.execute('''
                INSERT INTO notifications (user_id, type, title, body, data)
                VALUES (?, ?, ?, ?, ?)
            ''', (user_id, template_kind, message['title'], message['body'],
                  json.dumps(payload or {}, default=str)))
            notification_id = cursor.lastrowid
        channels.append('in_app')

    if isinstance(recipient, str):
        logger.info(f"Email queued to {recipient}: {message['title']}")
        channels.append('email')

    if not channels:
        raise DeliveryFailure(f"No delivery channel for recipient {recipient!r}")

    return {'channels': channels, 'notification_id': notification_id}


def notify(recipient: Union[int, str], template_kind: str, payload: dict = None) -> dict:
    """
    Deliver a notification without ever raising.

    Args:
        recipient: User ID or email address
        template_kind: Key of NOTIFICATION_TEMPLATES
        payload: Template values and extra data

    Returns:
        dict: {'delivered': True, ...backend result} or
              {'delivered': False, 'error': str}
    """
    backend = current_app.extensions.get('notifier', in_app_notifier)

    try:
        message = render_template_kind(template_kind, payload)
        result = backend(recipient, template_kind, message, payload or {}) or {}
    except Exception as e:
        # Delivery is best effort; the caller's committed state stands
        logger.warning(f"Notification '{template_kind}' to {recipient!r} failed: {e}")
        return {'delivered': False, 'error': str(e)}

    logger.debug(f"Notification '{template_kind}' delivered to {recipient!r}")
    return {'delivered': True, **result}
