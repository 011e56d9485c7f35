"""
Provider portal waitlist routes.
Owners and managers reorder, remove and notify waiting clients.
"""

import logging
from flask import request
from flask_login import login_required, current_user

from blueprints.bookings.routes.portal import get_portal_provider_id
from models.waitlist import (
    get_waitlist_for_provider,
    update_entry,
    remove,
    promote,
    promote_next,
    serialize_entry,
)
from utils.api_response import api_success, api_error, api_booking_error
from utils.decorators import role_required
from utils.errors import BookingError
from utils.messages import MESSAGES

logger = logging.getLogger(__name__)


def _promotion_response(result: dict):
    delivered = result['notification'].get('delivered', False)
    return api_success(
        data=serialize_entry(result['entry']),
        message=MESSAGES['waitlist_notified'],
        warning=None if delivered else MESSAGES['delivery_failed'],
        notification=result['notification']
    )


def register_routes(bp):
    """Register portal waitlist routes on the blueprint."""

    @bp.route('/portal/waitlist', methods=['GET'])
    @login_required
    @role_required('PROVIDER', 'ADMIN')
    def portal_waitlist():
        """
        Get the provider's waitlist.

        Returns:
            JSON with entries (active first, by position) and stats
        """
        try:
            provider_id = get_portal_provider_id()
            waitlist = get_waitlist_for_provider(provider_id)
            return api_success(
                data=[serialize_entry(e) for e in waitlist['entries']],
                stats=waitlist['stats']
            )
        except BookingError as e:
            return api_booking_error(e)
        except Exception as e:
            logger.error(f"Error listing waitlist: {e}")
            return api_error(MESSAGES['internal_error'], 500)

    @bp.route('/portal/waitlist/<int:entry_id>', methods=['PUT'])
    @login_required
    @role_required('PROVIDER', 'ADMIN')
    def portal_update_entry(entry_id):
        """
        Update an entry.

        Request body:
            position: New position in 1..N (optional)
            notes: Notes (optional)
        """
        data = request.get_json(silent=True)

        if not data:
            return api_error(MESSAGES['data_required'], 400, code='validation_error')

        try:
            entry = update_entry(
                current_user.id, entry_id,
                position=data.get('position'),
                notes=data.get('notes')
            )
            return api_success(data=serialize_entry(entry), message=MESSAGES['waitlist_updated'])
        except BookingError as e:
            return api_booking_error(e)
        except Exception as e:
            logger.error(f"Error updating waitlist entry {entry_id}: {e}")
            return api_error(MESSAGES['internal_error'], 500)

    @bp.route('/portal/waitlist/<int:entry_id>', methods=['DELETE'])
    @login_required
    @role_required('PROVIDER', 'ADMIN')
    def portal_remove_entry(entry_id):
        """Remove an entry; later entries move up."""
        try:
            remove(current_user.id, entry_id)
            return api_success(data={'entry_id': entry_id}, message=MESSAGES['waitlist_removed'])
        except BookingError as e:
            return api_booking_error(e)
        except Exception as e:
            logger.error(f"Error removing waitlist entry {entry_id}: {e}")
            return api_error(MESSAGES['internal_error'], 500)

    @bp.route('/portal/waitlist/<int:entry_id>/notify', methods=['POST'])
    @login_required
    @role_required('PROVIDER', 'ADMIN')
    def portal_notify_entry(entry_id):
        """Tell an entry a spot is available."""
        try:
            return _promotion_response(promote(current_user.id, entry_id))
        except BookingError as e:
            return api_booking_error(e)
        except Exception as e:
            logger.error(f"Error notifying waitlist entry {entry_id}: {e}")
            return api_error(MESSAGES['internal_error'], 500)

    @bp.route('/portal/waitlist/notify-next', methods=['POST'])
    @login_required
    @role_required('PROVIDER', 'ADMIN')
    def portal_notify_next():
        """Notify whoever is first in line."""
        try:
            provider_id = get_portal_provider_id()
            return _promotion_response(promote_next(current_user.id, provider_id))
        except BookingError as e:
            return api_booking_error(e)
        except Exception as e:
            logger.error(f"Error notifying next waitlist entry: {e}")
            return api_error(MESSAGES['internal_error'], 500)
