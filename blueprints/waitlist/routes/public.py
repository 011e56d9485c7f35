"""
Public waitlist API routes.
Clients join a provider's waitlist, check their place, and leave it.
"""

import logging
from flask import request
from flask_login import login_required, current_user

from models.waitlist import join, leave, get_waitlist_position, serialize_entry
from utils.api_response import api_success, api_error, api_booking_error
from utils.errors import BookingError
from utils.messages import MESSAGES

logger = logging.getLogger(__name__)


def register_routes(bp):
    """Register public waitlist routes on the blueprint."""

    @bp.route('/providers/<int:provider_id>/waitlist', methods=['POST'])
    def join_waitlist(provider_id):
        """
        Join a provider's waitlist.

        Request body:
            client_name: Name (required)
            client_email: Email (required)
            client_phone: Phone (optional)
            desired_date: YYYY-MM-DD (required)
            reason_for_visit: Reason (optional)
            notes: Notes (optional)

        Returns:
            JSON with the new entry and its position
        """
        data = request.get_json(silent=True)

        if not data:
            return api_error(MESSAGES['data_required'], 400, code='validation_error')

        try:
            entry = join({**data, 'provider_id': provider_id})
            return api_success(
                data=serialize_entry(entry),
                message=MESSAGES['waitlist_joined'],
                status=201
            )
        except BookingError as e:
            return api_booking_error(e)
        except Exception as e:
            logger.error(f"Error joining waitlist for provider {provider_id}: {e}")
            return api_error(MESSAGES['internal_error'], 500)

    @bp.route('/providers/<int:provider_id>/waitlist', methods=['DELETE'])
    @login_required
    def leave_waitlist(provider_id):
        """Remove the signed-in client's own entry."""
        try:
            entry = leave(provider_id, current_user.email)
            return api_success(
                data={'entry_id': entry['id']},
                message=MESSAGES['waitlist_left']
            )
        except BookingError as e:
            return api_booking_error(e)
        except Exception as e:
            logger.error(f"Error leaving waitlist for provider {provider_id}: {e}")
            return api_error(MESSAGES['internal_error'], 500)

    @bp.route('/providers/<int:provider_id>/waitlist/position', methods=['GET'])
    def waitlist_position(provider_id):
        """
        Get a client's place in line.

        Query params:
            email: Client email (defaults to the signed-in user's)
        """
        email = request.args.get('email')
        if not email and current_user.is_authenticated:
            email = current_user.email

        try:
            position = get_waitlist_position(provider_id, email)
            return api_success(data={
                'on_waitlist': position is not None,
                'position': position['position'] if position else None,
                'total': position['total'] if position else None,
            })
        except BookingError as e:
            return api_booking_error(e)
