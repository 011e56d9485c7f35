"""
Provider portal booking routes.
Staff review and act on their provider's booking requests.
"""

import logging
from flask import request
from flask_login import login_required, current_user

from models.provider import get_staff_provider_id
from models.reservation import (
    get_provider_reservations,
    get_provider_reservation_stats,
    confirm_reservation,
    decline_reservation,
    mark_completed,
    mark_no_show,
    serialize_reservation,
)
from utils.api_response import api_success, api_error, api_booking_error
from utils.decorators import role_required
from utils.errors import BookingError, Unauthorized
from utils.messages import MESSAGES
from utils.validators import parse_id

logger = logging.getLogger(__name__)


def get_portal_provider_id() -> int:
    """
    Provider the signed-in staff member works for.

    Admins may pass ?provider_id= to act on any provider.

    Raises:
        Unauthorized: User is not attached to a provider
    """
    if current_user.is_admin and request.args.get('provider_id'):
        return parse_id(request.args.get('provider_id'), 'provider_id')
    provider_id = get_staff_provider_id(current_user.id)
    if provider_id is None:
        raise Unauthorized(MESSAGES['permission_denied'])
    return provider_id


def _delivery_warning(result: dict):
    notification = result.get('notification') or {}
    return None if notification.get('delivered', True) else MESSAGES['delivery_failed']


def register_routes(bp):
    """Register portal booking routes on the blueprint."""

    @bp.route('/portal/bookings', methods=['GET'])
    @login_required
    @role_required('PROVIDER', 'ADMIN')
    def portal_list():
        """
        List the provider's bookings.

        Query params:
            filter: pending (default), confirmed or past
        """
        try:
            provider_id = get_portal_provider_id()
            reservations = get_provider_reservations(provider_id, request.args.get('filter', 'pending'))
            return api_success(
                data=[serialize_reservation(r) for r in reservations],
                count=len(reservations)
            )
        except BookingError as e:
            return api_booking_error(e)
        except Exception as e:
            logger.error(f"Error listing portal bookings: {e}")
            return api_error(MESSAGES['internal_error'], 500)

    @bp.route('/portal/bookings/stats', methods=['GET'])
    @login_required
    @role_required('PROVIDER', 'ADMIN')
    def portal_stats():
        """Dashboard counters for the provider."""
        try:
            provider_id = get_portal_provider_id()
            return api_success(data=get_provider_reservation_stats(provider_id))
        except BookingError as e:
            return api_booking_error(e)

    @bp.route('/portal/bookings/<int:reservation_id>/confirm', methods=['POST'])
    @login_required
    @role_required('PROVIDER', 'ADMIN')
    def portal_confirm(reservation_id):
        """Confirm a pending booking and notify the client."""
        try:
            result = confirm_reservation(current_user.id, reservation_id)
            return api_success(
                data=serialize_reservation(result['reservation']),
                message=MESSAGES['booking_confirmed'],
                warning=_delivery_warning(result),
                notification=result['notification']
            )
        except BookingError as e:
            return api_booking_error(e)
        except Exception as e:
            logger.error(f"Error confirming booking {reservation_id}: {e}")
            return api_error(MESSAGES['internal_error'], 500)

    @bp.route('/portal/bookings/<int:reservation_id>/decline', methods=['POST'])
    @login_required
    @role_required('PROVIDER', 'ADMIN')
    def portal_decline(reservation_id):
        """
        Decline a booking.

        Request body:
            reason: Reason shown to the client (optional)
        """
        data = request.get_json(silent=True) or {}

        try:
            result = decline_reservation(current_user.id, reservation_id, data.get('reason'))
            return api_success(
                data=serialize_reservation(result['reservation']),
                message=MESSAGES['booking_declined'],
                warning=_delivery_warning(result),
                notification=result['notification']
            )
        except BookingError as e:
            return api_booking_error(e)
        except Exception as e:
            logger.error(f"Error declining booking {reservation_id}: {e}")
            return api_error(MESSAGES['internal_error'], 500)

    @bp.route('/portal/bookings/<int:reservation_id>/complete', methods=['POST'])
    @login_required
    @role_required('PROVIDER', 'ADMIN')
    def portal_complete(reservation_id):
        """Mark a confirmed booking as completed."""
        try:
            reservation = mark_completed(current_user.id, reservation_id)
            return api_success(
                data=serialize_reservation(reservation),
                message=MESSAGES['booking_completed']
            )
        except BookingError as e:
            return api_booking_error(e)
        except Exception as e:
            logger.error(f"Error completing booking {reservation_id}: {e}")
            return api_error(MESSAGES['internal_error'], 500)

    @bp.route('/portal/bookings/<int:reservation_id>/no-show', methods=['POST'])
    @login_required
    @role_required('PROVIDER', 'ADMIN')
    def portal_no_show(reservation_id):
        """Mark a confirmed booking as a no-show."""
        try:
            reservation = mark_no_show(current_user.id, reservation_id)
            return api_success(
                data=serialize_reservation(reservation),
                message=MESSAGES['booking_no_show']
            )
        except BookingError as e:
            return api_booking_error(e)
        except Exception as e:
            logger.error(f"Error marking no-show for booking {reservation_id}: {e}")
            return api_error(MESSAGES['internal_error'], 500)
