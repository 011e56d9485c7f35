"""
Client booking API routes.
Create, list, cancel and reschedule the signed-in client's bookings.
"""

import logging
from flask import request
from flask_login import login_required, current_user

from models.reservation import (
    create_booking,
    create_enrollment_request,
    get_reservation_by_id,
    get_client_reservations,
    get_series_reservations,
    cancel,
    cancel_series,
    reschedule,
    serialize_reservation,
)
from utils.api_response import api_success, api_error, api_booking_error
from utils.decorators import role_required
from utils.errors import BookingError
from utils.messages import MESSAGES

logger = logging.getLogger(__name__)


def register_routes(bp):
    """Register client booking routes on the blueprint."""

    @bp.route('/bookings', methods=['POST'])
    @login_required
    @role_required('CLIENT')
    def create():
        """
        Request a booking (single visit or recurring series).

        Request body:
            provider_id: Provider ID (required)
            scheduled_at: ISO-8601 instant with offset (required)
            subject_id: Child / family member ID (required for daycares)
            recurrence: NONE/WEEKLY/BIWEEKLY/MONTHLY (optional)
            recurrence_end_date: YYYY-MM-DD or ISO instant (optional)
            notes: Notes (optional)

        Returns:
            JSON with reservation IDs and series ID
        """
        data = request.get_json(silent=True)

        if not data:
            return api_error(MESSAGES['data_required'], 400, code='validation_error')

        try:
            result = create_booking(current_user.id, data)
            count = len(result['reservation_ids'])
            message = (MESSAGES['series_created'].format(count=count)
                       if result['series_id'] else MESSAGES['booking_created'])
            return api_success(
                data={
                    'reservation_ids': result['reservation_ids'],
                    'series_id': result['series_id'],
                    'reservations': [serialize_reservation(r) for r in result['reservations']],
                },
                message=message,
                status=201
            )
        except BookingError as e:
            return api_booking_error(e)
        except Exception as e:
            logger.error(f"Error creating booking: {e}")
            return api_error(MESSAGES['internal_error'], 500)

    @bp.route('/bookings/enrollments', methods=['POST'])
    @login_required
    @role_required('CLIENT')
    def create_enrollment():
        """
        Request enrollment at a daycare.

        Request body:
            provider_id, subject_id, desired_start_date (YYYY-MM-DD),
            schedule (full-time/part-time/before-after),
            program_id (optional), notes (optional)
        """
        data = request.get_json(silent=True)

        if not data:
            return api_error(MESSAGES['data_required'], 400, code='validation_error')

        try:
            reservation = create_enrollment_request(
                current_user.id,
                data.get('provider_id'),
                data.get('subject_id'),
                data.get('desired_start_date'),
                data.get('schedule'),
                program_id=data.get('program_id'),
                notes=data.get('notes')
            )
            return api_success(
                data=serialize_reservation(reservation),
                message=MESSAGES['enrollment_created'],
                status=201
            )
        except BookingError as e:
            return api_booking_error(e)
        except Exception as e:
            logger.error(f"Error creating enrollment request: {e}")
            return api_error(MESSAGES['internal_error'], 500)

    @bp.route('/bookings', methods=['GET'])
    @login_required
    @role_required('CLIENT')
    def list_bookings():
        """
        List the client's bookings.

        Query params:
            filter: upcoming (default) or past
        """
        try:
            reservations = get_client_reservations(
                current_user.id, request.args.get('filter', 'upcoming')
            )
            return api_success(
                data=[serialize_reservation(r) for r in reservations],
                count=len(reservations)
            )
        except BookingError as e:
            return api_booking_error(e)
        except Exception as e:
            logger.error(f"Error listing bookings: {e}")
            return api_error(MESSAGES['internal_error'], 500)

    @bp.route('/bookings/<int:reservation_id>', methods=['GET'])
    @login_required
    def get_booking(reservation_id):
        """Get single booking (client, provider staff or admin)."""
        try:
            reservation = get_reservation_by_id(reservation_id, current_user.id)
            return api_success(data=serialize_reservation(reservation))
        except BookingError as e:
            return api_booking_error(e)

    @bp.route('/bookings/<int:reservation_id>/cancel', methods=['POST'])
    @login_required
    @role_required('CLIENT')
    def cancel_booking(reservation_id):
        """
        Cancel a booking (at least 24 hours in advance).

        Request body:
            reason: Cancellation reason (optional)
        """
        data = request.get_json(silent=True) or {}

        try:
            reservation = cancel(current_user.id, reservation_id, data.get('reason'))
            return api_success(
                data=serialize_reservation(reservation),
                message=MESSAGES['booking_cancelled']
            )
        except BookingError as e:
            return api_booking_error(e)
        except Exception as e:
            logger.error(f"Error cancelling booking {reservation_id}: {e}")
            return api_error(MESSAGES['internal_error'], 500)

    @bp.route('/bookings/<int:reservation_id>/reschedule', methods=['POST'])
    @login_required
    @role_required('CLIENT')
    def reschedule_booking(reservation_id):
        """
        Move a booking to a new time.

        Request body:
            scheduled_at: New ISO-8601 instant with offset (required)
        """
        data = request.get_json(silent=True)

        if not data:
            return api_error(MESSAGES['data_required'], 400, code='validation_error')

        try:
            reservation = reschedule(current_user.id, reservation_id, data.get('scheduled_at'))
            return api_success(
                data=serialize_reservation(reservation),
                message=MESSAGES['booking_rescheduled']
            )
        except BookingError as e:
            return api_booking_error(e)
        except Exception as e:
            logger.error(f"Error rescheduling booking {reservation_id}: {e}")
            return api_error(MESSAGES['internal_error'], 500)

    @bp.route('/bookings/series/<series_id>', methods=['GET'])
    @login_required
    @role_required('CLIENT')
    def get_series(series_id):
        """List every booking of one of the client's series."""
        try:
            reservations = get_series_reservations(current_user.id, series_id)
            return api_success(
                data=[serialize_reservation(r) for r in reservations],
                count=len(reservations)
            )
        except BookingError as e:
            return api_booking_error(e)

    @bp.route('/bookings/series/<series_id>/cancel', methods=['POST'])
    @login_required
    @role_required('CLIENT')
    def cancel_booking_series(series_id):
        """
        Cancel all upcoming bookings of a series, or none.

        Request body:
            reason: Cancellation reason (optional)
        """
        data = request.get_json(silent=True) or {}

        try:
            count = cancel_series(current_user.id, series_id, data.get('reason'))
            return api_success(
                data={'series_id': series_id, 'cancelled_count': count},
                message=MESSAGES['series_cancelled'].format(count=count)
            )
        except BookingError as e:
            return api_booking_error(e)
        except Exception as e:
            logger.error(f"Error cancelling series {series_id}: {e}")
            return api_error(MESSAGES['internal_error'], 500)
