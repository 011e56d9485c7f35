"""
Availability API routes.
Public slot grid for booking pickers.
"""

import logging
from flask import request, current_app

from models.reservation import get_available_slots
from utils.api_response import api_success, api_error, api_booking_error
from utils.availability import serialize_availability
from utils.errors import BookingError, ValidationError
from utils.messages import MESSAGES

logger = logging.getLogger(__name__)


def register_routes(bp):
    """Register availability routes on the blueprint."""

    @bp.route('/providers/<int:provider_id>/availability', methods=['GET'])
    def provider_availability(provider_id):
        """
        Get bookable slots for a provider.

        Query params:
            days: Number of days from today (default 14, max 60)

        Returns:
            JSON with provider summary and a per-day slot grid
        """
        try:
            days = request.args.get('days', current_app.config.get('AVAILABILITY_DEFAULT_DAYS', 14))
            try:
                days = int(days)
            except (TypeError, ValueError):
                raise ValidationError(
                    MESSAGES['invalid_horizon'].format(max=current_app.config.get('AVAILABILITY_MAX_DAYS', 60)),
                    field='days'
                )

            result = get_available_slots(provider_id, days_ahead=days)
            provider = result['provider']
            return api_success(data={
                'provider': {
                    'id': provider['id'],
                    'name': provider['name'],
                    'kind': provider['kind'],
                    'opening_time': provider['opening_time'],
                    'closing_time': provider['closing_time'],
                    'operating_days': provider['operating_days'],
                },
                'timezone': result['timezone'],
                'days': serialize_availability(result['days']),
            })
        except BookingError as e:
            return api_booking_error(e)
        except Exception as e:
            logger.error(f"Error computing availability for provider {provider_id}: {e}")
            return api_error(MESSAGES['internal_error'], 500)
