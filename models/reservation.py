"""
Reservation data access functions.

This module re-exports the reservation functions from the split modules:
- reservation_state.py: Policy, status transitions, cancellation, reminders
- reservation_crud.py: Booking creation and rescheduling
- reservation_queries.py: Listing and lookup
- reservation_availability.py: Conflict guard and slot grid
"""

# State management
from .reservation_state import (
    # Constants
    LEAD_TIME_HOURS,
    ACTIVE_STATUSES,
    VALID_TRANSITIONS,
    # Policy
    validate_transition,
    can_cancel,
    is_valid_booking_time,
    # Client transitions
    cancel,
    cancel_series,
    # Provider transitions
    confirm_reservation,
    decline_reservation,
    mark_completed,
    mark_no_show,
    # Reminders
    send_upcoming_reminders,
)

# CRUD operations
from .reservation_crud import (
    ENROLLMENT_SCHEDULES,
    create_single,
    create_series,
    create_booking,
    create_enrollment_request,
    reschedule,
)

# Queries
from .reservation_queries import (
    serialize_reservation,
    get_reservation_by_id,
    get_client_reservations,
    get_series_reservations,
    get_provider_reservations,
    get_provider_reservation_stats,
)

# Availability
from .reservation_availability import (
    CONFLICT_WINDOW_MINUTES,
    has_conflict,
    check_time_slot_conflict,
    find_series_conflicts,
    get_available_slots,
)

__all__ = [
    'LEAD_TIME_HOURS', 'ACTIVE_STATUSES', 'VALID_TRANSITIONS',
    'validate_transition', 'can_cancel', 'is_valid_booking_time',
    'cancel', 'cancel_series',
    'confirm_reservation', 'decline_reservation', 'mark_completed', 'mark_no_show',
    'send_upcoming_reminders',
    'ENROLLMENT_SCHEDULES', 'create_single', 'create_series', 'create_booking',
    'create_enrollment_request', 'reschedule',
    'serialize_reservation', 'get_reservation_by_id', 'get_client_reservations',
    'get_series_reservations', 'get_provider_reservations', 'get_provider_reservation_stats',
    'CONFLICT_WINDOW_MINUTES', 'has_conflict', 'check_time_slot_conflict',
    'find_series_conflicts', 'get_available_slots',
]
