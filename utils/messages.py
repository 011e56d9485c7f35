"""
Centralized user-facing messages.
All caller-visible text in one place for consistency.
"""

MESSAGES = {
    # Success messages
    'login_success': 'Welcome {name}',
    'logout_success': 'Signed out',
    'booking_created': 'Booking request sent',
    'series_created': '{count} recurring bookings requested',
    'enrollment_created': 'Enrollment request sent',
    'booking_cancelled': 'Booking cancelled',
    'series_cancelled': '{count} upcoming bookings cancelled',
    'booking_rescheduled': 'Booking rescheduled, awaiting provider confirmation',
    'booking_confirmed': 'Booking confirmed',
    'booking_declined': 'Booking declined',
    'booking_completed': 'Booking marked as completed',
    'booking_no_show': 'Booking marked as no-show',
    'waitlist_joined': 'Added to the waitlist',
    'waitlist_left': 'Removed from the waitlist',
    'waitlist_updated': 'Waitlist entry updated',
    'waitlist_removed': 'Waitlist entry removed',
    'waitlist_notified': 'Client notified',

    # Error messages
    'invalid_credentials': 'Invalid email or password',
    'account_disabled': 'This account has been disabled',
    'permission_denied': 'You do not have permission for this action',
    'data_required': 'Request body is required',
    'field_required': '{field} is required',
    'invalid_id': 'Invalid {field}',
    'invalid_datetime': 'Invalid date/time',
    'naive_datetime': 'Date/time must include a timezone offset',
    'invalid_date': 'Invalid date, expected YYYY-MM-DD',
    'invalid_email': 'Valid email is required',
    'text_too_long': '{field} is too long',
    'invalid_recurrence': 'Invalid recurrence pattern',
    'series_too_long': 'A recurring booking can have at most {max} occurrences',
    'invalid_schedule': 'Please select a schedule',
    'invalid_filter': 'Invalid filter',
    'invalid_horizon': 'Number of days must be between 1 and {max}',
    'invalid_slot_width': 'Slot width must be a positive number of minutes',

    'provider_not_found': 'Provider not found or not available',
    'subject_not_found': '{subject} not found',
    'subject_required': 'Please select a {subject}',
    'booking_not_found': 'Booking not found',
    'series_not_found': 'No bookings found in this series',
    'entry_not_found': 'Waitlist entry not found',
    'enrollment_not_supported': 'This provider does not accept enrollment requests',

    'too_soon_booking': 'Please select a time at least {hours} hours in advance',
    'too_soon_cancel': (
        'Cancellations must be made at least {hours} hours in advance. '
        'Only {remaining} hours remaining.'
    ),
    'too_soon_series': (
        'Cannot cancel booking on {when} - less than {hours} hours away'
    ),
    'slot_taken': 'This time slot is no longer available',
    'series_slot_taken': (
        'Time slot on {when} is not available. Please choose a different time.'
    ),
    'invalid_transition': 'Cannot change booking from {current} to {target}',
    'cannot_reschedule': 'Booking cannot be rescheduled from status {current}',
    'too_many_requests': 'Too many requests. Please try again later.',

    'waitlist_duplicate': 'You are already on the waitlist for this provider',
    'waitlist_already_notified': 'Entry already notified',
    'waitlist_invalid_position': 'Position must be between 1 and {max}',
    'delivery_failed': 'State saved, but the notification could not be delivered',

    'internal_error': 'Something went wrong, please try again',
}
