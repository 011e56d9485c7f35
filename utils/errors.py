"""
Typed booking errors.

Every expected failure of the scheduling engine is a BookingError subclass
carrying a stable machine code and an HTTP status. They subclass ValueError
so callers that only care about "invalid request" can keep catching
ValueError.

    Kind               code                 HTTP
    ValidationError    validation_error     400
    NotFound           not_found            404
    Unauthorized       unauthorized         403
    TooSoon            too_soon             409
    SlotTaken          slot_taken           409
    InvalidTransition  invalid_transition   409
    TooManyRequests    too_many_requests    429
    DeliveryFailure    delivery_failure     (reported as a warning)
"""


class BookingError(ValueError):
    """Base class for expected, user-facing scheduling failures."""

    code = 'booking_error'
    status = 400

    def __init__(self, message: str, **details):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict:
        """Serialize for API responses."""
        payload = {'code': self.code}
        payload.update(self.details)
        return payload


class ValidationError(BookingError):
    """Malformed input: bad id, missing field, unparseable timestamp."""

    code = 'validation_error'
    status = 400


class NotFound(BookingError):
    """Referenced record does not exist or is not visible to the caller."""

    code = 'not_found'
    status = 404


class Unauthorized(BookingError):
    """Caller lacks the role or ownership for the operation."""

    code = 'unauthorized'
    status = 403


class TooSoon(BookingError):
    """Requested time violates the lead-time policy."""

    code = 'too_soon'
    status = 409


class SlotTaken(BookingError):
    """Time conflict detected at write time."""

    code = 'slot_taken'
    status = 409


class InvalidTransition(BookingError):
    """Status change not reachable from the current status."""

    code = 'invalid_transition'
    status = 409


class TooManyRequests(BookingError):
    """Rate limit collaborator denied the action."""

    code = 'too_many_requests'
    status = 429

    def __init__(self, message: str, retry_after: int = 0, **details):
        super().__init__(message, retry_after=retry_after, **details)
        self.retry_after = retry_after


class DeliveryFailure(BookingError):
    """A downstream notification could not be delivered. Never rolls back state."""

    code = 'delivery_failure'
    status = 502
