"""
Route decorators for authentication and authorization.
Provides role-based access control for JSON routes.
"""

from functools import wraps
from flask_login import login_required, current_user

from utils.api_response import api_error
from utils.messages import MESSAGES


def role_required(*roles: str):
    """
    Decorator to require one of the given account roles.

    Usage:
        @bookings_bp.route('/portal/bookings')
        @login_required
        @role_required('PROVIDER', 'ADMIN')
        def portal_bookings():
            ...

    Args:
        roles: Accepted roles ('CLIENT', 'PROVIDER', 'ADMIN')

    Returns:
        Decorator function
    """
    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            if not current_user.is_authenticated or current_user.role not in roles:
                return api_error(MESSAGES['permission_denied'], 403, code='unauthorized')
            return func(*args, **kwargs)
        return wrapper
    return decorator


# Re-export login_required for convenience
__all__ = ['login_required', 'role_required']
