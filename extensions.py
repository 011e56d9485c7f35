"""
Shared Flask extensions.
Created unbound here and attached to the app in app.initialize_extensions().
"""

from flask_login import LoginManager
from flask_wtf.csrf import CSRFProtect

# Session authentication (JSON API, no login page to redirect to)
login_manager = LoginManager()
login_manager.session_protection = 'basic'

# CSRF protection for every state-changing request
csrf = CSRFProtect()


@login_manager.user_loader
def load_user(user_id):
    """
    Rebuild the session user for Flask-Login.

    Inactive or deleted accounts yield None, which logs the session out.
    """
    from models.user import get_user_by_id, User

    user_dict = get_user_by_id(int(user_id))
    if not user_dict or not user_dict.get('active'):
        return None
    return User(user_dict)


@login_manager.unauthorized_handler
def unauthorized():
    """JSON 401 instead of a redirect to a login page."""
    from utils.api_response import api_error
    return api_error('Authentication required', 401, code='unauthenticated')
