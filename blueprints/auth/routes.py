"""
Authentication routes: login, logout, current user.
Session-based authentication with Flask-Login, JSON in and out.
"""

import logging

from flask import Blueprint
from flask_login import login_user, logout_user, login_required, current_user
from flask_wtf.csrf import generate_csrf

from blueprints.auth.forms import LoginForm
from models.user import User, get_user_by_email, update_last_login, check_password
from utils.api_response import api_success, api_error
from utils.messages import MESSAGES

logger = logging.getLogger(__name__)

auth_bp = Blueprint('auth', __name__)


@auth_bp.route('/csrf-token')
def csrf_token():
    """Issue a CSRF token for the X-CSRFToken header of later writes."""
    return api_success(data={'csrf_token': generate_csrf()})


@auth_bp.route('/login', methods=['POST'])
def login():
    """
    Log in with email and password.

    Request body:
        {"email": "...", "password": "...", "remember_me": false}
    """
    form = LoginForm()

    if not form.validate_on_submit():
        errors = {field: messages[0] for field, messages in form.errors.items()}
        return api_error(MESSAGES['data_required'], 400, code='validation_error', fields=errors)

    user_dict = get_user_by_email(form.email.data.strip())

    # Check credentials
    if user_dict is None or not check_password(user_dict, form.password.data):
        logger.info(f"Failed login for {form.email.data!r}")
        return api_error(MESSAGES['invalid_credentials'], 401, code='invalid_credentials')

    # Check if user is active
    if not user_dict.get('active'):
        return api_error(MESSAGES['account_disabled'], 403, code='account_disabled')

    user = User(user_dict)
    login_user(user, remember=form.remember_me.data)
    update_last_login(user.id)
    logger.info(f"User {user.id} logged in")

    return api_success(
        data=user.to_dict(),
        message=MESSAGES['login_success'].format(name=user.full_name)
    )


@auth_bp.route('/logout', methods=['POST'])
@login_required
def logout():
    """Logout current user."""
    logout_user()
    return api_success(message=MESSAGES['logout_success'])


@auth_bp.route('/me')
@login_required
def me():
    """Current user profile."""
    return api_success(data=current_user.to_dict())
