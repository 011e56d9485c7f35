"""
Waitlist blueprint initialization.

Individual route logic is in:
- routes/public.py - Join, leave and position lookup for clients
- routes/portal.py - Staff management (reorder, remove, notify)
"""

from flask import Blueprint

waitlist_bp = Blueprint('waitlist', __name__)

from blueprints.waitlist.routes import public, portal

public.register_routes(waitlist_bp)
portal.register_routes(waitlist_bp)
