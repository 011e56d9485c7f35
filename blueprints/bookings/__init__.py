"""
Bookings blueprint initialization.
Registers all booking-related JSON routes.

Individual route logic is in:
- routes/availability.py - Public slot grid
- routes/client.py - Client bookings (create, list, cancel, reschedule)
- routes/portal.py - Provider staff portal (confirm, decline, complete)
"""

from flask import Blueprint

bookings_bp = Blueprint('bookings', __name__)

from blueprints.bookings.routes import availability, client, portal

availability.register_routes(bookings_bp)
client.register_routes(bookings_bp)
portal.register_routes(bookings_bp)
