"""
Waitlist route modules.
Each module exposes register_routes(bp).
"""
