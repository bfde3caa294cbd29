"""
API route modules.

- system: Health and status
- sessions: Recorded session history
- monitoring: Start/stop monitoring
"""

from .system import setup_system_routes
from .sessions import setup_session_routes
from .monitoring import setup_monitoring_routes


def setup_all_routes(app, controller):
    """Register all API routes with the application."""
    setup_system_routes(app, controller)
    setup_session_routes(app, controller)
    setup_monitoring_routes(app, controller)


__all__ = ["setup_all_routes"]
