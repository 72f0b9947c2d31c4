"""Dashboard routes.

Route handlers organized by domain:
- status: Combined state snapshot
- loop: Loop start and stop
- documents: Allow-listed document read and write
- observers: WebSocket observer channel
"""

from .documents import routes as documents_routes
from .loop import routes as loop_routes
from .observers import routes as observer_routes
from .status import routes as status_routes

# Aggregate all routes
API_ROUTES = status_routes + loop_routes + documents_routes + observer_routes

__all__ = ["API_ROUTES"]
