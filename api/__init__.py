"""API Package.

FastAPI server for the order integration service.
"""

from api.server import create_app, app

__all__ = [
    "create_app",
    "app",
]
