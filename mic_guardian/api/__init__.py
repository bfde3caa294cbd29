"""REST API for Mic Guardian."""

from .controller import APIController
from .server import APIServer, create_app

__all__ = ["APIController", "APIServer", "create_app"]
