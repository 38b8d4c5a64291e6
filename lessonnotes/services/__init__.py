"""Services layer for lesson notes recording."""

from .backend_factory import BackendFactory
from .session_controller import SessionController

__all__ = [
    "BackendFactory",
    "SessionController",
]
