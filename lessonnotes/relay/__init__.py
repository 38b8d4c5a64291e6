"""ASR relay server bridging recorders to the upstream realtime API."""

from .bridge import RelayBridge, translate_upstream_event
from .server import create_app, is_origin_allowed, run_relay_server

__all__ = [
    "RelayBridge",
    "translate_upstream_event",
    "create_app",
    "is_origin_allowed",
    "run_relay_server",
]
