"""aiohttp application serving the ASR relay."""

import logging
from datetime import datetime, timezone
from typing import Iterable, List, Optional

import aiohttp
from aiohttp import web

from .bridge import DEFAULT_UPSTREAM_URL, RelayBridge
from ..models.relay import RelayErrorMessage

logger = logging.getLogger(__name__)


DEFAULT_ALLOWED_HOSTS = ["mymusicstaff.com"]

API_KEY = web.AppKey("api_key", str)
UPSTREAM_URL = web.AppKey("upstream_url", str)
ALLOWED_HOSTS = web.AppKey("allowed_hosts", list)
HTTP_SESSION = web.AppKey("http_session", aiohttp.ClientSession)


def is_origin_allowed(origin: Optional[str], allowed_hosts: Iterable[str] = ()) -> bool:
    """Browser extensions, local development and configured hosts may connect."""
    if not origin:
        return True
    if origin.startswith(("chrome-extension://", "moz-extension://")):
        return True
    if "localhost" in origin or "127.0.0.1" in origin:
        return True
    return any(host in origin for host in allowed_hosts)


async def health(request: web.Request) -> web.Response:
    return web.json_response({"status": "ok", "timestamp": datetime.now(timezone.utc).isoformat()})


async def realtime(request: web.Request) -> web.StreamResponse:
    origin = request.headers.get("Origin")
    if not is_origin_allowed(origin, request.app[ALLOWED_HOSTS]):
        logger.warning(f"Origin rejected: {origin}")
        raise web.HTTPForbidden(reason="Origin not allowed")

    ws = web.WebSocketResponse()
    await ws.prepare(request)
    logger.info(f"New client connected from: {origin}")

    api_key = request.app[API_KEY]
    if not api_key:
        logger.error("Upstream API key not configured")
        await ws.send_str(RelayErrorMessage(message="Server configuration error - API key missing").model_dump_json())
        await ws.close()
        return ws

    bridge = RelayBridge(ws, request.app[HTTP_SESSION], api_key, request.app[UPSTREAM_URL])
    await bridge.run()
    return ws


async def _http_session_ctx(app: web.Application):
    app[HTTP_SESSION] = aiohttp.ClientSession()
    yield
    await app[HTTP_SESSION].close()


def create_app(api_key: Optional[str],
               upstream_url: str = DEFAULT_UPSTREAM_URL,
               allowed_hosts: Optional[List[str]] = None) -> web.Application:
    """Build the relay application.

    Args:
        api_key: Upstream API key; clients are refused with an error message when missing
        upstream_url: Upstream realtime WebSocket URL
        allowed_hosts: Extra origin substrings accepted besides extensions and localhost
    """
    app = web.Application()
    app[API_KEY] = api_key or ""
    app[UPSTREAM_URL] = upstream_url
    app[ALLOWED_HOSTS] = list(DEFAULT_ALLOWED_HOSTS if allowed_hosts is None else allowed_hosts)
    app.cleanup_ctx.append(_http_session_ctx)
    app.router.add_get("/health", health)
    app.router.add_get("/realtime", realtime)
    return app


def run_relay_server(api_key: Optional[str],
                     host: str = "0.0.0.0",
                     port: int = 3001,
                     upstream_url: str = DEFAULT_UPSTREAM_URL,
                     allowed_hosts: Optional[List[str]] = None) -> None:
    if not api_key:
        logger.warning("OPENAI_API_KEY is not set; clients will be refused")
    logger.info(f"ASR relay listening on ws://{host}:{port}/realtime")
    web.run_app(create_app(api_key, upstream_url, allowed_hosts), host=host, port=port, print=None)
