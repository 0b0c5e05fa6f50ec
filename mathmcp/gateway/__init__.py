# Gateway
# HTTP routes, CORS and the WebSocket receive loop
# Session logic lives in mathmcp.session; the gateway only routes to it

from mathmcp.gateway.handler import WebSocketHandler
from mathmcp.gateway.app import app, create_app, CORS_HEADERS

__all__ = ["WebSocketHandler", "app", "create_app", "CORS_HEADERS"]
