"""
API package - FastAPI routes and schemas.
"""

from stepgraph.api.routes import graph, websocket

__all__ = ["graph", "websocket"]
