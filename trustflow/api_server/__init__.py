"""HTTP API over a running simulation."""

from trustflow.api_server.server import create_app

__all__ = ["create_app"]
