"""Web host: serves the UI and the bridge over a WebSocket."""

from dcsmax.web.app import create_app

__all__ = ["create_app"]
