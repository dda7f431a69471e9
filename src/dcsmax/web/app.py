"""FastAPI application factory for the DCS-Max web host.

Serves the built web UI and carries bridge envelopes over the ``/bridge``
WebSocket, one envelope per text message. ``index.html`` is served with a
script tag for ``/dcsmax-bridge.js`` injected, which defines the
``window.dcsMax`` object the UI calls.
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from importlib import resources
from pathlib import Path
from typing import Any

from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse, Response
from fastapi.staticfiles import StaticFiles

from dcsmax import __version__
from dcsmax.bridge.methods import BridgeHost
from dcsmax.core.logging import get_logger

_logger = get_logger("web.app")

BRIDGE_SCRIPT_PATH = "/dcsmax-bridge.js"
BRIDGE_SCRIPT_TAG = f'<script src="{BRIDGE_SCRIPT_PATH}"></script>'

_MISSING_UI_PAGE = """<!doctype html>
<html><head><title>DCS-Max</title>{tag}</head>
<body><h1>DCS-Max</h1>
<p>The web UI has not been built. Expected it in <code>{dist}</code>.</p>
</body></html>"""


def bridge_script() -> str:
    """The ``window.dcsMax`` shim shipped with the package."""
    return resources.files("dcsmax.web").joinpath("static/bridge.js").read_text(encoding="utf-8")


def inject_bridge(html: str) -> str:
    """Insert the bridge script tag so it runs before the UI bundle."""
    lowered = html.lower()
    for marker in ("<head>", "<body>"):
        index = lowered.find(marker)
        if index != -1:
            cut = index + len(marker)
            return html[:cut] + BRIDGE_SCRIPT_TAG + html[cut:]
    return BRIDGE_SCRIPT_TAG + html


def create_app(
    bridge: BridgeHost,
    dist_dir: Path | None = None,
    title: str = "DCS-Max",
    cors_origins: list[str] | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        bridge: Host serving the bridge methods; started and shut down with
            the application.
        dist_dir: Built web UI (``index.html`` plus assets). Optional.
        title: API title for OpenAPI docs.
        cors_origins: Allowed CORS origins (defaults to the Vite dev server).

    Returns:
        Configured FastAPI application
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        await bridge.start()
        yield
        await bridge.shutdown()

    app = FastAPI(
        title=title,
        version=__version__,
        description="Bridge between the DCS-Max web UI and its scripts",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins or ["http://localhost:5173", "http://127.0.0.1:5173"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/health", tags=["System"])
    async def health_check() -> dict[str, Any]:
        """Health check endpoint."""
        return {
            "status": "healthy",
            "version": __version__,
            "service": "dcs-max-host",
            "projectRoot": str(bridge.paths.root),
            "methods": len(bridge.handler.methods),
        }

    @app.get(BRIDGE_SCRIPT_PATH, include_in_schema=False)
    async def bridge_js() -> Response:
        return Response(content=bridge_script(), media_type="application/javascript")

    @app.websocket("/bridge")
    async def bridge_socket(websocket: WebSocket) -> None:
        await websocket.accept()
        outbox = bridge.outbox

        async def send(text: str) -> None:
            await websocket.send_text(text)

        outbox.attach(send)
        _logger.info("web.client_connected", client=str(websocket.client))
        try:
            while True:
                text = await websocket.receive_text()
                bridge.submit(text, transport="websocket")
        except WebSocketDisconnect:
            _logger.info("web.client_disconnected", client=str(websocket.client))
        finally:
            outbox.detach(send)

    index_file = dist_dir / "index.html" if dist_dir is not None else None

    @app.get("/", include_in_schema=False)
    @app.get("/index.html", include_in_schema=False)
    async def index() -> HTMLResponse:
        if index_file is None or not index_file.is_file():
            page = _MISSING_UI_PAGE.format(tag=BRIDGE_SCRIPT_TAG, dist=dist_dir)
            return HTMLResponse(page, status_code=404)
        return HTMLResponse(inject_bridge(index_file.read_text(encoding="utf-8")))

    if dist_dir is not None and dist_dir.is_dir():
        app.mount("/", StaticFiles(directory=dist_dir), name="ui")

    return app


__all__ = ["BRIDGE_SCRIPT_TAG", "bridge_script", "create_app", "inject_bridge"]
