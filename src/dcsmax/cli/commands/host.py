"""Host commands: ``dcsmax serve`` and ``dcsmax ui``.

Both build a ``BridgeHost`` for the resolved project root. ``serve`` puts it
behind the NDJSON TCP server; ``ui`` behind the FastAPI app that also serves
the built web UI.
"""

from __future__ import annotations

import asyncio
import threading
import webbrowser
from pathlib import Path

import typer

from dcsmax.core.config import HostConfig
from dcsmax.core.errors import ProjectRootError
from dcsmax.core.paths import ProjectPaths

from ..helpers import bootstrap
from ..output import console


def resolve_paths(config: HostConfig) -> ProjectPaths:
    """Project paths for ``config``, exiting on an unusable root."""
    try:
        return ProjectPaths.from_config(config)
    except ProjectRootError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from None


# =============================================================================
# serve command
# =============================================================================


async def _serve(config: HostConfig, paths: ProjectPaths, host: str, port: int) -> None:
    from dcsmax.bridge.methods import BridgeHost
    from dcsmax.bridge.server import BridgeServer

    bridge = BridgeHost(config, paths)
    server = BridgeServer(
        bridge,
        host=host,
        port=port,
        max_message_bytes=config.bridge.max_message_bytes,
    )
    await bridge.start()
    try:
        await server.start()
        console.print(
            f"[green]Bridge listening on {host}:{server.port}[/green] "
            f"[dim](project root: {paths.root})[/dim]"
        )
        await server.serve_forever()
    finally:
        await server.stop()
        await bridge.shutdown()


def serve(
    host: str | None = typer.Option(None, "--host", help="Address to bind (default from config)"),
    port: int | None = typer.Option(None, "--port", "-p", help="TCP port (0 picks a free one)"),
) -> None:
    """Run the bridge as an NDJSON server on a TCP port.

    Examples:
        dcsmax serve                 # 127.0.0.1:47815
        dcsmax serve --port 0        # any free port
    """
    config = bootstrap(console)
    paths = resolve_paths(config)
    bind_host = host or config.bridge.host
    bind_port = config.bridge.port if port is None else port
    try:
        asyncio.run(_serve(config, paths, bind_host, bind_port))
    except KeyboardInterrupt:
        console.print("[dim]Bridge stopped[/dim]")
    except OSError as e:
        console.print(f"[red]Error:[/red] cannot listen on {bind_host}:{bind_port}: {e}")
        raise typer.Exit(1) from None


# =============================================================================
# ui command
# =============================================================================


def ui(
    host: str | None = typer.Option(None, "--host", help="Address to bind (default from config)"),
    port: int | None = typer.Option(None, "--port", "-p", help="HTTP port"),
    dist: Path | None = typer.Option(
        None,
        "--dist",
        help="Built web UI directory (defaults to web.dist_dir from config)",
    ),
    no_browser: bool = typer.Option(False, "--no-browser", help="Do not open a browser"),
) -> None:
    """Serve the web UI with the bridge on a WebSocket.

    Examples:
        dcsmax ui                       # http://127.0.0.1:47816/
        dcsmax ui --dist ./ui-app/dist  # explicit build directory
    """
    import uvicorn

    from dcsmax.bridge.methods import BridgeHost
    from dcsmax.web import create_app

    config = bootstrap(console)
    paths = resolve_paths(config)
    bind_host = host or config.web.host
    bind_port = config.web.port if port is None else port
    dist_dir = paths.resolve(dist or config.web.dist_dir)
    if not dist_dir.is_dir():
        console.print(f"[yellow]Warning:[/yellow] web UI not built ({dist_dir} is missing)")

    app = create_app(BridgeHost(config, paths), dist_dir=dist_dir)
    url = f"http://{bind_host}:{bind_port}/"
    console.print(f"[green]DCS-Max UI at {url}[/green] [dim](project root: {paths.root})[/dim]")
    if config.web.open_browser and not no_browser:
        threading.Timer(1.0, webbrowser.open, args=[url]).start()

    uvicorn.run(app, host=bind_host, port=bind_port, log_level=config.log_level.lower())
