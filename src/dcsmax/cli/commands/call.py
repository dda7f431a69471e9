"""Client commands: ``dcsmax call`` and ``dcsmax status``.

Talk to a running ``dcsmax serve`` over its NDJSON port.
"""

from __future__ import annotations

import asyncio
import json
from typing import Any

import typer

from dcsmax.bridge.client import BridgeClient
from dcsmax.bridge.protocol import FIRE_AND_FORGET
from dcsmax.core.errors import BridgeNotRunningError

from ..helpers import bootstrap, parse_cli_arg
from ..output import console, print_envelope


def _exit_code(message: dict[str, Any] | None) -> int:
    """0 for a successful response or a zero-code scriptComplete."""
    if not message:
        return 0
    if message.get("event") == "scriptComplete":
        return 0 if (message.get("data") or {}).get("code") == 0 else 1
    result = message.get("result")
    if isinstance(result, dict) and result.get("success") is False:
        return 1
    return 0


async def _follow(client: BridgeClient, method: str, args: list[Any]) -> int:
    last: dict[str, Any] | None = None
    async for message in client.follow(method, *args):
        print_envelope(message)
        last = message
    return _exit_code(last)


def call(
    method: str = typer.Argument(..., help="Bridge method, e.g. readIniConfig"),
    args: list[str] | None = typer.Argument(
        None,
        help="Arguments; each is parsed as JSON, falling back to a plain string",
    ),
    follow: bool = typer.Option(
        False,
        "--follow",
        "-f",
        help="Keep printing events until the script completes",
    ),
    host: str | None = typer.Option(None, "--host", help="Bridge address (default from config)"),
    port: int | None = typer.Option(None, "--port", "-p", help="Bridge port (default from config)"),
    timeout: float = typer.Option(60.0, "--timeout", help="Seconds to wait for the response"),
) -> None:
    """Invoke one bridge method on a running bridge.

    Examples:
        dcsmax call getProjectRoot
        dcsmax call readIniConfig 2-Performance/settings.ini
        dcsmax call executeScriptStream 2-Performance/run.ps1 '["-Quick"]' --follow
    """
    config = bootstrap(console)
    client = BridgeClient(
        host or config.bridge.host,
        config.bridge.port if port is None else port,
        timeout=timeout,
    )
    decoded = [parse_cli_arg(raw) for raw in args or []]

    try:
        if follow:
            code = asyncio.run(_follow(client, method, decoded))
        elif method in FIRE_AND_FORGET:
            asyncio.run(client.notify(method, *decoded))
            console.print(f"[dim]Sent {method}[/dim]")
            code = 0
        else:
            result = asyncio.run(client.call(method, *decoded, on_event=print_envelope))
            console.print_json(json.dumps(result))
            code = _exit_code({"result": result})
    except BridgeNotRunningError as e:
        console.print(f"[red]Error:[/red] {e}")
        console.print("[dim]Start the bridge with: dcsmax serve[/dim]")
        raise typer.Exit(1) from None
    except TimeoutError:
        console.print(f"[red]Error:[/red] no response to {method} within {timeout:g}s")
        raise typer.Exit(1) from None
    except KeyboardInterrupt:
        code = 130

    if code:
        raise typer.Exit(code)


def status(
    host: str | None = typer.Option(None, "--host", help="Bridge address (default from config)"),
    port: int | None = typer.Option(None, "--port", "-p", help="Bridge port (default from config)"),
) -> None:
    """Check whether a bridge is listening."""
    config = bootstrap(console)
    bind_host = host or config.bridge.host
    bind_port = config.bridge.port if port is None else port
    client = BridgeClient(bind_host, bind_port)
    if asyncio.run(client.is_running()):
        console.print(f"[green]Bridge running[/green] on {bind_host}:{bind_port}")
        return
    console.print(f"[yellow]Bridge not running[/yellow] on {bind_host}:{bind_port}")
    raise typer.Exit(1)
