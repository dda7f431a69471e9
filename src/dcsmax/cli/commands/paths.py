"""Local inspection commands: ``dcsmax root`` and ``dcsmax detect-paths``."""

from __future__ import annotations

import json

import typer

from ..helpers import bootstrap
from ..output import console, paths_table
from .host import resolve_paths


def root() -> None:
    """Print the resolved project root."""
    config = bootstrap(console)
    console.print(str(resolve_paths(config).root), markup=False, highlight=False, soft_wrap=True)


def detect_paths(
    as_json: bool = typer.Option(False, "--json", help="Print raw JSON instead of a table"),
) -> None:
    """Look for DCS, VR software and related tools on this machine."""
    from dcsmax.host.probe import detect_paths as probe_paths

    bootstrap(console)
    results = probe_paths()
    if as_json:
        console.print_json(json.dumps(results))
        return
    console.print(paths_table(results))
