"""CLI command implementations.

Each module holds thin Typer command functions; ``dcsmax.cli`` registers them.
"""

from .call import call, status
from .host import serve, ui
from .paths import detect_paths, root

__all__ = [
    "call",
    "detect_paths",
    "root",
    "serve",
    "status",
    "ui",
]
