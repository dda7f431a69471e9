"""Native file and folder pickers.

Dialogs are modal and block, so they run in a worker thread with a hidden,
topmost Tk root that is destroyed afterwards.
"""

from __future__ import annotations

import asyncio

from dcsmax.core.logging import get_logger

_logger = get_logger("dialogs")

DEFAULT_FILE_TITLE = "Select File"
DEFAULT_FILE_FILTER = "All Files (*.*)|*.*"
DEFAULT_FOLDER_TITLE = "Select Folder"


def filter_to_filetypes(spec: str) -> list[tuple[str, str]]:
    """Convert a ``"Desc (*.x)|*.x;*.y|..."`` filter into Tk ``filetypes``.

    A trailing description without a pattern is dropped.
    """
    parts = spec.split("|")
    filetypes: list[tuple[str, str]] = []
    for i in range(0, len(parts) - 1, 2):
        description = parts[i].strip()
        patterns = " ".join(p.strip() for p in parts[i + 1].split(";") if p.strip())
        if description and patterns:
            filetypes.append((description, patterns))
    return filetypes or [("All Files", "*.*")]


def _ask(kind: str, title: str, filetypes: list[tuple[str, str]] | None) -> str:
    import tkinter
    from tkinter import filedialog

    root = tkinter.Tk()
    try:
        root.withdraw()
        root.attributes("-topmost", True)
        if kind == "file":
            chosen = filedialog.askopenfilename(
                parent=root, title=title, filetypes=filetypes or []
            )
        else:
            chosen = filedialog.askdirectory(parent=root, title=title, mustexist=False)
    finally:
        root.destroy()
    # Tk returns "" or () on cancel
    return chosen if isinstance(chosen, str) else ""


async def browse_for_file(title: str | None = None, filter_spec: str | None = None) -> str | None:
    """Ask for an existing file; None when cancelled."""
    filetypes = filter_to_filetypes(filter_spec or DEFAULT_FILE_FILTER)
    chosen = await asyncio.to_thread(_ask, "file", title or DEFAULT_FILE_TITLE, filetypes)
    _logger.debug("dialogs.file_chosen", cancelled=not chosen)
    return chosen or None


async def browse_for_folder(title: str | None = None) -> str | None:
    """Ask for a folder; None when cancelled."""
    chosen = await asyncio.to_thread(_ask, "folder", title or DEFAULT_FOLDER_TITLE, None)
    _logger.debug("dialogs.folder_chosen", cancelled=not chosen)
    return chosen or None


__all__ = [
    "DEFAULT_FILE_FILTER",
    "DEFAULT_FILE_TITLE",
    "DEFAULT_FOLDER_TITLE",
    "browse_for_file",
    "browse_for_folder",
    "filter_to_filetypes",
]
