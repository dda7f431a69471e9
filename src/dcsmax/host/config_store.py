"""INI / JSON config documents, directory listings and log reads.

All paths are resolved against the project root. These functions are
blocking; the bridge runs them in a worker thread.

Errors are raised as ``ConfigStoreError`` (messages meant for the UI) or
left as ``OSError`` whose text is forwarded as-is.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from dcsmax.core.errors import ConfigStoreError
from dcsmax.core.logging import get_logger
from dcsmax.core.paths import ProjectPaths

_logger = get_logger("config_store")

IniDocument = dict[str, dict[str, str]]


def parse_ini(content: str) -> IniDocument:
    """Parse INI text into ``{section: {key: value}}``.

    Lines are trimmed; blank lines and ``;`` / ``#`` comments are skipped.
    Keys outside any section are dropped, values stay raw strings, and a
    repeated key keeps its last value.
    """
    result: IniDocument = {}
    section = ""
    for line in content.split("\n"):
        stripped = line.strip()
        if not stripped or stripped.startswith((";", "#")):
            continue
        if stripped.startswith("[") and stripped.endswith("]"):
            section = stripped[1:-1]
            result.setdefault(section, {})
        elif "=" in stripped and section:
            key, value = stripped.split("=", 1)
            result[section][key.strip()] = value.strip()
    return result


def read_text_shared(path: Path) -> str:
    """Read a text file that another process may be writing.

    Python opens files with full sharing on Windows, so a plain read does
    not block (or get blocked by) the writing script.
    """
    with open(path, encoding="utf-8-sig", errors="replace", newline="") as f:
        return f.read()


class ConfigStore:
    """Reads and writes the documents the UI edits."""

    def __init__(self, paths: ProjectPaths) -> None:
        self._paths = paths

    def read_ini(self, path: str) -> dict[str, Any]:
        full = self._paths.resolve(path)
        content = read_text_shared(full)
        return {"content": content, "parsed": parse_ini(content)}

    def write_ini(self, path: str, content: str) -> None:
        full = self._paths.resolve(path)
        with open(full, "w", encoding="utf-8", newline="") as f:
            f.write(content)
        _logger.info("config_store.ini_written", path=str(full))

    def read_json(self, path: str) -> dict[str, Any]:
        """Return ``{content, data}`` for a JSON document.

        Raises:
            ConfigStoreError: If the file is missing or not valid JSON.
        """
        full = self._paths.resolve(path)
        if not full.is_file():
            raise ConfigStoreError(f"File not found: {full}")
        content = read_text_shared(full)
        try:
            data = json.loads(content)
        except json.JSONDecodeError as exc:
            raise ConfigStoreError(str(exc)) from exc
        return {"content": content, "data": data}

    def write_json(self, path: str, document: Any) -> None:
        """Write ``document`` pretty-printed.

        A ``str`` document is taken to be JSON text and re-indented.

        Raises:
            ConfigStoreError: If a string document is not valid JSON.
        """
        if isinstance(document, str):
            try:
                document = json.loads(document)
            except json.JSONDecodeError as exc:
                raise ConfigStoreError(str(exc)) from exc
        full = self._paths.resolve(path)
        with open(full, "w", encoding="utf-8", newline="") as f:
            json.dump(document, f, indent=2, ensure_ascii=False)
        _logger.info("config_store.json_written", path=str(full))

    def list_directory(self, path: str) -> dict[str, list[str]]:
        """Sorted file and directory names directly under ``path``.

        Raises:
            ConfigStoreError: If the directory does not exist.
        """
        full = self._paths.resolve(path)
        if not full.is_dir():
            raise ConfigStoreError(f"Directory not found: {full}")
        files: list[str] = []
        directories: list[str] = []
        for entry in full.iterdir():
            (directories if entry.is_dir() else files).append(entry.name)
        return {"files": sorted(files), "directories": sorted(directories)}

    def read_log(self, path: str) -> str:
        """Full log text; empty when the script has not created the log yet."""
        full = self._paths.resolve(path)
        full.parent.mkdir(parents=True, exist_ok=True)
        if not full.exists():
            return ""
        return read_text_shared(full)


__all__ = ["ConfigStore", "IniDocument", "parse_ini", "read_text_shared"]
