"""Project root resolution.

The DCS-Max scripts live in numbered folders next to a ``Backups``
directory. The host may be started from the checkout itself or from a
nested build folder, so the root is found by climbing a few parents looking
for the marker directory.
"""

from __future__ import annotations

from pathlib import Path

from dcsmax.core.config import HostConfig
from dcsmax.core.errors import ProjectRootError
from dcsmax.core.logging import get_logger

_logger = get_logger("paths")


def find_project_root(start: Path, marker: str = "Backups", depth: int = 2) -> Path:
    """Return the first of ``start`` and its ``depth`` parents holding ``marker``.

    Falls back to ``start`` when none of them do.
    """
    start = start.resolve()
    candidate = start
    for _ in range(depth + 1):
        if (candidate / marker).is_dir():
            return candidate
        if candidate.parent == candidate:
            break
        candidate = candidate.parent
    return start


class ProjectPaths:
    """Resolved project root plus root-relative path joining."""

    def __init__(self, root: Path) -> None:
        self.root = root

    @classmethod
    def from_config(cls, config: HostConfig, start: Path | None = None) -> ProjectPaths:
        """Resolve the root from config, or by probing from ``start`` (default: cwd).

        Raises:
            ProjectRootError: If an explicitly configured root does not exist.
        """
        if config.project_root is not None:
            root = config.project_root.expanduser().resolve()
            if not root.is_dir():
                raise ProjectRootError(f"Project root does not exist: {root}")
            _logger.debug("paths.root_configured", root=str(root))
            return cls(root)

        root = find_project_root(
            start if start is not None else Path.cwd(),
            config.root_marker,
            config.root_search_depth,
        )
        _logger.debug("paths.root_probed", root=str(root))
        return cls(root)

    def resolve(self, path: str | Path) -> Path:
        """Join a root-relative path; absolute paths are returned as given."""
        p = Path(path)
        if p.is_absolute():
            return p
        return self.root / p

    def __repr__(self) -> str:
        return f"ProjectPaths({str(self.root)!r})"


__all__ = ["ProjectPaths", "find_project_root"]
