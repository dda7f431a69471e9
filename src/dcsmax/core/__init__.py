"""Core infrastructure: configuration, errors, logging and project paths."""

from dcsmax.core.config import HostConfig, load_config
from dcsmax.core.errors import HostError
from dcsmax.core.logging import configure_logging, get_logger
from dcsmax.core.paths import ProjectPaths

__all__ = [
    "HostConfig",
    "HostError",
    "ProjectPaths",
    "configure_logging",
    "get_logger",
    "load_config",
]
