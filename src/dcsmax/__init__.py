"""DCS-Max host: the process that backs the DCS-Max web UI.

Wraps the backup / optimization / benchmarking scripts of a DCS-Max
checkout behind a JSON request / response / event bridge.
"""

__version__ = "0.4.0"

__all__ = ["__version__"]
