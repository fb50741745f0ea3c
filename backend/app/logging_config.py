"""Logging setup for the API process.

Route modules call ``get_logger`` from here so API and core log lines
share the ``freelancehub`` namespace and handler.
"""

from freelancehub.logging_config import configure_logging, get_logger

__all__ = ["configure_logging", "get_logger"]
