"""Shared Rich console for launcher output.

Launcher messages go to stderr; stdout belongs to the application.
"""

from rich.console import Console

err_console = Console(stderr=True)

__all__ = ["err_console"]
