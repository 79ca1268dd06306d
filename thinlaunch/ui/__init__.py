"""Terminal output helpers."""

from .error_display import display_launch_error
from .error_display import render_launch_error

__all__ = ["display_launch_error", "render_launch_error"]
