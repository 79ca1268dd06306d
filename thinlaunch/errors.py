"""Launch errors.

Every failure that aborts a launch derives from ThinLaunchError. The CLI
reports them once, with the context collected along the way.
"""

from __future__ import annotations

from enum import Enum
from typing import Any


class ThinLaunchError(Exception):
    """Base class for errors that abort a launch."""

    title = "Launch failed"

    def __init__(self, message: str, **context: Any):
        super().__init__(message)
        self.message = message
        self.context = {k: v for k, v in context.items() if v is not None}

    def with_context(self, **context: Any) -> ThinLaunchError:
        """Add context without overwriting what is already known."""
        for key, value in context.items():
            if value is not None:
                self.context.setdefault(key, value)
        return self


class LocatorError(ThinLaunchError):
    """Malformed or unsupported locator string."""

    title = "Invalid locator"

    def __init__(self, message: str, locator: str | None = None, **context: Any):
        super().__init__(message, locator=locator, **context)
        self.locator = locator


class ResolutionKind(str, Enum):
    NOT_FOUND = "not-found"
    NETWORK_FAILURE = "network-failure"


class ResolutionError(ThinLaunchError):
    """An archive or dependency could not be resolved."""

    title = "Resolution failed"
    kind = ResolutionKind.NOT_FOUND


class ResolutionNotFound(ResolutionError):
    """Artifact, archive or descriptor not found anywhere searched."""

    title = "Not found"
    kind = ResolutionKind.NOT_FOUND


class NetworkFailure(ResolutionError):
    """Fetch from a remote repository failed."""

    title = "Network failure"
    kind = ResolutionKind.NETWORK_FAILURE


class EntryPointNotFound(ThinLaunchError):
    """No usable entry point after override and discovery."""

    title = "No entry point"


class ConfigurationError(ThinLaunchError):
    """Malformed configuration value."""

    title = "Configuration error"

    def __init__(self, message: str, key: str | None = None, value: str | None = None, **context: Any):
        super().__init__(message, key=key, value=value, **context)
        self.key = key
        self.value = value


__all__ = [
    "ConfigurationError",
    "EntryPointNotFound",
    "LocatorError",
    "NetworkFailure",
    "ResolutionError",
    "ResolutionKind",
    "ResolutionNotFound",
    "ThinLaunchError",
]
