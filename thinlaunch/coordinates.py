"""Repository coordinates: ``group:artifact:version[:classifier]``.

The group names the package index (``pypi`` is the default index), the
artifact is the distribution name, and the classifier selects an extra.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from .errors import LocatorError

DEFAULT_GROUP = "pypi"

_PART = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._+!-]*$")
_NAME = re.compile(r"^\s*([A-Za-z0-9][A-Za-z0-9._-]*)")


def normalize_name(name: str) -> str:
    """Canonical distribution name (PEP 503)."""
    return re.sub(r"[-_.]+", "-", name).lower()


def requirement_name(requirement: str) -> str | None:
    """Distribution name at the start of a requirement string, normalized."""
    match = _NAME.match(requirement)
    return normalize_name(match.group(1)) if match else None


@dataclass(frozen=True)
class Coordinate:
    group: str
    artifact: str
    version: str
    classifier: str | None = None

    @classmethod
    def parse(cls, text: str) -> Coordinate:
        """Parse ``group:artifact:version[:classifier]``.

        Raises:
            LocatorError: Wrong number of parts or invalid characters
        """
        parts = text.strip().split(":")
        if len(parts) not in (3, 4) or not all(_PART.match(p) for p in parts):
            raise LocatorError(
                f"Invalid coordinate '{text}' (expected group:artifact:version[:classifier])",
                locator=text,
            )
        return cls(*parts)

    @property
    def requirement(self) -> str:
        """Pinned requirement string, e.g. ``requests[socks]==2.31.0``."""
        extra = f"[{self.classifier}]" if self.classifier else ""
        return f"{self.artifact}{extra}=={self.version}"

    @property
    def normalized_name(self) -> str:
        return normalize_name(self.artifact)

    def __str__(self) -> str:
        text = f"{self.group}:{self.artifact}:{self.version}"
        return f"{text}:{self.classifier}" if self.classifier else text


__all__ = ["Coordinate", "DEFAULT_GROUP", "normalize_name", "requirement_name"]
