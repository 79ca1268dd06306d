"""Read-only archives: zip applications, wheels and exploded directories.

An Archive is opened once and never written to. Import path entries built
from archives may point inside a zip (``app.pyz/BOOT-INF/classes``), which
is what ``zipimport`` accepts as well.
"""

from __future__ import annotations

import logging
import zipfile
from functools import lru_cache
from pathlib import Path

from .errors import LocatorError
from .errors import ResolutionNotFound

logger = logging.getLogger(__name__)


@lru_cache(maxsize=256)
def _zip_names(path: str, mtime_ns: int) -> frozenset[str]:
    """Entry names of a zip file, including implied directory entries."""
    with zipfile.ZipFile(path) as zf:
        names = set(zf.namelist())
    for name in list(names):
        parts = name.rstrip("/").split("/")[:-1]
        for i in range(1, len(parts) + 1):
            names.add("/".join(parts[:i]) + "/")
    return frozenset(names)


def zip_names(path: Path) -> frozenset[str]:
    return _zip_names(str(path), path.stat().st_mtime_ns)


def _split_zip_entry(entry: Path) -> tuple[Path, str] | None:
    """Split ``archive.zip/sub/dir`` into the zip file and the inner prefix."""
    inner: list[str] = []
    current = entry
    while not current.exists():
        if current.parent == current:
            return None
        inner.insert(0, current.name)
        current = current.parent
    if not current.is_file() or not zipfile.is_zipfile(current):
        return None
    prefix = "/".join(inner)
    return current, f"{prefix}/" if prefix else ""


def find_resource_in(path_entry: str, name: str) -> str | None:
    """Look up a resource in one import path entry.

    Args:
        path_entry: Directory, zip file, or directory inside a zip file
        name: Slash-separated resource name (e.g. ``pkg/data.txt``)

    Returns:
        Location string ``<path_entry>/<name>`` if present, None otherwise
    """
    name = name.lstrip("/")
    entry = Path(path_entry)
    if entry.is_dir():
        candidate = entry / name
        return str(candidate) if candidate.exists() else None

    split = _split_zip_entry(entry)
    if split is None:
        return None
    zip_path, prefix = split
    names = zip_names(zip_path)
    if f"{prefix}{name}" in names or f"{prefix}{name}/" in names:
        return f"{path_entry}/{name}"
    return None


class Archive:
    """An opened, read-only bundle of entries with a canonical location."""

    def __init__(self, path: Path):
        self.path = path
        self.is_zip = path.is_file()

    @classmethod
    def open(cls, path: str | Path) -> Archive:
        """Open a zip file or directory as an archive.

        Raises:
            ResolutionNotFound: Path does not exist
            LocatorError: Path is a file but not a zip archive
        """
        resolved = Path(path).expanduser().resolve()
        if not resolved.exists():
            raise ResolutionNotFound(f"Archive not found: {resolved}", locator=str(path))
        if resolved.is_file() and not zipfile.is_zipfile(resolved):
            raise LocatorError(f"Not a zip archive: {resolved}", locator=str(path))
        logger.debug(f"Opened archive {resolved}")
        return cls(resolved)

    @property
    def url(self) -> str:
        return self.path.as_uri()

    @property
    def name(self) -> str:
        return self.path.name

    def entries(self) -> list[str]:
        """All entry names, sorted. Directories end with ``/``."""
        if self.is_zip:
            return sorted(zip_names(self.path))
        result = []
        for item in self.path.rglob("*"):
            rel = item.relative_to(self.path).as_posix()
            result.append(f"{rel}/" if item.is_dir() else rel)
        return sorted(result)

    def has_entry(self, name: str) -> bool:
        name = name.lstrip("/")
        if self.is_zip:
            names = zip_names(self.path)
            return name in names or f"{name.rstrip('/')}/" in names
        return (self.path / name).exists()

    def read_bytes(self, name: str) -> bytes:
        """Read an entry's raw content.

        Raises:
            KeyError: Entry does not exist
        """
        name = name.lstrip("/")
        if self.is_zip:
            with zipfile.ZipFile(self.path) as zf:
                return zf.read(name)
        target = self.path / name
        if not target.is_file():
            raise KeyError(name)
        return target.read_bytes()

    def read_text(self, name: str, encoding: str = "utf-8") -> str:
        """Read an entry as text.

        Raises:
            KeyError: Entry does not exist
        """
        return self.read_bytes(name).decode(encoding)

    def nested_path(self, prefix: str) -> str | None:
        """Import path entry for a directory nested in this archive, if present."""
        prefix = prefix.strip("/")
        if not self.has_entry(f"{prefix}/"):
            return None
        return f"{self.path}/{prefix}"

    def find_resource(self, name: str) -> str | None:
        return find_resource_in(str(self.path), name)

    def __eq__(self, other: object) -> bool:
        return isinstance(other, Archive) and other.path == self.path

    def __hash__(self) -> int:
        return hash(self.path)

    def __repr__(self) -> str:
        return f"Archive({self.path})"


__all__ = ["Archive", "find_resource_in", "zip_names"]
