"""Launch descriptors: ``{name}[-{profile}].properties`` files.

A descriptor declares what the application needs on its path:

    dependencies.web=flask>=3
    dependencies.client=repo://pypi:httpx:0.27.0
    versions.werkzeug=3.0.1
    exclusions.legacy=simplejson
    repositories.internal=https://pypi.example.com/simple

Descriptor files are searched in every configured location and merged
first-defined-wins: earlier locations and earlier profiles take precedence,
later files may only add keys that are still unset.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from collections.abc import Mapping
from collections.abc import Sequence
from dataclasses import dataclass
from dataclasses import field
from pathlib import Path

from .archive import Archive
from .coordinates import Coordinate
from .coordinates import normalize_name
from .dependencies import DependencyManagement

logger = logging.getLogger(__name__)

CLASSPATH_PREFIX = "classpath:"
FILE_PREFIX = "file:"
EMBEDDED_LOCATION = "classpath:/"
META_INF = "META-INF"
REPO_PREFIX = "repo://"

_ESCAPES = {"t": "\t", "n": "\n", "r": "\r", "f": "\f"}


def _unescape(text: str) -> str:
    out: list[str] = []
    i = 0
    while i < len(text):
        ch = text[i]
        if ch != "\\" or i + 1 >= len(text):
            out.append(ch)
            i += 1
            continue
        nxt = text[i + 1]
        if nxt == "u" and i + 6 <= len(text):
            try:
                out.append(chr(int(text[i + 2 : i + 6], 16)))
                i += 6
                continue
            except ValueError:
                pass
        out.append(_ESCAPES.get(nxt, nxt))
        i += 2
    return "".join(out)


def _logical_lines(text: str) -> Iterator[str]:
    pending = ""
    for raw in text.splitlines():
        line = raw.lstrip()
        if not pending and (not line or line[0] in "#!"):
            continue
        trailing = len(line) - len(line.rstrip("\\"))
        if trailing % 2 == 1:
            pending += line[:-1]
            continue
        yield pending + line
        pending = ""
    if pending:
        yield pending


def parse_properties(text: str) -> dict[str, str]:
    """Parse Java-style properties text. The first occurrence of a key wins."""
    result: dict[str, str] = {}
    for line in _logical_lines(text):
        i = 0
        while i < len(line):
            ch = line[i]
            if ch == "\\":
                i += 2
                continue
            if ch in "=: \t\f":
                break
            i += 1
        key = _unescape(line[:i])
        rest = line[i:].lstrip(" \t\f")
        if rest[:1] in ("=", ":"):
            rest = rest[1:].lstrip(" \t\f")
        result.setdefault(key, _unescape(rest))
    return result


def _section(properties: Mapping[str, str], prefix: str) -> dict[str, str]:
    return {k[len(prefix) :]: v.strip() for k, v in properties.items() if k.startswith(prefix) and v.strip()}


def to_requirement(value: str) -> str:
    """Requirement string for a descriptor value; ``repo://`` coordinates are pinned."""
    value = value.strip()
    if value.startswith(REPO_PREFIX):
        return Coordinate.parse(value[len(REPO_PREFIX) :]).requirement
    return value


@dataclass(frozen=True)
class LaunchDescriptor:
    """Effective, immutable property set for one launch."""

    properties: Mapping[str, str] = field(default_factory=dict)
    sources: tuple[str, ...] = ()

    @property
    def dependencies(self) -> list[str]:
        """Declared requirements, in declaration order."""
        return [to_requirement(v) for v in _section(self.properties, "dependencies.").values()]

    @property
    def versions(self) -> dict[str, str]:
        return {normalize_name(k): v for k, v in _section(self.properties, "versions.").items()}

    @property
    def exclusions(self) -> frozenset[str]:
        return frozenset(normalize_name(v) for v in _section(self.properties, "exclusions.").values())

    @property
    def repositories(self) -> dict[str, str]:
        return _section(self.properties, "repositories.")

    def management(self) -> DependencyManagement:
        return DependencyManagement(
            versions=self.versions,
            exclusions=self.exclusions,
            repositories=self.repositories,
        )

    @property
    def is_empty(self) -> bool:
        return not self.properties


def descriptor_file_names(name: str, profiles: Sequence[str] = ()) -> list[str]:
    """File names in search order: base name first, then each profile."""
    names = [f"{name}.properties"]
    for profile in profiles:
        profile = profile.strip()
        candidate = f"{name}-{profile}.properties"
        if profile and candidate not in names:
            names.append(candidate)
    return names


class DescriptorSearch:
    """Finds and merges descriptor files across search locations.

    Locations are filesystem paths (optionally ``file:`` prefixed) or
    ``classpath:`` locations inside the given archive. The embedded default
    ``classpath:/`` is always searched last.
    """

    def __init__(self, locations: Sequence[str], archive: Archive | None = None):
        ordered = [loc for loc in locations if loc]
        if not any(_is_embedded_root(loc) for loc in ordered):
            ordered.append(EMBEDDED_LOCATION)
        self.locations = ordered
        self.archive = archive

    def load(self, name: str, profiles: Sequence[str] = ()) -> LaunchDescriptor:
        """Load and merge every descriptor found for ``name`` and ``profiles``."""
        merged: dict[str, str] = {}
        sources: list[str] = []
        for source, text in self._found(descriptor_file_names(name, profiles)):
            logger.debug(f"Loading descriptor {source}")
            for key, value in parse_properties(text).items():
                merged.setdefault(key, value)
            sources.append(source)
        if not sources:
            logger.info(f"No descriptor found for name={name} profiles={list(profiles)}")
        return LaunchDescriptor(properties=merged, sources=tuple(sources))

    def _found(self, file_names: list[str]) -> Iterator[tuple[str, str]]:
        for location in self.locations:
            for file_name in file_names:
                for relative in (file_name, f"{META_INF}/{file_name}"):
                    found = self._read(location, relative)
                    if found is not None:
                        yield found

    def _read(self, location: str, relative: str) -> tuple[str, str] | None:
        if location.startswith(CLASSPATH_PREFIX):
            if self.archive is None:
                return None
            base = location[len(CLASSPATH_PREFIX) :].strip("/")
            entry = f"{base}/{relative}" if base else relative
            if not self.archive.has_entry(entry) or entry.endswith("/"):
                return None
            try:
                return f"{self.archive.path}!/{entry}", _decode(self.archive.read_bytes(entry))
            except KeyError:
                return None

        if location.startswith(FILE_PREFIX):
            location = location[len(FILE_PREFIX) :]
            if location.startswith("//"):
                location = location[2:]
        path = Path(location).expanduser() / relative
        if not path.is_file():
            return None
        return str(path.resolve()), _decode(path.read_bytes())


def _decode(data: bytes) -> str:
    # Properties files are ISO-8859-1 unless they decode as UTF-8
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError:
        return data.decode("latin-1")


def _is_embedded_root(location: str) -> bool:
    return location.startswith(CLASSPATH_PREFIX) and not location[len(CLASSPATH_PREFIX) :].strip("/")


__all__ = [
    "DescriptorSearch",
    "LaunchDescriptor",
    "descriptor_file_names",
    "parse_properties",
    "to_requirement",
]
