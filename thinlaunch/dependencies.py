"""Dependency resolution capability.

The launcher does not resolve dependency graphs itself. It hands the
declared requirements and the dependency management context to a
DependencyResolver and treats the answer as authoritative.

UvDependencyResolver is the shipped implementation. It defers resolution
to ``uv`` and keeps everything it fetches under the caching root:

    <root>/locks/<key>.txt                   pinned requirement set
    <root>/repository/<name>/<version>/      one installed distribution

Anything already present at its expected path is reused as-is.
"""

from __future__ import annotations

import hashlib
import json
import logging
import shutil
import subprocess
import sys
import uuid
from collections.abc import Mapping
from collections.abc import Sequence
from dataclasses import dataclass
from dataclasses import field
from pathlib import Path
from typing import TYPE_CHECKING
from typing import Protocol

from .archive import Archive
from .coordinates import DEFAULT_GROUP
from .coordinates import Coordinate
from .coordinates import normalize_name
from .errors import ConfigurationError
from .errors import NetworkFailure
from .errors import ResolutionError
from .errors import ResolutionNotFound

if TYPE_CHECKING:
    from collections.abc import Iterable

logger = logging.getLogger(__name__)

_NOT_FOUND_MARKERS = (
    "no solution found",
    "not found in the package registry",
    "no matching distribution",
    "no versions of",
    "was not found",
)

_NETWORK_MARKERS = (
    "failed to fetch",
    "connection",
    "dns error",
    "timed out",
    "network",
    "tls",
    "certificate",
)


@dataclass(frozen=True)
class DependencyManagement:
    """Default versions, exclusions and repositories applied to a resolution.

    Attributes:
        versions: Normalized distribution name -> version constraint pins
        exclusions: Normalized distribution names dropped from the result
        repositories: Coordinate group -> index URL
    """

    versions: Mapping[str, str] = field(default_factory=dict)
    exclusions: frozenset[str] = frozenset()
    repositories: Mapping[str, str] = field(default_factory=dict)

    def merged_over(self, base: DependencyManagement) -> DependencyManagement:
        """Combine with a base context; this context's versions and repositories win."""
        return DependencyManagement(
            versions={**base.versions, **self.versions},
            exclusions=base.exclusions | self.exclusions,
            repositories={**base.repositories, **self.repositories},
        )

    @property
    def is_empty(self) -> bool:
        return not (self.versions or self.exclusions or self.repositories)


class DependencyResolver(Protocol):
    """External capability turning requirements into resolved archives."""

    def resolve(
        self,
        dependencies: Sequence[str],
        management: DependencyManagement,
        root: Path,
    ) -> list[Archive]:
        """Resolve requirements to a flat, de-duplicated, transitively closed list.

        Raises:
            ResolutionNotFound: A requirement cannot be satisfied
            NetworkFailure: A repository could not be reached
        """
        ...

    def fetch(self, coordinate: Coordinate, root: Path) -> Archive:
        """Fetch exactly one artifact (no transitive dependencies)."""
        ...


@dataclass(frozen=True)
class Pin:
    """One line of a lock: ``name==version`` or ``name @ url``."""

    name: str
    requirement: str
    version: str

    @classmethod
    def parse(cls, line: str) -> Pin | None:
        line = line.split(" #", 1)[0].strip()
        if not line or line.startswith(("#", "-")):
            return None
        if " @ " in line:
            name, url = line.split(" @ ", 1)
            digest = hashlib.sha256(url.strip().encode()).hexdigest()[:12]
            return cls(normalize_name(name.split("[")[0]), line, f"url-{digest}")
        if "==" in line:
            name, version = line.split("==", 1)
            version = version.split(";")[0].strip()
            return cls(normalize_name(name.split("[")[0].strip()), line, version)
        return None


def classify_failure(message: str, **context) -> ResolutionError:
    """Map resolver output to NotFound or NetworkFailure."""
    lowered = message.lower()
    if any(marker in lowered for marker in _NOT_FOUND_MARKERS):
        return ResolutionNotFound(message.strip() or "Dependency not found", **context)
    if any(marker in lowered for marker in _NETWORK_MARKERS):
        return NetworkFailure(message.strip(), **context)
    return ResolutionNotFound(message.strip() or "Dependency resolution failed", **context)


class UvDependencyResolver:
    """DependencyResolver backed by ``uv pip compile`` and ``uv pip install --target``."""

    def __init__(self, uv: str = "uv", python: str | None = None, repositories: Mapping[str, str] | None = None):
        """Initialize resolver.

        Args:
            uv: uv executable
            python: Interpreter the dependencies are resolved for (default: current)
            repositories: Coordinate group -> index URL, used by fetch()
        """
        self.uv = uv
        self.python = python or sys.executable
        self.repositories = dict(repositories or {})

    def resolve(
        self,
        dependencies: Sequence[str],
        management: DependencyManagement,
        root: Path,
    ) -> list[Archive]:
        if not dependencies:
            return []
        pins = self._lock(list(dependencies), management, root)
        archives = []
        for pin in pins:
            if pin.name in management.exclusions:
                logger.debug(f"Excluded {pin.name}")
                continue
            archives.append(self._install(pin, management.repositories, root))
        return archives

    def fetch(self, coordinate: Coordinate, root: Path) -> Archive:
        repositories = {}
        if coordinate.group in self.repositories:
            repositories[DEFAULT_GROUP] = self.repositories[coordinate.group]
        elif coordinate.group != DEFAULT_GROUP:
            raise ResolutionNotFound(
                f"No repository configured for group '{coordinate.group}'",
                locator=str(coordinate),
            )
        pin = Pin(coordinate.normalized_name, coordinate.requirement, coordinate.version)
        return self._install(pin, repositories, root)

    def _lock(self, dependencies: list[str], management: DependencyManagement, root: Path) -> list[Pin]:
        """Pinned requirement set, cached by its inputs."""
        key_input = json.dumps(
            {
                "dependencies": dependencies,
                "versions": sorted(management.versions.items()),
                "repositories": sorted(management.repositories.items()),
                "python": f"{sys.version_info.major}.{sys.version_info.minor}",
            },
            sort_keys=True,
        )
        key = hashlib.sha256(key_input.encode()).hexdigest()[:16]
        locks = root / "locks"
        lock_file = locks / f"{key}.txt"

        if lock_file.exists():
            logger.debug(f"Using cached lock: {lock_file}")
        else:
            locks.mkdir(parents=True, exist_ok=True)
            requirements = locks / f"{key}.in"
            requirements.write_text("\n".join(dependencies) + "\n", encoding="utf-8")
            cmd = [self.uv, "pip", "compile", str(requirements), "--quiet", "--no-header", "--no-annotate"]
            cmd += ["--python", self.python]
            if management.versions:
                constraints = locks / f"{key}.constraints"
                constraints.write_text(
                    "".join(f"{name}=={version}\n" for name, version in sorted(management.versions.items())),
                    encoding="utf-8",
                )
                cmd += ["--constraint", str(constraints)]
            cmd += _index_args(management.repositories)

            logger.info(f"Resolving {len(dependencies)} dependencies")
            result = self._run(cmd, dependencies=dependencies)
            tmp = locks / f".{key}.{uuid.uuid4().hex}.tmp"
            tmp.write_text(result.stdout, encoding="utf-8")
            tmp.replace(lock_file)

        pins = [pin for pin in (Pin.parse(line) for line in lock_file.read_text(encoding="utf-8").splitlines()) if pin]
        return _unique(pins)

    def _install(self, pin: Pin, repositories: Mapping[str, str], root: Path) -> Archive:
        target = root / "repository" / pin.name / pin.version
        if target.is_dir() and any(target.iterdir()):
            logger.debug(f"Using cached {pin.name} {pin.version}: {target}")
            return Archive.open(target)

        target.parent.mkdir(parents=True, exist_ok=True)
        staging = target.with_name(f".{pin.version}.{uuid.uuid4().hex}.tmp")
        cmd = [self.uv, "pip", "install", "--no-deps", "--quiet", "--target", str(staging)]
        cmd += ["--python", self.python, pin.requirement]
        cmd += _index_args(repositories)

        logger.info(f"Downloading {pin.requirement}")
        try:
            self._run(cmd, dependencies=[pin.requirement])
            try:
                staging.rename(target)
            except OSError as e:
                if not (target.is_dir() and any(target.iterdir())):
                    raise ConfigurationError(
                        f"Cannot write {pin.name} {pin.version} to the cache: {e}",
                        key="thin.root",
                        value=str(root),
                    ) from e
                logger.debug(f"Keeping {target} populated by another launch")
        finally:
            shutil.rmtree(staging, ignore_errors=True)
        return Archive.open(target)

    def _run(self, cmd: list[str], dependencies: Sequence[str]) -> subprocess.CompletedProcess:
        logger.debug(f"Running: {' '.join(cmd)}")
        try:
            result = subprocess.run(cmd, capture_output=True, text=True)
        except FileNotFoundError as e:
            raise ConfigurationError(f"uv executable not found: {self.uv}", key="uv", value=self.uv) from e
        if result.returncode != 0:
            raise classify_failure(result.stderr or result.stdout, dependencies=list(dependencies))
        return result


def _index_args(repositories: Mapping[str, str]) -> list[str]:
    args: list[str] = []
    for group, url in sorted(repositories.items()):
        if group == DEFAULT_GROUP:
            args += ["--index-url", url]
        else:
            args += ["--extra-index-url", url]
    return args


def _unique(pins: Iterable[Pin]) -> list[Pin]:
    seen: set[str] = set()
    result = []
    for pin in pins:
        if pin.name not in seen:
            seen.add(pin.name)
            result.append(pin)
    return result


__all__ = [
    "DependencyManagement",
    "DependencyResolver",
    "Pin",
    "UvDependencyResolver",
    "classify_failure",
]
