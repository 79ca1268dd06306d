"""Launch configuration.

Every setting is resolved once, at launch start, into an immutable
LaunchConfig. Lookup precedence (first match wins):

1. Command line (``--thin.dryrun``, ``--thin.profile=dev``)
2. Environment variable (``THIN_DRYRUN``, ``THIN_PROFILE``)
3. Process properties (embedding process, then settings files)
4. Default
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from collections.abc import Sequence
from pathlib import Path

from pydantic import BaseModel
from pydantic import ConfigDict
from pydantic import Field

from .errors import ConfigurationError

logger = logging.getLogger(__name__)

THIN_PREFIX = "--thin."
ARG_SEPARATOR = "--"

THIN_MAIN = "thin.main"
THIN_DRYRUN = "thin.dryrun"
THIN_CLASSPATH = "thin.classpath"
THIN_ROOT = "thin.root"
THIN_ARCHIVE = "thin.archive"
THIN_PARENT = "thin.parent"
THIN_LOCATION = "thin.location"
THIN_NAME = "thin.name"
THIN_PROFILE = "thin.profile"
THIN_PARENT_LAST = "thin.parentLast"
THIN_USE_BOOT_LOADER = "thin.useBootLoader"
THIN_REPOSITORIES = "thin.repositories."
THIN_LOG_PATH = "thin.log.path"
DEBUG = "debug"
TRACE = "trace"

DEFAULT_NAME = "thin"
DEFAULT_LOCATIONS = (".", "classpath:/")

_TRUE = {"", "true", "yes", "on", "1"}
_FALSE = {"false", "no", "off", "0"}


def default_root() -> Path:
    """Default caching root for resolved artifacts."""
    return Path.home() / ".thin"


def env_key(key: str) -> str:
    """Environment variable name for a property key (``thin.dryrun`` -> ``THIN_DRYRUN``)."""
    return key.replace(".", "_").upper()


def parse_command_line_properties(args: Sequence[str]) -> dict[str, str]:
    """Collect ``--key=value`` options that appear before a bare ``--``.

    A bare ``--key`` maps to the empty string. Later occurrences win.
    """
    properties: dict[str, str] = {}
    for arg in args:
        if arg == ARG_SEPARATOR:
            break
        if not arg.startswith("--") or len(arg) <= 2:
            continue
        key, _, value = arg[2:].partition("=")
        if key:
            properties[key] = value
    return properties


def strip_launcher_args(args: Sequence[str], prefix: str = THIN_PREFIX) -> list[str]:
    """Drop launcher options from the application arguments.

    Tokens starting with ``prefix`` are removed until a bare ``--`` is seen;
    the separator and everything after it pass through untouched.
    """
    result: list[str] = []
    escaped = False
    for arg in args:
        if arg == ARG_SEPARATOR:
            escaped = True
        elif not escaped and arg.startswith(prefix):
            continue
        result.append(arg)
    return result


def parse_bool(key: str, value: str) -> bool:
    """Parse a boolean flag value; an empty value (bare flag) is true."""
    normalized = value.strip().lower()
    if normalized in _TRUE:
        return True
    if normalized in _FALSE:
        return False
    raise ConfigurationError(f"Invalid boolean value for '{key}': {value!r}", key=key, value=value)


def parse_list(value: str | None) -> tuple[str, ...]:
    """Split a comma-separated value, dropping blanks and duplicates."""
    if not value:
        return ()
    seen: dict[str, None] = {}
    for item in value.split(","):
        item = item.strip()
        if item:
            seen.setdefault(item, None)
    return tuple(seen)


class PropertySources:
    """Layered property lookup: command line, environment, process properties."""

    def __init__(
        self,
        command_line: Mapping[str, str] | None = None,
        environ: Mapping[str, str] | None = None,
        properties: Mapping[str, str] | None = None,
    ):
        self.command_line = dict(command_line or {})
        self.environ = dict(environ or {})
        self.properties = dict(properties or {})

    def get(self, key: str, default: str | None = None) -> str | None:
        if key in self.command_line:
            return self.command_line[key]
        name = env_key(key)
        if name in self.environ:
            return self.environ[name]
        if key in self.properties:
            return str(self.properties[key])
        return default

    def get_bool(self, key: str, default: bool = False) -> bool:
        value = self.get(key)
        if value is None:
            return default
        return parse_bool(key, value)

    def get_prefixed(self, prefix: str) -> dict[str, str]:
        """All keys under a prefix (prefix stripped), merged by precedence."""
        result = {k[len(prefix) :]: str(v) for k, v in self.properties.items() if k.startswith(prefix)}
        env_prefix = env_key(prefix)
        for name, value in self.environ.items():
            if name.startswith(env_prefix) and len(name) > len(env_prefix):
                result[name[len(env_prefix) :].lower()] = value
        result.update({k[len(prefix) :]: v for k, v in self.command_line.items() if k.startswith(prefix)})
        return {k: v for k, v in result.items() if k and v}

    def source_of(self, key: str) -> str:
        """Name of the layer that supplies a key (for diagnostics)."""
        if key in self.command_line:
            return "command line"
        if env_key(key) in self.environ:
            return "environment"
        if key in self.properties:
            return "properties"
        return "default"


class LaunchConfig(BaseModel):
    """Immutable launch settings, resolved once per launch."""

    model_config = ConfigDict(frozen=True)

    main: str | None = Field(None, description="Entry point override (module or module:function)")
    dry_run: bool = Field(False, description="Resolve dependencies and exit")
    classpath: bool = Field(False, description="Resolve dependencies and print the classpath")
    root: Path = Field(default_factory=default_root, description="Caching root for resolved artifacts")
    root_explicit: bool = Field(False, description="Whether the caching root was configured")
    archive: str | None = Field(None, description="Primary archive locator (None: self-locate)")
    parent: str | None = Field(None, description="Parent archive locator")
    locations: tuple[str, ...] = Field(DEFAULT_LOCATIONS, description="Descriptor search locations")
    name: str = Field(DEFAULT_NAME, description="Descriptor base name")
    profiles: tuple[str, ...] = Field((), description="Active profiles, in priority order")
    parent_last: bool = Field(False, description="Child-first loader policy")
    use_boot_loader: bool = Field(True, description="Parent scope is the platform scope")
    repositories: dict[str, str] = Field(default_factory=dict, description="Coordinate group -> index URL")
    debug: bool = False
    trace: bool = False
    log_path: Path | None = Field(None, description="JSONL log file (THIN_LOG_PATH)")

    @classmethod
    def resolve(
        cls,
        args: Sequence[str] = (),
        environ: Mapping[str, str] | None = None,
        properties: Mapping[str, str] | None = None,
    ) -> LaunchConfig:
        """Resolve configuration from all sources.

        Args:
            args: Raw launch arguments (launcher options are read from them)
            environ: Environment variables
            properties: Process properties (embedding process and settings files)

        Raises:
            ConfigurationError: A value cannot be parsed
        """
        sources = PropertySources(parse_command_line_properties(args), environ, properties)
        root = sources.get(THIN_ROOT)
        log_path = sources.get(THIN_LOG_PATH)
        locations = parse_list(sources.get(THIN_LOCATION))
        config = cls(
            main=sources.get(THIN_MAIN) or None,
            dry_run=sources.get_bool(THIN_DRYRUN),
            classpath=sources.get_bool(THIN_CLASSPATH),
            root=Path(root).expanduser() if root else default_root(),
            root_explicit=bool(root),
            archive=sources.get(THIN_ARCHIVE) or None,
            parent=sources.get(THIN_PARENT) or None,
            locations=locations or DEFAULT_LOCATIONS,
            name=sources.get(THIN_NAME) or DEFAULT_NAME,
            profiles=parse_list(sources.get(THIN_PROFILE)),
            parent_last=sources.get_bool(THIN_PARENT_LAST),
            use_boot_loader=sources.get_bool(THIN_USE_BOOT_LOADER, default=True),
            repositories=sources.get_prefixed(THIN_REPOSITORIES),
            debug=sources.get_bool(DEBUG),
            trace=sources.get_bool(TRACE),
            log_path=Path(log_path).expanduser() if log_path else None,
        )
        logger.debug(f"Resolved launch config: {config}")
        return config


__all__ = [
    "DEFAULT_LOCATIONS",
    "DEFAULT_NAME",
    "LaunchConfig",
    "PropertySources",
    "THIN_PREFIX",
    "default_root",
    "env_key",
    "parse_bool",
    "parse_command_line_properties",
    "parse_list",
    "strip_launcher_args",
]
