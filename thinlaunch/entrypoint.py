"""Entry point discovery and invocation.

Discovery order for the primary archive:
1. ``META-INF/MANIFEST.MF`` ``Main-Module:`` line
2. first ``[console_scripts]`` entry of a ``*.dist-info/entry_points.txt``
3. a root ``__main__.py`` (zip application layout)
"""

from __future__ import annotations

import configparser
import importlib
import importlib.util
import logging
import runpy
import sys
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path

from .archive import Archive
from .errors import EntryPointNotFound

logger = logging.getLogger(__name__)

MANIFEST = "META-INF/MANIFEST.MF"
MAIN_MODULE_HEADER = "Main-Module"


@dataclass(frozen=True)
class EntryPoint:
    """``module``, ``module:function`` or a runnable archive path."""

    module: str
    attr: str | None = None
    run_path: str | None = None

    @classmethod
    def parse(cls, text: str) -> EntryPoint:
        """Parse ``pkg.module`` or ``pkg.module:function``.

        Raises:
            EntryPointNotFound: Empty or malformed value
        """
        module, sep, attr = text.strip().partition(":")
        module, attr = module.strip(), attr.strip()
        if not module or (sep and not attr):
            raise EntryPointNotFound(f"Malformed entry point: {text!r}", main=text)
        return cls(module=module, attr=attr or None)

    def __str__(self) -> str:
        if self.run_path:
            return f"{self.run_path} (__main__.py)"
        return f"{self.module}:{self.attr}" if self.attr else self.module


def _manifest_main(archive: Archive) -> str | None:
    if not archive.has_entry(MANIFEST):
        return None
    for line in archive.read_text(MANIFEST).splitlines():
        key, sep, value = line.partition(":")
        if sep and key.strip() == MAIN_MODULE_HEADER and value.strip():
            return value.strip()
    return None


def _console_script(archive: Archive) -> str | None:
    candidates = [
        name
        for name in archive.entries()
        if name.endswith(".dist-info/entry_points.txt") and name.count("/") == 1
    ]
    for name in candidates:
        parser = configparser.ConfigParser(delimiters=("=",))
        parser.optionxform = str  # type: ignore[assignment]
        parser.read_string(archive.read_text(name))
        if parser.has_section("console_scripts"):
            for _script, value in parser.items("console_scripts"):
                return value.split("[")[0].strip()
    return None


def discover_entry_point(archive: Archive, launcher_archive: Path | None = None) -> EntryPoint:
    """Find the entry point declared by an archive.

    Args:
        archive: The primary archive
        launcher_archive: The archive the launcher itself runs from. Its
            ``__main__.py`` starts the launcher, so it is never a fallback.

    Raises:
        EntryPointNotFound: Nothing usable is declared
    """
    declared = _manifest_main(archive) or _console_script(archive)
    if declared:
        logger.debug(f"Discovered entry point {declared} in {archive}")
        return EntryPoint.parse(declared)
    if archive.has_entry("__main__.py"):
        if launcher_archive is not None and archive.path == launcher_archive.resolve():
            raise EntryPointNotFound(
                f"{archive.path} is the launcher's own archive and declares no entry point; "
                f"set thin.main or add a {MAIN_MODULE_HEADER} line to {MANIFEST}",
                archive=str(archive.path),
            )
        return EntryPoint(module="__main__", run_path=str(archive.path))
    raise EntryPointNotFound(
        f"No entry point found in {archive.path}; set thin.main or add {MANIFEST}, "
        "console_scripts or __main__.py",
        archive=str(archive.path),
    )


def resolve_entry_point(
    archive: Archive,
    override: str | None = None,
    launcher_archive: Path | None = None,
) -> EntryPoint:
    """Explicit override first, then discovery."""
    if override:
        return EntryPoint.parse(override)
    return discover_entry_point(archive, launcher_archive)


def exit_code(value: object) -> int:
    """Exit status for a return value or ``SystemExit`` code, as ``sys.exit`` would."""
    if value is None:
        return 0
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    print(value, file=sys.stderr)
    return 1


def invoke(entry: EntryPoint, args: Sequence[str], program: str) -> int:
    """Run an entry point with ``sys.argv`` set to ``[program, *args]``.

    Returns:
        The application's exit status

    Raises:
        EntryPointNotFound: The entry module or function does not exist
    """
    saved_argv = sys.argv
    sys.argv = [program, *args]
    try:
        if entry.run_path:
            runpy.run_path(entry.run_path, run_name="__main__")
            return 0
        if entry.attr is None:
            _check_importable(entry)
            runpy.run_module(entry.module, run_name="__main__", alter_sys=True)
            return 0
        target = _load_attr(entry)
        return exit_code(target())
    except SystemExit as e:
        return exit_code(e.code)
    finally:
        sys.argv = saved_argv


def _check_importable(entry: EntryPoint) -> None:
    try:
        found = importlib.util.find_spec(entry.module)
    except ModuleNotFoundError:
        found = None
    if found is None:
        raise EntryPointNotFound(f"Entry module not found: {entry.module}", main=str(entry))


def _load_attr(entry: EntryPoint):
    try:
        target = importlib.import_module(entry.module)
    except ModuleNotFoundError as e:
        if e.name and (entry.module == e.name or entry.module.startswith(f"{e.name}.")):
            raise EntryPointNotFound(f"Entry module not found: {entry.module}", main=str(entry)) from e
        raise
    for part in (entry.attr or "").split("."):
        try:
            target = getattr(target, part)
        except AttributeError as e:
            raise EntryPointNotFound(f"Entry function not found: {entry}", main=str(entry)) from e
    if not callable(target):
        raise EntryPointNotFound(f"Entry point is not callable: {entry}", main=str(entry))
    return target


__all__ = ["EntryPoint", "discover_entry_point", "exit_code", "invoke", "resolve_entry_point"]
