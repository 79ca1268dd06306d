"""Ordered import loader.

OrderedLoader is a meta path finder holding the assembled classpath and a
parent scope. Its policy decides which side answers first when a module or
resource exists in both:

- PARENT_FIRST (default): the parent scope wins, as with normal shadowing.
- CHILD_FIRST: the application's own classpath wins.

Only the first match is ever returned; same-named entries are never merged.
Modules the launcher imported before the loader was installed are hidden
while it is active whenever the policy says the classpath must answer.
"""

from __future__ import annotations

import importlib
import logging
import os
import sys
import sysconfig
from collections.abc import Sequence
from enum import Enum
from importlib.abc import MetaPathFinder
from importlib.machinery import BuiltinImporter
from importlib.machinery import FrozenImporter
from importlib.machinery import ModuleSpec
from importlib.machinery import PathFinder
from types import ModuleType

from .archive import Archive
from .archive import find_resource_in
from .classpath import classpath_entries

logger = logging.getLogger(__name__)


class LoaderPolicy(str, Enum):
    PARENT_FIRST = "parent-first"
    CHILD_FIRST = "child-first"

    @classmethod
    def from_flag(cls, parent_last: bool) -> LoaderPolicy:
        return cls.CHILD_FIRST if parent_last else cls.PARENT_FIRST


class PathScope:
    """A set of import path entries, optionally backed by builtin and frozen modules."""

    def __init__(self, paths: Sequence[str], include_builtins: bool = True, name: str = "scope"):
        self.paths = tuple(dict.fromkeys(p for p in paths if p))
        self.include_builtins = include_builtins
        self.name = name

    def find_spec(self, fullname: str) -> ModuleSpec | None:
        if self.include_builtins:
            for importer in (BuiltinImporter, FrozenImporter):
                spec = importer.find_spec(fullname)
                if spec is not None:
                    return spec
        if not self.paths:
            return None
        return PathFinder.find_spec(fullname, list(self.paths))

    def find_resource(self, name: str) -> str | None:
        for entry in self.paths:
            location = find_resource_in(entry, name)
            if location is not None:
                return location
        return None

    def __repr__(self) -> str:
        return f"PathScope({self.name}, {len(self.paths)} entries)"


def platform_scope() -> PathScope:
    """The interpreter's standard library: builtins, frozen modules and stdlib directories."""
    paths = []
    for key in ("stdlib", "platstdlib"):
        location = sysconfig.get_paths().get(key)
        if location:
            paths.append(location)
            paths.append(os.path.join(location, "lib-dynload"))
    # Zipped stdlib (python3XX.zip) lives on sys.path
    paths.extend(p for p in sys.path if p.endswith(".zip") and os.path.basename(p).startswith("python"))
    return PathScope([p for p in paths if os.path.exists(p)], name="platform")


def launching_scope() -> PathScope:
    """Everything importable by the launcher process itself."""
    return PathScope([p or os.getcwd() for p in sys.path], name="launching")


class OrderedLoader(MetaPathFinder):
    """Meta path finder over an assembled classpath with a fixed ordering policy."""

    def __init__(
        self,
        paths: Sequence[str],
        parent: PathScope,
        policy: LoaderPolicy = LoaderPolicy.PARENT_FIRST,
    ):
        self.own = PathScope(paths, include_builtins=False, name="classpath")
        self.parent = parent
        self.policy = policy
        self._saved_path: list[str] | None = None
        self._hidden: dict[str, ModuleType] = {}

    @classmethod
    def from_archives(
        cls,
        archives: Sequence[Archive],
        parent: PathScope,
        policy: LoaderPolicy = LoaderPolicy.PARENT_FIRST,
    ) -> OrderedLoader:
        """Loader over a classpath, including the primary archive's nested classes."""
        return cls(classpath_entries(archives), parent, policy)

    @property
    def paths(self) -> tuple[str, ...]:
        return self.own.paths

    def _scopes(self) -> tuple[PathScope, PathScope]:
        if self.policy is LoaderPolicy.CHILD_FIRST:
            return (self.own, self.parent)
        return (self.parent, self.own)

    def lookup_resource(self, name: str) -> str | None:
        """Location of a resource, searched in policy order; None if absent everywhere."""
        for scope in self._scopes():
            location = scope.find_resource(name)
            if location is not None:
                logger.debug(f"Resource {name} found in {scope.name}: {location}")
                return location
        return None

    def find_spec(self, fullname, path=None, target=None):
        # Submodules follow their package's __path__
        if path is not None:
            return None
        for scope in self._scopes():
            spec = scope.find_spec(fullname)
            if spec is not None:
                return spec
        return None

    def search_path(self) -> list[str]:
        """``sys.path`` equivalent of the configured order."""
        first, second = self._scopes()
        return list(dict.fromkeys([*first.paths, *second.paths]))

    def shadowed_modules(self) -> list[str]:
        """Already imported top-level names that the classpath must answer instead.

        Child-first: every name the classpath provides. Parent-first: names the
        classpath provides and the parent scope does not.
        """
        names = []
        for name in list(sys.modules):
            if "." in name or name == "__main__" or name in sys.builtin_module_names:
                continue
            if self.own.find_spec(name) is None:
                continue
            if self.policy is LoaderPolicy.PARENT_FIRST and self.parent.find_spec(name) is not None:
                continue
            names.append(name)
        return names

    def install(self) -> OrderedLoader:
        """Make this loader the active import context."""
        if self._saved_path is not None:
            return self
        shadowed = set(self.shadowed_modules())
        self._saved_path = list(sys.path)
        self._hidden = {
            key: sys.modules.pop(key) for key in list(sys.modules) if _top_level(key) in shadowed
        }
        if shadowed:
            logger.debug(f"Hiding launcher modules {sorted(shadowed)} while the application runs")
        sys.meta_path.insert(0, self)
        sys.path[:] = self.search_path()
        importlib.invalidate_caches()
        logger.debug(f"Installed {self.policy.value} loader with {len(self.paths)} classpath entries")
        return self

    def uninstall(self) -> None:
        if self._saved_path is None:
            return
        if self in sys.meta_path:
            sys.meta_path.remove(self)
        sys.path[:] = self._saved_path
        self._saved_path = None
        # The application's copies of hidden packages go away with the loader
        restored = {_top_level(key) for key in self._hidden}
        for key in [k for k in sys.modules if _top_level(k) in restored]:
            del sys.modules[key]
        sys.modules.update(self._hidden)
        self._hidden = {}
        importlib.invalidate_caches()

    def __enter__(self) -> OrderedLoader:
        return self.install()

    def __exit__(self, *exc_info) -> None:
        self.uninstall()

    def __repr__(self) -> str:
        return f"OrderedLoader({self.policy.value}, {len(self.paths)} entries, parent={self.parent!r})"


def _top_level(name: str) -> str:
    return name.partition(".")[0]


__all__ = ["LoaderPolicy", "OrderedLoader", "PathScope", "launching_scope", "platform_scope"]
