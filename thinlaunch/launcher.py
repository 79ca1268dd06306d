"""Launch controller: locate, assemble, then print, dry-run or execute.

Each stage finishes before the next one starts. Any ThinLaunchError aborts
the launch; there is no fallback to a partial classpath.
"""

from __future__ import annotations

import logging
import sys
from collections.abc import Mapping
from collections.abc import Sequence
from enum import Enum
from typing import TextIO

from .archive import Archive
from .classpath import ClasspathAssembler
from .classpath import format_classpath
from .config import LaunchConfig
from .config import strip_launcher_args
from .dependencies import DependencyResolver
from .dependencies import UvDependencyResolver
from .entrypoint import invoke
from .entrypoint import resolve_entry_point
from .errors import ThinLaunchError
from .loader import LoaderPolicy
from .loader import OrderedLoader
from .loader import launching_scope
from .loader import platform_scope
from .locators import LocatorResolver
from .locators import locate_self

logger = logging.getLogger(__name__)


class LaunchMode(str, Enum):
    CLASSPATH = "classpath"
    DRY_RUN = "dry-run"
    EXECUTE = "execute"

    @classmethod
    def from_config(cls, config: LaunchConfig) -> LaunchMode:
        if config.classpath:
            return cls.CLASSPATH
        if config.dry_run:
            return cls.DRY_RUN
        return cls.EXECUTE


class LaunchController:
    """Drives one launch with an already resolved configuration."""

    def __init__(
        self,
        config: LaunchConfig,
        locators: LocatorResolver,
        assembler: ClasspathAssembler,
        out: TextIO | None = None,
    ):
        self.config = config
        self.locators = locators
        self.assembler = assembler
        self.out = out

    @property
    def mode(self) -> LaunchMode:
        return LaunchMode.from_config(self.config)

    def run(self, args: Sequence[str]) -> int:
        """Run the launch.

        Args:
            args: Raw arguments; launcher options are stripped before the
                application sees them

        Returns:
            0 for classpath and dry-run modes, otherwise the application's exit status
        """
        config = self.config
        try:
            primary = self.locators.resolve(config.archive)
            archives = self.assembler.assemble(config.parent, primary, config.name, config.profiles)
        except ThinLaunchError as e:
            e.with_context(archive=config.archive)
            raise

        mode = self.mode
        if mode is LaunchMode.CLASSPATH:
            out = self.out or sys.stdout
            out.write(format_classpath(archives) + "\n")
            out.flush()
            return 0
        if mode is LaunchMode.DRY_RUN:
            suffix = f" to {config.root}" if config.root_explicit else ""
            logger.info(f"Downloaded dependencies{suffix}")
            return 0
        return self.execute(primary, archives, strip_launcher_args(args))

    def create_loader(self, archives: Sequence[Archive]) -> OrderedLoader:
        parent = platform_scope() if self.config.use_boot_loader else launching_scope()
        return OrderedLoader.from_archives(archives, parent, LoaderPolicy.from_flag(self.config.parent_last))

    def execute(self, primary: Archive, archives: Sequence[Archive], app_args: Sequence[str]) -> int:
        entry = resolve_entry_point(primary, self.config.main, self.locators.self_archive)
        loader = self.create_loader(archives)
        logger.info(f"Launching {entry} with {loader}")
        with loader:
            return invoke(entry, app_args, str(primary.path))


def build_controller(
    config: LaunchConfig,
    dependency_resolver: DependencyResolver | None = None,
    out: TextIO | None = None,
    program: str | None = None,
) -> LaunchController:
    """Wire the resolvers and assembler for one launch.

    ``program`` is the process's ``argv[0]``, used to find the launcher's own
    archive when ``thin.archive`` is not set.
    """
    resolver = dependency_resolver or UvDependencyResolver(repositories=config.repositories)
    locators = LocatorResolver(resolver, config.root, self_archive=locate_self(program))
    assembler = ClasspathAssembler(locators, resolver, config.root, config.locations)
    return LaunchController(config, locators, assembler, out=out)


def launch(
    args: Sequence[str],
    environ: Mapping[str, str] | None = None,
    properties: Mapping[str, str] | None = None,
    dependency_resolver: DependencyResolver | None = None,
    out: TextIO | None = None,
    program: str | None = None,
) -> int:
    """Resolve configuration and run a launch (programmatic entry)."""
    config = LaunchConfig.resolve(args, environ, properties)
    return build_controller(config, dependency_resolver, out, program).run(args)


__all__ = ["LaunchController", "LaunchMode", "build_controller", "launch"]
