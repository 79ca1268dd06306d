"""Classpath assembly: descriptor + dependency resolution -> ordered archives.

The primary archive is always first. Everything after it comes from the
dependency resolver in the order it reports, so an unchanged descriptor
over an unchanged cache yields the same classpath every time.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Sequence
from pathlib import Path

from .archive import Archive
from .dependencies import DependencyManagement
from .dependencies import DependencyResolver
from .descriptor import EMBEDDED_LOCATION
from .descriptor import DescriptorSearch
from .errors import ThinLaunchError
from .locators import LocatorResolver

logger = logging.getLogger(__name__)

NESTED_CLASSES = "BOOT-INF/classes"


class ClasspathAssembler:
    """Builds the ordered archive list for one launch."""

    def __init__(
        self,
        locators: LocatorResolver,
        dependency_resolver: DependencyResolver,
        root: Path,
        locations: Sequence[str] = (".", EMBEDDED_LOCATION),
    ):
        self.locators = locators
        self.dependency_resolver = dependency_resolver
        self.root = root
        self.locations = list(locations)

    def assemble(
        self,
        parent_locator: str | None,
        primary: Archive,
        name: str,
        profiles: Sequence[str] = (),
    ) -> list[Archive]:
        """Assemble the classpath.

        Args:
            parent_locator: Archive supplying default dependency management, or None
            primary: The application archive (always element 0)
            name: Descriptor base name
            profiles: Active profiles, highest priority first

        Returns:
            ``[primary, *resolved]``

        Raises:
            ResolutionError: Any declared dependency failed to resolve
            LocatorError: The parent locator is malformed
        """
        try:
            base = self._parent_management(parent_locator, name, profiles)
            descriptor = DescriptorSearch(self.locations, primary).load(name, profiles)
            management = descriptor.management().merged_over(base)
            dependencies = descriptor.dependencies

            resolved: list[Archive] = []
            if dependencies:
                logger.info(f"Resolving {len(dependencies)} declared dependencies from {list(descriptor.sources)}")
                resolved = self.dependency_resolver.resolve(dependencies, management, self.root)
        except ThinLaunchError as e:
            e.with_context(descriptor=name, profiles=",".join(profiles) or None, parent=parent_locator)
            raise

        archives = [primary, *resolved]
        for archive in archives:
            logger.debug(f"Archive: {archive}")
        return archives

    def _parent_management(self, parent_locator: str | None, name: str, profiles: Sequence[str]) -> DependencyManagement:
        if not parent_locator:
            return DependencyManagement()
        parent = self.locators.resolve(parent_locator)
        descriptor = DescriptorSearch([EMBEDDED_LOCATION], parent).load(name, profiles)
        logger.debug(f"Parent {parent} supplies {len(descriptor.properties)} properties")
        return descriptor.management()


def classpath_entries(archives: Sequence[Archive], nested: str = NESTED_CLASSES) -> list[str]:
    """Import path entries for a classpath.

    The primary archive's nested classes directory, when present, is
    appended after the resolved archives.
    """
    entries = [str(archive.path) for archive in archives]
    if archives:
        nested_entry = archives[0].nested_path(nested)
        if nested_entry:
            entries.append(nested_entry)
    return entries


def format_classpath(archives: Sequence[Archive]) -> str:
    """Canonical paths of every archive after the primary, joined by the path separator."""
    return os.pathsep.join(str(archive.path.resolve()) for archive in archives[1:])


__all__ = ["ClasspathAssembler", "NESTED_CLASSES", "classpath_entries", "format_classpath"]
