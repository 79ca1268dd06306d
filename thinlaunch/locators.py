"""Locator resolution: symbolic archive references to opened archives.

Supported locators:
- Filesystem paths: ``app.pyz``, ``/opt/app``, ``file:///opt/app.pyz``
- URLs: ``https://example.com/app.pyz`` (downloaded once into the cache)
- Repository coordinates: ``repo://pypi:httpx:0.27.0``

An empty locator means the archive this process was launched from.
"""

from __future__ import annotations

import hashlib
import logging
import sys
import uuid
import zipfile
from dataclasses import dataclass
from pathlib import Path
from urllib.parse import unquote
from urllib.parse import urlparse

import httpx

from .archive import Archive
from .coordinates import Coordinate
from .dependencies import DependencyResolver
from .errors import LocatorError
from .errors import NetworkFailure
from .errors import ResolutionError
from .errors import ResolutionNotFound

logger = logging.getLogger(__name__)

FILE = "file"
HTTP = "http"
HTTPS = "https"
REPO = "repo"

_REMOTE_SCHEMES = (HTTP, HTTPS)


@dataclass(frozen=True)
class Locator:
    """A parsed locator: scheme plus scheme-specific value."""

    scheme: str
    value: str
    text: str

    @classmethod
    def parse(cls, text: str) -> Locator:
        """Parse a locator string.

        Raises:
            LocatorError: Unknown scheme or malformed coordinate
        """
        text = text.strip()
        if not text:
            raise LocatorError("Empty locator", locator=text)

        if "://" in text:
            scheme, rest = text.split("://", 1)
            scheme = scheme.lower()
            if scheme == REPO:
                Coordinate.parse(rest)
                return cls(REPO, rest, text)
            if scheme in _REMOTE_SCHEMES:
                if not urlparse(text).netloc:
                    raise LocatorError(f"URL has no host: {text}", locator=text)
                return cls(scheme, text, text)
            if scheme == FILE:
                return cls(FILE, unquote(urlparse(text).path), text)
            raise LocatorError(f"Unsupported locator scheme '{scheme}': {text}", locator=text)

        if text.startswith("file:"):
            return cls(FILE, text[len("file:") :], text)
        return cls(FILE, text, text)

    @property
    def coordinate(self) -> Coordinate:
        return Coordinate.parse(self.value)

    def __str__(self) -> str:
        return self.text


def locate_self(program: str | None = None) -> Path | None:
    """Archive the running process was launched from, if any.

    Args:
        program: The process's ``argv[0]``, checked when ``__main__`` was not
            loaded from a zip
    """
    main = sys.modules.get("__main__")
    archive = getattr(getattr(main, "__loader__", None), "archive", None)
    if archive:
        return Path(archive)
    if program:
        candidate = Path(program)
        if candidate.is_file() and zipfile.is_zipfile(candidate):
            return candidate
    return None


class LocatorResolver:
    """Turns locators into archives.

    Remote coordinates go to the dependency resolver; URLs are downloaded
    into ``<root>/downloads``. Only zip content is cached, and a cached file
    is trusted once written.
    """

    def __init__(
        self,
        dependency_resolver: DependencyResolver,
        root: Path,
        self_archive: Path | None = None,
        client: httpx.Client | None = None,
    ):
        self.dependency_resolver = dependency_resolver
        self.root = root
        self.self_archive = self_archive
        self.client = client

    def resolve(self, locator: str | None) -> Archive:
        """Resolve a locator string to an opened archive.

        Raises:
            LocatorError: Malformed locator
            ResolutionNotFound: Nothing at the location
            NetworkFailure: Remote fetch failed
        """
        if locator is None or not locator.strip():
            return self._resolve_self()

        parsed = Locator.parse(locator)
        if parsed.scheme == REPO:
            logger.debug(f"Fetching coordinate {parsed.value}")
            try:
                return self.dependency_resolver.fetch(parsed.coordinate, self.root)
            except ResolutionError as e:
                e.with_context(locator=locator)
                raise
        if parsed.scheme in _REMOTE_SCHEMES:
            return Archive.open(self._download(parsed.value))
        return Archive.open(parsed.value)

    def _resolve_self(self) -> Archive:
        if self.self_archive is None:
            raise ResolutionNotFound(
                "Not launched from an archive; set thin.archive to the application archive",
                key="thin.archive",
            )
        return Archive.open(self.self_archive)

    def download_path(self, url: str) -> Path:
        """Cache location for a URL: ``<root>/downloads/<hash>/<file name>``."""
        key = hashlib.sha256(url.encode()).hexdigest()[:16]
        file_name = Path(unquote(urlparse(url).path)).name or "archive.zip"
        return self.root / "downloads" / key / file_name

    def _download(self, url: str) -> Path:
        target = self.download_path(url)
        if target.is_file():
            logger.debug(f"Using cached download: {target}")
            return target

        target.parent.mkdir(parents=True, exist_ok=True)
        partial = target.with_name(f".{target.name}.{uuid.uuid4().hex}.part")
        logger.info(f"Downloading {url}")
        client = self.client or httpx.Client(follow_redirects=True)
        try:
            with client.stream("GET", url) as response:
                if response.status_code == 404:
                    raise ResolutionNotFound(f"Archive not found: {url}", locator=url)
                response.raise_for_status()
                with partial.open("wb") as f:
                    for chunk in response.iter_bytes():
                        f.write(chunk)
            if not zipfile.is_zipfile(partial):
                raise LocatorError(f"Downloaded content is not a zip archive: {url}", locator=url)
            if target.exists():
                logger.debug(f"Keeping {target} written by another launch")
            else:
                partial.replace(target)
        except httpx.HTTPError as e:
            raise NetworkFailure(f"Failed to download {url}: {e}", locator=url) from e
        finally:
            partial.unlink(missing_ok=True)
            if self.client is None:
                client.close()
        return target


__all__ = ["Locator", "LocatorResolver", "locate_self"]
