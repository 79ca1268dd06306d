"""Pytest configuration and shared fixtures for launcher tests."""

import logging
import sys
import zipfile
from pathlib import Path

import pytest

from thinlaunch.archive import Archive
from thinlaunch.coordinates import requirement_name
from thinlaunch.errors import ResolutionNotFound


def write_zip(path: Path, files: dict[str, str | bytes]) -> Path:
    """Create a zip archive with the given entries."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with zipfile.ZipFile(path, "w") as zf:
        for name, content in files.items():
            zf.writestr(name, content)
    return path


class FakeDependencyResolver:
    """In-memory repository: distribution name -> (version, direct dependencies).

    Artifacts are written under ``<root>/repository`` the first time they are
    needed; ``fetches`` counts those writes.
    """

    def __init__(self, packages: dict[str, tuple[str, list[str]]] | None = None):
        self.packages = packages or {}
        self.fetches: list[str] = []
        self.calls: list[tuple[list[str], object]] = []

    def _artifact(self, name: str, version: str, root: Path) -> Archive:
        target = root / "repository" / name / version / f"{name}-{version}.zip"
        if not target.exists():
            self.fetches.append(name)
            write_zip(target, {f"{name.replace('-', '_')}/__init__.py": f"VERSION = {version!r}\n"})
        return Archive.open(target)

    def resolve(self, dependencies, management, root):
        self.calls.append((list(dependencies), management))
        ordered: list[str] = []
        queue = [requirement_name(d) for d in dependencies]
        while queue:
            name = queue.pop(0)
            if name in ordered or name in management.exclusions:
                continue
            if name not in self.packages:
                raise ResolutionNotFound(f"{name} not found in repository", dependency=name)
            ordered.append(name)
            queue.extend(self.packages[name][1])
        return [
            self._artifact(name, management.versions.get(name, self.packages[name][0]), root) for name in ordered
        ]

    def fetch(self, coordinate, root):
        name = coordinate.normalized_name
        if name not in self.packages:
            raise ResolutionNotFound(f"{coordinate} not found in repository")
        return self._artifact(name, coordinate.version, root)


@pytest.fixture
def fake_resolver():
    return FakeDependencyResolver(
        {
            "alpha": ("1.0", ["beta"]),
            "beta": ("2.0", []),
            "gamma": ("3.0", ["beta"]),
        }
    )


@pytest.fixture
def primary_archive(tmp_path: Path) -> Archive:
    """A thin application archive with a console_scripts entry point."""
    path = write_zip(
        tmp_path / "app" / "app.pyz",
        {
            "thinapp_main/__init__.py": "",
            "thinapp_main/cli.py": "import sys\n\ndef run():\n    print('ARGS=' + ','.join(sys.argv[1:]))\n    return 3\n",
            "thinapp_main-1.0.dist-info/entry_points.txt": "[console_scripts]\nthinapp = thinapp_main.cli:run\n",
        },
    )
    return Archive.open(path)


@pytest.fixture
def workdir(tmp_path: Path, monkeypatch) -> Path:
    """Empty working directory (descriptor search starts at cwd)."""
    work = tmp_path / "work"
    work.mkdir()
    monkeypatch.chdir(work)
    return work


@pytest.fixture
def make_zip():
    return write_zip


@pytest.fixture
def clean_modules():
    """Forget modules imported from test archives."""
    yield
    for name in [n for n in sys.modules if n.startswith(("thinapp", "thinzip", "thinshadow"))]:
        del sys.modules[name]


@pytest.fixture(autouse=True)
def restore_root_logger():
    """The CLI configures the root logger; undo that after each test."""
    root = logging.getLogger()
    level, handlers = root.level, list(root.handlers)
    yield
    root.setLevel(level)
    root.handlers[:] = handlers
