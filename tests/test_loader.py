"""Tests for the ordered import loader."""

import importlib
import sys

import pytest

from thinlaunch.archive import Archive
from thinlaunch.loader import LoaderPolicy
from thinlaunch.loader import OrderedLoader
from thinlaunch.loader import PathScope
from thinlaunch.loader import launching_scope
from thinlaunch.loader import platform_scope


@pytest.fixture
def scopes(tmp_path):
    """A parent directory and a child directory sharing some names."""
    parent = tmp_path / "parent"
    child = tmp_path / "child"
    for base, label in ((parent, "parent"), (child, "child")):
        base.mkdir()
        (base / "shared.txt").write_text(label)
        (base / "thinshadow_mod.py").write_text(f"ORIGIN = {label!r}\n")
    (child / "child-only.txt").write_text("child")
    return PathScope([str(parent)], include_builtins=False, name="parent"), child


def test_policy_from_flag():
    assert LoaderPolicy.from_flag(False) is LoaderPolicy.PARENT_FIRST
    assert LoaderPolicy.from_flag(True) is LoaderPolicy.CHILD_FIRST


def test_parent_first_resource_lookup(scopes):
    parent, child = scopes
    loader = OrderedLoader([str(child)], parent, LoaderPolicy.PARENT_FIRST)
    assert loader.lookup_resource("shared.txt").startswith(parent.paths[0])


def test_child_first_resource_lookup(scopes):
    parent, child = scopes
    loader = OrderedLoader([str(child)], parent, LoaderPolicy.CHILD_FIRST)
    assert loader.lookup_resource("shared.txt").startswith(str(child))


def test_single_scope_resource_is_found_under_either_policy(scopes):
    parent, child = scopes
    for policy in LoaderPolicy:
        loader = OrderedLoader([str(child)], parent, policy)
        assert loader.lookup_resource("child-only.txt") == str(child / "child-only.txt")
        assert loader.lookup_resource("absent.txt") is None


@pytest.mark.parametrize(
    ("policy", "winner"),
    [(LoaderPolicy.PARENT_FIRST, "parent"), (LoaderPolicy.CHILD_FIRST, "child")],
)
def test_module_spec_follows_policy(scopes, policy, winner):
    parent, child = scopes
    loader = OrderedLoader([str(child)], parent, policy)

    spec = loader.find_spec("thinshadow_mod")

    assert spec is not None
    assert f"/{winner}/" in spec.origin.replace("\\", "/")


def test_submodule_lookups_are_left_to_package_path(scopes):
    parent, child = scopes
    loader = OrderedLoader([str(child)], parent)
    assert loader.find_spec("thinshadow_mod", path=[str(child)]) is None


def test_search_path_order(scopes):
    parent, child = scopes
    assert OrderedLoader([str(child)], parent, LoaderPolicy.PARENT_FIRST).search_path() == [
        parent.paths[0],
        str(child),
    ]
    assert OrderedLoader([str(child)], parent, LoaderPolicy.CHILD_FIRST).search_path() == [
        str(child),
        parent.paths[0],
    ]


def test_platform_scope_finds_stdlib_only():
    scope = platform_scope()
    assert scope.find_spec("json") is not None
    assert scope.find_spec("sys") is not None
    assert scope.find_spec("pytest") is None


def test_launching_scope_sees_installed_packages():
    assert launching_scope().find_spec("pytest") is not None


def test_install_and_uninstall_restore_import_state(scopes):
    parent, child = scopes
    saved_path = list(sys.path)
    loader = OrderedLoader([str(child)], parent)

    with loader:
        assert sys.meta_path[0] is loader
        assert sys.path == loader.search_path()

    assert loader not in sys.meta_path
    assert sys.path == saved_path


def test_install_is_idempotent(scopes):
    parent, child = scopes
    saved_path = list(sys.path)
    loader = OrderedLoader([str(child)], parent)
    try:
        loader.install()
        loader.install()
        assert sys.meta_path.count(loader) == 1
    finally:
        loader.uninstall()
    assert sys.path == saved_path


def test_imports_from_zip_and_nested_classes(tmp_path, make_zip, clean_modules):
    primary = Archive.open(
        make_zip(
            tmp_path / "app.pyz",
            {
                "thinzip_app/__init__.py": "NAME = 'app'\n",
                "BOOT-INF/classes/thinzip_nested/__init__.py": "NAME = 'nested'\n",
            },
        )
    )
    dependency = Archive.open(make_zip(tmp_path / "dep.zip", {"thinzip_dep/__init__.py": "NAME = 'dep'\n"}))

    with OrderedLoader.from_archives([primary, dependency], launching_scope()):
        assert importlib.import_module("thinzip_app").NAME == "app"
        assert importlib.import_module("thinzip_dep").NAME == "dep"
        assert importlib.import_module("thinzip_nested").NAME == "nested"


def test_child_first_shadows_already_imported_module(tmp_path, make_zip, monkeypatch, clean_modules):
    # The launching process imported its own thinshadow_mod before the launch
    host = tmp_path / "host"
    host.mkdir()
    (host / "thinshadow_mod.py").write_text("ORIGIN = 'host'\n")
    monkeypatch.syspath_prepend(str(host))
    launcher_copy = importlib.import_module("thinshadow_mod")
    app = Archive.open(make_zip(tmp_path / "app.pyz", {"thinshadow_mod.py": "ORIGIN = 'app'\n"}))
    parent = PathScope([str(host)], name="launching")

    with OrderedLoader.from_archives([app], parent, LoaderPolicy.CHILD_FIRST):
        assert importlib.import_module("thinshadow_mod").ORIGIN == "app"
    assert sys.modules["thinshadow_mod"] is launcher_copy

    with OrderedLoader.from_archives([app], parent, LoaderPolicy.PARENT_FIRST):
        assert importlib.import_module("thinshadow_mod") is launcher_copy


@pytest.fixture
def classpath_httpx(tmp_path, make_zip):
    """An application dependency named like a package the launcher itself imports."""
    return Archive.open(
        make_zip(
            tmp_path / "httpx-9.9.zip",
            {"httpx/__init__.py": "VERSION = '9.9'\n", "httpx/_extra.py": "EXTRA = True\n"},
        )
    )


@pytest.mark.parametrize(
    ("policy", "parent"),
    [(LoaderPolicy.CHILD_FIRST, launching_scope), (LoaderPolicy.PARENT_FIRST, platform_scope)],
)
def test_classpath_copy_replaces_launcher_import(classpath_httpx, policy, parent):
    launcher_httpx = importlib.import_module("httpx")

    with OrderedLoader.from_archives([classpath_httpx], parent(), policy):
        app_httpx = importlib.import_module("httpx")
        assert app_httpx.VERSION == "9.9"
        assert importlib.import_module("httpx._extra").EXTRA is True

    assert sys.modules["httpx"] is launcher_httpx
    assert "httpx._extra" not in sys.modules
    assert hasattr(importlib.import_module("httpx"), "Client")


def test_parent_first_keeps_launcher_import_the_parent_provides(classpath_httpx):
    launcher_httpx = importlib.import_module("httpx")

    loader = OrderedLoader.from_archives([classpath_httpx], launching_scope(), LoaderPolicy.PARENT_FIRST)
    assert "httpx" not in loader.shadowed_modules()
    with loader:
        assert importlib.import_module("httpx") is launcher_httpx
