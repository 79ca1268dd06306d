"""Tests for entry point discovery and invocation."""

import sys

import pytest

from thinlaunch.archive import Archive
from thinlaunch.entrypoint import EntryPoint
from thinlaunch.entrypoint import discover_entry_point
from thinlaunch.entrypoint import exit_code
from thinlaunch.entrypoint import invoke
from thinlaunch.entrypoint import resolve_entry_point
from thinlaunch.errors import EntryPointNotFound
from thinlaunch.loader import OrderedLoader
from thinlaunch.loader import launching_scope


class TestEntryPointParse:
    def test_module_only(self):
        assert EntryPoint.parse("pkg.app") == EntryPoint(module="pkg.app")

    def test_module_and_function(self):
        entry = EntryPoint.parse(" pkg.app : main ")
        assert entry.module == "pkg.app"
        assert entry.attr == "main"
        assert str(entry) == "pkg.app:main"

    @pytest.mark.parametrize("text", ["", ":main", "pkg.app:"])
    def test_malformed(self, text):
        with pytest.raises(EntryPointNotFound):
            EntryPoint.parse(text)


class TestDiscovery:
    def test_console_script(self, primary_archive):
        assert discover_entry_point(primary_archive) == EntryPoint("thinapp_main.cli", "run")

    def test_manifest_wins_over_console_script(self, tmp_path, make_zip):
        archive = Archive.open(
            make_zip(
                tmp_path / "app.pyz",
                {
                    "META-INF/MANIFEST.MF": "Manifest-Version: 1.0\nMain-Module: thinapp_other:start\n",
                    "thinapp-1.0.dist-info/entry_points.txt": "[console_scripts]\nthinapp = thinapp.cli:run\n",
                },
            )
        )
        assert discover_entry_point(archive) == EntryPoint("thinapp_other", "start")

    def test_console_script_extras_are_ignored(self, tmp_path, make_zip):
        archive = Archive.open(
            make_zip(
                tmp_path / "app.whl",
                {"thinapp-1.0.dist-info/entry_points.txt": "[console_scripts]\nthinapp = thinapp.cli:run [extra]\n"},
            )
        )
        assert discover_entry_point(archive) == EntryPoint("thinapp.cli", "run")

    def test_main_py_fallback(self, tmp_path, make_zip):
        path = make_zip(tmp_path / "app.pyz", {"__main__.py": "print('hi')\n"})
        entry = discover_entry_point(Archive.open(path))
        assert entry.run_path == str(path.resolve())

    def test_launcher_archive_main_py_is_not_an_entry_point(self, tmp_path, make_zip):
        path = make_zip(tmp_path / "thin.pyz", {"__main__.py": "import thinlaunch.main\n"})
        with pytest.raises(EntryPointNotFound) as exc_info:
            discover_entry_point(Archive.open(path), launcher_archive=path)
        assert "thin.main" in str(exc_info.value)

    def test_launcher_archive_with_declared_entry_point(self, tmp_path, make_zip):
        path = make_zip(
            tmp_path / "thin.pyz",
            {"__main__.py": "", "META-INF/MANIFEST.MF": "Main-Module: thinapp.cli:run\n"},
        )
        assert discover_entry_point(Archive.open(path), launcher_archive=path) == EntryPoint("thinapp.cli", "run")

    def test_nothing_declared(self, tmp_path, make_zip):
        archive = Archive.open(make_zip(tmp_path / "lib.zip", {"lib/__init__.py": ""}))
        with pytest.raises(EntryPointNotFound) as exc_info:
            discover_entry_point(archive)
        assert exc_info.value.context["archive"] == str(archive.path)

    def test_override_skips_discovery(self, tmp_path, make_zip):
        archive = Archive.open(make_zip(tmp_path / "lib.zip", {"lib/__init__.py": ""}))
        assert resolve_entry_point(archive, "lib.tool:main") == EntryPoint("lib.tool", "main")


@pytest.mark.parametrize(
    ("value", "expected"),
    [(None, 0), (0, 0), (3, 3), (True, 1), (False, 0)],
)
def test_exit_code(value, expected):
    assert exit_code(value) == expected


def test_exit_code_message_is_failure(capsys):
    assert exit_code("fatal: bad input") == 1
    assert "fatal: bad input" in capsys.readouterr().err


class TestInvoke:
    def test_function_receives_args(self, primary_archive, capsys, clean_modules):
        saved_argv = sys.argv
        with OrderedLoader.from_archives([primary_archive], launching_scope()):
            code = invoke(EntryPoint("thinapp_main.cli", "run"), ["serve", "--", "--port=1"], "app")

        assert code == 3
        assert capsys.readouterr().out == "ARGS=serve,--,--port=1\n"
        assert sys.argv is saved_argv

    def test_module_runs_as_main(self, tmp_path, make_zip, capsys, clean_modules):
        archive = Archive.open(
            make_zip(
                tmp_path / "app.pyz",
                {"thinapp_script.py": "import sys\nif __name__ == '__main__':\n    print('main', sys.argv[1:])\n"},
            )
        )
        with OrderedLoader.from_archives([archive], launching_scope()):
            assert invoke(EntryPoint("thinapp_script"), ["x"], "app") == 0
        assert capsys.readouterr().out == "main ['x']\n"

    def test_run_path_system_exit(self, tmp_path, make_zip):
        path = make_zip(tmp_path / "app.pyz", {"__main__.py": "import sys\nsys.exit(int(sys.argv[1]))\n"})
        entry = EntryPoint(module="__main__", run_path=str(path))
        assert invoke(entry, ["7"], str(path)) == 7

    def test_missing_module(self, clean_modules):
        with pytest.raises(EntryPointNotFound):
            invoke(EntryPoint("thinapp_does_not_exist", "main"), [], "app")
        with pytest.raises(EntryPointNotFound):
            invoke(EntryPoint("thinapp_does_not_exist"), [], "app")

    def test_missing_function(self, primary_archive, clean_modules):
        with OrderedLoader.from_archives([primary_archive], launching_scope()):
            with pytest.raises(EntryPointNotFound) as exc_info:
                invoke(EntryPoint("thinapp_main.cli", "nope"), [], "app")
        assert exc_info.value.context["main"] == "thinapp_main.cli:nope"

    def test_error_inside_application_propagates(self, tmp_path, make_zip, clean_modules):
        archive = Archive.open(
            make_zip(tmp_path / "app.pyz", {"thinapp_broken.py": "import thinapp_missing_dependency\n"})
        )
        with OrderedLoader.from_archives([archive], launching_scope()):
            with pytest.raises(ModuleNotFoundError):
                invoke(EntryPoint("thinapp_broken", "main"), [], "app")
