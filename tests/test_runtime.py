"""
Tests for the runtime — what launchers and library stubs call at run time.
"""

import importlib
import sys

import pytest

from keg import runtime
from keg.core.errors import MissingDependencyError
from keg.core.models import FileEntry
from keg.core.services.install import Installer, ScriptedUI


@pytest.fixture
def installed(keg_config, make_archive, install_dir, monkeypatch):
    """Install a package with a library module and an executable."""
    monkeypatch.setenv("KEG_HOME", str(install_dir))
    monkeypatch.setattr(sys, "path", list(sys.path))
    files = [
        FileEntry(path="lib/kegdemo_mod.py", content=b"VALUE = 42\n"),
        FileEntry(
            path="bin/kegdemo",
            mode=0o755,
            content=b"import os, pathlib\npathlib.Path(os.environ['KEGDEMO_OUT']).write_text(__name__)\n",
        ),
    ]
    for version in ("1.0", "2.0"):
        archive = make_archive(
            name="kegdemo", version=version, files=files,
            executables=["kegdemo"], autorequire="kegdemo_mod",
        )
        Installer(keg_config, ui=ScriptedUI()).install(archive, install_dir=install_dir)
    yield
    sys.modules.pop("kegdemo_mod", None)


class TestActivate:
    def test_latest_version_first_on_path(self, installed, install_dir):
        spec = runtime.activate("kegdemo")
        assert spec.version == "2.0"
        assert sys.path[0] == str(install_dir / "gems" / "kegdemo-2.0" / "lib")

    def test_requirement_honoured(self, installed, install_dir):
        spec = runtime.activate("kegdemo", "< 2", install_dir=install_dir)
        assert spec.version == "1.0"

    def test_unknown_package(self, installed):
        with pytest.raises(MissingDependencyError):
            runtime.activate("nope")


class TestRunExecutable:
    def test_runs_as_main(self, installed, tmp_path, monkeypatch):
        out = tmp_path / "out.txt"
        monkeypatch.setenv("KEGDEMO_OUT", str(out))
        monkeypatch.setattr(sys, "argv", ["kegdemo"])
        runtime.run_executable("kegdemo", "= 1.0", "kegdemo")
        assert out.read_text() == "__main__"


class TestLibraryStub:
    def test_stub_import_yields_real_module(self, installed, keg_config, monkeypatch):
        monkeypatch.syspath_prepend(str(keg_config.site_lib_dir))
        importlib.invalidate_caches()

        module = importlib.import_module("kegdemo_mod")
        assert module.VALUE == 42
        assert "gems" in module.__file__

    def test_missing_module_restores_stub(self, installed, monkeypatch):
        stub = type(sys)("kegdemo_absent")
        monkeypatch.setitem(sys.modules, "kegdemo_absent", stub)
        with pytest.raises(ImportError, match="does not provide"):
            runtime.load_library_stub("kegdemo", "kegdemo_absent")
        assert sys.modules["kegdemo_absent"] is stub
