"""
Shared test fixtures and configuration.
"""

import sys
from collections.abc import Callable
from pathlib import Path

import pytest

from keg.core.config.loader import KegConfig
from keg.core.models import Dependency, FileEntry, Specification
from keg.core.persistence.archive_reader import build_archive
from keg.core.services.install import Installer, ScriptedUI

DEFAULT_FILES = (
    FileEntry(path="lib/hello.py", mode=0o644, content=b"GREETING = 'hello'\n"),
    FileEntry(path="README", mode=0o600, content=b"Hello package\n"),
)


@pytest.fixture(autouse=True)
def isolated_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep keg from reading the real user's config or environment."""
    monkeypatch.setenv("HOME", str(tmp_path / "user-home"))
    for var in ("KEG_CONFIG", "KEG_HOME", "KEG_BIN_DIR", "KEG_SITE_LIB_DIR", "MAKE"):
        monkeypatch.delenv(var, raising=False)


@pytest.fixture
def install_dir(tmp_path: Path) -> Path:
    return tmp_path / "keg-home"


@pytest.fixture
def keg_config(tmp_path: Path, install_dir: Path) -> KegConfig:
    """Config with every output directory under tmp_path."""
    site = tmp_path / "site-lib"
    site.mkdir()
    return KegConfig(
        install_dir=install_dir,
        bin_dir=tmp_path / "bin",
        site_lib_dir=site,
        interpreter=sys.executable,
        make_program="make",
    )


@pytest.fixture
def ui() -> ScriptedUI:
    return ScriptedUI()


@pytest.fixture
def installer(keg_config: KegConfig, ui: ScriptedUI) -> Installer:
    return Installer(keg_config, ui=ui)


@pytest.fixture
def make_archive(tmp_path: Path) -> Callable[..., Path]:
    """Build a .keg archive in tmp_path/dist and return its path."""

    def _make(
        name: str = "hello",
        version: str = "1.0",
        files: list[FileEntry] | tuple[FileEntry, ...] = DEFAULT_FILES,
        depends: dict[str, str] | None = None,
        **spec_fields,
    ) -> Path:
        dependencies = [
            Dependency(name=dep, requirement=req) for dep, req in (depends or {}).items()
        ]
        spec = Specification(name=name, version=version, dependencies=dependencies, **spec_fields)
        return build_archive(spec, files, tmp_path / "dist")

    return _make
