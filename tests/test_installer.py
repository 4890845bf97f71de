"""
Tests for the installer — layout, dependency preflight, extraction,
stubs, extension builds, and descriptor/cache persistence.
"""

import os
import stat
from pathlib import Path

import pytest

from keg.core.errors import (
    ArchiveFormatError,
    ExtensionBuildError,
    ExtractionIOError,
    MissingDependencyError,
    StubWritePermissionError,
)
from keg.core.models import FileEntry
from keg.core.persistence.audit import AuditWriter
from keg.core.persistence.spec_file import load_spec
from keg.core.services.install import ExtensionBuilder, Installer, ScriptedUI


def _tree(root: Path) -> dict[str, int]:
    """Relative path → permission bits for every file under root."""
    return {
        p.relative_to(root).as_posix(): stat.S_IMODE(p.stat().st_mode)
        for p in root.rglob("*")
        if p.is_file()
    }


def _snapshot(root: Path) -> list[str]:
    if not root.exists():
        return []
    return sorted(p.relative_to(root).as_posix() for p in root.rglob("*"))


class TestInstall:
    def test_lays_out_package(self, installer, make_archive, install_dir):
        archive = make_archive()
        spec = installer.install(archive, install_dir=install_dir)

        package_dir = install_dir / "gems" / "hello-1.0"
        assert _tree(package_dir) == {"lib/hello.py": 0o644, "README": 0o600}
        assert (package_dir / "lib" / "hello.py").read_bytes() == b"GREETING = 'hello'\n"

        descriptor = install_dir / "specifications" / "hello-1.0.yml"
        assert descriptor.is_file()
        assert load_spec(descriptor).full_name == "hello-1.0"
        assert load_spec(descriptor).cached_archive == archive.name

        cached = install_dir / "cache" / archive.name
        assert cached.read_bytes() == archive.read_bytes()
        assert (install_dir / "doc").is_dir()

        assert spec.loaded_from == descriptor
        assert spec.installation_path == install_dir

    def test_reports_success(self, installer, make_archive, install_dir, ui):
        installer.install(make_archive(), install_dir=install_dir)
        assert ui.messages == ["Successfully installed hello version 1.0"]
        assert ui.warnings == []

    def test_defaults_to_configured_install_dir(self, installer, make_archive, keg_config):
        installer.install(make_archive())
        assert (keg_config.install_dir / "gems" / "hello-1.0").is_dir()

    def test_existing_directories_untouched(self, installer, make_archive, install_dir):
        (install_dir / "doc" / "other-1.0").mkdir(parents=True)
        (install_dir / "doc" / "other-1.0" / "index.html").write_text("docs")
        installer.install(make_archive(), install_dir=install_dir)
        assert (install_dir / "doc" / "other-1.0" / "index.html").read_text() == "docs"

    def test_cached_archive_not_recopied(self, installer, make_archive, install_dir):
        archive = make_archive()
        (install_dir / "cache").mkdir(parents=True)
        (install_dir / "cache" / archive.name).write_bytes(b"already here")
        installer.install(archive, install_dir=install_dir)
        assert (install_dir / "cache" / archive.name).read_bytes() == b"already here"

    def test_writes_audit_entry(self, installer, make_archive, install_dir):
        installer.install(make_archive(), force=True, install_dir=install_dir)
        (entry,) = AuditWriter(install_dir).read_all()
        assert entry.operation == "install"
        assert entry.package == "hello-1.0"
        assert entry.forced is True

    def test_unreadable_archive(self, installer, tmp_path, install_dir):
        bogus = tmp_path / "bogus.keg"
        bogus.write_bytes(b"nope")
        with pytest.raises(ArchiveFormatError):
            installer.install(bogus, install_dir=install_dir)
        assert not install_dir.exists()


class TestDependencies:
    def test_missing_dependency_fails_without_mutation(self, installer, make_archive, install_dir):
        archive = make_archive(depends={"base": ">= 1"})
        with pytest.raises(MissingDependencyError, match="base"):
            installer.install(archive, install_dir=install_dir)
        assert not install_dir.exists()

    def test_missing_dependency_leaves_existing_dir_unchanged(self, installer, make_archive, install_dir):
        (install_dir / "cache").mkdir(parents=True)
        before = _snapshot(install_dir)
        with pytest.raises(MissingDependencyError):
            installer.install(make_archive(depends={"base": ">= 1"}), install_dir=install_dir)
        assert _snapshot(install_dir) == before

    def test_wrong_version_installed(self, installer, make_archive, install_dir):
        installer.install(make_archive(name="base", version="1.0"), install_dir=install_dir)
        with pytest.raises(MissingDependencyError) as exc:
            installer.install(make_archive(depends={"base": ">= 2"}), install_dir=install_dir)
        assert exc.value.name == "base"
        assert exc.value.requirement == ">= 2"
        assert exc.value.required_by == "hello-1.0"

    def test_satisfied_dependency(self, installer, make_archive, install_dir):
        installer.install(make_archive(name="base", version="2.1"), install_dir=install_dir)
        spec = installer.install(make_archive(depends={"base": "~> 2.0"}), install_dir=install_dir)
        assert spec.full_name == "hello-1.0"

    def test_force_skips_check(self, installer, make_archive, install_dir):
        spec = installer.install(
            make_archive(depends={"base": ">= 1"}), force=True, install_dir=install_dir
        )
        assert (install_dir / "gems" / spec.full_name).is_dir()


class TestExtraction:
    def test_failure_is_fatal_and_keeps_cwd(self, installer, make_archive, install_dir):
        files = [
            FileEntry(path="lib", content=b"a file, not a directory"),
            FileEntry(path="lib/hello.py", content=b"X = 1\n"),
        ]
        before = os.getcwd()
        with pytest.raises(ExtractionIOError, match="lib/hello.py"):
            installer.install(make_archive(files=files), install_dir=install_dir)
        assert os.getcwd() == before
        assert not (install_dir / "specifications" / "hello-1.0.yml").exists()

    def test_symlink_escape_rejected(self, installer, make_archive, install_dir, tmp_path):
        outside = tmp_path / "outside"
        outside.mkdir()
        package_dir = install_dir / "gems" / "hello-1.0"
        package_dir.mkdir(parents=True)
        (package_dir / "lib").symlink_to(outside, target_is_directory=True)

        with pytest.raises(ExtractionIOError, match="escapes"):
            installer.install(make_archive(), install_dir=install_dir)
        assert list(outside.iterdir()) == []

    def test_nested_directories_created(self, installer, make_archive, install_dir):
        files = [FileEntry(path="a/b/c/deep.txt", mode=0o640, content=b"deep")]
        installer.install(make_archive(files=files), install_dir=install_dir)
        assert _tree(install_dir / "gems" / "hello-1.0") == {"a/b/c/deep.txt": 0o640}


class TestStubs:
    def test_launchers_generated(self, installer, make_archive, install_dir, keg_config):
        files = [FileEntry(path="bin/hello", mode=0o755, content=b"print('hi')\n")]
        installer.install(make_archive(files=files, executables=["hello"]), install_dir=install_dir)
        launcher = keg_config.bin_dir / "hello"
        assert "run_executable('hello', '= 1.0', 'hello')" in launcher.read_text()
        assert stat.S_IMODE(launcher.stat().st_mode) == 0o755

    def test_library_stub_generated(self, installer, make_archive, install_dir, keg_config):
        installer.install(make_archive(autorequire="hello"), install_dir=install_dir)
        assert (keg_config.site_lib_dir / "hello.py").is_file()

    def test_library_stub_skipped_when_disabled(self, installer, make_archive, install_dir, keg_config):
        installer.install(make_archive(autorequire="hello"), install_dir=install_dir, install_stub=False)
        assert not (keg_config.site_lib_dir / "hello.py").exists()

    def test_existing_stub_is_a_warning(self, installer, make_archive, install_dir, keg_config, ui):
        (keg_config.site_lib_dir / "hello.py").write_text("# user file\n")
        spec = installer.install(make_archive(autorequire="hello"), install_dir=install_dir)

        assert spec.loaded_from.is_file()
        assert (keg_config.site_lib_dir / "hello.py").read_text() == "# user file\n"
        assert len(installer.warnings) == 1
        assert isinstance(installer.warnings[0], StubWritePermissionError)
        assert "already exists" in ui.warnings[0]

    def test_unwritable_stub_dir_is_a_warning(self, keg_config, make_archive, install_dir, tmp_path):
        config = keg_config.model_copy(update={"site_lib_dir": tmp_path / "no-such-dir"})
        ui = ScriptedUI()
        Installer(config, ui=ui).install(make_archive(autorequire="hello"), install_dir=install_dir)
        assert "no write permission" in ui.warnings[0]
        assert ui.messages == ["Successfully installed hello version 1.0"]


class TestExtensions:
    def test_no_extensions_spawns_nothing(self, keg_config, make_archive, install_dir, ui):
        calls = []

        def runner(cmd, **kwargs):
            calls.append(cmd)
            return {"ok": True}

        builder = ExtensionBuilder(keg_config, runner)
        Installer(keg_config, ui=ui, builder=builder).install(make_archive(), install_dir=install_dir)
        assert calls == []

    def test_failed_build_does_not_abort(self, installer, make_archive, install_dir, ui):
        files = [FileEntry(path="ext/hello/extconf.py", content=b"print('no makefile here')\n")]
        archive = make_archive(files=files, extensions=["ext/hello/extconf.py"])
        spec = installer.install(archive, install_dir=install_dir)

        assert (install_dir / "specifications" / "hello-1.0.yml").is_file()
        assert (install_dir / "cache" / archive.name).is_file()
        assert spec.full_name == "hello-1.0"

        (warning,) = installer.warnings
        assert isinstance(warning, ExtensionBuildError)
        log = install_dir / "gems" / "hello-1.0" / "ext" / "hello" / "keg_make.out"
        assert warning.log_path == log.resolve()
        assert "no makefile here" in log.read_text()
        assert str(log.resolve()) in ui.warnings[0]
        assert ui.messages == ["Successfully installed hello version 1.0"]

    def test_warnings_reset_between_installs(self, installer, make_archive, install_dir):
        files = [FileEntry(path="ext/x/extconf.py", content=b"pass\n")]
        installer.install(
            make_archive(name="broken", files=files, extensions=["ext/x/extconf.py"]),
            install_dir=install_dir,
        )
        assert installer.warnings
        installer.install(make_archive(), install_dir=install_dir)
        assert installer.warnings == []

    def test_undecodable_build_output_does_not_abort(self, installer, make_archive, install_dir):
        script = b"import sys\nsys.stdout.buffer.write(b'cc: \\xff\\xfe\\n')\n"
        files = [FileEntry(path="ext/hello/extconf.py", content=script)]
        archive = make_archive(files=files, extensions=["ext/hello/extconf.py"])

        installer.install(archive, install_dir=install_dir)

        assert (install_dir / "specifications" / "hello-1.0.yml").is_file()
        assert (install_dir / "cache" / archive.name).is_file()
        (warning,) = installer.warnings
        assert isinstance(warning, ExtensionBuildError)
