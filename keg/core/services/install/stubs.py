"""
Stub generation — launcher scripts and library stubs.

A launcher lets a package executable run from the interpreter's scripts
directory; a library stub lets plain ``import <autorequire>`` find a
package installed under the keg install root. Both carry ``STUB_MARKER``
so uninstall only ever touches files keg wrote.

``app_script_text`` and ``library_stub_text`` are pure; ``StubGenerator``
does the writing and the uninstall-time cleanup.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path, PurePosixPath

from keg.core.config.loader import KegConfig
from keg.core.errors import StubWritePermissionError
from keg.core.models.specification import Specification
from keg.core.services.install.ui import UserInterface

logger = logging.getLogger(__name__)

STUB_MARKER = "# This file was generated by keg."

LAUNCHER_MODE = 0o755
LIBRARY_STUB_MODE = 0o644


def app_script_text(name: str, version: str, filename: str, interpreter: str) -> str:
    """Launcher for executable ``filename`` of package ``name`` pinned to ``version``."""
    requirement = f"= {version}"
    return f"""#!{interpreter}
#
{STUB_MARKER}
#
# The application '{name}' is installed as part of a keg package, and
# this file is here to facilitate running it.
#

import keg.runtime

keg.runtime.run_executable({name!r}, {requirement!r}, {filename!r})
"""


def library_stub_text(name: str) -> str:
    """Library stub loading the latest installed version of ``name``."""
    return f"""#
{STUB_MARKER}
#
# The library '{name}' is installed as part of a keg package, and
# this file is here so you can import it easily (i.e. without
# having to know it's a package).
#

import keg.runtime

keg.runtime.load_library_stub({name!r}, __name__)
"""


def launcher_name(filename: str) -> str:
    return PurePosixPath(filename).name


class StubGenerator:
    """Writes and cleans up stubs in the configured bin and site-lib dirs."""

    def __init__(self, config: KegConfig, ui: UserInterface):
        self.config = config
        self.ui = ui

    # ── Install ─────────────────────────────────────────────────

    def generate_bin_scripts(self, spec: Specification) -> list[Path]:
        """Write one launcher per executable. Existing launchers are replaced.

        Raises:
            StubWritePermissionError: If the bin directory cannot be written.
        """
        written: list[Path] = []
        if not spec.executables:
            return written

        bin_dir = self.config.bin_dir
        try:
            bin_dir.mkdir(parents=True, exist_ok=True)
            for filename in spec.executables:
                target = bin_dir / launcher_name(filename)
                target.write_text(
                    app_script_text(spec.name, spec.version, filename, self.config.interpreter),
                    encoding="utf-8",
                )
                target.chmod(LAUNCHER_MODE)
                written.append(target)
                logger.debug("Launcher written: %s", target)
        except OSError as e:
            raise StubWritePermissionError(
                f"Can't install launcher scripts for package '{spec.name}' in {bin_dir}: {e}"
            ) from e
        return written

    def generate_library_stub(self, spec: Specification) -> Path | None:
        """Write ``<site_lib_dir>/<autorequire>.py`` if the spec has an autorequire.

        Raises:
            StubWritePermissionError: If the directory is not writable or
                the stub file already exists (it is never overwritten).
        """
        if not spec.autorequire:
            return None

        site_lib_dir = self.config.site_lib_dir
        if not os.access(site_lib_dir, os.W_OK):
            raise StubWritePermissionError(
                f"Can't install library stub for package '{spec.name}' "
                f"(no write permission on '{site_lib_dir}')."
            )

        target = site_lib_dir / f"{spec.autorequire}.py"
        if target.exists():
            raise StubWritePermissionError(
                f"Library file '{target}' already exists; not overwriting. "
                "If you want to force a library stub, delete the file and reinstall."
            )

        target.write_text(library_stub_text(spec.name), encoding="utf-8")
        target.chmod(LIBRARY_STUB_MODE)
        logger.debug("Library stub written: %s", target)
        return target

    # ── Uninstall ───────────────────────────────────────────────

    def cleanup(self, spec: Specification, remaining: list[Specification]) -> None:
        """Reconcile stubs after ``spec`` was removed.

        ``remaining`` holds the other installed versions of the same package.
        Launchers always end up pointing at the latest remaining version.
        The library stub survives while some remaining version shares the
        removed one's autorequire; otherwise it is replaced by the latest
        remaining version's stub, if that version has an autorequire.
        """
        latest = max(remaining, key=lambda s: s.parsed_version) if remaining else None
        self._cleanup_launchers(spec, latest)
        self._cleanup_library_stub(spec, remaining, latest)

    def _cleanup_launchers(self, spec: Specification, latest: Specification | None) -> None:
        for filename in spec.executables:
            target = self.config.bin_dir / launcher_name(filename)
            if _generated_for(target, f"keg.runtime.run_executable({spec.name!r},"):
                target.unlink()
                logger.debug("Launcher removed: %s", target)

        if latest is not None and latest.executables:
            try:
                self.generate_bin_scripts(latest)
            except StubWritePermissionError as e:
                self.ui.alert_warning(str(e))

    def _cleanup_library_stub(
        self,
        spec: Specification,
        remaining: list[Specification],
        latest: Specification | None,
    ) -> None:
        if not spec.autorequire:
            return
        if any(other.autorequire == spec.autorequire for other in remaining):
            return

        target = self.config.site_lib_dir / f"{spec.autorequire}.py"
        if not _generated_for(target, f"keg.runtime.load_library_stub({spec.name!r},"):
            return
        target.unlink()
        logger.debug("Library stub removed: %s", target)

        if latest is None or not latest.autorequire:
            return
        if not (self.config.site_lib_dir / f"{latest.autorequire}.py").exists():
            try:
                self.generate_library_stub(latest)
            except StubWritePermissionError as e:
                self.ui.alert_warning(str(e))


def _generated_for(path: Path, call: str) -> bool:
    """Whether ``path`` is a keg stub containing ``call``."""
    if not path.is_file():
        return False
    try:
        text = path.read_text(encoding="utf-8", errors="replace")
    except OSError:
        return False
    return STUB_MARKER in text and call in text
