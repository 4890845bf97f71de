"""
Installer — puts a package archive on disk.

Layout under the install directory ``D``::

    D/gems/<full_name>/...                extracted package files
    D/specifications/<full_name>.yml      persisted specification
    D/cache/<archive file name>           verbatim copy of the archive,
                                          named in the descriptor
    D/doc/                                reserved for documentation

Fatal problems (missing dependency, extraction failure) raise before or
during layout; stub and extension problems are reported as warnings and
collected in ``Installer.warnings`` while the install carries on.
"""

from __future__ import annotations

import logging
import shutil
from pathlib import Path

from keg.core.config.loader import KegConfig
from keg.core.errors import (
    ExtensionBuildError,
    ExtractionIOError,
    KegError,
    MissingDependencyError,
    StubWritePermissionError,
)
from keg.core.models.archive import PackageArchive
from keg.core.models.specification import Specification
from keg.core.persistence.archive_reader import read_archive
from keg.core.persistence.audit import AuditEntry, AuditWriter
from keg.core.persistence.spec_file import SPEC_DIR, write_spec
from keg.core.services.install.extensions import ExtensionBuilder
from keg.core.services.install.index import PackageIndex
from keg.core.services.install.stubs import StubGenerator
from keg.core.services.install.ui import ConsoleUI, UserInterface

logger = logging.getLogger(__name__)

GEMS_DIR = "gems"
CACHE_DIR = "cache"
DOC_DIR = "doc"


class Installer:
    """Installs package archives.

    Args:
        config: keg configuration (install dir, stub dirs, build settings).
        ui: Where status lines and warnings go. Defaults to the console.
        builder: Extension builder; one from ``config`` by default.
        stubs: Stub generator; one from ``config`` by default.
    """

    def __init__(
        self,
        config: KegConfig,
        ui: UserInterface | None = None,
        builder: ExtensionBuilder | None = None,
        stubs: StubGenerator | None = None,
    ):
        self.config = config
        self.ui = ui or ConsoleUI()
        self.builder = builder or ExtensionBuilder(config)
        self.stubs = stubs or StubGenerator(config, self.ui)
        self.warnings: list[KegError] = []

    def install(
        self,
        archive_path: Path | str,
        force: bool = False,
        install_dir: Path | str | None = None,
        install_stub: bool = True,
    ) -> Specification:
        """Install the package at ``archive_path``.

        Args:
            archive_path: The ``.keg`` file.
            force: Skip the dependency check.
            install_dir: Install root; ``config.install_dir`` by default.
            install_stub: Write a library stub if the package has an autorequire.

        Returns:
            The installed specification, with ``installation_path`` and
            ``loaded_from`` set.

        Raises:
            ArchiveFormatError: The archive cannot be read.
            MissingDependencyError: A dependency is not installed (not ``force``).
            ExtractionIOError: A package file could not be written.
        """
        self.warnings = []
        archive = read_archive(Path(archive_path))
        spec = archive.spec.model_copy(deep=True)
        install_dir = Path(install_dir) if install_dir is not None else self.config.install_dir

        if not force:
            self.check_dependencies(spec, install_dir)

        directory = install_dir / GEMS_DIR / spec.full_name
        self._make_layout(install_dir, directory)
        self.extract_files(directory, archive)

        self._generate_stubs(spec, install_stub)
        self._build_extensions(directory, spec)

        spec.installation_path = install_dir
        spec.cached_archive = archive.path.name
        spec.loaded_from = write_spec(spec, install_dir)
        self._cache_archive(archive.path, install_dir / CACHE_DIR)

        AuditWriter(install_dir).write(
            AuditEntry(
                operation="install",
                package=spec.full_name,
                forced=force,
                warnings=[str(w) for w in self.warnings],
            )
        )
        self.ui.say(f"Successfully installed {spec.name} version {spec.version}")
        return spec

    def check_dependencies(self, spec: Specification, install_dir: Path) -> None:
        """Raise ``MissingDependencyError`` for the first unsatisfied dependency."""
        index = PackageIndex(install_dir)
        for dependency in spec.dependencies:
            if not index.is_satisfied(dependency):
                raise MissingDependencyError(dependency.name, dependency.requirement, spec.full_name)

    def extract_files(self, directory: Path, archive: PackageArchive) -> None:
        """Write every archive entry under ``directory`` with its declared mode.

        Raises:
            ExtractionIOError: On a write failure or an entry resolving
                outside ``directory``.
        """
        root = directory.resolve()
        for entry in archive.file_entries:
            target = root / entry.path
            try:
                target.resolve().relative_to(root)
            except ValueError:
                raise ExtractionIOError(f"Entry {entry.path!r} escapes {root}") from None
            try:
                target.parent.mkdir(parents=True, exist_ok=True)
                target.write_bytes(entry.content)
                target.chmod(entry.mode)
            except OSError as e:
                raise ExtractionIOError(f"Cannot extract {entry.path}: {e}") from e
        logger.debug("Extracted %d file(s) into %s", len(archive.file_entries), root)

    # ── Steps ───────────────────────────────────────────────────

    def _make_layout(self, install_dir: Path, directory: Path) -> None:
        try:
            directory.mkdir(parents=True, exist_ok=True)
            for name in (SPEC_DIR, CACHE_DIR, DOC_DIR):
                (install_dir / name).mkdir(exist_ok=True)
        except OSError as e:
            raise ExtractionIOError(f"Cannot create install layout under {install_dir}: {e}") from e

    def _generate_stubs(self, spec: Specification, install_stub: bool) -> None:
        try:
            self.stubs.generate_bin_scripts(spec)
        except StubWritePermissionError as e:
            self._warn(e)
        if install_stub and spec.autorequire:
            try:
                self.stubs.generate_library_stub(spec)
            except StubWritePermissionError as e:
                self._warn(e)

    def _build_extensions(self, directory: Path, spec: Specification) -> None:
        for result in self.builder.build(directory, spec):
            if result.ok:
                logger.info("Built extension %s", result.extension)
            else:
                self._warn(ExtensionBuildError(result.extension, result.log_path, result.error or ""))

    def _cache_archive(self, archive_path: Path, cache_dir: Path) -> None:
        cached = cache_dir / archive_path.name
        if cached.exists():
            logger.debug("%s already cached", archive_path.name)
            return
        shutil.copyfile(archive_path, cached)

    def _warn(self, error: KegError) -> None:
        self.warnings.append(error)
        self.ui.alert_warning(str(error))
