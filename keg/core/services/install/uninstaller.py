"""
Uninstaller — removes installed packages.

``uninstall`` is the interactive entry point: it looks the package up,
asks which version to remove when several match, and removes the choice.
``remove`` deletes one package after checking that no other installed
package depends on it (or that the user accepted breaking them).

Removal deletes the package directory, its descriptor, its cached archive
(the ``cache/`` file named in its descriptor, unless another installed
package was cached under the same name) and ``doc/<full_name>``, then
reconciles launcher and library stubs against the versions that remain.
"""

from __future__ import annotations

import logging
import shutil
from pathlib import Path

from keg.core.config.loader import KegConfig
from keg.core.errors import AmbiguousSelectionError, DependentExistsError
from keg.core.models.requirement import DEFAULT_REQUIREMENT
from keg.core.models.specification import Specification
from keg.core.persistence.archive_reader import ARCHIVE_EXT
from keg.core.persistence.audit import AuditEntry, AuditWriter
from keg.core.persistence.spec_file import descriptor_path
from keg.core.services.install.index import PackageIndex
from keg.core.services.install.installer import CACHE_DIR, DOC_DIR, GEMS_DIR
from keg.core.services.install.stubs import StubGenerator
from keg.core.services.install.ui import ConsoleUI, UserInterface

logger = logging.getLogger(__name__)

ALL_VERSIONS = "All versions"


class Uninstaller:
    """Removes packages from one install directory.

    Args:
        config: keg configuration.
        ui: Interaction for selection and dependent confirmation.
        install_dir: Install root; ``config.install_dir`` by default.
        stubs: Stub generator used for cleanup.
    """

    def __init__(
        self,
        config: KegConfig,
        ui: UserInterface | None = None,
        install_dir: Path | str | None = None,
        stubs: StubGenerator | None = None,
    ):
        self.config = config
        self.ui = ui or ConsoleUI()
        self.install_dir = Path(install_dir) if install_dir is not None else config.install_dir
        self.stubs = stubs or StubGenerator(config, self.ui)

    def uninstall(self, name: str, requirement: str = DEFAULT_REQUIREMENT) -> list[Specification]:
        """Remove installed versions of ``name`` matching ``requirement``.

        Returns:
            The removed specifications; empty for an unknown package or an
            invalid selection.

        Raises:
            DependentExistsError: A removal was declined because of dependents.
        """
        matches = PackageIndex(self.install_dir).search(name, requirement)
        if not matches:
            self.ui.say(f"Unknown package: {name} ({requirement})")
            return []

        if len(matches) == 1:
            selected = matches
        else:
            try:
                selected = self._select(matches)
            except AmbiguousSelectionError as e:
                self.ui.alert_error(str(e))
                return []

        removed: list[Specification] = []
        installed = matches
        for spec in selected:
            installed = self.remove(spec, installed)
            removed.append(spec)
        return removed

    def remove(self, spec: Specification, installed: list[Specification]) -> list[Specification]:
        """Remove one installed package.

        Args:
            spec: The package to remove.
            installed: Currently installed specifications of this package.

        Returns:
            ``installed`` without ``spec``. The argument is not modified.

        Raises:
            DependentExistsError: A dependent exists and the user declined.
        """
        if self.has_dependents(spec):
            raise DependentExistsError(
                f"Uninstallation of {spec.full_name} aborted due to dependent package(s)"
            )

        install_dir = spec.installation_path or self.install_dir
        shutil.rmtree(install_dir / GEMS_DIR / spec.full_name, ignore_errors=True)
        descriptor_path(install_dir, spec.full_name).unlink(missing_ok=True)
        shutil.rmtree(install_dir / DOC_DIR / spec.full_name, ignore_errors=True)

        index = PackageIndex(install_dir)
        self._remove_cached_archive(spec, install_dir, index)

        # Every other installed version, not just those matching the request
        others = [s for s in index.search(spec.name) if s.full_name != spec.full_name]
        self.stubs.cleanup(spec, others)

        AuditWriter(install_dir).write(AuditEntry(operation="uninstall", package=spec.full_name))
        self.ui.say(f"Successfully uninstalled {spec.name} version {spec.version}")
        return [s for s in installed if s.full_name != spec.full_name]

    def has_dependents(self, spec: Specification) -> bool:
        """Warn about each dependent and ask whether to break it.

        Returns True as soon as the user declines one.
        """
        install_dir = spec.installation_path or self.install_dir
        for edge in PackageIndex(install_dir).dependents_of(spec):
            satisfiers = "\n".join(f"\t{s.name}-{s.version}" for s in edge.satisfied_by)
            self.ui.alert_warning(
                f"{edge.dependent.full_name} depends on [{edge.dependency}], which is "
                f"satisfied by this package. This dependency is satisfied by:\n{satisfiers}"
            )
            if not self.ui.confirm("Uninstall anyway?"):
                return True
        return False

    def _remove_cached_archive(
        self, spec: Specification, install_dir: Path, index: PackageIndex
    ) -> None:
        # Older descriptors carry no cached_archive
        name = spec.cached_archive or f"{spec.full_name}{ARCHIVE_EXT}"
        shared = [s.full_name for s in index.all() if s.cached_archive == name]
        if shared:
            logger.debug("Keeping cache/%s, still used by %s", name, ", ".join(shared))
            return
        (install_dir / CACHE_DIR / name).unlink(missing_ok=True)

    def _select(self, matches: list[Specification]) -> list[Specification]:
        options = [s.full_name for s in matches] + [ALL_VERSIONS]
        answer = self.ui.choose("Select package to uninstall:", options).strip()
        try:
            choice = int(answer)
        except ValueError:
            choice = 0
        if not 1 <= choice <= len(options):
            raise AmbiguousSelectionError(f"must enter a number [1-{len(options)}]")
        if choice == len(options):
            return list(matches)
        return [matches[choice - 1]]
