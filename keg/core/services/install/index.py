"""
Package index — what is installed under one install directory.

Built from the descriptors in ``specifications/``. The index is a snapshot:
it does not notice installs or removals made after it was loaded, so
callers create a fresh one per operation.
"""

from __future__ import annotations

import logging
from pathlib import Path

from keg.core.models.requirement import DEFAULT_REQUIREMENT, Requirement
from keg.core.models.specification import Dependency, DependencyEdge, Specification
from keg.core.persistence.spec_file import load_all_specs

logger = logging.getLogger(__name__)


class PackageIndex:
    """Installed specifications, searchable by name and requirement."""

    def __init__(self, install_dir: Path, specs: list[Specification] | None = None):
        self.install_dir = install_dir
        self._specs = specs if specs is not None else load_all_specs(install_dir)
        logger.debug("Index of %s: %d package(s)", install_dir, len(self._specs))

    def all(self) -> list[Specification]:
        return sorted(self._specs, key=lambda s: (s.name, s.parsed_version))

    def search(self, name: str, requirement: str = DEFAULT_REQUIREMENT) -> list[Specification]:
        """Installed versions of ``name`` satisfying ``requirement``, oldest first."""
        req = Requirement(requirement)
        return sorted(
            (s for s in self._specs if s.name == name and req.satisfied_by(s.version)),
            key=lambda s: s.parsed_version,
        )

    def find_latest(self, name: str, requirement: str = DEFAULT_REQUIREMENT) -> Specification | None:
        matches = self.search(name, requirement)
        return matches[-1] if matches else None

    def is_satisfied(self, dependency: Dependency) -> bool:
        """Whether some installed package satisfies ``dependency``."""
        return bool(self.search(dependency.name, dependency.requirement))

    def dependents_of(self, spec: Specification) -> list[DependencyEdge]:
        """Installed packages with a dependency that ``spec`` satisfies.

        Each edge lists every installed version satisfying that dependency,
        ``spec`` included.
        """
        edges: list[DependencyEdge] = []
        for other in self.all():
            if other.full_name == spec.full_name:
                continue
            for dependency in other.dependencies:
                if dependency.matches(spec):
                    edges.append(
                        DependencyEdge(
                            dependent=other,
                            dependency=dependency,
                            satisfied_by=self.search(dependency.name, dependency.requirement),
                        )
                    )
        return edges
