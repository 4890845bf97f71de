"""
Domain models — Pydantic types for keg.

    from keg.core.models import Specification, PackageArchive, Requirement
"""

from keg.core.models.archive import FileEntry, PackageArchive
from keg.core.models.requirement import DEFAULT_REQUIREMENT, Requirement, Version
from keg.core.models.specification import Dependency, DependencyEdge, Specification

__all__ = [
    "DEFAULT_REQUIREMENT",
    "Dependency",
    "DependencyEdge",
    "FileEntry",
    "PackageArchive",
    "Requirement",
    "Specification",
    "Version",
]
