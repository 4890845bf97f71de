"""
Specification — the metadata describing one package.

A specification is read from an archive's ``metadata.yml``, persisted as
``specifications/<full_name>.yml`` on install, and loaded back by the
package index. ``installation_path`` and ``loaded_from`` are runtime
back-references and are never written to the descriptor.
"""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, Field, field_validator

from keg.core.errors import InvalidVersionError
from keg.core.models.requirement import DEFAULT_REQUIREMENT, Requirement, Version


class Dependency(BaseModel):
    """A named dependency with a version requirement."""

    name: str
    requirement: str = DEFAULT_REQUIREMENT

    @field_validator("requirement", mode="before")
    @classmethod
    def _valid_requirement(cls, value: object) -> str:
        value = str(value)
        try:
            Requirement(value)
        except InvalidVersionError as e:
            raise ValueError(str(e)) from e
        return value

    def matches(self, spec: Specification) -> bool:
        """Whether ``spec`` satisfies this dependency."""
        return spec.name == self.name and Requirement(self.requirement).satisfied_by(spec.version)

    def __str__(self) -> str:
        return f"{self.name} ({self.requirement})"


class Specification(BaseModel):
    """Package metadata."""

    name: str
    version: str
    summary: str = ""
    dependencies: list[Dependency] = Field(default_factory=list)
    bindir: str = "bin"
    executables: list[str] = Field(default_factory=list)
    autorequire: str | None = None
    extensions: list[str] = Field(default_factory=list)
    require_paths: list[str] = Field(default_factory=lambda: ["lib"])

    # Name of the archive copy under cache/, recorded on install
    cached_archive: str | None = None

    # ── Runtime back-references (not persisted) ──────────────────
    installation_path: Path | None = Field(default=None, exclude=True)
    loaded_from: Path | None = Field(default=None, exclude=True)

    @field_validator("version", mode="before")
    @classmethod
    def _valid_version(cls, value: object) -> str:
        # YAML reads an unquoted 1.0 as a float
        value = str(value)
        try:
            Version(value)
        except InvalidVersionError as e:
            raise ValueError(str(e)) from e
        return value

    @field_validator("name")
    @classmethod
    def _valid_name(cls, value: str) -> str:
        if not value or "/" in value or "\\" in value or value.startswith("."):
            raise ValueError(f"Invalid package name: {value!r}")
        return value

    @property
    def full_name(self) -> str:
        return f"{self.name}-{self.version}"

    @property
    def parsed_version(self) -> Version:
        return Version(self.version)

    @property
    def full_package_path(self) -> Path:
        """The extracted package directory under ``installation_path``."""
        if self.installation_path is None:
            raise ValueError(f"{self.full_name} has no installation path")
        return self.installation_path / "gems" / self.full_name

    def add_dependency(self, name: str, requirement: str = DEFAULT_REQUIREMENT) -> None:
        self.dependencies.append(Dependency(name=name, requirement=requirement))

    def __str__(self) -> str:
        return self.full_name


class DependencyEdge(BaseModel):
    """An installed package depending on the one being considered for removal."""

    dependent: Specification
    dependency: Dependency
    satisfied_by: list[Specification] = Field(default_factory=list)
