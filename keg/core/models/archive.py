"""
PackageArchive — the read-only view of a package file.

Produced by ``keg.core.persistence.archive_reader.read_archive``.
"""

from __future__ import annotations

from pathlib import Path, PurePosixPath

from pydantic import BaseModel, ConfigDict, Field, field_validator

from keg.core.models.specification import Specification


class FileEntry(BaseModel):
    """One file inside an archive."""

    model_config = ConfigDict(frozen=True)

    path: str
    mode: int = 0o644
    content: bytes = b""

    @field_validator("path")
    @classmethod
    def _relative_path(cls, value: str) -> str:
        pure = PurePosixPath(value)
        if not value or pure.is_absolute() or ".." in pure.parts:
            raise ValueError(f"Archive entry path must be relative and inside the package: {value!r}")
        return value


class PackageArchive(BaseModel):
    """A specification plus its ordered file entries."""

    model_config = ConfigDict(frozen=True)

    path: Path
    spec: Specification
    file_entries: tuple[FileEntry, ...] = Field(default_factory=tuple)
