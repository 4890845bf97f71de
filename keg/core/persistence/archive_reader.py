"""
Archive reader — the ``.keg`` package file format.

A ``.keg`` file is a tar archive (plain or gzip) holding:

    metadata.yml          the specification mapping
    data/<relative path>  package files; member mode = file permission

``build_archive`` is the inverse, used by tests and packaging scripts.
"""

from __future__ import annotations

import io
import logging
import tarfile
from collections.abc import Iterable
from pathlib import Path

import yaml
from pydantic import ValidationError

from keg.core.errors import ArchiveFormatError
from keg.core.models.archive import FileEntry, PackageArchive
from keg.core.models.specification import Specification

logger = logging.getLogger(__name__)

METADATA_MEMBER = "metadata.yml"
DATA_PREFIX = "data/"
ARCHIVE_EXT = ".keg"


def read_archive(path: Path) -> PackageArchive:
    """Read a package archive.

    Raises:
        ArchiveFormatError: If the file is missing, not a tar archive, or
            its metadata is invalid.
    """
    path = Path(path)
    if not path.is_file():
        raise ArchiveFormatError(f"Package archive not found: {path}")

    try:
        with tarfile.open(path, "r:*") as tar:
            try:
                meta = tar.extractfile(tar.getmember(METADATA_MEMBER))
            except KeyError:
                raise ArchiveFormatError(f"{path}: missing {METADATA_MEMBER}") from None
            if meta is None:
                raise ArchiveFormatError(f"{path}: {METADATA_MEMBER} is not a file")
            raw_meta = meta.read().decode("utf-8")

            entries: list[FileEntry] = []
            for member in tar.getmembers():
                if not member.isfile() or not member.name.startswith(DATA_PREFIX):
                    continue
                fobj = tar.extractfile(member)
                content = fobj.read() if fobj else b""
                entries.append(
                    FileEntry(
                        path=member.name[len(DATA_PREFIX):],
                        mode=member.mode & 0o7777,
                        content=content,
                    )
                )
    except (tarfile.TarError, OSError) as e:
        raise ArchiveFormatError(f"Cannot read package archive {path}: {e}") from e
    except ValidationError as e:
        raise ArchiveFormatError(f"{path}: invalid file entry: {e}") from e

    try:
        spec = Specification.model_validate(yaml.safe_load(raw_meta))
    except (yaml.YAMLError, ValidationError) as e:
        raise ArchiveFormatError(f"{path}: invalid {METADATA_MEMBER}: {e}") from e

    logger.debug("Read %s: %s with %d file(s)", path, spec.full_name, len(entries))
    return PackageArchive(path=path, spec=spec, file_entries=tuple(entries))


def build_archive(
    spec: Specification,
    files: Iterable[FileEntry],
    dest_dir: Path,
) -> Path:
    """Write ``<dest_dir>/<full_name>.keg`` from a spec and file entries."""
    dest_dir.mkdir(parents=True, exist_ok=True)
    path = dest_dir / f"{spec.full_name}{ARCHIVE_EXT}"
    meta = yaml.safe_dump(spec.model_dump(mode="json", exclude_none=True), sort_keys=False)

    with tarfile.open(path, "w:gz") as tar:
        _add_bytes(tar, METADATA_MEMBER, meta.encode("utf-8"), 0o644)
        for entry in files:
            _add_bytes(tar, DATA_PREFIX + entry.path, entry.content, entry.mode)
    return path


def _add_bytes(tar: tarfile.TarFile, name: str, data: bytes, mode: int) -> None:
    info = tarfile.TarInfo(name=name)
    info.size = len(data)
    info.mode = mode
    tar.addfile(info, io.BytesIO(data))
