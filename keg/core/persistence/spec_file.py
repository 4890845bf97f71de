"""
Descriptor persistence — read/write installed specifications.

Each installed package has ``specifications/<full_name>.yml``. Writes are
atomic (write to temp file, then rename) so a crash mid-write never leaves
a truncated descriptor for the package index to trip over.
"""

from __future__ import annotations

import logging
import tempfile
from pathlib import Path

import yaml

from keg.core.models.specification import Specification

logger = logging.getLogger(__name__)

SPEC_DIR = "specifications"
DESCRIPTOR_EXT = ".yml"


def descriptor_path(install_dir: Path, full_name: str) -> Path:
    """Path of the descriptor for ``full_name`` under ``install_dir``."""
    return install_dir / SPEC_DIR / f"{full_name}{DESCRIPTOR_EXT}"


def dump_spec(spec: Specification) -> str:
    """Serialize a specification to descriptor text."""
    data = spec.model_dump(mode="json", exclude_none=True)
    return yaml.safe_dump(data, sort_keys=False, allow_unicode=True)


def write_spec(spec: Specification, install_dir: Path) -> Path:
    """Write the descriptor for ``spec`` (atomic write).

    Args:
        spec: The specification to persist.
        install_dir: Install root; the file lands in its ``specifications/``.

    Returns:
        Path of the written descriptor.
    """
    path = descriptor_path(install_dir, spec.full_name)
    path.parent.mkdir(parents=True, exist_ok=True)
    content = dump_spec(spec)

    _fd, tmp_path = tempfile.mkstemp(dir=path.parent, prefix=".spec_", suffix=".tmp")
    tmp = Path(tmp_path)
    try:
        with open(_fd, "w", encoding="utf-8") as f:
            f.write(content)
        tmp.replace(path)
    except Exception:
        tmp.unlink(missing_ok=True)
        raise
    logger.debug("Descriptor written to %s", path)
    return path


def load_spec(path: Path, install_dir: Path | None = None) -> Specification:
    """Load a descriptor file.

    ``installation_path`` defaults to the parent of the descriptor's
    ``specifications/`` directory.

    Raises:
        OSError, yaml.YAMLError, pydantic.ValidationError: on a bad file.
    """
    data = yaml.safe_load(path.read_text(encoding="utf-8"))
    spec = Specification.model_validate(data)
    spec.installation_path = install_dir if install_dir is not None else path.parent.parent
    spec.loaded_from = path
    return spec


def load_all_specs(install_dir: Path) -> list[Specification]:
    """Load every readable descriptor under ``install_dir``.

    Corrupt descriptors are logged and skipped.
    """
    spec_dir = install_dir / SPEC_DIR
    if not spec_dir.is_dir():
        return []

    specs: list[Specification] = []
    for path in sorted(spec_dir.glob(f"*{DESCRIPTOR_EXT}")):
        try:
            specs.append(load_spec(path, install_dir))
        except Exception as e:
            logger.warning("Skipping unreadable descriptor %s: %s", path, e)
    return specs
