"""
Runtime — the package-loading side that generated stubs call into.

Launchers call ``run_executable``; library stubs call
``load_library_stub``. Both locate the install root from keg config
(``KEG_HOME`` / keg.yml), so stubs stay valid if the interpreter moves.
"""

from __future__ import annotations

import importlib
import importlib.util
import logging
import runpy
import sys
from pathlib import Path

from keg.core.config.loader import load_config
from keg.core.errors import MissingDependencyError
from keg.core.models.requirement import DEFAULT_REQUIREMENT
from keg.core.models.specification import Specification
from keg.core.services.install.index import PackageIndex

logger = logging.getLogger(__name__)


def activate(
    name: str,
    requirement: str | None = None,
    install_dir: Path | None = None,
) -> Specification:
    """Put the latest matching package's require paths first on ``sys.path``.

    Raises:
        MissingDependencyError: No installed version of ``name`` matches.
    """
    requirement = requirement or DEFAULT_REQUIREMENT
    if install_dir is None:
        install_dir = load_config().install_dir

    spec = PackageIndex(install_dir).find_latest(name, requirement)
    if spec is None:
        raise MissingDependencyError(name, requirement)

    for require_path in reversed(spec.require_paths):
        entry = str(spec.full_package_path / require_path)
        if entry not in sys.path:
            sys.path.insert(0, entry)
    logger.debug("Activated %s", spec.full_name)
    return spec


def run_executable(name: str, requirement: str, filename: str) -> None:
    """Activate ``name`` and run its executable ``filename`` as ``__main__``."""
    spec = activate(name, requirement)
    script = spec.full_package_path / spec.bindir / filename
    sys.argv[0] = str(script)
    runpy.run_path(str(script), run_name="__main__")


def load_library_stub(name: str, module_name: str) -> None:
    """Replace the stub module ``module_name`` with the package's real module."""
    spec = activate(name)
    stub = sys.modules.pop(module_name, None)
    stub_file = getattr(stub, "__file__", None)

    found = importlib.util.find_spec(module_name)
    if found is None or (stub_file and found.origin == stub_file):
        if stub is not None:
            sys.modules[module_name] = stub
        raise ImportError(f"{spec.full_name} does not provide module {module_name!r}")

    sys.modules[module_name] = importlib.import_module(module_name)
