"""
Extension builder — drives the external toolchain for native extensions.

For every extension script a package declares:

    1. run ``<interpreter> <script> <build_args...>`` in the script's dir
    2. if that produced a ``Makefile``: run ``make`` then ``make install``
       with the install-path variables pointed at the package's first
       require path
    3. write every command and its output to ``keg_make.out`` next to
       the script

Install-path variables are passed as make command-line overrides. When
``patch_build_file`` is configured, the Makefile assignments are also
rewritten in place, for toolchains that ignore command-line variables.

The builder never raises for a failed build: each extension gets a
``BuildResult`` and the installer decides what to report.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable
from pathlib import Path, PurePosixPath
from typing import Any, Literal

from pydantic import BaseModel, Field

from keg.core.config.loader import KegConfig
from keg.core.models.specification import Specification
from keg.core.services.install.process import run_process

logger = logging.getLogger(__name__)

BUILD_FILE = "Makefile"
BUILD_LOG = "keg_make.out"
INSTALL_PATH_VARS = ("KEG_ARCHDIR", "KEG_LIBDIR")

Runner = Callable[..., dict[str, Any]]


class BuildResult(BaseModel):
    """Outcome of building one extension."""

    extension: str
    status: Literal["ok", "failed"] = "ok"
    log_path: Path
    error: str | None = None
    commands: list[str] = Field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.status == "ok"


class ExtensionBuilder:
    """Builds the native extensions of an extracted package.

    Args:
        config: Supplies the interpreter, make program, build args,
            timeout and patching switch.
        runner: Process runner, ``run_process`` by default.
    """

    def __init__(self, config: KegConfig, runner: Runner = run_process):
        self.config = config
        self.runner = runner

    def build(self, directory: Path, spec: Specification) -> list[BuildResult]:
        """Build every extension of ``spec`` extracted under ``directory``.

        Returns an empty list, without spawning anything, when the spec
        declares no extensions.
        """
        if not spec.extensions:
            return []

        directory = directory.resolve()
        dest_path = directory / (spec.require_paths[0] if spec.require_paths else "")
        return [self._build_one(directory, extension, dest_path) for extension in spec.extensions]

    def _build_one(self, directory: Path, extension: str, dest_path: Path) -> BuildResult:
        script = PurePosixPath(extension)
        ext_dir = directory / script.parent
        log_path = ext_dir / BUILD_LOG
        results: list[str] = []
        commands: list[str] = []

        def step(cmd: list[str]) -> dict[str, Any]:
            line = " ".join(cmd)
            commands.append(line)
            results.append(line)
            outcome = self.runner(cmd, cwd=ext_dir, timeout=self.config.build_timeout)
            results.extend(s for s in (outcome.get("stdout"), outcome.get("stderr")) if s)
            if not outcome["ok"]:
                results.append(outcome.get("error", "failed"))
            return outcome

        logger.info("Building native extension %s", extension)
        error: str | None = None
        if not ext_dir.is_dir():
            error = f"extension directory {ext_dir} does not exist"
        else:
            configure = step([self.config.interpreter, script.name, *self.config.build_args])
            build_file = ext_dir / BUILD_FILE
            if not build_file.is_file():
                error = f"{script.name} did not produce a {BUILD_FILE}"
                if not configure["ok"]:
                    error += f": {configure.get('error')}"
            else:
                error = self._make(build_file, dest_path, step)

        _write_log(log_path, results)
        if error:
            logger.debug("Extension %s failed: %s", extension, error)
            return BuildResult(
                extension=extension, status="failed", log_path=log_path,
                error=error, commands=commands,
            )
        return BuildResult(extension=extension, log_path=log_path, commands=commands)

    def _make(
        self,
        build_file: Path,
        dest_path: Path,
        step: Callable[[list[str]], dict[str, Any]],
    ) -> str | None:
        """Run ``make`` then ``make install``; return an error message or None."""
        if self.config.patch_build_file:
            try:
                patch_build_file(build_file, dest_path)
            except OSError as e:
                return f"cannot patch {build_file.name}: {e}"

        overrides = [f"{var}={dest_path}" for var in INSTALL_PATH_VARS]
        make = self.config.make_program
        for target in ([], ["install"]):
            outcome = step([make, *overrides, *target])
            if not outcome["ok"]:
                label = " ".join([make, *target])
                return f"'{label}' failed: {outcome.get('error')}"
        return None


def patch_build_file(build_file: Path, dest_path: Path) -> None:
    """Point the Makefile's install-path assignments at ``dest_path``.

    Only assignments whose value is a variable reference (``VAR = $(...)``)
    are rewritten.
    """
    text = build_file.read_text(encoding="utf-8", errors="surrogateescape")
    for var in INSTALL_PATH_VARS:
        text = re.sub(
            rf"^{var}\s*=\s*\$.*$",
            lambda _m, var=var: f"{var} = {dest_path}",
            text,
            flags=re.MULTILINE,
        )
    build_file.write_text(text, encoding="utf-8", errors="surrogateescape")


def _write_log(log_path: Path, lines: list[str]) -> None:
    try:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        log_path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    except OSError as e:
        logger.warning("Cannot write build log %s: %s", log_path, e)
