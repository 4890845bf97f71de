"""
Process runner — the single place ``subprocess.run`` is called.

Extension builds are the only external processes keg spawns. Calls block
until the child exits; there is no timeout unless the caller passes one.
The working directory is given per call (``cwd``) and the keg process
never changes its own.
"""

from __future__ import annotations

import logging
import os
import subprocess
import time
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)


def run_process(
    cmd: list[str],
    *,
    cwd: Path,
    timeout: int | None = None,
    env_overrides: dict[str, str] | None = None,
) -> dict[str, Any]:
    """Run ``cmd`` in ``cwd`` and capture its output.

    Args:
        cmd: Command list for ``subprocess.run()``.
        cwd: Working directory for the child.
        timeout: Seconds before giving up, or None to wait forever.
        env_overrides: Extra environment variables for the child.

    Returns:
        ``{"ok": bool, "returncode": N, "stdout": "...", "stderr": "...",
        "elapsed_ms": N}``; on spawn failure or timeout ``returncode`` is
        None and ``error`` says why.
    """
    env = os.environ.copy()
    if env_overrides:
        env.update(env_overrides)

    logger.debug("Running %s (cwd=%s)", cmd, cwd)
    start = time.monotonic()
    try:
        result = subprocess.run(
            cmd,
            cwd=cwd,
            env=env,
            capture_output=True,
            encoding="utf-8",
            errors="replace",
            timeout=timeout,
        )
    except subprocess.TimeoutExpired as e:
        return {
            "ok": False,
            "returncode": None,
            "stdout": _text(e.stdout),
            "stderr": _text(e.stderr),
            "error": f"Command timed out ({timeout}s)",
        }
    except OSError as e:
        logger.debug("Cannot spawn %s: %s", cmd, e)
        return {"ok": False, "returncode": None, "stdout": "", "stderr": "", "error": str(e)}

    elapsed_ms = int((time.monotonic() - start) * 1000)
    outcome: dict[str, Any] = {
        "ok": result.returncode == 0,
        "returncode": result.returncode,
        "stdout": result.stdout or "",
        "stderr": result.stderr or "",
        "elapsed_ms": elapsed_ms,
    }
    if result.returncode != 0:
        outcome["error"] = f"Command failed (exit {result.returncode})"
    return outcome


def _text(data: bytes | str | None) -> str:
    if data is None:
        return ""
    if isinstance(data, bytes):
        return data.decode("utf-8", errors="replace")
    return data
