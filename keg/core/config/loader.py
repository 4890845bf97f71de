"""
Configuration loader — reads keg.yml into a KegConfig.

Values are resolved in precedence order:
    explicit overrides  >  KEG_* env vars  >  keg.yml  >  built-in defaults

The config file is located by explicit path, then ``KEG_CONFIG``, then
``~/.config/keg/keg.yml``. A missing file is not an error; an unreadable
or invalid one is.
"""

from __future__ import annotations

import logging
import os
import platform
import sys
import sysconfig
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field

from keg.core.errors import ConfigError

logger = logging.getLogger(__name__)

# Default config filename
CONFIG_FILE = "keg.yml"

# Env var → config field
_ENV_FIELDS = {
    "KEG_HOME": "install_dir",
    "KEG_BIN_DIR": "bin_dir",
    "KEG_SITE_LIB_DIR": "site_lib_dir",
    "MAKE": "make_program",
}


def default_make_program() -> str:
    """Platform build tool used when ``MAKE`` is unset."""
    return "nmake" if platform.system() == "Windows" else "make"


class KegConfig(BaseModel):
    """Where keg installs things and how it builds extensions."""

    install_dir: Path = Field(default_factory=lambda: Path.home() / ".keg")
    bin_dir: Path = Field(default_factory=lambda: Path(sysconfig.get_path("scripts")))
    site_lib_dir: Path = Field(default_factory=lambda: Path(sysconfig.get_path("purelib")))
    interpreter: str = Field(default_factory=lambda: sys.executable)

    # ── Extension builds ─────────────────────────────────────────
    make_program: str = Field(default_factory=default_make_program)
    build_args: list[str] = Field(default_factory=list)
    build_timeout: int | None = None     # None = wait forever
    patch_build_file: bool = False       # rewrite Makefile install dirs in place


def find_config_file(explicit: Path | None = None) -> Path | None:
    """Locate the config file, or None if there is none."""
    if explicit is not None:
        return explicit
    env_path = os.environ.get("KEG_CONFIG")
    if env_path:
        return Path(env_path)
    candidate = Path.home() / ".config" / "keg" / CONFIG_FILE
    if candidate.is_file():
        return candidate
    return None


def load_config(path: Path | None = None, **overrides: Any) -> KegConfig:
    """Load and validate keg configuration.

    Args:
        path: Explicit path to keg.yml. If None, the standard locations
            are searched.
        **overrides: Field values that win over everything else
            (``None`` values are ignored).

    Returns:
        Validated KegConfig.

    Raises:
        ConfigError: If the file is unreadable or invalid.
    """
    data: dict[str, Any] = {}

    path = find_config_file(path)
    if path is not None:
        if not path.is_file():
            raise ConfigError(f"Config file not found: {path}")
        logger.debug("Loading keg config from %s", path)
        try:
            raw = path.read_text(encoding="utf-8")
        except OSError as e:
            raise ConfigError(f"Cannot read {path}: {e}") from e
        try:
            loaded = yaml.safe_load(raw)
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {path}: {e}") from e
        if loaded is None:
            loaded = {}
        if not isinstance(loaded, dict):
            raise ConfigError(f"Expected a YAML mapping in {path}, got {type(loaded).__name__}")
        data.update(loaded)

    for env_var, field in _ENV_FIELDS.items():
        value = os.environ.get(env_var)
        if value:
            data[field] = value

    data.update({k: v for k, v in overrides.items() if v is not None})

    try:
        config = KegConfig.model_validate(data)
    except Exception as e:
        raise ConfigError(f"Invalid keg configuration: {e}") from e

    logger.debug("Install dir: %s", config.install_dir)
    return config
