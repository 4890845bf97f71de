"""
Error hierarchy — every failure keg reports to a caller.

Fatal errors abort the current operation before (or instead of) further
filesystem mutation. ``ExtensionBuildError`` and
``StubWritePermissionError`` are non-fatal: the installer reports them as
warnings and carries on.
"""

from __future__ import annotations

from pathlib import Path


class KegError(Exception):
    """Base class for all keg errors."""


class ConfigError(KegError):
    """Raised when keg configuration is invalid or unreadable."""


class ArchiveFormatError(KegError):
    """Raised when a package archive cannot be read."""


class InvalidVersionError(KegError):
    """Raised for a malformed version or requirement string."""


class MissingDependencyError(KegError):
    """A dependency has no satisfying installed package."""

    def __init__(self, name: str, requirement: str, required_by: str = ""):
        self.name = name
        self.requirement = requirement
        self.required_by = required_by
        msg = f"Missing dependency: {name} ({requirement})"
        if required_by:
            msg += f", required by {required_by}"
        super().__init__(msg)


class ExtractionIOError(KegError):
    """Writing a package file failed during extraction."""


class ExtensionBuildError(KegError):
    """A native extension failed to build."""

    def __init__(self, extension: str, log_path: Path, reason: str = ""):
        self.extension = extension
        self.log_path = log_path
        detail = f" ({reason})" if reason else ""
        super().__init__(
            f"Failed to build native extension {extension}{detail}.\n"
            f"  See {log_path}"
        )


class StubWritePermissionError(KegError):
    """A library stub could not be written."""


class DependentExistsError(KegError):
    """Removal declined because other packages depend on this one."""


class AmbiguousSelectionError(KegError):
    """An interactive selection did not name a valid choice."""
