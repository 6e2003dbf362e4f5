from __future__ import annotations


class SvsyncError(Exception):
    """Base class for every fatal reconciliation error."""


class LoadError(SvsyncError):
    """Configuration is empty, malformed, or declares a service twice."""


class ConflictError(SvsyncError):
    """An activation path is occupied by something svsync did not put there."""

    def __init__(self, path: str, reason: str):
        super().__init__(f"{path}: {reason}")
        self.path = path
        self.reason = reason


class FilesystemError(SvsyncError):
    """A create/write/chmod/chown/symlink/unlink/remove call failed."""
