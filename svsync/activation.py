from __future__ import annotations

import os

from .errors import ConflictError, FilesystemError
from .events import log_event


def check_activation(staging_path: str, activation_path: str) -> bool:
    """Return True if the link is already in place, False if it is absent.

    Raises ConflictError when something else occupies `activation_path`.
    """
    if not os.path.lexists(activation_path):
        return False
    if not os.path.islink(activation_path):
        raise ConflictError(activation_path, "exists and is not a symlink")
    target = os.readlink(activation_path)
    if target != staging_path:
        raise ConflictError(
            activation_path, f"is a symlink to {target!r}, expected {staging_path!r}"
        )
    return True


def activate(staging_path: str, activation_path: str) -> bool:
    """Make `activation_path` a symlink to `staging_path`.

    Returns True if the link was created. An existing link to the same target
    is left alone; any other occupant is never overwritten.
    """
    if check_activation(staging_path, activation_path):
        return False
    try:
        os.symlink(staging_path, activation_path)
    except OSError as e:
        raise FilesystemError(f"{activation_path}: cannot create symlink: {e.strerror or e}") from e
    log_event("INFO", f"Linked {activation_path} -> {staging_path}")
    return True


def deactivate(activation_path: str) -> None:
    try:
        os.unlink(activation_path)
    except FileNotFoundError:
        return
    except OSError as e:
        raise FilesystemError(f"{activation_path}: cannot unlink: {e.strerror or e}") from e
    log_event("INFO", f"Unlinked {activation_path}")
