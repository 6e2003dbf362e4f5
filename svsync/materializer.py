from __future__ import annotations

import logging
import os
import pwd
import shutil
import stat

from .errors import FilesystemError
from .events import log_event
from .models import ServiceSpec
from .scripts import render_run_script

logger = logging.getLogger(__name__)

DIR_MODE = 0o755
FIFO_MODE = 0o622
SCRIPT_MODE = 0o755

# (relative path, kind), parents before children.
STRUCTURE: tuple[tuple[str, str], ...] = (
    ("", "dir"),
    ("supervise", "dir"),
    ("supervise/ok", "fifo"),
    ("log", "dir"),
    ("log/main", "dir"),
    ("log/supervise", "dir"),
    ("log/supervise/ok", "fifo"),
)

LOG_DIR = "log/main"


def render_scripts(spec: ServiceSpec, interpreter: str = "python3") -> dict[str, bytes]:
    """Entry scripts for `spec`, keyed by path relative to the service directory."""
    return {
        "log/run": render_run_script(spec.log_command, spec.log_start_delay_seconds, interpreter),
        "run": render_run_script(
            spec.run_command, spec.start_delay_seconds, interpreter, redirect_stderr=True
        ),
    }


def _kind_of(path: str) -> str | None:
    try:
        st = os.lstat(path)
    except FileNotFoundError:
        return None
    if stat.S_ISDIR(st.st_mode):
        return "dir"
    if stat.S_ISFIFO(st.st_mode):
        return "fifo"
    return "other"


def _read(path: str) -> bytes | None:
    try:
        with open(path, "rb") as f:
            return f.read()
    except FileNotFoundError:
        return None


def _log_uid(log_user: str | None) -> int | None:
    if not log_user:
        return None
    try:
        return pwd.getpwnam(log_user).pw_uid
    except KeyError:
        raise FilesystemError(f"unknown log user {log_user!r}") from None


def _owned_by(path: str, uid: int | None) -> bool:
    return uid is None or os.lstat(path).st_uid == uid


def _create(path: str, kind: str) -> None:
    if kind == "dir":
        os.mkdir(path, DIR_MODE)
        os.chmod(path, DIR_MODE)
    else:
        os.mkfifo(path, FIFO_MODE)
        os.chmod(path, FIFO_MODE)


def _write_script(path: str, content: bytes) -> None:
    """Replace `path` with `content` so readers see either the old or new script."""
    tmp = os.path.join(os.path.dirname(path), f".{os.path.basename(path)}.tmp")
    try:
        with open(tmp, "wb") as f:
            f.write(content)
            f.flush()
            os.fsync(f.fileno())
        os.chmod(tmp, SCRIPT_MODE)
        os.replace(tmp, path)
    except OSError:
        try:
            os.unlink(tmp)
        except FileNotFoundError:
            pass
        raise


def ensure_structure(staging_path: str, log_user: str | None = None) -> list[str]:
    """Create whatever part of the fixed layout is missing; return what was created.

    The log user is resolved before anything is created. ``log/main`` is
    chowned whenever its owner differs from the log user, new or not.
    """
    uid = _log_uid(log_user)
    created: list[str] = []
    for rel, kind in STRUCTURE:
        path = os.path.join(staging_path, rel) if rel else staging_path
        found = _kind_of(path)
        if found is not None and found != kind:
            raise FilesystemError(f"{path}: expected a {kind}, found a {found}")
        try:
            if found is None:
                _create(path, kind)
                created.append(rel or ".")
            if rel == LOG_DIR and not _owned_by(path, uid):
                shutil.chown(path, user=log_user)
                log_event("INFO", f"Changed owner of {path} to {log_user}")
        except OSError as e:
            raise FilesystemError(f"{path}: cannot prepare {kind}: {e.strerror or e}") from e
    return created


def materialize(
    spec: ServiceSpec,
    staging_path: str,
    *,
    log_user: str | None = None,
    interpreter: str = "python3",
) -> bool:
    """Build or update the service directory for `spec`.

    Missing directories and FIFOs are created first; existing ones are left as
    they are, apart from the owner of ``log/main``. Each entry script is rewritten only when its bytes differ from a
    fresh rendering. Returns True if any entry script was written, i.e. when
    the running service should be restarted.
    """
    created = ensure_structure(staging_path, log_user)
    if created:
        log_event("INFO", f"Created {', '.join(created)} in {staging_path}", service_name=spec.name)

    changed = False
    for rel, content in render_scripts(spec, interpreter).items():
        path = os.path.join(staging_path, rel)
        try:
            if _read(path) == content:
                continue
            _write_script(path, content)
        except OSError as e:
            raise FilesystemError(f"{path}: cannot write entry script: {e.strerror or e}") from e
        log_event("INFO", f"Wrote {rel}", service_name=spec.name)
        changed = True
    return changed


def pending_changes(
    spec: ServiceSpec,
    staging_path: str,
    *,
    log_user: str | None = None,
    interpreter: str = "python3",
) -> bool:
    """Whether `materialize` would create, chown or rewrite anything. Read-only."""
    uid = _log_uid(log_user)
    for rel, kind in STRUCTURE:
        path = os.path.join(staging_path, rel) if rel else staging_path
        if _kind_of(path) != kind:
            return True
        if rel == LOG_DIR and not _owned_by(path, uid):
            return True
    for rel, content in render_scripts(spec, interpreter).items():
        try:
            if _read(os.path.join(staging_path, rel)) != content:
                return True
        except OSError:
            return True
    return False
