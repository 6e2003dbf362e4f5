from __future__ import annotations

import logging
import subprocess
from typing import Protocol

logger = logging.getLogger(__name__)


class SupervisorControl(Protocol):
    """Signals understood by the external supervisor. Both are best-effort."""

    def restart(self, service_path: str) -> bool:
        ...

    def stop(self, service_path: str) -> bool:
        ...


class SvSupervisor:
    """Talks to runit through its ``sv`` control program.

    ``sv`` writes to the service's ``supervise/control`` FIFO; it needs the
    service's ``runsv`` to be running, so a False result right after a service
    is first created is expected.
    """

    def __init__(self, sv_bin: str = "sv"):
        self.sv_bin = sv_bin

    def _sv(self, action: str, service_path: str) -> bool:
        cmd = [self.sv_bin, action, service_path]
        try:
            proc = subprocess.run(cmd, capture_output=True, text=True, check=False)
        except OSError as e:
            logger.warning("Cannot run %s: %s", self.sv_bin, e)
            return False
        if proc.returncode != 0:
            detail = (proc.stderr or proc.stdout or "").strip()
            logger.warning("'%s' exited %d: %s", " ".join(cmd), proc.returncode, detail)
            return False
        return True

    def restart(self, service_path: str) -> bool:
        return self._sv("restart", service_path)

    def stop(self, service_path: str) -> bool:
        return self._sv("stop", service_path)
