from __future__ import annotations

import logging
import os
import shutil
from dataclasses import asdict, dataclass, field
from typing import Any, Iterable

from .activation import activate, check_activation, deactivate
from .errors import FilesystemError, SvsyncError
from .events import log_event
from .loader import load_desired_state
from .materializer import materialize, pending_changes
from .models import ConfigRecord, ServiceLayout, ServiceSpec
from .supervisor import SupervisorControl

logger = logging.getLogger(__name__)


@dataclass
class RunReport:
    state: str = "loading"  # loading|materializing|diffing|tearing_down|done|failed
    services: list[str] = field(default_factory=list)
    restarted: list[str] = field(default_factory=list)
    activated: list[str] = field(default_factory=list)
    deactivated: list[str] = field(default_factory=list)
    removed: list[str] = field(default_factory=list)
    signal_failures: list[str] = field(default_factory=list)

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class RunPlan:
    create: list[str] = field(default_factory=list)
    update: list[str] = field(default_factory=list)
    activate: list[str] = field(default_factory=list)
    deactivate: list[str] = field(default_factory=list)
    remove: list[str] = field(default_factory=list)

    @property
    def empty(self) -> bool:
        return not (self.create or self.update or self.activate or self.deactivate or self.remove)

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)


def _entries(root: str) -> list[str]:
    """Non-hidden names directly under `root`; a missing root has none."""
    try:
        names = os.listdir(root)
    except FileNotFoundError:
        return []
    except OSError as e:
        raise FilesystemError(f"{root}: cannot list: {e.strerror or e}") from e
    return sorted(n for n in names if not n.startswith("."))


class Reconciler:
    """Converges the staging and activation roots to the configured services.

    One call to `run` is one pass: load, materialize + activate every wanted
    service, then tear down whatever is present on disk but no longer wanted.
    Nothing is kept between runs except the filesystem itself.
    """

    def __init__(
        self,
        staging_root: str,
        activation_root: str,
        supervisor: SupervisorControl,
        log_user: str | None = None,
        interpreter: str = "python3",
    ):
        self.staging_root = os.path.abspath(staging_root)
        self.activation_root = os.path.abspath(activation_root)
        self.supervisor = supervisor
        self.log_user = log_user
        self.interpreter = interpreter

    def layout(self, name: str) -> ServiceLayout:
        return ServiceLayout.for_service(name, self.staging_root, self.activation_root)

    def run(self, records: Iterable[ConfigRecord]) -> RunReport:
        report = RunReport()
        try:
            desired = load_desired_state(records)
            report.services = sorted(desired)

            report.state = "materializing"
            self._ensure_roots()
            for name in report.services:
                self._apply_service(desired[name], report)

            report.state = "diffing"
            unwanted_activated, unwanted_staged = self._unwanted(desired)

            report.state = "tearing_down"
            self._teardown(unwanted_activated, unwanted_staged, report)
        except SvsyncError as e:
            log_event("ERROR", f"Run failed while {report.state}: {e}")
            report.state = "failed"
            raise

        report.state = "done"
        log_event(
            "INFO",
            f"Run done: {len(report.services)} service(s), {len(report.restarted)} restarted, "
            f"{len(report.removed)} removed",
        )
        return report

    def plan(self, records: Iterable[ConfigRecord]) -> RunPlan:
        """Work out what `run` would do, without touching the filesystem."""
        desired = load_desired_state(records)
        out = RunPlan()
        for name in sorted(desired):
            lay = self.layout(name)
            if not os.path.lexists(lay.staging_path):
                out.create.append(name)
            elif pending_changes(
                desired[name], lay.staging_path, log_user=self.log_user, interpreter=self.interpreter
            ):
                out.update.append(name)
            if not check_activation(lay.staging_path, lay.activation_path):
                out.activate.append(name)
        unwanted_activated, unwanted_staged = self._unwanted(desired)
        out.deactivate = unwanted_activated
        out.remove = unwanted_staged
        return out

    def _ensure_roots(self) -> None:
        for root in (self.staging_root, self.activation_root):
            try:
                os.makedirs(root, exist_ok=True)
            except OSError as e:
                raise FilesystemError(f"{root}: cannot create: {e.strerror or e}") from e

    def _apply_service(self, spec: ServiceSpec, report: RunReport) -> None:
        lay = self.layout(spec.name)
        # Refuse before building anything for a service that cannot be linked.
        check_activation(lay.staging_path, lay.activation_path)
        changed = materialize(
            spec, lay.staging_path, log_user=self.log_user, interpreter=self.interpreter
        )
        if activate(lay.staging_path, lay.activation_path):
            report.activated.append(spec.name)
        if not changed:
            return
        if self.supervisor.restart(lay.staging_path):
            log_event("INFO", "Restarted", service_name=spec.name)
            report.restarted.append(spec.name)
        else:
            log_event("WARNING", f"Restart signal for {lay.staging_path} failed", service_name=spec.name)
            report.signal_failures.append(spec.name)

    def _unwanted(self, desired: dict[str, ServiceSpec]) -> tuple[list[str], list[str]]:
        activated: list[str] = []
        for name in _entries(self.activation_root):
            if name in desired:
                continue
            path = os.path.join(self.activation_root, name)
            if not os.path.islink(path):
                logger.warning("Leaving %s alone: not a symlink, so not ours", path)
                continue
            activated.append(name)

        staged: list[str] = []
        for name in _entries(self.staging_root):
            if name in desired:
                continue
            path = os.path.join(self.staging_root, name)
            if os.path.islink(path) or not os.path.isdir(path):
                logger.warning("Leaving %s alone: not a service directory", path)
                continue
            staged.append(name)
        return activated, staged

    def _teardown(self, unwanted_activated: list[str], unwanted_staged: list[str], report: RunReport) -> None:
        # runsvdir restarts anything it can still see, so every link goes first.
        for name in unwanted_activated:
            deactivate(os.path.join(self.activation_root, name))
            report.deactivated.append(name)

        for name in unwanted_staged:
            path = os.path.join(self.staging_root, name)
            if not self.supervisor.stop(path):
                log_event("WARNING", f"Stop signal for {path} failed", service_name=name)
                report.signal_failures.append(name)
            try:
                shutil.rmtree(path)
            except FileNotFoundError:
                pass
            except OSError as e:
                raise FilesystemError(f"{path}: cannot remove: {e.strerror or e}") from e
            log_event("INFO", f"Removed {path}", service_name=name)
            report.removed.append(name)
