import os
import stat

import pytest

from conftest import RecordingSupervisor
from svsync.errors import ConflictError, LoadError
from svsync.materializer import materialize
from svsync.models import ConfigRecord, ServiceSpec
from svsync.reconciler import Reconciler


def _records(services):
    return [ConfigRecord(source="test.yaml", data=services)] if services else []


def _staged(staging_root, name):
    path = os.path.join(staging_root, name)
    return all(
        [
            os.path.isfile(os.path.join(path, "run")),
            os.path.isfile(os.path.join(path, "log", "run")),
            os.path.isdir(os.path.join(path, "log", "main")),
            stat.S_ISFIFO(os.lstat(os.path.join(path, "supervise", "ok")).st_mode),
            stat.S_ISFIFO(os.lstat(os.path.join(path, "log", "supervise", "ok")).st_mode),
        ]
    )


@pytest.fixture
def reconciler(roots, supervisor):
    staging, activation = roots
    return Reconciler(staging, activation, supervisor)


def test_converges_from_empty(roots, supervisor, reconciler):
    staging, activation = roots
    report = reconciler.run(_records({"a": {"run": ["sleep", "1"]}}))

    assert report.state == "done"
    assert report.services == ["a"]
    assert report.activated == ["a"]
    assert _staged(staging, "a")
    assert os.readlink(os.path.join(activation, "a")) == os.path.join(staging, "a")
    assert supervisor.actions("restart") == [os.path.join(staging, "a")]


def test_second_run_sends_no_signals(supervisor, reconciler):
    reconciler.run(_records({"a": {"run": ["sleep", "1"]}}))
    supervisor.calls.clear()

    report = reconciler.run(_records({"a": {"run": ["sleep", "1"]}}))

    assert supervisor.calls == []
    assert report.restarted == []
    assert report.activated == []


def test_changed_command_restarts_in_place(roots, supervisor, reconciler):
    staging, activation = roots
    reconciler.run(_records({"a": {"run": ["sleep", "1"]}}))
    supervisor.calls.clear()

    report = reconciler.run(_records({"a": {"run": ["sleep", "60"]}}))

    assert report.restarted == ["a"]
    assert report.removed == []
    assert supervisor.actions("restart") == [os.path.join(staging, "a")]
    assert supervisor.actions("stop") == []


def test_teardown_unlinks_before_stop_and_remove(roots, supervisor, reconciler):
    staging, activation = roots
    os.makedirs(staging)
    os.makedirs(activation)
    b = os.path.join(staging, "b")
    materialize(ServiceSpec(name="b", run_command=("sleep", "1")), b)
    os.symlink(b, os.path.join(activation, "b"))

    report = reconciler.run([])

    assert report.deactivated == ["b"]
    assert report.removed == ["b"]
    assert not os.path.lexists(os.path.join(activation, "b"))
    assert not os.path.exists(b)
    # At stop time the link was already gone and the tree still there.
    assert supervisor.calls == [("stop", b, False, True)]


def test_all_links_removed_before_any_stop(roots, supervisor, reconciler):
    staging, activation = roots
    os.makedirs(staging)
    os.makedirs(activation)
    for name in ("b", "c"):
        path = os.path.join(staging, name)
        materialize(ServiceSpec(name=name, run_command=("true",)), path)
        os.symlink(path, os.path.join(activation, name))

    reconciler.run([])

    assert [c[0] for c in supervisor.calls] == ["stop", "stop"]
    assert all(linked is False for _, _, linked, _ in supervisor.calls)
    assert os.listdir(activation) == []
    assert os.listdir(staging) == []


def test_rename_is_teardown_plus_create(roots, supervisor, reconciler):
    staging, activation = roots
    spec = {"run": ["mysqld_safe"]}
    reconciler.run(_records({"mysql": spec}))
    old_inode = os.stat(os.path.join(staging, "mysql")).st_ino
    supervisor.calls.clear()

    report = reconciler.run(_records({"mysqld": spec}))

    assert report.removed == ["mysql"]
    assert report.deactivated == ["mysql"]
    assert report.activated == ["mysqld"]
    assert sorted(os.listdir(staging)) == ["mysqld"]
    assert sorted(os.listdir(activation)) == ["mysqld"]
    assert os.stat(os.path.join(staging, "mysqld")).st_ino != old_inode
    assert ("stop", os.path.join(staging, "mysql"), False, True) in supervisor.calls
    assert supervisor.actions("restart") == [os.path.join(staging, "mysqld")]


def test_load_error_mutates_nothing(roots, supervisor, reconciler):
    staging, activation = roots
    records = [
        ConfigRecord("one.yaml", {"x": {"run": ["true"]}}),
        ConfigRecord("two.yaml", {"x": {"run": ["false"]}}),
    ]
    with pytest.raises(LoadError):
        reconciler.run(records)

    assert not os.path.exists(staging)
    assert not os.path.exists(activation)
    assert supervisor.calls == []


def test_conflict_halts_run(roots, supervisor, reconciler):
    staging, activation = roots
    os.makedirs(staging)
    os.makedirs(activation)
    with open(os.path.join(activation, "b"), "w") as f:
        f.write("not a link")
    # Stale service that would be torn down if the run got that far.
    materialize(ServiceSpec(name="z", run_command=("true",)), os.path.join(staging, "z"))

    with pytest.raises(ConflictError) as exc:
        reconciler.run(_records({"a": {"run": ["true"]}, "b": {"run": ["true"]}, "c": {"run": ["true"]}}))

    assert exc.value.path == os.path.join(activation, "b")
    assert _staged(staging, "a")
    assert os.path.islink(os.path.join(activation, "a"))
    assert not os.path.exists(os.path.join(staging, "b"))
    assert not os.path.exists(os.path.join(staging, "c"))
    assert os.path.isdir(os.path.join(staging, "z"))
    assert supervisor.actions("stop") == []


def test_signal_failures_are_not_fatal(roots):
    staging, activation = roots
    sv = RecordingSupervisor(ok=False)
    rec = Reconciler(staging, activation, sv)
    rec.run(_records({"a": {"run": ["true"]}, "b": {"run": ["true"]}}))

    report = rec.run(_records({"a": {"run": ["false"]}}))

    assert report.state == "done"
    assert report.restarted == []
    assert report.signal_failures == ["a", "b"]
    assert report.removed == ["b"]
    assert not os.path.exists(os.path.join(staging, "b"))


def test_hidden_and_foreign_entries_are_left_alone(roots, reconciler):
    staging, activation = roots
    os.makedirs(os.path.join(staging, ".git"))
    os.makedirs(os.path.join(activation, "getty-tty1"))
    with open(os.path.join(staging, "README"), "w") as f:
        f.write("hi")

    report = reconciler.run([])

    assert report.removed == []
    assert report.deactivated == []
    assert os.path.isdir(os.path.join(staging, ".git"))
    assert os.path.isdir(os.path.join(activation, "getty-tty1"))
    assert os.path.isfile(os.path.join(staging, "README"))


def test_half_removed_service_is_cleaned_up(roots, supervisor, reconciler):
    staging, activation = roots
    os.makedirs(os.path.join(staging, "old", "log"))

    report = reconciler.run([])

    assert report.removed == ["old"]
    assert not os.path.exists(os.path.join(staging, "old"))


def test_plan_reports_without_mutating(roots, supervisor, reconciler):
    staging, activation = roots
    reconciler.run(_records({"keep": {"run": ["true"]}, "edit": {"run": ["true"]}, "drop": {"run": ["true"]}}))
    supervisor.calls.clear()

    plan = reconciler.plan(
        _records({"keep": {"run": ["true"]}, "edit": {"run": ["false"]}, "new": {"run": ["true"]}})
    )

    assert plan.create == ["new"]
    assert plan.update == ["edit"]
    assert plan.activate == ["new"]
    assert plan.deactivate == ["drop"]
    assert plan.remove == ["drop"]
    assert not plan.empty
    assert not os.path.exists(os.path.join(staging, "new"))
    assert os.path.islink(os.path.join(activation, "drop"))
    assert supervisor.calls == []


def test_plan_is_empty_when_converged(reconciler):
    records = _records({"a": {"run": ["true"]}})
    reconciler.run(records)
    assert reconciler.plan(records).empty
