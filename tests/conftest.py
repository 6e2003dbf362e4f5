import os
import sys

import pytest

# Ensure project root is importable (so `import svsync` works without installing)
_project_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if _project_root not in sys.path:
    sys.path.insert(0, _project_root)


class RecordingSupervisor:
    """Stands in for `sv`: records every signal instead of sending it."""

    def __init__(self, activation_root=None, ok=True):
        self.calls = []
        self.activation_root = activation_root
        self.ok = ok

    def _record(self, action, path):
        linked = None
        if self.activation_root is not None:
            linked = os.path.lexists(os.path.join(self.activation_root, os.path.basename(path)))
        self.calls.append((action, path, linked, os.path.isdir(path)))
        return self.ok

    def restart(self, service_path):
        return self._record("restart", service_path)

    def stop(self, service_path):
        return self._record("stop", service_path)

    def actions(self, action):
        return [c[1] for c in self.calls if c[0] == action]


@pytest.fixture
def roots(tmp_path):
    staging = tmp_path / "sv"
    activation = tmp_path / "service"
    return str(staging), str(activation)


@pytest.fixture
def supervisor(roots):
    return RecordingSupervisor(activation_root=roots[1])
