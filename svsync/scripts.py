"""Entry script rendering.

A generated ``run`` script looks like::

    #!/bin/sh
    exec 2>&1
    sleep 2
    exec python3 -c '<launcher>' "$0"
    #argv
    ["sleep", "1"]

``sh`` reads the script line by line and the final ``exec`` replaces it, so the
lines after it are never parsed as shell. The launcher re-reads the script,
decodes the JSON document that follows the marker line and ``os.execvp``s it.
The command vector is therefore data, not source: no quoting rules apply to it,
and it never passes through a shell. Every hop is an exec, so the supervisor
tracks exactly one process.
"""

from __future__ import annotations

import json
from typing import Sequence

ARGV_MARKER = b"#argv"

# Must not contain single quotes: it is embedded in a single-quoted shell word.
LAUNCHER = (
    "import json,os,sys;"
    "a=json.loads(open(sys.argv[1],\"rb\").read().split(b\"\\n#argv\\n\",1)[1]);"
    "os.execvp(a[0],a)"
)


class ScriptFormatError(ValueError):
    pass


def validate_interpreter(word: str) -> str:
    """The interpreter is spliced into the script body, so it must be quote-free."""
    if not word.strip() or "'" in word or "\n" in word:
        raise ValueError(f"cannot use {word!r} as an interpreter")
    return word


def render_run_script(
    argv: Sequence[str],
    delay: int,
    interpreter: str = "python3",
    redirect_stderr: bool = False,
) -> bytes:
    """Render an entry script that waits `delay` seconds and execs `argv`."""
    if not argv:
        raise ValueError("argv must not be empty")
    delay = int(delay)
    if delay < 0:
        raise ValueError("delay must be non-negative")

    lines = ["#!/bin/sh"]
    if redirect_stderr:
        lines.append("exec 2>&1")
    lines.append(f"sleep {delay}")
    lines.append(f"exec {validate_interpreter(interpreter)} -c '{LAUNCHER}' \"$0\"")
    body = "\n".join(lines).encode("ascii")

    payload = json.dumps(list(argv), ensure_ascii=True).encode("ascii")
    return body + b"\n" + ARGV_MARKER + b"\n" + payload + b"\n"


def embedded_argv(content: bytes) -> list[str]:
    """Recover the command vector from a rendered entry script."""
    parts = content.split(b"\n" + ARGV_MARKER + b"\n", 1)
    if len(parts) != 2:
        raise ScriptFormatError("no embedded argument vector")
    try:
        argv = json.loads(parts[1])
    except ValueError as e:
        raise ScriptFormatError(f"embedded argument vector is not JSON: {e}") from e
    if not isinstance(argv, list) or not all(isinstance(a, str) for a in argv):
        raise ScriptFormatError("embedded argument vector must be a list of strings")
    return argv
