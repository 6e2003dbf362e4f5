from __future__ import annotations

import argparse
import json
import logging
import sys

from .errors import SvsyncError
from .events import configure_logging
from .loader import load_desired_state
from .reconciler import Reconciler
from .scripts import validate_interpreter
from .settings import settings
from .sources import read_config_sources
from .supervisor import SvSupervisor

logger = logging.getLogger("svsync")


def _print(obj) -> None:
    print(json.dumps(obj, indent=2, ensure_ascii=False))


def _interpreter(value: str) -> str:
    try:
        return validate_interpreter(value)
    except ValueError as e:
        raise argparse.ArgumentTypeError(str(e)) from e


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="svsync", description="Converge runit service directories to a YAML configuration")
    p.add_argument(
        "--config",
        action="append",
        metavar="PATH",
        help=f"YAML file or directory of YAML files; repeatable (default: {settings.config_dir})",
    )
    p.add_argument("--staging-root", default=settings.staging_root, help="Where service directories are built")
    p.add_argument("--activation-root", default=settings.activation_root, help="Directory runsvdir watches")
    p.add_argument("--sv", default=settings.sv_bin, help="Path to runit's sv program")
    p.add_argument(
        "--log-user",
        default=settings.log_user or "",
        help="Owner of each service's log/main directory; empty skips the chown",
    )
    p.add_argument(
        "--interpreter",
        type=_interpreter,
        default=settings.interpreter,
        help="Python used by generated run scripts",
    )
    p.add_argument("--log-level", default=settings.log_level)

    sub = p.add_subparsers(dest="cmd", required=True)
    sub.add_parser("apply", help="Converge the filesystem and signal changed services")
    sub.add_parser("plan", help="Show what apply would change, without changing it")
    sub.add_parser("show", help="Print the loaded service definitions")
    return p


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level)

    reconciler = Reconciler(
        staging_root=args.staging_root,
        activation_root=args.activation_root,
        supervisor=SvSupervisor(args.sv),
        log_user=args.log_user or None,
        interpreter=args.interpreter,
    )

    try:
        records = read_config_sources(args.config or [settings.config_dir])

        if args.cmd == "show":
            desired = load_desired_state(records)
            _print({name: spec.as_dict() for name, spec in sorted(desired.items())})
            return 0

        if args.cmd == "plan":
            _print(reconciler.plan(records).as_dict())
            return 0

        if args.cmd == "apply":
            _print(reconciler.run(records).as_dict())
            return 0
    except SvsyncError as e:
        logger.error("%s: %s", type(e).__name__, e)
        return 1

    return 2


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
