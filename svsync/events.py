from __future__ import annotations

import logging

logger = logging.getLogger("svsync.events")


def log_event(level: str, message: str, service_name: str | None = None) -> None:
    """Record a reconciliation event.

    Events go through the ``svsync.events`` logger so the operator sees one
    line per mutation or signal, prefixed with the service it concerns.
    """
    lvl = logging.getLevelName(level.upper())
    if not isinstance(lvl, int):
        lvl = logging.INFO
    if service_name:
        message = f"[{service_name}] {message}"
    logger.log(lvl, message)


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
