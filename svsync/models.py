from __future__ import annotations

import os
import re
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

DEFAULT_DELAY_S = 2
DEFAULT_LOG_COMMAND: tuple[str, ...] = ("chpst", "-u", "nobody", "svlogd", "-tt", "./main")

SERVICE_NAME_RE = re.compile(r"^[A-Za-z0-9_][A-Za-z0-9_.@+\-]{0,254}$")


def validate_service_name(name: str) -> None:
    if not isinstance(name, str) or not SERVICE_NAME_RE.match(name):
        raise ValueError(
            f"Invalid service name {name!r}. Use letters, digits and _.@+- "
            "(not starting with '.' or '-', max 255 chars)."
        )


def _delay(value: Any) -> int:
    """Normalize a sleep value; anything unusable becomes the default."""
    if isinstance(value, bool) or value is None:
        return DEFAULT_DELAY_S
    if isinstance(value, int):
        n = value
    elif isinstance(value, str):
        try:
            n = int(value.strip())
        except ValueError:
            return DEFAULT_DELAY_S
    else:
        return DEFAULT_DELAY_S
    return n if n >= 0 else DEFAULT_DELAY_S


class ServiceEntry(BaseModel):
    """One service's sub-record as written in a configuration file."""

    model_config = ConfigDict(extra="allow")

    run: list[str] = Field(..., min_length=1, description="Command vector; first element is the executable")
    log: list[str] | None = Field(None, description="Log forwarder command vector")
    sleep: int = Field(DEFAULT_DELAY_S, description="Seconds to wait before exec'ing run")
    logsleep: int = Field(DEFAULT_DELAY_S, description="Seconds to wait before exec'ing log")

    @field_validator("run", "log", mode="before")
    @classmethod
    def _sequence_only(cls, v: Any) -> Any:
        if isinstance(v, (str, bytes)):
            raise ValueError("must be a list of strings, not a single string")
        return v

    @field_validator("log")
    @classmethod
    def _log_not_empty(cls, v: list[str] | None) -> list[str] | None:
        if v is not None and not v:
            raise ValueError("must not be empty")
        return v

    @field_validator("sleep", "logsleep", mode="before")
    @classmethod
    def _normalize_delay(cls, v: Any) -> int:
        return _delay(v)


@dataclass(frozen=True)
class ServiceSpec:
    name: str
    run_command: tuple[str, ...]
    log_command: tuple[str, ...] = DEFAULT_LOG_COMMAND
    start_delay_seconds: int = DEFAULT_DELAY_S
    log_start_delay_seconds: int = DEFAULT_DELAY_S

    @classmethod
    def from_entry(cls, name: str, entry: ServiceEntry) -> "ServiceSpec":
        return cls(
            name=name,
            run_command=tuple(entry.run),
            log_command=tuple(entry.log) if entry.log is not None else DEFAULT_LOG_COMMAND,
            start_delay_seconds=entry.sleep,
            log_start_delay_seconds=entry.logsleep,
        )

    def as_dict(self) -> dict[str, Any]:
        return {
            "run": list(self.run_command),
            "log": list(self.log_command),
            "sleep": self.start_delay_seconds,
            "logsleep": self.log_start_delay_seconds,
        }


@dataclass(frozen=True)
class ServiceLayout:
    name: str
    staging_path: str
    activation_path: str

    @classmethod
    def for_service(cls, name: str, staging_root: str, activation_root: str) -> "ServiceLayout":
        return cls(
            name=name,
            staging_path=os.path.join(staging_root, name),
            activation_path=os.path.join(activation_root, name),
        )


@dataclass(frozen=True)
class ConfigRecord:
    """One configuration document: ``{service_name: {run, log, sleep, logsleep}}``."""

    source: str
    data: Any
