from __future__ import annotations

import os
from dataclasses import dataclass


def _env_str(name: str, default: str) -> str:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip()


def _env_optional(name: str, default: str | None) -> str | None:
    """Like _env_str, but an explicitly empty variable means "unset"."""
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip() or None


@dataclass(frozen=True)
class Settings:
    # Layout
    config_dir: str = _env_str("SVSYNC_CONFIG_DIR", "/etc/svsync.d")
    staging_root: str = _env_str("SVSYNC_STAGING_ROOT", "/etc/sv")
    activation_root: str = _env_str("SVSYNC_ACTIVATION_ROOT", "/etc/service")

    # Supervisor / generated scripts
    sv_bin: str = _env_str("SVSYNC_SV_BIN", "sv")
    interpreter: str = _env_str("SVSYNC_PYTHON", "python3")

    # Owner of <service>/log/main. Empty disables the chown (unprivileged runs).
    log_user: str | None = _env_optional("SVSYNC_LOG_USER", "nobody")

    log_level: str = _env_str("SVSYNC_LOG_LEVEL", "INFO")


settings = Settings()
