from __future__ import annotations

import os
from typing import Iterable

import yaml

from .errors import LoadError
from .models import ConfigRecord

YAML_SUFFIXES = (".yaml", ".yml")


def _config_files(directory: str) -> list[str]:
    """Non-hidden YAML files directly inside `directory`, sorted by name."""
    out: list[str] = []
    for fn in sorted(os.listdir(directory)):
        if fn.startswith(".") or not fn.endswith(YAML_SUFFIXES):
            continue
        p = os.path.join(directory, fn)
        if os.path.isfile(p):
            out.append(p)
    return out


def read_config_file(path: str) -> ConfigRecord:
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise LoadError(f"{path}: invalid YAML: {e}") from e
    except OSError as e:
        raise LoadError(f"{path}: cannot read: {e.strerror or e}") from e
    return ConfigRecord(source=path, data=data)


def read_config_sources(paths: Iterable[str]) -> list[ConfigRecord]:
    """Read every configuration document named by `paths`.

    A file is one record; a directory contributes each ``*.yaml``/``*.yml``
    file it contains.
    """
    records: list[ConfigRecord] = []
    for path in paths:
        if os.path.isdir(path):
            try:
                files = _config_files(path)
            except OSError as e:
                raise LoadError(f"{path}: cannot list: {e.strerror or e}") from e
            records.extend(read_config_file(p) for p in files)
        elif os.path.exists(path):
            records.append(read_config_file(path))
        else:
            raise LoadError(f"{path}: no such configuration file or directory")
    return records
