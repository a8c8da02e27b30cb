from __future__ import annotations

import os
import tomllib
from pathlib import Path
from typing import Any, Dict


DEFAULT_CONFIG_PATH = Path("config.toml")
CONFIG_PATH_ENV = "SEMANTIC_READER_CONFIG"


def config_path() -> Path:
    """``$SEMANTIC_READER_CONFIG`` if set, else ``./config.toml``."""
    override = os.getenv(CONFIG_PATH_ENV)
    return Path(override) if override else DEFAULT_CONFIG_PATH


def load_raw_config(path: str | Path | None = None) -> Dict[str, Any]:
    """
    Load the TOML settings file.

    Only the ``[semantic_reader.*]`` tables are read by this package. Returns
    an empty dict when the file is missing so every setting falls back to
    its environment variable.
    """
    target = Path(path) if path is not None else config_path()
    if not target.is_file():
        return {}

    with target.open("rb") as handle:
        return tomllib.load(handle)


__all__ = ["load_raw_config", "config_path", "DEFAULT_CONFIG_PATH", "CONFIG_PATH_ENV"]
