# Copyright 2025 Ben Mensi
# SPDX-License-Identifier: Apache-2.0

"""
Configuration loading for scriptsync.

Config is a YAML file located by, in order:
1. An explicit path (--config)
2. $SCRIPTSYNC_CONFIG
3. ~/.scriptsync/config.yaml (optional; defaults apply if missing)
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

DEFAULT_CONFIG_PATH = "~/.scriptsync/config.yaml"
DEFAULT_SCRIPT_DIR = "~/.scriptsync"
DEFAULT_POLL_INTERVAL_MS = 5000

CONFIG_ENV_VAR = "SCRIPTSYNC_CONFIG"


class ConfigError(Exception):
    """Raised when the config file has invalid content."""

    pass


@dataclass
class SyncConfig:
    """Resolved scriptsync configuration."""

    script_dir: Path
    poll_interval_ms: int = DEFAULT_POLL_INTERVAL_MS
    clean: bool = False
    feed: Optional[Path] = None
    events: Optional[Path] = None
    source: Optional[Path] = None


def expand_path(path: str) -> Path:
    """
    Expand user home directory and environment variables in path.

    Args:
        path: Path string potentially containing ~ or $VAR

    Returns:
        Expanded Path object
    """
    return Path(os.path.expandvars(str(path))).expanduser().resolve()


def load_config(config_path: Optional[str] = None) -> SyncConfig:
    """
    Load and validate the scriptsync config.

    Args:
        config_path: Explicit config file path. Falls back to
            $SCRIPTSYNC_CONFIG, then ~/.scriptsync/config.yaml.

    Returns:
        SyncConfig with defaults filled in.

    Raises:
        FileNotFoundError: If an explicitly requested config file is missing.
        ConfigError: If the file is not valid YAML or has invalid values.
    """
    explicit = config_path or os.environ.get(CONFIG_ENV_VAR)
    path = expand_path(explicit or DEFAULT_CONFIG_PATH)

    if not path.exists():
        if explicit:
            raise FileNotFoundError(f"Config file not found: {path}")
        return _build_config({}, source=None)

    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid YAML in {path}: {e}")

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigError(f"config file {path} must contain a YAML mapping")

    return _build_config(data, source=path)


def _build_config(data: Dict[str, Any], source: Optional[Path]) -> SyncConfig:
    poll_interval_ms = data.get("poll_interval_ms", DEFAULT_POLL_INTERVAL_MS)
    if isinstance(poll_interval_ms, bool) or not isinstance(poll_interval_ms, int):
        raise ConfigError(f"poll_interval_ms must be an integer, got: {poll_interval_ms!r}")
    if poll_interval_ms <= 0:
        raise ConfigError(f"poll_interval_ms must be positive, got: {poll_interval_ms}")

    clean = data.get("clean", False)
    if not isinstance(clean, bool):
        raise ConfigError(f"clean must be true or false, got: {clean!r}")

    feed = data.get("feed")
    events = data.get("events")
    return SyncConfig(
        script_dir=expand_path(data.get("script_dir") or DEFAULT_SCRIPT_DIR),
        poll_interval_ms=poll_interval_ms,
        clean=clean,
        feed=expand_path(feed) if feed else None,
        events=expand_path(events) if events else None,
        source=source,
    )
