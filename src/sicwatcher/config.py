"""Configuration for the directory watcher and its optional tunables file."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, List, Optional

import yaml # type: ignore

from .notifier import BACKEND_NAMES
from .tracker import DEFAULT_CAPACITY

logger = logging.getLogger(__name__)

DEFAULT_SETTLE_DELAY = 0.05
DEFAULT_POLL_TIMEOUT = 1.0


class ConfigError(Exception):
    """Raised when the configuration file is missing or invalid."""


@dataclass
class WatchConfig:
    """Options describing how the directory watcher should behave.

    ``settle_delay`` is the pause between a change notification and the scan
    that follows it. It gives a writer time to finish materializing the file
    under its final name; it narrows the race but does not close it.
    """

    directory: str
    null_separator: bool = False
    capacity: int = DEFAULT_CAPACITY
    settle_delay: float = DEFAULT_SETTLE_DELAY
    poll_timeout: float = DEFAULT_POLL_TIMEOUT
    backend: str = "auto"
    include_patterns: List[str] = field(default_factory=list)
    exclude_patterns: List[str] = field(default_factory=list)

    @property
    def separator(self) -> bytes:
        return b"\0" if self.null_separator else b"\n"


def load_config(path: Path, *, directory: str, null_separator: Optional[bool] = None) -> WatchConfig:
    """Load and validate a YAML tunables file for watching ``directory``.

    ``null_separator`` from the command line takes precedence over the file
    when it is not ``None``.
    """

    if not path.exists():
        raise ConfigError(f"Configuration file not found: {path}")

    try:
        data = yaml.safe_load(path.read_text())
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to parse YAML configuration: {exc}") from exc

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigError("Configuration root must be a mapping")

    config = _parse_watch_config(data.get("watch"), directory=directory)
    if null_separator is not None:
        config.null_separator = null_separator
    logger.info(
        "Loaded configuration from %s (capacity=%s, settle_delay=%s, poll_timeout=%s, backend=%s)",
        path,
        config.capacity,
        config.settle_delay,
        config.poll_timeout,
        config.backend,
    )
    return config


def _parse_watch_config(raw: Any, *, directory: str) -> WatchConfig:
    if raw is None:
        return WatchConfig(directory=directory)
    if not isinstance(raw, dict):
        raise ConfigError("'watch' section must be a mapping")

    capacity = raw.get("capacity", DEFAULT_CAPACITY)
    if isinstance(capacity, bool) or not isinstance(capacity, int):
        raise ConfigError("watch.capacity must be an integer")
    if capacity < 1:
        raise ConfigError("watch.capacity must be at least 1")

    settle_delay = _parse_seconds(raw.get("settle_delay", DEFAULT_SETTLE_DELAY), "watch.settle_delay")
    if settle_delay < 0:
        raise ConfigError("watch.settle_delay must not be negative")

    poll_timeout = _parse_seconds(raw.get("poll_timeout", DEFAULT_POLL_TIMEOUT), "watch.poll_timeout")
    if poll_timeout <= 0:
        raise ConfigError("watch.poll_timeout must be positive")

    backend = raw.get("backend", "auto")
    if backend not in BACKEND_NAMES:
        allowed = ", ".join(BACKEND_NAMES)
        raise ConfigError(f"watch.backend must be one of: {allowed}")

    null_flag = raw.get("null_separator", False)
    if not isinstance(null_flag, bool):
        raise ConfigError("watch.null_separator must be a boolean")

    include_patterns = _ensure_str_list(raw.get("include_patterns", []), "watch.include_patterns")
    exclude_patterns = _ensure_str_list(raw.get("exclude_patterns", []), "watch.exclude_patterns")

    return WatchConfig(
        directory=directory,
        null_separator=null_flag,
        capacity=capacity,
        settle_delay=settle_delay,
        poll_timeout=poll_timeout,
        backend=backend,
        include_patterns=include_patterns,
        exclude_patterns=exclude_patterns,
    )


def _parse_seconds(value: Any, field_name: str) -> float:
    if isinstance(value, bool):
        raise ConfigError(f"{field_name} must be numeric")
    try:
        return float(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"{field_name} must be numeric") from exc


def _ensure_str_list(value: Any, field_name: str) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if not isinstance(value, list):
        raise ConfigError(f"{field_name} must be a list of strings")
    items: List[str] = []
    for elem in value:
        if not isinstance(elem, str):
            raise ConfigError(f"{field_name} must contain only strings")
        items.append(elem)
    return items
