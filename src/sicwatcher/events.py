"""Models shared across watcher components."""
from __future__ import annotations

import os
from dataclasses import dataclass
from enum import Enum
from typing import Optional


class WaitResult(str, Enum):
    """Outcome of a single wait on a change notifier."""

    CHANGED = "changed"
    TIMED_OUT = "timed_out"


class WatchState(str, Enum):
    """Lifecycle of a directory watcher."""

    INITIALIZING = "initializing"
    WATCHING = "watching"
    DRAINING = "draining"
    STOPPED = "stopped"


@dataclass(frozen=True)
class FileIdentity:
    """Stable identifier distinguishing a file from a later one with the same name.

    ``inode`` is set wherever the platform reports one. Otherwise the identity
    falls back to the creation time paired with the entry name.
    """

    inode: Optional[int] = None
    created: Optional[float] = None
    name: Optional[str] = None

    @classmethod
    def from_stat(cls, stat: os.stat_result, name: str) -> "FileIdentity":
        if stat.st_ino:
            return cls(inode=stat.st_ino)
        created = getattr(stat, "st_birthtime", None)
        if created is None:
            created = stat.st_ctime
        return cls(created=created, name=name)
