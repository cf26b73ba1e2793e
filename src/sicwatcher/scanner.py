"""Directory listing and new-file detection."""
from __future__ import annotations

import logging
import os
import stat as stat_mod
from fnmatch import fnmatch
from typing import Iterable, Iterator, List, Sequence, Tuple

from .events import FileIdentity
from .tracker import SeenSet

logger = logging.getLogger(__name__)


class DirectoryScanner:
    """Lists one directory and reports regular files not seen before."""

    def __init__(
        self,
        directory: str,
        seen: SeenSet,
        *,
        include_patterns: Sequence[str] = (),
        exclude_patterns: Sequence[str] = (),
    ):
        self._directory = directory
        self._seen = seen
        self._include_patterns = list(include_patterns)
        self._exclude_patterns = list(exclude_patterns)

    def scan(self) -> List[str]:
        """Return the paths of regular files that appeared since the last scan."""

        try:
            names = self._list_names()
        except OSError as exc:
            logger.warning("Could not list %s: %s", self._directory, exc)
            return []

        new_paths: List[str] = []
        for path, identity in self._iter_files(names):
            if identity in self._seen:
                continue
            self._seen.insert(identity)
            new_paths.append(path)
        return new_paths

    def seed(self) -> int:
        """Record the current contents without reporting them.

        Raises ``OSError`` when the directory cannot be listed.
        """

        recorded = 0
        for _path, identity in self._iter_files(self._list_names()):
            if identity in self._seen:
                continue
            self._seen.insert(identity)
            recorded += 1
        return recorded

    def _list_names(self) -> List[str]:
        with os.scandir(self._directory) as entries:
            return [entry.name for entry in entries]

    def _iter_files(self, names: Iterable[str]) -> Iterator[Tuple[str, FileIdentity]]:
        for name in names:
            if name.startswith("."):
                continue
            if not _matches_patterns(name, self._include_patterns, self._exclude_patterns):
                continue
            path = os.path.join(self._directory, name)
            try:
                stat = os.lstat(path)
            except OSError:
                continue
            if not stat_mod.S_ISREG(stat.st_mode):
                continue
            yield path, FileIdentity.from_stat(stat, name)


def _matches_patterns(name: str, include_patterns: List[str], exclude_patterns: List[str]) -> bool:
    if exclude_patterns and any(fnmatch(name, pat) for pat in exclude_patterns):
        return False

    if not include_patterns:
        return True

    return any(fnmatch(name, pat) for pat in include_patterns)
