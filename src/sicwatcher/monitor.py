"""Event-driven watch loop that streams newly created file paths."""
from __future__ import annotations

import logging
import os
import threading
import time
from dataclasses import dataclass
from typing import BinaryIO, List

from .config import WatchConfig
from .events import WaitResult, WatchState
from .notifier import ChangeNotifier, NotifierError
from .scanner import DirectoryScanner
from .tracker import SeenSet

logger = logging.getLogger(__name__)


class WatchError(Exception):
    """Raised when the watcher cannot start or has to abandon the watch."""


@dataclass
class WatchStats:
    """Counters emitted by the watcher for observability."""

    cycles: int = 0
    scans: int = 0
    files_reported: int = 0


class DirectoryWatcher:
    """Waits for change notifications on a directory and reports new files."""

    def __init__(self, config: WatchConfig, notifier: ChangeNotifier, output: BinaryIO):
        self._config = config
        self._notifier = notifier
        self._output = output
        self._stop_event = threading.Event()
        self._scanner = DirectoryScanner(
            config.directory,
            SeenSet(config.capacity),
            include_patterns=config.include_patterns,
            exclude_patterns=config.exclude_patterns,
        )
        self._stats = WatchStats()
        self._state = WatchState.INITIALIZING

    @property
    def state(self) -> WatchState:
        return self._state

    @property
    def stats(self) -> WatchStats:
        return self._stats

    def run(self) -> None:
        """Watch until stopped.

        Raises :class:`WatchError` if the directory cannot be watched or the
        notifier fails while waiting. The subscription is released either way.
        """

        directory = self._config.directory
        self._state = WatchState.INITIALIZING
        if not os.path.isdir(directory):
            self._state = WatchState.STOPPED
            reason = "Not a directory" if os.path.exists(directory) else "No such file or directory"
            raise WatchError(f"cannot open '{directory}': {reason}")

        try:
            self._notifier.subscribe(directory)
        except NotifierError as exc:
            self._state = WatchState.STOPPED
            raise WatchError(str(exc)) from exc

        try:
            self._start()
            self._watch()
        finally:
            self._state = WatchState.DRAINING
            self._notifier.close()
            self._state = WatchState.STOPPED
            logger.info(
                "Watcher stopped after %s cycles, %s scans, %s files reported",
                self._stats.cycles,
                self._stats.scans,
                self._stats.files_reported,
            )

    def stop(self) -> None:
        """Signal the watcher to stop at the next opportunity.

        Only sets a flag, so it is safe to call from a signal handler.
        """

        self._stop_event.set()

    def _start(self) -> None:
        directory = self._config.directory
        try:
            seeded = self._scanner.seed()
        except OSError as exc:
            raise WatchError(f"cannot open '{directory}': {exc.strerror or exc}") from exc
        logger.info("Watching %s (%s existing files ignored)", directory, seeded)
        self._state = WatchState.WATCHING

    def _watch(self) -> None:
        while not self._stop_event.is_set():
            try:
                result = self._notifier.wait(self._config.poll_timeout)
            except NotifierError as exc:
                raise WatchError(str(exc)) from exc
            self._stats.cycles += 1
            if result is WaitResult.TIMED_OUT:
                continue
            time.sleep(self._config.settle_delay)
            self._report(self._scanner.scan())

    def _report(self, paths: List[str]) -> None:
        self._stats.scans += 1
        separator = self._config.separator
        for path in paths:
            try:
                self._output.write(os.fsencode(path) + separator)
                self._output.flush()
            except BrokenPipeError as exc:
                raise WatchError("output stream closed") from exc
            except OSError as exc:
                raise WatchError(f"cannot write output: {exc.strerror or exc}") from exc
            self._stats.files_reported += 1
            logger.debug("Reported %s", path)
