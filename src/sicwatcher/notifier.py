"""Directory change notification backends.

A notifier delivers a single coarse signal: "the contents of this directory
changed". It never reports which entry changed; the scanner works that out.
"""
from __future__ import annotations

import abc
import logging
import math
import sys
import threading
import time
from typing import Any, Optional

from .events import WaitResult

logger = logging.getLogger(__name__)


class NotifierError(Exception):
    """Raised when a subscription cannot be registered or a wait fails."""


class ChangeNotifier(abc.ABC):
    """Subscription to change notifications for one directory."""

    name = "abstract"

    @abc.abstractmethod
    def subscribe(self, directory: str) -> None:
        """Start receiving notifications for ``directory``."""

    @abc.abstractmethod
    def wait(self, timeout: float) -> WaitResult:
        """Block until a change is signaled or ``timeout`` seconds elapse."""

    @abc.abstractmethod
    def close(self) -> None:
        """Release the subscription. Safe to call more than once."""

    def __enter__(self) -> "ChangeNotifier":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()


class InotifyNotifier(ChangeNotifier):
    """Linux backend built on a single inotify watch."""

    name = "inotify"

    def __init__(self) -> None:
        self._inotify: Optional[Any] = None

    def subscribe(self, directory: str) -> None:
        from inotify_simple import INotify, flags

        watch_flags = flags.CREATE | flags.DELETE | flags.MOVED_FROM | flags.MOVED_TO | flags.CLOSE_WRITE
        try:
            inotify = INotify()
        except OSError as exc:
            raise NotifierError(f"inotify: {exc.strerror or exc}") from exc
        try:
            inotify.add_watch(directory, watch_flags)
        except OSError as exc:
            inotify.close()
            raise NotifierError(f"cannot watch '{directory}': {exc.strerror or exc}") from exc
        self._inotify = inotify
        logger.debug("inotify watch registered on %s", directory)

    def wait(self, timeout: float) -> WaitResult:
        if self._inotify is None:
            raise NotifierError("wait() called before subscribe()")
        deadline = time.monotonic() + timeout
        while True:
            remaining = max(deadline - time.monotonic(), 0.0)
            try:
                events = self._inotify.read(timeout=math.ceil(remaining * 1000))
            except InterruptedError:
                continue
            except OSError as exc:
                raise NotifierError(f"inotify wait: {exc.strerror or exc}") from exc
            return WaitResult.CHANGED if events else WaitResult.TIMED_OUT

    def close(self) -> None:
        if self._inotify is None:
            return
        self._inotify.close()
        self._inotify = None


class WatchdogNotifier(ChangeNotifier):
    """Backend for platforms without inotify, using the watchdog observer.

    The observer runs in its own thread and only flips an event; all scanning
    stays on the thread calling :meth:`wait`.
    """

    name = "watchdog"

    def __init__(self) -> None:
        self._changed = threading.Event()
        self._observer: Optional[Any] = None

    def subscribe(self, directory: str) -> None:
        from watchdog.events import FileSystemEventHandler
        from watchdog.observers import Observer

        changed = self._changed

        class _DirectoryChangeHandler(FileSystemEventHandler):
            def on_created(self, event: Any) -> None:
                changed.set()

            def on_deleted(self, event: Any) -> None:
                changed.set()

            def on_moved(self, event: Any) -> None:
                changed.set()

        observer = Observer()
        try:
            observer.schedule(_DirectoryChangeHandler(), directory, recursive=False)
            observer.start()
        except OSError as exc:
            raise NotifierError(f"cannot watch '{directory}': {exc.strerror or exc}") from exc
        self._observer = observer
        logger.debug("watchdog observer started on %s", directory)

    def wait(self, timeout: float) -> WaitResult:
        if self._observer is None:
            raise NotifierError("wait() called before subscribe()")
        if not self._changed.wait(timeout):
            if not self._observer.is_alive():
                raise NotifierError("watchdog observer stopped unexpectedly")
            return WaitResult.TIMED_OUT
        self._changed.clear()
        return WaitResult.CHANGED

    def close(self) -> None:
        if self._observer is None:
            return
        self._observer.stop()
        self._observer.join()
        self._observer = None


_BACKENDS = {
    InotifyNotifier.name: InotifyNotifier,
    WatchdogNotifier.name: WatchdogNotifier,
}

BACKEND_NAMES = ("auto",) + tuple(_BACKENDS)


def create_notifier(backend: str = "auto") -> ChangeNotifier:
    """Build the notifier for ``backend``; ``auto`` picks one for this platform."""

    if backend == "auto":
        backend = InotifyNotifier.name if sys.platform.startswith("linux") else WatchdogNotifier.name
    try:
        notifier_cls = _BACKENDS[backend]
    except KeyError as exc:
        allowed = ", ".join(BACKEND_NAMES)
        raise ValueError(f"Unknown notifier backend '{backend}', expected one of: {allowed}") from exc
    logger.debug("Using %s notifier backend", notifier_cls.name)
    return notifier_cls()
