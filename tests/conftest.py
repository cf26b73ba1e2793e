from collections import deque
from typing import Callable, Iterable, List, Optional, Union

import pytest

from sicwatcher.events import WaitResult
from sicwatcher.notifier import ChangeNotifier

Step = Union[WaitResult, Callable[[], WaitResult]]


class ScriptedNotifier(ChangeNotifier):
    """Notifier that replays a fixed list of wait outcomes.

    A step may be a callable, which runs inside ``wait`` so tests can touch the
    filesystem at a precise point of the loop. Once the script runs out the
    ``on_exhausted`` callback fires (normally ``watcher.stop``).
    """

    name = "scripted"

    def __init__(self, steps: Iterable[Step] = ()):
        self.steps = deque(steps)
        self.subscribed: Optional[str] = None
        self.closed = False
        self.timeouts: List[float] = []
        self.on_exhausted: Callable[[], None] = lambda: None

    def subscribe(self, directory: str) -> None:
        self.subscribed = directory

    def wait(self, timeout: float) -> WaitResult:
        self.timeouts.append(timeout)
        if not self.steps:
            self.on_exhausted()
            return WaitResult.TIMED_OUT
        step = self.steps.popleft()
        if callable(step):
            return step()
        return step

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def scripted_notifier():
    return ScriptedNotifier()
