import io
import os
import sys
import threading
import time

import pytest

from sicwatcher.config import WatchConfig
from sicwatcher.events import WaitResult, WatchState
from sicwatcher.monitor import DirectoryWatcher, WatchError
from sicwatcher.notifier import NotifierError, create_notifier


def _watcher(directory, notifier, output=None, **overrides):
    options = {"settle_delay": 0.0, "poll_timeout": 0.25}
    options.update(overrides)
    config = WatchConfig(directory=str(directory), **options)
    watcher = DirectoryWatcher(config, notifier, output if output is not None else io.BytesIO())
    notifier.on_exhausted = watcher.stop
    return watcher


def _changed_after(action):
    def step():
        action()
        return WaitResult.CHANGED

    return step


def test_end_to_end_scenario(tmp_path, scripted_notifier):
    watched = tmp_path / "D"
    watched.mkdir()
    a_png = watched / "a.png"
    staging = tmp_path / "a.png.new"

    def replace_a_png():
        staging.write_text("second")
        a_png.unlink()
        os.replace(str(staging), str(a_png))

    scripted_notifier.steps.extend(
        [
            _changed_after(lambda: a_png.write_text("first")),
            _changed_after(lambda: (watched / ".hidden").write_text("x")),
            _changed_after(lambda: (watched / "sub").mkdir()),
            WaitResult.TIMED_OUT,
            _changed_after(replace_a_png),
        ]
    )
    output = io.BytesIO()
    watcher = _watcher(watched, scripted_notifier, output)

    watcher.run()

    expected = os.fsencode(os.path.join(str(watched), "a.png")) + b"\n"
    assert output.getvalue() == expected * 2
    assert watcher.state is WatchState.STOPPED
    assert scripted_notifier.subscribed == str(watched)
    assert scripted_notifier.closed
    assert watcher.stats.files_reported == 2
    assert watcher.stats.scans == 4


def test_pre_existing_files_are_not_reported(tmp_path, scripted_notifier):
    (tmp_path / "before.png").write_text("x")
    scripted_notifier.steps.append(_changed_after(lambda: (tmp_path / "after.png").write_text("y")))
    output = io.BytesIO()

    _watcher(tmp_path, scripted_notifier, output).run()

    assert output.getvalue() == os.fsencode(os.path.join(str(tmp_path), "after.png")) + b"\n"


def test_null_separator(tmp_path, scripted_notifier):
    scripted_notifier.steps.append(
        _changed_after(lambda: [(tmp_path / name).write_text(name) for name in ("one", "two")])
    )
    output = io.BytesIO()

    _watcher(tmp_path, scripted_notifier, output, null_separator=True).run()

    records = output.getvalue()
    assert b"\n" not in records
    assert records.endswith(b"\0")
    assert sorted(records.split(b"\0")[:-1]) == sorted(
        os.fsencode(os.path.join(str(tmp_path), name)) for name in ("one", "two")
    )


def test_timeout_does_not_scan(tmp_path, scripted_notifier):
    scripted_notifier.steps.extend([WaitResult.TIMED_OUT, WaitResult.TIMED_OUT])

    watcher = _watcher(tmp_path, scripted_notifier, poll_timeout=0.5)
    watcher.run()

    assert watcher.stats.scans == 0
    assert watcher.stats.cycles == 3
    assert scripted_notifier.timeouts == [0.5, 0.5, 0.5]


def test_stop_before_run_exits_after_seeding(tmp_path, scripted_notifier):
    watcher = _watcher(tmp_path, scripted_notifier)
    watcher.stop()

    watcher.run()

    assert scripted_notifier.timeouts == []
    assert scripted_notifier.closed
    assert watcher.state is WatchState.STOPPED


def test_missing_directory_is_fatal(tmp_path, scripted_notifier):
    watcher = _watcher(tmp_path / "missing", scripted_notifier)

    with pytest.raises(WatchError, match="cannot open .*No such file or directory"):
        watcher.run()

    assert scripted_notifier.subscribed is None
    assert watcher.state is WatchState.STOPPED


def test_file_instead_of_directory_is_fatal(tmp_path, scripted_notifier):
    target = tmp_path / "plain.txt"
    target.write_text("x")

    with pytest.raises(WatchError, match="Not a directory"):
        _watcher(target, scripted_notifier).run()


def test_subscription_failure_is_fatal(tmp_path, scripted_notifier):
    def refuse(directory):
        raise NotifierError(f"cannot watch '{directory}': Permission denied")

    scripted_notifier.subscribe = refuse
    watcher = _watcher(tmp_path, scripted_notifier)

    with pytest.raises(WatchError, match="Permission denied"):
        watcher.run()
    assert watcher.state is WatchState.STOPPED


def test_wait_failure_ends_loop_and_releases_subscription(tmp_path, scripted_notifier):
    def fail():
        raise NotifierError("inotify wait: Bad file descriptor")

    scripted_notifier.steps.extend([WaitResult.TIMED_OUT, fail, WaitResult.CHANGED])
    watcher = _watcher(tmp_path, scripted_notifier)

    with pytest.raises(WatchError, match="Bad file descriptor"):
        watcher.run()

    assert scripted_notifier.closed
    assert watcher.state is WatchState.STOPPED
    assert len(scripted_notifier.steps) == 1


class _ClosedPipe(io.RawIOBase):
    def writable(self):
        return True

    def write(self, data):
        raise BrokenPipeError(32, "Broken pipe")


def test_closed_output_is_fatal(tmp_path, scripted_notifier):
    scripted_notifier.steps.append(_changed_after(lambda: (tmp_path / "a.png").write_text("x")))

    with pytest.raises(WatchError, match="output stream closed"):
        _watcher(tmp_path, scripted_notifier, _ClosedPipe()).run()

    assert scripted_notifier.closed


class _FullDisk(io.RawIOBase):
    def writable(self):
        return True

    def write(self, data):
        raise OSError(28, "No space left on device")


def test_output_write_failure_is_fatal(tmp_path, scripted_notifier):
    scripted_notifier.steps.append(_changed_after(lambda: (tmp_path / "a.png").write_text("x")))

    with pytest.raises(WatchError, match="cannot write output: No space left on device"):
        _watcher(tmp_path, scripted_notifier, _FullDisk()).run()

    assert scripted_notifier.closed


@pytest.mark.skipif(not sys.platform.startswith("linux"), reason="inotify backend is Linux only")
def test_real_notifier_reports_new_files_and_stops_promptly(tmp_path):
    pytest.importorskip("inotify_simple")
    (tmp_path / "existing.png").write_text("x")
    output = io.BytesIO()
    config = WatchConfig(directory=str(tmp_path), poll_timeout=0.2)
    watcher = DirectoryWatcher(config, create_notifier("inotify"), output)
    worker = threading.Thread(target=watcher.run)
    worker.start()
    try:
        deadline = time.monotonic() + 5
        while watcher.state is not WatchState.WATCHING and time.monotonic() < deadline:
            time.sleep(0.01)

        (tmp_path / ".hidden").write_text("x")
        (tmp_path / "sub").mkdir()
        (tmp_path / "a.png").write_text("a")

        expected = os.fsencode(os.path.join(str(tmp_path), "a.png")) + b"\n"
        while output.getvalue() != expected and time.monotonic() < deadline:
            time.sleep(0.01)
        assert output.getvalue() == expected
    finally:
        stop_requested = time.monotonic()
        watcher.stop()
        worker.join(timeout=5)

    assert not worker.is_alive()
    assert time.monotonic() - stop_requested < 1.0
    assert watcher.state is WatchState.STOPPED
