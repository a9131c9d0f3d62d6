"""Event source tests."""

import queue
import sys
import time

import pytest
from watchdog.events import FileModifiedEvent, FileMovedEvent, FileOpenedEvent

from hawkdog.config import WatchBackend
from hawkdog.errors import SubscriptionError, WouldBlock
from hawkdog.events import IN_ATTRIB, IN_MODIFY, IN_MOVE_SELF, IN_OPEN
from hawkdog.monitor import InotifySource, WatchdogSource, _SentinelHandler, open_source

linux_only = pytest.mark.skipif(not sys.platform.startswith("linux"), reason="inotify is Linux-only")


@pytest.fixture
def sentinel(tmp_path):
    path = tmp_path / "creds.ini"
    path.write_text("[default]\n")
    return path


@linux_only
def test_inotify_no_events_would_block(sentinel):
    with InotifySource(sentinel) as source:
        with pytest.raises(WouldBlock):
            source.poll()


@linux_only
def test_inotify_reports_open_and_modify(sentinel):
    with InotifySource(sentinel) as source:
        with open(sentinel, "a") as f:
            f.write("x")
        masks = 0
        for _ in range(10):
            try:
                for event in source.poll():
                    masks |= event.mask
            except WouldBlock:
                if masks:
                    break
                time.sleep(0.05)
        assert masks & IN_OPEN
        assert masks & IN_MODIFY


@linux_only
def test_inotify_reports_chmod(sentinel):
    with InotifySource(sentinel) as source:
        sentinel.chmod(0o600)
        events = source.poll()
        assert any(e.mask & IN_ATTRIB for e in events)


@linux_only
def test_inotify_missing_path(tmp_path):
    with pytest.raises(SubscriptionError, match="add watch"):
        InotifySource(tmp_path / "missing.ini")


@linux_only
def test_auto_backend_is_inotify_on_linux(sentinel):
    with open_source(sentinel, WatchBackend.AUTO) as source:
        assert isinstance(source, InotifySource)


def test_close_is_idempotent(sentinel):
    source = open_source(sentinel, "watchdog")
    source.close()
    source.close()


def test_watchdog_missing_path(tmp_path):
    with pytest.raises(SubscriptionError):
        WatchdogSource(tmp_path / "missing.ini")


def test_watchdog_handler_filters_siblings(sentinel):
    events = queue.Queue()
    handler = _SentinelHandler(sentinel, events)
    handler.on_any_event(FileOpenedEvent(str(sentinel)))
    handler.on_any_event(FileModifiedEvent(str(sentinel.parent / "other.txt")))
    handler.on_any_event(FileMovedEvent(str(sentinel), str(sentinel) + ".bak"))
    handler.on_any_event(FileMovedEvent(str(sentinel.parent / "x"), str(sentinel)))

    masks = []
    while not events.empty():
        masks.append(events.get_nowait().mask)
    assert masks == [IN_OPEN, IN_MOVE_SELF]


def test_watchdog_source_reports_modify(sentinel):
    with WatchdogSource(sentinel) as source:
        with pytest.raises(WouldBlock):
            source.poll()
        time.sleep(0.2)
        with open(sentinel, "a") as f:
            f.write("x")
        masks = 0
        deadline = time.monotonic() + 5
        while time.monotonic() < deadline and not masks & IN_MODIFY:
            try:
                for event in source.poll():
                    masks |= event.mask
            except WouldBlock:
                time.sleep(0.1)
        assert masks & IN_MODIFY


def test_watchdog_handler_tells_chmod_from_write(sentinel):
    events = queue.Queue()
    handler = _SentinelHandler(sentinel, events)

    sentinel.chmod(0o600)
    handler.on_any_event(FileModifiedEvent(str(sentinel)))

    with open(sentinel, "a") as f:
        f.write("more")
    handler.on_any_event(FileModifiedEvent(str(sentinel)))

    assert [events.get_nowait().mask for _ in range(2)] == [IN_ATTRIB, IN_MODIFY]


def test_watchdog_source_reports_chmod_as_attrib(sentinel):
    with WatchdogSource(sentinel) as source:
        time.sleep(0.2)
        sentinel.chmod(0o600)
        masks = 0
        deadline = time.monotonic() + 5
        while time.monotonic() < deadline and not masks:
            try:
                for event in source.poll():
                    masks |= event.mask
            except WouldBlock:
                time.sleep(0.1)
        assert masks & IN_ATTRIB
        assert not masks & IN_MODIFY
