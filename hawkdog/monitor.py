"""
monitor.py - Filesystem event sources for hawkdog.

Every source watches exactly one path and exposes the same narrow
interface:

    poll()   -> list[RawEvent]   (raises WouldBlock when nothing is ready)
    close()

``InotifySource`` talks to the Linux kernel directly through libc.
``WatchdogSource`` uses the ``watchdog`` library and works wherever
watchdog has an observer; it is the fallback on non-Linux platforms.

Public API
----------
open_source(path, backend)
    Create the best source for *backend* ("auto", "inotify", "watchdog").
"""

from __future__ import annotations

import ctypes
import ctypes.util
import logging
import os
import queue
import sys
from pathlib import Path

from watchdog.events import (
    FileDeletedEvent,
    FileModifiedEvent,
    FileMovedEvent,
    FileOpenedEvent,
    FileSystemEvent,
    FileSystemEventHandler,
)
from watchdog.observers import Observer

from hawkdog.config import WatchBackend
from hawkdog.errors import SubscriptionError, WouldBlock
from hawkdog.events import (
    IN_ATTRIB,
    IN_DELETE_SELF,
    IN_MODIFY,
    IN_MOVE_SELF,
    IN_OPEN,
    WATCH_MASK,
    RawEvent,
    decode_events,
)

logger = logging.getLogger(__name__)

# Recommended back-off between polls that hit WouldBlock
POLL_INTERVAL = 0.2

READ_BUFFER_SIZE = 4096

IN_NONBLOCK = os.O_NONBLOCK
IN_CLOEXEC = os.O_CLOEXEC if hasattr(os, "O_CLOEXEC") else 0o2000000


class EventSource:
    """Base class for single-path event sources."""

    path: Path

    def poll(self) -> list[RawEvent]:
        raise NotImplementedError

    def close(self) -> None:
        raise NotImplementedError

    def __enter__(self) -> "EventSource":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


# ---------------------------------------------------------------------------
# Linux inotify
# ---------------------------------------------------------------------------

class InotifySource(EventSource):
    """Non-blocking inotify watch on one file.

    Raises:
        SubscriptionError: if libc has no inotify or the watch cannot be
            attached (for instance, the path vanished after provisioning).
    """

    def __init__(self, path: str | Path, mask: int = WATCH_MASK) -> None:
        self.path = Path(path)
        self.mask = mask
        self._fd: int | None = None

        libc = _load_libc()
        fd = libc.inotify_init1(IN_NONBLOCK | IN_CLOEXEC)
        if fd < 0:
            err = ctypes.get_errno()
            raise SubscriptionError(f"inotify init: {os.strerror(err)}")
        self._fd = fd

        wd = libc.inotify_add_watch(fd, os.fsencode(self.path), ctypes.c_uint32(mask))
        if wd < 0:
            err = ctypes.get_errno()
            self.close()
            raise SubscriptionError(f"add watch {self.path}: {os.strerror(err)}")
        self.wd = wd
        logger.info("Watching %s via inotify (wd=%d, mask=0x%x)", self.path, wd, mask)

    def fileno(self) -> int:
        if self._fd is None:
            raise ValueError("event source is closed")
        return self._fd

    def poll(self) -> list[RawEvent]:
        """Read one buffer of events from the kernel.

        Raises:
            WouldBlock: no events are pending.
            OSError: any other read failure (fatal to the caller).
            EventDecodeError: the kernel buffer was malformed.
        """
        try:
            data = os.read(self.fileno(), READ_BUFFER_SIZE)
        except BlockingIOError:
            raise WouldBlock() from None
        except InterruptedError:
            raise WouldBlock() from None
        if not data:
            raise WouldBlock()
        return decode_events(data)

    def close(self) -> None:
        if self._fd is not None:
            fd, self._fd = self._fd, None
            os.close(fd)
            logger.debug("Closed inotify fd for %s", self.path)


_libc: ctypes.CDLL | None = None


def _load_libc() -> ctypes.CDLL:
    global _libc  # noqa: PLW0603
    if _libc is not None:
        return _libc
    name = ctypes.util.find_library("c") or "libc.so.6"
    try:
        libc = ctypes.CDLL(name, use_errno=True)
        init1 = libc.inotify_init1
        add_watch = libc.inotify_add_watch
    except (OSError, AttributeError) as exc:
        raise SubscriptionError(f"inotify unavailable: {exc}") from exc

    init1.argtypes = [ctypes.c_int]
    init1.restype = ctypes.c_int
    add_watch.argtypes = [ctypes.c_int, ctypes.c_char_p, ctypes.c_uint32]
    add_watch.restype = ctypes.c_int
    _libc = libc
    return libc


# ---------------------------------------------------------------------------
# watchdog fallback
# ---------------------------------------------------------------------------

# Mapping watchdog event types -> inotify class bits
_EVENT_MAP = {
    FileOpenedEvent: IN_OPEN,
    FileModifiedEvent: IN_MODIFY,
    FileDeletedEvent: IN_DELETE_SELF,
    FileMovedEvent: IN_MOVE_SELF,
}


class _SentinelHandler(FileSystemEventHandler):
    """Queues events that concern the sentinel path only.

    watchdog reports attribute changes (chmod, chown, touch -a) as
    modifications.  A modification that leaves the size and mtime of the
    sentinel unchanged is reported as ATTRIB instead.
    """

    def __init__(self, path: Path, events: "queue.Queue[RawEvent]") -> None:
        super().__init__()
        self._path = os.path.normcase(os.path.abspath(path))
        self._events = events
        self._content_stamp = self._stamp()

    def _stamp(self) -> tuple[int, int] | None:
        try:
            st = os.stat(self._path)
        except OSError:
            return None
        return st.st_mtime_ns, st.st_size

    def _classify_modified(self) -> int:
        stamp = self._stamp()
        if stamp is not None and stamp == self._content_stamp:
            return IN_ATTRIB
        self._content_stamp = stamp
        return IN_MODIFY

    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.is_directory:
            return
        mask = _EVENT_MAP.get(type(event))
        if mask is None:
            return
        # Only a move *away from* the sentinel counts as MOVE_SELF
        if os.path.normcase(os.path.abspath(event.src_path)) != self._path:
            return
        if mask == IN_MODIFY:
            mask = self._classify_modified()
        self._events.put(RawEvent(mask=mask))


class WatchdogSource(EventSource):
    """Event source backed by a ``watchdog`` observer.

    watchdog watches directories, so the observer is scheduled on the
    sentinel's parent and events for sibling files are dropped.  The
    observer thread only ever touches the queue.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        if not self.path.exists():
            raise SubscriptionError(f"add watch {self.path}: no such file")
        self._events: queue.Queue[RawEvent] = queue.Queue()
        self._observer = Observer()
        self._observer.daemon = True
        try:
            self._observer.schedule(
                _SentinelHandler(self.path, self._events),
                str(self.path.parent),
                recursive=False,
            )
            self._observer.start()
        except OSError as exc:
            raise SubscriptionError(f"watchdog observer for {self.path}: {exc}") from exc
        logger.info("Watching %s via watchdog (%s)", self.path, type(self._observer).__name__)

    def poll(self) -> list[RawEvent]:
        events: list[RawEvent] = []
        while True:
            try:
                events.append(self._events.get_nowait())
            except queue.Empty:
                break
        if not events:
            raise WouldBlock()
        return events

    def close(self) -> None:
        if self._observer.is_alive():
            self._observer.stop()
            self._observer.join(timeout=5)
            logger.debug("Observer stopped for %s", self.path)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def open_source(path: str | Path, backend: WatchBackend | str = WatchBackend.AUTO) -> EventSource:
    """Subscribe to events on *path* with the requested backend.

    ``auto`` picks inotify on Linux and watchdog everywhere else.
    """
    backend = WatchBackend(backend)
    if backend is WatchBackend.AUTO:
        backend = WatchBackend.INOTIFY if sys.platform.startswith("linux") else WatchBackend.WATCHDOG

    if backend is WatchBackend.INOTIFY:
        return InotifySource(path)
    return WatchdogSource(path)
