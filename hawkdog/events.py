"""
events.py - Raw filesystem event records for hawkdog.

Defines the :class:`RawEvent` record every event source emits, the
inotify event-class bits hawkdog subscribes to, and the bounds-checked
decoder for kernel read buffers.

An inotify read buffer holds one or more records laid out as::

    struct inotify_event {
        int      wd;
        uint32_t mask;
        uint32_t cookie;
        uint32_t len;
        char     name[len];   /* NUL padded */
    };
"""

from __future__ import annotations

import struct
from dataclasses import dataclass

from hawkdog.errors import EventDecodeError

# ---------------------------------------------------------------------------
# inotify event classes (linux/inotify.h)
# ---------------------------------------------------------------------------
IN_MODIFY = 0x00000002
IN_ATTRIB = 0x00000004
IN_OPEN = 0x00000020
IN_MOVE_SELF = 0x00000800
IN_DELETE_SELF = 0x00000400
IN_IGNORED = 0x00008000

WATCH_MASK = IN_OPEN | IN_MODIFY | IN_ATTRIB | IN_DELETE_SELF | IN_MOVE_SELF

# Order matters: descriptions list the classes in this sequence
EVENT_NAMES: tuple[tuple[int, str], ...] = (
    (IN_OPEN, "OPEN"),
    (IN_MODIFY, "MODIFY"),
    (IN_ATTRIB, "ATTRIB"),
    (IN_DELETE_SELF, "DELETE_SELF"),
    (IN_MOVE_SELF, "MOVE_SELF"),
)

_HEADER = struct.Struct("iIII")
HEADER_SIZE = _HEADER.size  # 16


@dataclass(frozen=True)
class RawEvent:
    """One decoded notification record.

    Attributes:
        mask:   Event-class bitmask.
        wd:     Watch descriptor the record belongs to (``-1`` when the
                source has no such notion).
        cookie: Rename cookie; zero for everything hawkdog watches.
        name:   Trailing name field, empty for a watch on a single file.
    """

    mask: int
    wd: int = -1
    cookie: int = 0
    name: str = ""


def describe_mask(mask: int) -> str:
    """Return a human label such as ``"OPEN+MODIFY"`` for *mask*.

    Falls back to ``MASK_0x<hex>`` when no known class bit is set.
    """
    parts = [name for bit, name in EVENT_NAMES if mask & bit]
    if not parts:
        return f"MASK_0x{mask:x}"
    return "+".join(parts)


def decode_events(buf: bytes | bytearray | memoryview) -> list[RawEvent]:
    """Decode every record in an inotify read buffer, in order.

    Raises:
        EventDecodeError: if a header or a name field runs past the end
            of the buffer.
    """
    events: list[RawEvent] = []
    total = len(buf)
    offset = 0
    while offset < total:
        if total - offset < HEADER_SIZE:
            raise EventDecodeError(
                f"truncated event header at offset {offset} ({total - offset} of {HEADER_SIZE} bytes)"
            )
        wd, mask, cookie, name_len = _HEADER.unpack_from(buf, offset)
        offset += HEADER_SIZE

        if name_len > total - offset:
            raise EventDecodeError(
                f"event name length {name_len} exceeds remaining {total - offset} bytes"
            )
        raw_name = bytes(buf[offset:offset + name_len])
        offset += name_len

        name = raw_name.split(b"\x00", 1)[0].decode("utf-8", errors="replace")
        events.append(RawEvent(mask=mask, wd=wd, cookie=cookie, name=name))
    return events

