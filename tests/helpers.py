"""Test doubles shared across the hawkdog test-suite."""

import struct

from hawkdog.errors import ChannelError


def pack_event(mask, wd=1, cookie=0, name=b"", pad=0):
    """Build one record in kernel inotify layout."""
    size = len(name) + pad
    return struct.pack("iIII", wd, mask, cookie, size) + name + b"\x00" * pad


class FakeChannel:
    """Channel double that records messages and can be told to fail."""

    def __init__(self, name, fail=False):
        self.name = name
        self.fail = fail
        self.sent = []

    def send(self, message):
        self.sent.append(message)
        if self.fail:
            raise ChannelError(self.name, f"{self.name} is down")
