"""
process_monitor.py - Who has the sentinel open?

When an alert fires, hawkdog asks ``psutil`` which processes currently
hold the sentinel open and writes them to the operational log.  This is
best effort: short-lived readers are usually gone by the time we look,
and processes owned by other users are invisible without privileges.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List

import psutil

logger = logging.getLogger(__name__)


@dataclass
class ProcessInfo:
    """Snapshot of a running process."""

    pid: int
    name: str = ""
    exe: str = ""
    cmdline: List[str] = field(default_factory=list)
    username: str = ""

    def describe(self) -> str:
        cmd = " ".join(self.cmdline) or self.exe or self.name
        return f"pid={self.pid} user={self.username or '?'} cmd={cmd}"


def get_process_info(pid: int) -> ProcessInfo | None:
    """Return a :class:`ProcessInfo` for *pid*, or ``None`` if it is gone."""
    try:
        proc = psutil.Process(pid)
        with proc.oneshot():
            return ProcessInfo(
                pid=proc.pid,
                name=proc.name(),
                exe=_safe(proc.exe),
                cmdline=_safe(proc.cmdline) or [],
                username=_safe(proc.username),
            )
    except (psutil.NoSuchProcess, psutil.AccessDenied) as exc:
        logger.debug("Cannot inspect pid %d: %s", pid, exc)
        return None


def find_openers(path: str | Path) -> list[ProcessInfo]:
    """Return processes (other than this one) with *path* open."""
    target = os.path.realpath(path)
    my_pid = os.getpid()
    found: list[ProcessInfo] = []

    for proc in psutil.process_iter(["pid"]):
        if proc.pid == my_pid:
            continue
        try:
            open_files = proc.open_files()
        except (psutil.NoSuchProcess, psutil.AccessDenied, psutil.ZombieProcess):
            continue
        if any(os.path.realpath(f.path) == target for f in open_files):
            info = get_process_info(proc.pid)
            if info is not None:
                found.append(info)

    logger.debug("Opener scan for %s: %d match(es)", target, len(found))
    return found


def _safe(getter):  # noqa: ANN001, ANN202
    try:
        return getter()
    except (psutil.AccessDenied, psutil.ZombieProcess):
        return ""
