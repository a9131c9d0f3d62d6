"""Opener lookup tests."""

import os
import shutil
import subprocess
import sys

import pytest

from hawkdog.process_monitor import ProcessInfo, find_openers, get_process_info


def test_get_process_info_self():
    info = get_process_info(os.getpid())
    assert info is not None
    assert info.pid == os.getpid()
    assert info.name


def test_describe():
    info = ProcessInfo(pid=7, name="cat", cmdline=["cat", "creds.ini"], username="eve")
    assert info.describe() == "pid=7 user=eve cmd=cat creds.ini"


def test_own_process_excluded(tmp_path):
    path = tmp_path / "creds.ini"
    path.write_text("x")
    with open(path):
        assert all(p.pid != os.getpid() for p in find_openers(path))


@pytest.mark.skipif(
    not sys.platform.startswith("linux") or shutil.which("sleep") is None,
    reason="needs /proc and sleep(1)",
)
def test_finds_child_holding_file(tmp_path):
    path = tmp_path / "creds.ini"
    path.write_text("x")
    with open(path) as f:
        child = subprocess.Popen(["sleep", "30"], stdin=f)
    try:
        openers = find_openers(path)
        assert child.pid in [p.pid for p in openers]
    finally:
        child.kill()
        child.wait()
