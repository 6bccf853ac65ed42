"""Shared test helpers."""

from __future__ import annotations

import os
import time
from pathlib import Path

import pytest


def _is_running(pid: int) -> bool:
    # A killed, orphaned child may linger as a zombie until init reaps it
    if Path("/proc/self").exists():
        try:
            stat = Path(f"/proc/{pid}/stat").read_text()
        except (FileNotFoundError, ProcessLookupError):
            return False
        state = stat.rsplit(")", 1)[1].split()[0]
        return state != "Z"
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    return True


@pytest.fixture
def process_gone():
    """Return a check that ``pid`` stops running within ``timeout`` seconds."""

    def check(pid: int, timeout: float = 3.0) -> bool:
        deadline = time.monotonic() + timeout
        while _is_running(pid):
            if time.monotonic() >= deadline:
                return False
            time.sleep(0.05)
        return True

    return check
