"""
Spawning and supervising external programs.

:class:`ProcessInvoker` runs one command as a child process and waits for
it under a wall‑clock budget.  The command is always passed as an argument
vector; nothing is ever interpreted by a shell.  Standard output and
standard error are redirected to the same capture file so that the
captured text keeps the order in which the program emitted it.

The child is started in its own session.  When the child exits, times out
or is cancelled, the whole process group is killed, which also takes down
anything the program forked in the background.

Resource limits are applied to the child with ``prlimit`` where the
platform supports it.  ``prlimit`` runs right after ``Popen`` returns, so
the program runs unlimited for a brief moment, and anything it forks in
that moment does not inherit the limits.  ``RLIMIT_NPROC`` counts every
process of the user, not just this process tree.
"""

from __future__ import annotations

import contextlib
import logging
import os
import signal
import subprocess
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional, Sequence

try:
    import resource
except ImportError:  # pragma: no cover - non-POSIX platforms
    resource = None  # type: ignore

logger = logging.getLogger(__name__)

POLL_INTERVAL = 0.05
TRUNCATION_NOTICE = "\n[output truncated]"
DEFAULT_PATH = "/usr/local/bin:/usr/bin:/bin"


@dataclass(frozen=True)
class ResourceLimits:
    """Per‑process limits applied to a spawned program.

    ``None`` leaves the corresponding limit untouched.
    """

    max_memory_mb: Optional[int] = 512
    max_cpu_secs: Optional[int] = 10
    max_file_size_mb: Optional[int] = 16
    max_processes: Optional[int] = None

    def _rlimits(self):
        if self.max_memory_mb is not None:
            yield resource.RLIMIT_AS, self.max_memory_mb * 1024 * 1024, None
        if self.max_cpu_secs is not None:
            # SIGXCPU at the soft limit, SIGKILL one second later
            yield resource.RLIMIT_CPU, self.max_cpu_secs, self.max_cpu_secs + 1
        if self.max_file_size_mb is not None:
            yield resource.RLIMIT_FSIZE, self.max_file_size_mb * 1024 * 1024, None
        if self.max_processes is not None and hasattr(resource, "RLIMIT_NPROC"):
            yield resource.RLIMIT_NPROC, self.max_processes, None

    def apply(self, pid: int) -> None:
        """Lower the limits of a running process.  Never raises."""
        if resource is None or not hasattr(resource, "prlimit"):
            return
        for which, soft, hard in self._rlimits():
            hard = soft if hard is None else hard
            try:
                _, current_hard = resource.prlimit(pid, which)
                if current_hard != resource.RLIM_INFINITY:
                    hard = min(hard, current_hard)
                    soft = min(soft, hard)
                resource.prlimit(pid, which, (soft, hard))
            except (OSError, ValueError) as exc:
                logger.debug("rlimit %s not applied to pid %s: %s", which, pid, exc)


@dataclass
class ProcessOutcome:
    """What happened to one spawned process.

    Attributes
    ----------
    exit_code: int or None
        Exit status.  Negative values mean the process died from a signal.
        ``None`` when the process never started.
    combined_output: str
        Standard output and standard error, interleaved as emitted.
    timed_out: bool
        The wall‑clock budget ran out and the process group was killed.
    did_start: bool
        ``False`` when the program could not be spawned at all.
    cancelled: bool
        The caller asked for the execution to stop.
    truncated: bool
        Output exceeded the capture limit and was cut.
    duration_ms: int
        Wall‑clock time from spawn to reap.
    error: str or None
        Why the process could not be started.
    """

    exit_code: Optional[int]
    combined_output: str
    timed_out: bool = False
    did_start: bool = True
    cancelled: bool = False
    truncated: bool = False
    duration_ms: int = 0
    error: Optional[str] = None


def _leader_exited(process: subprocess.Popen, timeout: float) -> bool:
    """Wait up to ``timeout`` for the child to exit, without reaping it.

    An exited but unreaped leader keeps its pid, and with it the process
    group id, reserved until :func:`_kill_group` has signalled the group.
    """
    if not hasattr(os, "waitid"):  # pragma: no cover - Windows
        try:
            process.wait(timeout=timeout)
            return True
        except subprocess.TimeoutExpired:
            return False
    deadline = time.perf_counter() + timeout
    while True:
        if os.waitid(os.P_PID, process.pid, os.WEXITED | os.WNOHANG | os.WNOWAIT) is not None:
            return True
        remaining = deadline - time.perf_counter()
        if remaining <= 0:
            return False
        time.sleep(min(0.01, remaining))


def _kill_group(process: subprocess.Popen) -> None:
    # start_new_session makes the child its own process group leader
    try:
        if hasattr(os, "killpg"):
            os.killpg(process.pid, signal.SIGKILL)
        else:  # pragma: no cover - Windows
            process.kill()
    except ProcessLookupError:
        pass
    process.wait()


def _read_capped(path: Path, limit: int) -> tuple[str, bool]:
    try:
        with open(path, "rb") as handle:
            data = handle.read(limit + 1)
    except FileNotFoundError:
        return "", False
    truncated = len(data) > limit
    text = data[:limit].decode("utf-8", errors="replace")
    if truncated:
        text += TRUNCATION_NOTICE
    return text, truncated


class ProcessInvoker:
    """Run commands with bounded time and captured output.

    Instances hold no per‑call state and can be shared between threads.
    """

    def __init__(self, max_output_bytes: int = 65536) -> None:
        self.max_output_bytes = max_output_bytes

    def build_env(self, home: Optional[Path], extra: Optional[Dict[str, str]] = None) -> Dict[str, str]:
        env = {
            "PATH": os.environ.get("PATH", DEFAULT_PATH),
            "LANG": "C.UTF-8",
        }
        if home is not None:
            env["HOME"] = str(home)
            env["TMPDIR"] = str(home)
        if extra:
            env.update(extra)
        return env

    def invoke(
        self,
        args: Sequence[str],
        *,
        output_path: Path,
        timeout: float,
        stdin_path: Optional[Path] = None,
        cwd: Optional[Path] = None,
        limits: Optional[ResourceLimits] = None,
        env: Optional[Dict[str, str]] = None,
        cancel: Optional[threading.Event] = None,
    ) -> ProcessOutcome:
        """Run ``args`` to completion, timeout or cancellation.

        Parameters
        ----------
        args: sequence of str
            Program and arguments.  Passed to the OS verbatim.
        output_path: Path
            File receiving both stdout and stderr.  Truncated first.
        timeout: float
            Wall‑clock budget in seconds.
        stdin_path: Path, optional
            File bound to standard input.  ``/dev/null`` when omitted.
        cwd: Path, optional
            Working directory of the child.
        limits: ResourceLimits, optional
            Limits applied to the child right after it is spawned.
        env: dict, optional
            Extra environment variables on top of the minimal environment.
        cancel: threading.Event, optional
            When set, the process group is killed and ``cancelled`` is
            reported.

        Returns
        -------
        ProcessOutcome
            Never raises for failures of the child itself.  Spawn failures
            are reported with ``did_start=False``.
        """
        start_time = time.perf_counter()
        argv = [str(arg) for arg in args]
        try:
            with contextlib.ExitStack() as stack:
                sink = stack.enter_context(open(output_path, "wb"))
                source = stack.enter_context(open(stdin_path, "rb")) if stdin_path is not None else subprocess.DEVNULL
                process = subprocess.Popen(
                    argv,
                    cwd=str(cwd) if cwd is not None else None,
                    stdin=source,
                    stdout=sink,
                    stderr=subprocess.STDOUT,
                    env=self.build_env(cwd, env),
                    close_fds=True,
                    start_new_session=True,
                )
        except OSError as exc:
            logger.warning("Failed to start %s: %s", argv[0] if argv else "<empty>", exc)
            return ProcessOutcome(
                exit_code=None,
                combined_output="",
                did_start=False,
                duration_ms=int((time.perf_counter() - start_time) * 1000),
                error=str(exc),
            )

        if limits is not None:
            limits.apply(process.pid)

        deadline = start_time + timeout
        timed_out = False
        cancelled = False
        try:
            while not _leader_exited(process, POLL_INTERVAL):
                if cancel is not None and cancel.is_set():
                    cancelled = True
                    break
                if time.perf_counter() >= deadline:
                    timed_out = True
                    break
        finally:
            # Always take down the group, so background children the
            # program forked never outlive the execution.
            _kill_group(process)
            duration = int((time.perf_counter() - start_time) * 1000)

        if timed_out:
            logger.info("Process %s timed out after %ss", argv[0], timeout)
        elif cancelled:
            logger.info("Process %s cancelled", argv[0])

        output, truncated = _read_capped(output_path, self.max_output_bytes)
        return ProcessOutcome(
            exit_code=process.returncode,
            combined_output=output,
            timed_out=timed_out,
            cancelled=cancelled,
            truncated=truncated,
            duration_ms=duration,
        )
