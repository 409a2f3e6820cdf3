"""Subprocess execution with deadlines.

All external programs (the runtime under test, native compilers, git and
cargo) are run through these helpers. Standard error is never captured so
that diagnostics reach the operator's terminal.
"""

from __future__ import annotations

import os
import signal
import subprocess
from collections.abc import Sequence
from pathlib import Path

from hvm_bench.results import Failure, Timeout


class ProcessError(Exception):
    """A required command could not be run or exited with non-zero status.

    Attributes:
        cmd: The command line.
        cwd: Working directory, or None for the current one.
        returncode: Exit status, or None if the process never started.
    """

    def __init__(
        self,
        cmd: Sequence[str | Path],
        cwd: Path | None = None,
        returncode: int | None = None,
        reason: str | None = None,
    ) -> None:
        self.cmd = [str(part) for part in cmd]
        self.cwd = cwd
        self.returncode = returncode
        if reason is None:
            reason = f"exited with non-zero status {returncode}"
        location = f" in {cwd}" if cwd else ""
        super().__init__(f"`{' '.join(self.cmd)}`{location}: {reason}")


def _decode(data: bytes | None) -> str:
    return (data or b"").decode("utf-8", errors="replace")


def _kill_process_group(proc: subprocess.Popen[bytes]) -> None:
    """Kill a process and every descendant still in its session."""
    try:
        os.killpg(proc.pid, signal.SIGKILL)
    except ProcessLookupError:
        # Group already empty
        pass


def run_process(
    cmd: Sequence[str | Path],
    timeout: float,
    cwd: Path | None = None,
) -> str | Timeout | Failure:
    """Run a command with a wall-clock deadline, capturing stdout.

    The process runs in its own session. If it outlives the deadline the
    whole session is killed and reaped, so neither the process nor any
    child it started is left running once this returns. Output of a killed
    process is discarded.

    Args:
        cmd: Executable followed by its arguments.
        timeout: Deadline in seconds.
        cwd: Working directory.

    Returns:
        Captured stdout on success, Timeout on deadline expiry, or Failure
        on non-zero exit or when the process cannot be spawned.
    """
    args = [str(part) for part in cmd]
    try:
        proc = subprocess.Popen(
            args, stdout=subprocess.PIPE, cwd=cwd, start_new_session=True
        )
    except OSError as e:
        return Failure(f"failed to spawn {args[0]}: {e}")

    with proc:
        try:
            stdout, _ = proc.communicate(timeout=timeout)
        except subprocess.TimeoutExpired:
            _kill_process_group(proc)
            proc.communicate()
            return Timeout()

    if proc.returncode != 0:
        return Failure(f"non-zero exit status {proc.returncode}")

    return _decode(stdout)


def require_success(cmd: Sequence[str | Path], cwd: Path | None = None) -> str:
    """Run a command to completion and return its stdout.

    Used for build steps, which have no deadline.

    Raises:
        ProcessError: If the command cannot be spawned or exits non-zero.
    """
    try:
        result = subprocess.run(
            [str(part) for part in cmd],
            stdout=subprocess.PIPE,
            cwd=cwd,
            check=False,
        )
    except OSError as e:
        raise ProcessError(cmd, cwd, reason=f"failed to spawn: {e}") from e

    if result.returncode != 0:
        raise ProcessError(cmd, cwd, returncode=result.returncode)

    return _decode(result.stdout)
