"""Start a subprocess and wait for it with a deadline.

On timeout the process and, where the platform has process groups, every
process in its group are asked to terminate. After ``kill_grace`` seconds
anything still running is killed.
"""

from __future__ import annotations

import logging
import os
import signal
import subprocess
from dataclasses import dataclass, field
from typing import IO, Mapping, Protocol, Sequence, Union

logger = logging.getLogger("privexec.process")

Sink = Union[IO[bytes], int, None]

_HAS_PROCESS_GROUPS = hasattr(os, "killpg")


class ProcessStartError(RuntimeError):
    """Raised when the subprocess could not be spawned."""

    def __init__(self, argv: Sequence[str], cause: BaseException):
        super().__init__(f"Failed to start {argv[0] if argv else '<empty>'}: {cause}")
        self.argv = list(argv)
        self.cause = cause


@dataclass
class PreparedProcess:
    argv: list[str]
    stdout: Sink = subprocess.DEVNULL
    stderr: Sink = subprocess.DEVNULL
    cwd: str | None = None
    env: Mapping[str, str] | None = field(default=None, repr=False)


@dataclass(frozen=True)
class WaitOutcome:
    pid: int
    returncode: int | None
    timed_out: bool = False


class ProcessTerminator(Protocol):
    def terminate(self) -> None: ...

    def terminate_group(self) -> None: ...

    def kill(self) -> None: ...

    def kill_group(self) -> None: ...


class SingleProcessTerminator:
    """Signals only the direct child; group operations do nothing."""

    def __init__(self, process: subprocess.Popen):
        self.process = process

    def terminate(self) -> None:
        _ignore_gone(self.process.terminate)

    def terminate_group(self) -> None:
        return None

    def kill(self) -> None:
        _ignore_gone(self.process.kill)

    def kill_group(self) -> None:
        return None


class GroupTerminator(SingleProcessTerminator):
    """Signals the child and the process group it leads."""

    def terminate_group(self) -> None:
        _ignore_gone(os.killpg, self.process.pid, signal.SIGTERM)

    def kill_group(self) -> None:
        _ignore_gone(os.killpg, self.process.pid, signal.SIGKILL)


def _ignore_gone(func, *args) -> None:
    try:
        func(*args)
    except ProcessLookupError:
        logger.debug("signal target already exited")
    except PermissionError as exc:
        logger.debug("not permitted to signal process: %s", exc)


def terminator_for(process: subprocess.Popen) -> ProcessTerminator:
    if _HAS_PROCESS_GROUPS:
        return GroupTerminator(process)
    return SingleProcessTerminator(process)


def _stop(process: subprocess.Popen, kill_grace: float) -> int | None:
    terminator = terminator_for(process)
    terminator.terminate()
    terminator.terminate_group()
    try:
        return process.wait(timeout=kill_grace)
    except subprocess.TimeoutExpired:
        logger.debug("pid %s ignored SIGTERM, killing", process.pid)

    terminator.kill()
    terminator.kill_group()
    try:
        return process.wait(timeout=kill_grace)
    except subprocess.TimeoutExpired:
        logger.warning("pid %s still running after kill", process.pid)
        return None


def start_and_wait(prepared: PreparedProcess, timeout: float, kill_grace: float = 3.0) -> WaitOutcome:
    """Start ``prepared`` and wait for it, for at most ``timeout`` seconds.

    A ``timeout`` of zero or less waits without limit. Exit codes are
    reported as-is and never interpreted here.

    Raises:
        ProcessStartError: the process could not be spawned.
    """
    try:
        process = subprocess.Popen(
            prepared.argv,
            stdin=subprocess.DEVNULL,
            stdout=prepared.stdout,
            stderr=prepared.stderr,
            cwd=prepared.cwd,
            env=dict(prepared.env) if prepared.env is not None else None,
            start_new_session=_HAS_PROCESS_GROUPS,
        )
    except (OSError, subprocess.SubprocessError) as exc:
        raise ProcessStartError(prepared.argv, exc) from exc

    try:
        if timeout <= 0:
            return WaitOutcome(process.pid, process.wait())

        try:
            return WaitOutcome(process.pid, process.wait(timeout=timeout))
        except subprocess.TimeoutExpired:
            logger.debug("pid %s exceeded %.3fs timeout, terminating", process.pid, timeout)
            return WaitOutcome(process.pid, _stop(process, kill_grace), timed_out=True)
    except BaseException:
        # the child runs in its own session, so an interrupt never reaches it
        logger.debug("wait for pid %s interrupted, stopping it", process.pid)
        _stop(process, kill_grace)
        raise


def run_timeout(argv: Sequence[str], timeout: float, kill_grace: float = 3.0) -> WaitOutcome:
    """Run ``argv`` with output discarded, enforcing ``timeout``."""
    return start_and_wait(PreparedProcess(list(argv)), timeout, kill_grace)
