"""Attach output sinks to a prepared process and collect what it writes."""

from __future__ import annotations

import subprocess
import tempfile
from dataclasses import dataclass, replace
from enum import Enum

from process_waiter import PreparedProcess, WaitOutcome, start_and_wait


class OutputType(str, Enum):
    STDOUT_ONLY = "stdout"
    COMBINED = "combined"


@dataclass(frozen=True)
class CaptureResult:
    output: bytes
    outcome: WaitOutcome


def capture_output(
    prepared: PreparedProcess,
    timeout: float,
    output_type: OutputType = OutputType.STDOUT_ONLY,
    kill_grace: float = 3.0,
) -> CaptureResult:
    """Run ``prepared`` and return the bytes it wrote alongside the wait outcome.

    ``COMBINED`` shares one buffer between stdout and stderr so writes keep
    the order the OS delivered them in. ``STDOUT_ONLY`` discards stderr.
    Partial output is returned when the process timed out.
    """
    with tempfile.TemporaryFile(prefix="privexec_") as buffer:
        stderr = buffer if OutputType(output_type) is OutputType.COMBINED else subprocess.DEVNULL
        outcome = start_and_wait(replace(prepared, stdout=buffer, stderr=stderr), timeout, kill_grace)
        buffer.seek(0)
        return CaptureResult(buffer.read(), outcome)
