"""Run a CommandSpec as the right OS user and classify the outcome."""

from __future__ import annotations

import logging
import shlex
import time
from dataclasses import dataclass

from command import CommandSpec
from masking import mask
from output_capture import capture_output
from privilege import Invocation, get_current_user, resolve_invocation
from process_waiter import PreparedProcess, ProcessStartError

logger = logging.getLogger("privexec.executor")

TIMEOUT_EXIT_CODE = 124


class CommandTransportError(RuntimeError):
    """Raised when the command could not be started at all."""

    def __init__(self, masked_cmd: str, cause: BaseException):
        super().__init__(f"Error when executing shell command {masked_cmd}: {cause}")
        self.cause = cause


class CommandFailedError(RuntimeError):
    """Raised by the strict modes when a command exits non-zero or times out."""

    def __init__(self, result: "ExecuteResult"):
        if result.timed_out:
            status = "timed out"
        else:
            status = f"exit code: {result.exit_code}"
        super().__init__(f"Failed to execute command: {mask(result.command)}, {status}, output: {result.output}")
        self.result = result


@dataclass(frozen=True)
class ExecuteResult:
    command: str
    exit_code: int
    output: str
    timed_out: bool = False

    def is_successful(self) -> bool:
        return self.exit_code == 0

    def as_error(self) -> CommandFailedError | None:
        if self.is_successful():
            return None
        return CommandFailedError(self)

    def lines(self) -> list[str]:
        """Split output into lines, dropping surrounding newlines."""
        if not self.output:
            return []
        if "\n" not in self.output:
            return [self.output]
        return self.output.strip("\n").split("\n")


class CommandExecutor:
    """Executes one CommandSpec; every call runs the command again."""

    def __init__(self, spec: CommandSpec, logger: logging.Logger | None = None, kill_grace: float = 3.0):
        self.spec = spec
        self.logger = logger
        self.kill_grace = kill_grace

    def execute(self, *, logger: logging.Logger | None = None, start_time: float | None = None) -> ExecuteResult:
        """Run the command and expect exit code 0.

        Raises:
            CommandFailedError: the command exited non-zero or timed out.
            CommandTransportError: the command could not be started.
        """
        result = self._execute(logging.INFO, logger, start_time)
        error = result.as_error()
        if error is not None:
            raise error
        return result

    def execute_allow_failure(
        self, *, logger: logging.Logger | None = None, start_time: float | None = None
    ) -> ExecuteResult:
        """Run the command; a non-zero exit is only reflected in the result."""
        return self._execute(logging.INFO, logger, start_time)

    def execute_with_debug(
        self, *, logger: logging.Logger | None = None, start_time: float | None = None
    ) -> ExecuteResult:
        result = self._execute(logging.DEBUG, logger, start_time)
        error = result.as_error()
        if error is not None:
            raise error
        return result

    def resolve(self) -> Invocation:
        return resolve_invocation(self.spec.program, self.spec.cmd, self.spec.user, get_current_user())

    def _execute(self, level: int, log: logging.Logger | None, start_time: float | None) -> ExecuteResult:
        log = log or self.logger or logger
        spec = self.spec
        if start_time is None:
            start_time = spec.context.start_time if spec.context.start_time is not None else time.monotonic()
        tag = f"[{spec.context.trace_id}] " if spec.context.trace_id else ""

        invocation = self.resolve()
        command = shlex.join(invocation.argv)
        masked = mask(command)
        log.log(level, "%sexecute shell command start, command=%s", tag, masked)

        try:
            captured = capture_output(
                PreparedProcess(invocation.argv), spec.timeout, spec.output_type, self.kill_grace
            )
        except ProcessStartError as exc:
            log.error("%sexecute shell command error, command=%s, error=%s", tag, masked, exc.cause)
            raise CommandTransportError(mask(spec.cmd), exc.cause) from exc

        output = captured.output.decode("utf-8", errors="replace")
        elapsed = time.monotonic() - start_time
        log.debug("%sexecute shell command %s, output=%s", tag, masked, output)

        outcome = captured.outcome
        if outcome.timed_out:
            log.info(
                "%sexecute shell command timed out, command=%s, timeout=%gs, elapsed=%.3fs",
                tag,
                masked,
                spec.timeout,
                elapsed,
            )
            return ExecuteResult(command, TIMEOUT_EXIT_CODE, output, timed_out=True)

        if outcome.returncode != 0:
            log.info(
                "%sexecute shell command failed, command=%s, exitCode=%d, elapsed=%.3fs",
                tag,
                masked,
                outcome.returncode,
                elapsed,
            )
            return ExecuteResult(command, outcome.returncode, output)

        log.log(level, "%sexecute shell command end, command=%s, elapsed=%.3fs", tag, masked, elapsed)
        return ExecuteResult(command, 0, output)
