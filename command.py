"""Immutable command descriptions and the shell factory that builds them."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING

from output_capture import OutputType

if TYPE_CHECKING:
    from config import Config

BASH = "/bin/bash"
SH = "/bin/sh"


@dataclass(frozen=True)
class ExecutionContext:
    """Values carried along an execution for log correlation.

    The context never cancels a running command; only the timeout does.
    """

    trace_id: str = ""
    start_time: float | None = None


BACKGROUND = ExecutionContext()


@dataclass(frozen=True)
class CommandSpec:
    cmd: str
    program: str = BASH
    user: str = ""
    timeout: float = 0.0
    output_type: OutputType = OutputType.STDOUT_ONLY
    context: ExecutionContext = field(default=BACKGROUND, compare=False)

    def with_user(self, user: str) -> "CommandSpec":
        return replace(self, user=user)

    def with_timeout(self, timeout: float) -> "CommandSpec":
        return replace(self, timeout=timeout)

    def with_output_type(self, output_type: OutputType | str) -> "CommandSpec":
        return replace(self, output_type=OutputType(output_type))

    def with_program(self, program: str) -> "CommandSpec":
        return replace(self, program=program)

    def with_context(self, context: ExecutionContext | None) -> "CommandSpec":
        return replace(self, context=context or BACKGROUND)


@dataclass(frozen=True)
class Shell:
    """Defaults shared by every command created through :meth:`new_command`."""

    program: str = BASH
    timeout: float = 0.0
    user: str = ""
    output_type: OutputType = OutputType.STDOUT_ONLY

    @classmethod
    def from_config(cls, cfg: "Config") -> "Shell":
        return cls(
            program=cfg.shell.program,
            timeout=cfg.shell.timeout,
            user=cfg.shell.user,
            output_type=OutputType(cfg.shell.output_type),
        )

    def new_command(self, cmd: str) -> CommandSpec:
        return CommandSpec(
            cmd=cmd,
            program=self.program,
            user=self.user,
            timeout=self.timeout,
            output_type=self.output_type,
        )
