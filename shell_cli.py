#!/usr/bin/env python3
"""Run a shell command as a given user with a timeout."""

from __future__ import annotations

import argparse
import uuid
from typing import List, Optional

from rich.console import Console
from rich.markup import escape

from command import ExecutionContext, Shell
from config import Config
from executor import CommandExecutor, CommandFailedError, CommandTransportError
from logging_setup import setup_logging
from output_capture import OutputType

console = Console()
err_console = Console(stderr=True)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Execute a shell command, optionally as another user, with a timeout."
    )
    parser.add_argument("command", help="Command text passed to the shell with -c")
    parser.add_argument("--user", default=None, help="Target OS user (default: current user)")
    parser.add_argument("--timeout", type=float, default=None, help="Timeout in seconds, 0 for none")
    parser.add_argument("--program", default=None, help="Shell interpreter (default from config)")
    parser.add_argument("--combined", action="store_true", help="Capture stderr together with stdout")
    parser.add_argument("--allow-failure", action="store_true", help="Do not treat a non-zero exit as an error")
    parser.add_argument("--debug", action="store_true", help="Log execution events at debug level")
    parser.add_argument("--config", default="privexec.yaml", help="Path to YAML configuration")
    args = parser.parse_args(argv)
    if args.allow_failure and args.debug:
        parser.error("--debug cannot be combined with --allow-failure")
    return args


def _exit_status(code: int) -> int:
    """Map a signal-killed returncode (-N) to the shell convention 128+N."""
    if code < 0:
        return 128 - code
    return code


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    cfg = Config.load(args.config)
    logger = setup_logging(cfg.logging.log_file, cfg.logging.console_level)

    spec = Shell.from_config(cfg).new_command(args.command)
    if args.user is not None:
        spec = spec.with_user(args.user)
    if args.timeout is not None:
        spec = spec.with_timeout(args.timeout)
    if args.program:
        spec = spec.with_program(args.program)
    if args.combined:
        spec = spec.with_output_type(OutputType.COMBINED)
    spec = spec.with_context(ExecutionContext(trace_id=uuid.uuid4().hex[:16]))

    executor = CommandExecutor(spec, logger=logger.getChild("executor"), kill_grace=cfg.shell.kill_grace)
    try:
        if args.allow_failure:
            result = executor.execute_allow_failure()
        elif args.debug:
            result = executor.execute_with_debug()
        else:
            result = executor.execute()
    except CommandTransportError as exc:
        err_console.print(f"[red]Error:[/red] {escape(str(exc))}", highlight=False)
        return 1
    except CommandFailedError as exc:
        console.print(exc.result.output, end="", markup=False, highlight=False)
        if exc.result.timed_out:
            err_console.print(f"[red]Command timed out[/red] after {spec.timeout:g}s")
        else:
            err_console.print(f"[red]Command failed[/red] with exit code {exc.result.exit_code}")
        return _exit_status(exc.result.exit_code) or 1

    console.print(result.output, end="", markup=False, highlight=False)
    return _exit_status(result.exit_code)


if __name__ == "__main__":
    raise SystemExit(main())
