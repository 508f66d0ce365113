import os
import signal
import subprocess
import sys
import time
from pathlib import Path

import pytest

import process_waiter as pw
from output_capture import OutputType, capture_output
from process_waiter import PreparedProcess, ProcessStartError, run_timeout, start_and_wait

pytestmark = pytest.mark.skipif(sys.platform == "win32", reason="requires a POSIX shell")


def _gone(pid: int, within: float = 3.0) -> bool:
    deadline = time.monotonic() + within
    while time.monotonic() < deadline:
        try:
            os.kill(pid, 0)
        except ProcessLookupError:
            return True
        status = Path(f"/proc/{pid}/status")
        if status.exists() and "State:\tZ" in status.read_text():
            return True
        time.sleep(0.05)
    return False


def test_normal_exit_reports_returncode():
    outcome = start_and_wait(PreparedProcess(["/bin/sh", "-c", "exit 7"]), timeout=5)
    assert outcome.returncode == 7
    assert outcome.timed_out is False


def test_zero_timeout_waits_without_limit():
    outcome = start_and_wait(PreparedProcess(["/bin/sh", "-c", "sleep 0.2"]), timeout=0)
    assert outcome.returncode == 0


def test_missing_binary_is_a_start_failure():
    with pytest.raises(ProcessStartError) as excinfo:
        start_and_wait(PreparedProcess(["/nonexistent/privexec-binary"]), timeout=1)
    assert isinstance(excinfo.value.cause, OSError)
    assert excinfo.value.argv == ["/nonexistent/privexec-binary"]


def test_timeout_terminates_process_promptly():
    started = time.monotonic()
    outcome = start_and_wait(PreparedProcess(["/bin/sh", "-c", "sleep 10"]), timeout=0.3, kill_grace=1)
    elapsed = time.monotonic() - started

    assert outcome.timed_out is True
    assert elapsed < 3
    assert _gone(outcome.pid)


@pytest.mark.skipif(not sys.platform.startswith("linux"), reason="inspects /proc")
def test_timeout_kills_background_children():
    result = capture_output(
        PreparedProcess(["/bin/sh", "-c", "sleep 30 & echo $!; wait"]),
        timeout=0.5,
        output_type=OutputType.STDOUT_ONLY,
        kill_grace=1,
    )
    child_pid = int(result.output.decode().strip())

    assert result.outcome.timed_out is True
    assert _gone(child_pid)


def test_term_ignoring_process_is_killed():
    started = time.monotonic()
    outcome = start_and_wait(
        PreparedProcess(["/bin/sh", "-c", "trap '' TERM; sleep 10"]), timeout=0.3, kill_grace=0.5
    )
    assert outcome.timed_out is True
    assert time.monotonic() - started < 4
    assert _gone(outcome.pid)


def test_run_timeout_discards_output(capfd):
    outcome = run_timeout(["/bin/sh", "-c", "echo visible; echo hidden >&2"], timeout=5)
    assert outcome.returncode == 0
    captured = capfd.readouterr()
    assert "visible" not in captured.out
    assert "hidden" not in captured.err


def test_single_process_terminator_skips_group(monkeypatch):
    calls = []

    class FakeProcess:
        pid = 4242

        def terminate(self):
            calls.append("terminate")

        def kill(self):
            raise ProcessLookupError

    monkeypatch.setattr(pw, "_HAS_PROCESS_GROUPS", False)
    terminator = pw.terminator_for(FakeProcess())
    assert isinstance(terminator, pw.SingleProcessTerminator)

    terminator.terminate()
    terminator.terminate_group()
    terminator.kill()
    terminator.kill_group()
    assert calls == ["terminate"]


def test_group_terminator_ignores_vanished_group(monkeypatch):
    def killpg(_pid, _sig):
        raise ProcessLookupError

    monkeypatch.setattr(pw.os, "killpg", killpg, raising=False)
    proc = subprocess.Popen(["/bin/sh", "-c", "exit 0"])
    proc.wait()

    terminator = pw.GroupTerminator(proc)
    terminator.terminate_group()
    terminator.kill_group()


class _Interrupted(Exception):
    pass


@pytest.mark.skipif(not hasattr(signal, "setitimer"), reason="needs SIGALRM")
def test_interrupted_wait_stops_the_child(tmp_path: Path):
    pid_file = tmp_path / "pid"

    def interrupt(_signum, _frame):
        raise _Interrupted

    previous = signal.signal(signal.SIGALRM, interrupt)
    signal.setitimer(signal.ITIMER_REAL, 0.5)
    try:
        with pytest.raises(_Interrupted):
            start_and_wait(
                PreparedProcess(["/bin/sh", "-c", f"echo $$ > {pid_file}; exec sleep 30"]),
                timeout=0,
                kill_grace=1,
            )
    finally:
        signal.setitimer(signal.ITIMER_REAL, 0)
        signal.signal(signal.SIGALRM, previous)

    assert _gone(int(pid_file.read_text().strip()))
