from __future__ import annotations

import os
import signal
import subprocess
import sys
import textwrap
from pathlib import Path

import pytest

from taskline.errors import LintViolationError, ToolExecutionError
from taskline.supervisor import SPAWN_FAILED, ProcessSupervisor

SLEEP = "import time; time.sleep(60)"


class FakeProc:
    """Stands in for Popen in teardown tests."""

    _next_pid = 1000

    def __init__(self, argv, ignores_term: bool = False, **kwargs):
        self.argv = argv
        self.pid = FakeProc._next_pid
        FakeProc._next_pid += 1
        self.ignores_term = ignores_term
        self.terminated = False
        self.killed = False
        self.returncode = None

    def poll(self):
        return self.returncode

    def terminate(self):
        self.terminated = True
        if not self.ignores_term:
            self.returncode = -15

    def kill(self):
        self.killed = True
        self.returncode = -9

    def wait(self, timeout=None):
        if self.returncode is None:
            raise subprocess.TimeoutExpired(self.argv, timeout)
        return self.returncode


def test_run_success(supervisor) -> None:
    code = supervisor.run(sys.executable, ["-c", "pass"])
    assert code == 0
    assert supervisor.live() == []


def test_run_failure_raises_with_exit_code(supervisor) -> None:
    with pytest.raises(ToolExecutionError) as exc:
        supervisor.run(sys.executable, ["-c", "import sys; sys.exit(3)"], task="jstest")
    assert exc.value.exit_code == 3
    assert exc.value.task == "jstest"
    assert supervisor.live() == []


def test_lint_failure_is_lint_violation(supervisor) -> None:
    with pytest.raises(LintViolationError) as exc:
        supervisor.run(sys.executable, ["-c", "import sys; sys.exit(1)"], lint=True)
    assert isinstance(exc.value, ToolExecutionError)


def test_run_failure_without_fail_on_error_is_reported(supervisor, sink) -> None:
    code = supervisor.run(
        sys.executable, ["-c", "import sys; sys.exit(5)"], fail_on_error=False
    )
    assert code == 5
    assert sink.count == 1
    assert sink.reported[0].exit_code == 5


def test_spawn_failure_follows_same_policy(supervisor, sink) -> None:
    missing = "definitely-not-a-real-tool-xyz"
    with pytest.raises(ToolExecutionError) as exc:
        supervisor.run(missing, ["--version"])
    assert exc.value.exit_code == SPAWN_FAILED

    code = supervisor.run(missing, ["--version"], fail_on_error=False)
    assert code == SPAWN_FAILED
    assert sink.count == 1


def test_env_is_merged(supervisor) -> None:
    code = supervisor.run(
        sys.executable,
        ["-c", "import os, sys; sys.exit(0 if os.environ['TL_X'] == 'y' and os.environ.get('PATH') else 1)"],
        env={"TL_X": "y"},
    )
    assert code == 0


def test_teardown_signals_every_live_child(sink) -> None:
    sup = ProcessSupervisor(sink, popen=FakeProc, grace_period=0.01)
    handles = [sup.spawn("tool", [str(i)]) for i in range(4)]
    assert len(sup.live()) == 4

    sup.teardown()

    assert all(h.popen.terminated for h in handles)
    assert sup.live() == []


def test_teardown_kills_children_ignoring_sigterm(sink) -> None:
    sup = ProcessSupervisor(
        sink, popen=lambda argv, **kw: FakeProc(argv, ignores_term=True), grace_period=0.01
    )
    h = sup.spawn("stubborn")
    sup.teardown()
    assert h.popen.terminated
    assert h.popen.killed


def test_teardown_real_processes(sink) -> None:
    sup = ProcessSupervisor(sink, grace_period=5.0)
    handles = [sup.spawn(sys.executable, ["-c", SLEEP]) for _ in range(3)]
    sup.teardown()
    for h in handles:
        assert h.popen.poll() is not None
    assert sup.live() == []


def test_background_service_stays_live_until_teardown(sink) -> None:
    sup = ProcessSupervisor(sink, grace_period=5.0)
    h = sup.start(sys.executable, ["-c", SLEEP])
    assert h.background
    assert h in sup.live()
    sup.teardown()
    assert h.popen.poll() is not None


def test_context_manager_tears_down(sink) -> None:
    with ProcessSupervisor(sink, grace_period=5.0) as sup:
        h = sup.spawn(sys.executable, ["-c", SLEEP])
    assert h.popen.poll() is not None
    assert sup.live() == []


def test_teardown_is_idempotent(sink) -> None:
    sup = ProcessSupervisor(sink, popen=FakeProc, grace_period=0.01)
    sup.spawn("tool")
    sup.teardown()
    sup.teardown()
    assert sup.live() == []


# Runs in its own interpreter: installs the supervisor, starts a sleeper,
# prints its pid, then sends itself SIGTERM (optionally while holding the
# supervisor's lock, as spawn() and _release() do).
SIGTERM_SCRIPT = textwrap.dedent(
    """
    import os, signal, sys, time
    from taskline.supervisor import ProcessSupervisor

    sup = ProcessSupervisor(grace_period=2.0).install()
    child = sup.spawn(sys.executable, ["-c", "import time; time.sleep(60)"])
    print(child.pid, flush=True)
    if sys.argv[1] == "locked":
        with sup._lock:
            os.kill(os.getpid(), signal.SIGTERM)
            time.sleep(30)
    else:
        os.kill(os.getpid(), signal.SIGTERM)
        time.sleep(30)
    """
)


@pytest.mark.skipif(sys.platform == "win32", reason="POSIX signals")
@pytest.mark.parametrize("mode", ["unlocked", "locked"])
def test_sigterm_tears_down_children_and_exits_143(mode) -> None:
    src = Path(__file__).resolve().parents[1] / "src"
    env = dict(os.environ)
    env["PYTHONPATH"] = os.pathsep.join(filter(None, [str(src), env.get("PYTHONPATH")]))

    proc = subprocess.run(
        [sys.executable, "-c", SIGTERM_SCRIPT, mode],
        capture_output=True,
        text=True,
        env=env,
        timeout=20,
    )

    assert proc.returncode == 128 + signal.SIGTERM, proc.stderr
    child_pid = int(proc.stdout.split()[0])
    with pytest.raises(ProcessLookupError):
        os.kill(child_pid, 0)
