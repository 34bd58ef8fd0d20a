# supervisor.py
from __future__ import annotations

import atexit
import os
import signal
import subprocess
import threading
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

from .errors import LintViolationError, ToolExecutionError
from .sink import ErrorSink

# Exit code reported when a command could not be started at all
SPAWN_FAILED = 127


@dataclass(eq=False)
class ProcessHandle:
    """One spawned external command."""
    command: str
    args: List[str]
    popen: subprocess.Popen
    background: bool = False
    exit_code: Optional[int] = field(default=None, init=False)

    @property
    def pid(self) -> int:
        return self.popen.pid

    @property
    def alive(self) -> bool:
        return self.exit_code is None and self.popen.poll() is None

    def describe(self) -> str:
        return " ".join([self.command, *self.args])


class ProcessSupervisor:
    """
    Spawns tool processes with inherited stdio and keeps track of the live ones.

    Lifecycle:
      - construct once at program start (live set empty)
      - install() hooks teardown into atexit and SIGTERM/SIGHUP
      - teardown() terminates every still-live child, then kills stragglers
    """

    def __init__(
        self,
        sink: Optional[ErrorSink] = None,
        *,
        popen: Callable[..., subprocess.Popen] = subprocess.Popen,
        grace_period: float = 3.0,
    ):
        self.sink = sink or ErrorSink()
        self._popen = popen
        self.grace_period = grace_period
        self._live: Dict[int, ProcessHandle] = {}
        # re-entrant: the signal handler tears down on the main thread, which may
        # already hold the lock in spawn() or _release()
        self._lock = threading.RLock()
        self._installed = False
        self._previous_handlers: Dict[int, object] = {}

    # ------------------------------------------------------------------
    # Spawning
    # ------------------------------------------------------------------

    def spawn(
        self,
        command: str,
        args: List[str] | None = None,
        *,
        cwd: str | None = None,
        env: Dict[str, str] | None = None,
        background: bool = False,
    ) -> ProcessHandle:
        """
        Start `command` with stdin/stdout/stderr inherited and register it.

        Raises ToolExecutionError (exit 127) if the process cannot be started.
        """
        args = list(args or [])
        full_env = None
        if env:
            full_env = os.environ.copy()
            full_env.update(env)

        try:
            proc = self._popen([command, *args], cwd=cwd, env=full_env)
        except OSError as e:
            raise ToolExecutionError(
                command=" ".join([command, *args]),
                exit_code=SPAWN_FAILED,
                reason=e.strerror or str(e),
            ) from e

        handle = ProcessHandle(command=command, args=args, popen=proc, background=background)
        with self._lock:
            self._live[id(handle)] = handle
        return handle

    def wait(self, handle: ProcessHandle) -> int:
        try:
            code = handle.popen.wait()
        finally:
            self._release(handle)
        handle.exit_code = code
        return code

    def run(
        self,
        command: str,
        args: List[str] | None = None,
        *,
        fail_on_error: bool = True,
        lint: bool = False,
        cwd: str | None = None,
        env: Dict[str, str] | None = None,
        task: str | None = None,
        step: str | None = None,
    ) -> int:
        """
        Spawn, wait, and apply the failure policy.

        exit 0        -> returns 0
        exit != 0     -> fail_on_error: raise ToolExecutionError
                         otherwise: report to the sink, return the exit code
        spawn failure -> same policy, exit code 127
        """
        error_cls = LintViolationError if lint else ToolExecutionError
        try:
            handle = self.spawn(command, args, cwd=cwd, env=env)
        except ToolExecutionError as e:
            err = error_cls(
                command=e.command, exit_code=e.exit_code, task=task, step=step, reason=e.reason
            )
            return self._fail(err, fail_on_error)

        code = self.wait(handle)
        if code == 0:
            return 0

        err = error_cls(command=handle.describe(), exit_code=code, task=task, step=step)
        return self._fail(err, fail_on_error)

    def start(
        self,
        command: str,
        args: List[str] | None = None,
        *,
        cwd: str | None = None,
        env: Dict[str, str] | None = None,
    ) -> ProcessHandle:
        """Start a long-running service; it stays live until it exits or teardown."""
        handle = self.spawn(command, args, cwd=cwd, env=env, background=True)
        watcher = threading.Thread(
            target=self.wait, args=(handle,), name=f"reap-{handle.pid}", daemon=True
        )
        watcher.start()
        return handle

    def _fail(self, err: ToolExecutionError, fail_on_error: bool) -> int:
        if fail_on_error:
            raise err
        self.sink.absorb(err)
        return err.exit_code

    def _release(self, handle: ProcessHandle) -> None:
        with self._lock:
            self._live.pop(id(handle), None)

    # ------------------------------------------------------------------
    # Shutdown
    # ------------------------------------------------------------------

    def live(self) -> List[ProcessHandle]:
        with self._lock:
            return list(self._live.values())

    def teardown(self) -> None:
        """Terminate every live child; kill the ones that ignore SIGTERM."""
        handles = self.live()
        if not handles:
            return

        for h in handles:
            try:
                h.popen.terminate()
            except OSError:
                # already gone
                pass

        for h in handles:
            try:
                h.popen.wait(timeout=self.grace_period)
            except subprocess.TimeoutExpired:
                try:
                    h.popen.kill()
                    h.popen.wait(timeout=self.grace_period)
                except (OSError, subprocess.TimeoutExpired):
                    pass
            self._release(h)

    def install(self) -> "ProcessSupervisor":
        """Tie teardown to interpreter exit and termination signals."""
        if self._installed:
            return self
        atexit.register(self.teardown)
        if threading.current_thread() is threading.main_thread():
            for sig in (signal.SIGTERM, getattr(signal, "SIGHUP", None)):
                if sig is None:
                    continue
                self._previous_handlers[sig] = signal.signal(sig, self._on_signal)
        self._installed = True
        return self

    def uninstall(self) -> None:
        if not self._installed:
            return
        atexit.unregister(self.teardown)
        for sig, handler in self._previous_handlers.items():
            signal.signal(sig, handler if handler is not None else signal.SIG_DFL)
        self._previous_handlers.clear()
        self._installed = False

    def _on_signal(self, signum, frame) -> None:
        self.teardown()
        raise SystemExit(128 + signum)

    def __enter__(self) -> "ProcessSupervisor":
        return self.install()

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        try:
            self.teardown()
        finally:
            self.uninstall()
