# sink.py
from __future__ import annotations

from typing import Optional

from .errors import TasklineError
from .ui.console import Console, get_console

RECOVERED = "recovered"


class ErrorSink:
    """
    Where tool failures end up: a red log line plus a terminal bell.

    The runner picks what happens next. Fail-fast tasks go through
    escalate(), which reports and re-raises so the run aborts. Best-effort
    tasks (and nofail tool runs in the supervisor) go through absorb(),
    which reports and hands back the "recovered" status.
    """

    def __init__(self, console: Optional[Console] = None):
        self._console = console
        self.reported: list[BaseException] = []

    @property
    def console(self) -> Console:
        return self._console or get_console()

    def report(self, error: BaseException | int | str, *, task: str | None = None) -> None:
        if isinstance(error, int):
            message = f"Task failed with code: {error}"
        else:
            message = str(error) or error.__class__.__name__
        if task and not isinstance(error, TasklineError):
            message = f"[{task}] {message}"
        if isinstance(error, BaseException):
            self.reported.append(error)
        self.console.print_failure(message)
        self.console.beep()

    def absorb(self, error: BaseException, *, task: str | None = None) -> str:
        self.report(error, task=task)
        return RECOVERED

    def escalate(self, error: BaseException, *, task: str | None = None) -> None:
        self.report(error, task=task)
        raise error

    @property
    def count(self) -> int:
        return len(self.reported)
