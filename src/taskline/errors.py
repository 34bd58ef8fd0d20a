# errors.py
from __future__ import annotations

from dataclasses import dataclass, field


class TasklineError(Exception):
    """Base class for everything taskline raises on purpose."""


# ----------------------------------------------------------------------
# Configuration defects (never suppressed by nofail tasks)
# ----------------------------------------------------------------------

@dataclass
class UnknownTaskError(TasklineError):
    name: str
    referenced_by: str | None = None
    known: list[str] = field(default_factory=list)

    def __str__(self) -> str:
        if self.referenced_by:
            msg = f"Task '{self.referenced_by}' needs unknown task '{self.name}'"
        else:
            msg = f"Unknown task '{self.name}'"
        if self.known:
            msg += f". Known tasks: {', '.join(self.known)}"
        return msg


@dataclass
class DuplicateTaskError(TasklineError):
    name: str

    def __str__(self) -> str:
        return f"Task '{self.name}' is already registered"


@dataclass
class CyclicDependencyError(TasklineError):
    cycle: list[str]

    def __str__(self) -> str:
        return "Dependency cycle: " + " -> ".join(self.cycle)


# ----------------------------------------------------------------------
# Runtime faults
# ----------------------------------------------------------------------

@dataclass
class ToolExecutionError(TasklineError):
    """
    An external tool exited non-zero or could not be spawned.

    exit_code is 127 when the command could not be started at all.
    """
    command: str
    exit_code: int
    task: str | None = None
    step: str | None = None
    reason: str | None = None

    def __str__(self) -> str:
        where = f"[{self.task}] " if self.task else ""
        if self.step:
            where += f"step '{self.step}' "
        msg = f"{where}failed (exit={self.exit_code}): {self.command}"
        if self.reason:
            msg += f" ({self.reason})"
        return msg


@dataclass
class LintViolationError(ToolExecutionError):
    def __str__(self) -> str:
        return "lint violations: " + super().__str__()


@dataclass
class ResourceCleanupError(TasklineError):
    path: str
    reason: str

    def __str__(self) -> str:
        return f"could not remove {self.path}: {self.reason}"
