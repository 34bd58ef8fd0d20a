# model.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional, Sequence, Union

if TYPE_CHECKING:
    from .runner import TaskContext


# Static argument list, or a callable that builds it when the step runs
ArgSpec = Union[Sequence[str], Callable[["TaskContext"], List[str]]]


@dataclass(frozen=True)
class Step:
    """A single unit of work inside a task: one tool invocation or one Python call."""
    name: str
    command: str = ""
    args: ArgSpec = ()
    cwd: str | None = None
    env: Dict[str, str] = field(default_factory=dict)

    # "shell" | "lint" | "test" | "call"
    kind: str = "shell"
    fn: Optional[Callable[["TaskContext"], Any]] = None
    background: bool = False

    def resolve_args(self, ctx: "TaskContext") -> list[str]:
        if callable(self.args):
            return list(self.args(ctx))
        return list(self.args)

    def describe(self) -> str:
        if self.kind == "call":
            return self.name
        args = self.args if not callable(self.args) else ["..."]
        return " ".join([self.command, *args])


@dataclass(frozen=True)
class Task:
    """
    A named unit in the workflow: steps + prerequisites + failure policy.

    Tasks without steps are composites: running them only runs their needs.
    fail_fast=False makes a "nofail" variant: tool failures are reported and
    the run carries on.
    """
    name: str
    steps: tuple[Step, ...] = ()
    needs: tuple[str, ...] = ()
    fail_fast: bool = True
    description: str = ""

    @property
    def is_composite(self) -> bool:
        return not self.steps
