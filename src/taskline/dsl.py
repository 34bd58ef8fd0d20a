# src/taskline/dsl.py
from __future__ import annotations

from typing import Any, Callable, Dict, List, Optional

from .model import ArgSpec, Step, Task


# ---------------------------------------------------------------------
# Step helpers
# ---------------------------------------------------------------------

def sh(
    name: str,
    command: str,
    *args: str,
    argv: Optional[ArgSpec] = None,
    cwd: str | None = None,
    env: Optional[Dict[str, str]] = None,
) -> Step:
    """
    Run a program. Extra positional strings are its arguments; pass
    argv=callable instead to build them when the step runs.
    """
    return Step(
        name=name,
        command=command,
        args=argv if argv is not None else tuple(args),
        cwd=cwd,
        env=dict(env or {}),
    )


def background(
    name: str,
    command: str,
    *args: str,
    cwd: str | None = None,
    env: Optional[Dict[str, str]] = None,
) -> Step:
    """Start a long-running service (dev server) and move on without waiting."""
    return Step(
        name=name,
        command=command,
        args=tuple(args),
        cwd=cwd,
        env=dict(env or {}),
        background=True,
    )


def call(name: str, fn: Callable[[Any], Any]) -> Step:
    """Run a Python function with the TaskContext."""
    return Step(name=name, kind="call", fn=fn)


# ---------------------------------------------------------------------
# Functional Task helper
# ---------------------------------------------------------------------

def task(
    name: str,
    *steps: Step,  # allow: task("x", sh(...), sh(...))
    needs: Optional[List[str]] = None,
    fail_fast: bool = True,
    description: str = "",
) -> Task:
    """
    Declare a task. With no steps it is a composite that only runs its needs.
    """
    if not steps and not needs:
        raise ValueError(f"task({name!r}) needs at least one step or one prerequisite")
    return Task(
        name=name,
        steps=tuple(steps),
        needs=tuple(needs or ()),
        fail_fast=fail_fast,
        description=description,
    )


def nofail(t: Task, name: str | None = None) -> Task:
    """Best-effort copy of a task: same steps, failures reported and absorbed."""
    return Task(
        name=name or f"{t.name}-nofail",
        steps=t.steps,
        needs=t.needs,
        fail_fast=False,
        description=t.description,
    )


# ---------------------------------------------------------------------
# Builder API
# ---------------------------------------------------------------------

class TaskBuilder:
    def __init__(self, name: str):
        self.name = name
        self._needs: list[str] = []
        self._steps: list[Step] = []
        self._fail_fast = True
        self._description = ""

    def depends_on(self, *task_names: str):
        self._needs.extend(task_names)
        return self

    def define_step(self, name: str, command: str, *args: str, cwd: str | None = None):
        self._steps.append(sh(name, command, *args, cwd=cwd))
        return self

    def add(self, step: Step):
        self._steps.append(step)
        return self

    def best_effort(self, enabled: bool = True):
        self._fail_fast = not enabled
        return self

    def describe(self, text: str):
        self._description = text
        return self

    def build(self) -> Task:
        return task(
            self.name,
            *self._steps,
            needs=self._needs,
            fail_fast=self._fail_fast,
            description=self._description,
        )


def build(name: str) -> TaskBuilder:
    """Convenience: build('test').define_step(...).build()"""
    return TaskBuilder(name)


# ---------------------------------------------------------------------
# Workflow helper (single-file story)
# ---------------------------------------------------------------------

def wf(*tasks: Task) -> List[Task]:
    """
    Workflow definition helper.

        from taskline import wf, task, sh

        def workflow():
            return wf(
                task("lint", sh("eslint", "eslint", "lib/")),
                task("default", needs=["lint"]),
            )

    Or use TASKS directly:
        TASKS = wf(task(...), task(...))
    """
    return list(tasks)
