# runner.py
from __future__ import annotations

import runpy
import time
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import TYPE_CHECKING, Dict, List, Optional, Tuple

from .config import Settings
from .dag import resolve
from .errors import ToolExecutionError
from .model import Step, Task
from .registry import TaskRegistry
from .sink import RECOVERED, ErrorSink
from .supervisor import ProcessSupervisor
from .ui.console import Console, get_console

if TYPE_CHECKING:
    from .watch import WatchSession


# ----------------------------------------------------------------------
# Run state
# ----------------------------------------------------------------------

@dataclass
class TaskContext:
    """Everything a step needs while it runs."""
    settings: Settings
    supervisor: ProcessSupervisor
    sink: ErrorSink
    console: Console = field(default_factory=get_console)
    watch: Optional["WatchSession"] = None
    changed_paths: Tuple[str, ...] = ()
    task: Optional[Task] = None

    @property
    def root(self) -> Path:
        return self.settings.root

    @property
    def fail_fast(self) -> bool:
        return self.task.fail_fast if self.task is not None else True


@dataclass
class TaskResult:
    name: str
    # "ok" | "recovered" | "failed" | "skipped"
    status: str
    duration: float = 0.0
    error: Optional[BaseException] = None


@dataclass
class RunReport:
    """Outcome of one invocation: the resolved order and what happened to each task."""
    targets: List[str]
    order: List[str]
    results: Dict[str, TaskResult] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not any(r.status == "failed" for r in self.results.values())

    @property
    def exit_code(self) -> int:
        for r in self.results.values():
            if r.status != "failed":
                continue
            if isinstance(r.error, ToolExecutionError) and r.error.exit_code:
                code = r.error.exit_code
                # killed by a signal: report it the way a shell does
                return 128 - code if code < 0 else code
            return 1
        return 0

    def statuses(self) -> Dict[str, str]:
        return {name: r.status for name, r in self.results.items()}


# ----------------------------------------------------------------------
# Workflow loading (local file)
# ----------------------------------------------------------------------

def load_workflow(path: str | Path) -> TaskRegistry:
    """
    Load a workflow from a python file path.

    The file must define either:
      - workflow() -> List[Task] | TaskRegistry
      - TASKS = [Task, ...]

    The registry is validated here, so unknown needs and cycles surface
    before any task runs.
    """
    wf_path = Path(path).expanduser().resolve()
    if not wf_path.exists():
        raise FileNotFoundError(f"Workflow file not found: {wf_path}")
    if wf_path.suffix != ".py":
        raise ValueError(f"Workflow must be a .py file, got: {wf_path.name}")

    module_name = f"taskline_workflow_{wf_path.stem}"
    globals_dict = runpy.run_path(str(wf_path), run_name=module_name)

    tasks = None
    if "workflow" in globals_dict and callable(globals_dict["workflow"]):
        tasks = globals_dict["workflow"]()
    elif "TASKS" in globals_dict:
        tasks = globals_dict["TASKS"]

    if isinstance(tasks, TaskRegistry):
        registry = tasks
    elif isinstance(tasks, list) and all(isinstance(t, Task) for t in tasks):
        registry = TaskRegistry(tasks)
    else:
        raise TypeError(
            "Workflow must return/define a List[Task]. "
            "Define workflow() -> List[Task] or TASKS = [Task, ...]."
        )

    registry.validate()
    return registry


# ----------------------------------------------------------------------
# Execution primitives
# ----------------------------------------------------------------------

def _run_step(ctx: TaskContext, step: Step) -> None:
    task = ctx.task
    assert task is not None

    if step.kind == "call":
        ctx.console.print_debug(f"[{task.name}] call {step.name}")
        step.fn(ctx)
        return

    command = ctx.settings.tool(step.command)
    args = step.resolve_args(ctx)
    cwd = str((ctx.root / step.cwd).resolve()) if step.cwd else str(ctx.root)
    ctx.console.print_command(" ".join([step.command, *args]))

    if step.background:
        handle = ctx.supervisor.start(command, args, cwd=cwd, env=step.env or None)
        ctx.console.print_debug(f"[{task.name}] started pid {handle.pid}")
        return

    ctx.supervisor.run(
        command,
        args,
        fail_on_error=task.fail_fast,
        lint=step.kind == "lint",
        cwd=cwd,
        env=step.env or None,
        task=task.name,
        step=step.name,
    )


def _run_task(ctx: TaskContext, task: Task) -> TaskResult:
    """
    Returns the task's result:
      - "ok"         every step finished cleanly
      - "recovered"  nofail task, a step failed, reported and carried on
      - "failed"     fail-fast task, a step failed

    A step fails with a ToolExecutionError, or with any exception raised by
    an in-process call step. Other exceptions propagate.
    """
    ctx = replace(ctx, task=task)
    reported_before = ctx.sink.count
    started = time.monotonic()
    ctx.console.print_task_start(task.name)

    status = "ok"
    error: Optional[BaseException] = None
    try:
        for step in task.steps:
            try:
                _run_step(ctx, step)
            except Exception as e:
                if not (isinstance(e, ToolExecutionError) or step.kind == "call"):
                    raise
                if isinstance(e, ToolExecutionError) and e.task is None:
                    e.task = task.name
                error = e
                if task.fail_fast:
                    ctx.sink.escalate(e, task=task.name)
                status = ctx.sink.absorb(e, task=task.name)
    except Exception as e:
        if error is None or e is not error:
            raise
        status = "failed"

    # nofail tool runs are absorbed by the supervisor without raising
    if status == "ok" and ctx.sink.count > reported_before:
        status = RECOVERED

    duration = time.monotonic() - started
    ctx.console.print_task_done(task.name, status, duration)
    return TaskResult(name=task.name, status=status, duration=duration, error=error)


# ----------------------------------------------------------------------
# Public API
# ----------------------------------------------------------------------

def run_tasks(
    registry: TaskRegistry,
    names: List[str],
    ctx: TaskContext,
) -> RunReport:
    """
    Run the named tasks and everything they need, once each, in resolved order.

    Resolution errors (unknown task, cycle) raise before anything runs.
    The first fail-fast failure stops the run; remaining tasks are "skipped".
    """
    order = resolve(registry, *names)
    report = RunReport(targets=list(names), order=order)

    failed = False
    for name in order:
        if failed:
            report.results[name] = TaskResult(name=name, status="skipped")
            continue
        result = _run_task(ctx, registry.get(name))
        report.results[name] = result
        failed = result.status == "failed"

    return report


def run_task(registry: TaskRegistry, name: str, ctx: TaskContext) -> RunReport:
    return run_tasks(registry, [name], ctx)
