# cli.py
from __future__ import annotations

import sys
import time
from dataclasses import replace
from pathlib import Path

import click

from taskline.config import Settings
from taskline.dag import dependents, resolve
from taskline.errors import (
    CyclicDependencyError,
    DuplicateTaskError,
    UnknownTaskError,
)
from taskline.registry import TaskRegistry
from taskline.runner import TaskContext, load_workflow, run_tasks
from taskline.sink import ErrorSink
from taskline.supervisor import ProcessSupervisor
from taskline.ui.console import Console, get_console, set_console
from taskline.watch import Trigger, WatchSession

DEFAULT_WORKFLOW = "taskline_workflow.py"

# Exit codes besides the failing tool's own
EXIT_CONFIG = 2
EXIT_INTERRUPTED = 130

CONFIG_ERRORS = (UnknownTaskError, DuplicateTaskError, CyclicDependencyError)


def find_workflow_files() -> list[Path]:
    """
    Find all workflow files in the current directory.

    Returns:
        List of Path objects for workflow files
    """
    workflow_files = []
    current_dir = Path(".")

    default_workflow = current_dir / DEFAULT_WORKFLOW
    if default_workflow.exists():
        workflow_files.append(default_workflow)

    for path in current_dir.glob("*_workflow.py"):
        if path != default_workflow:
            workflow_files.append(path)

    return sorted(workflow_files)


def discover_workflow(workflow_arg: str | None) -> Path:
    """
    Discover workflow file from argument or default.

    Raises:
        SystemExit: If workflow cannot be found or multiple workflows exist
    """
    console = get_console()

    if workflow_arg:
        workflow_path = Path(workflow_arg)
        if not workflow_path.exists() and workflow_path.suffix != ".py":
            workflow_path = Path(str(workflow_path) + ".py")
        if not workflow_path.exists():
            console.print_error(
                "Workflow file not found",
                f"Could not find workflow file: {workflow_arg}",
                suggestion="Create a workflow file or specify a different path:\n  taskline run --workflow my_workflow.py",
            )
            sys.exit(1)
        return workflow_path

    workflow_files = find_workflow_files()

    if len(workflow_files) == 0:
        console.print_error(
            "No workflow file found",
            "Could not find any workflow files.",
            details=[
                "Looked for:",
                f"  {DEFAULT_WORKFLOW}",
                "  *_workflow.py",
            ],
            suggestion=f"Create a workflow file:\n  {DEFAULT_WORKFLOW}\n\nOr specify a workflow explicitly:\n  taskline run --workflow my_workflow.py",
        )
        sys.exit(1)

    if len(workflow_files) > 1:
        file_list = "\n".join(f"  {f}" for f in workflow_files)
        console.print_error(
            "Multiple workflow files found",
            "Found multiple workflow files. Please specify which one to use:",
            details=[file_list],
            suggestion=f"Specify a workflow explicitly:\n  taskline run --workflow {DEFAULT_WORKFLOW}",
        )
        sys.exit(1)

    return workflow_files[0]


def _load(workflow: str | None) -> tuple[Path, TaskRegistry]:
    """Load + validate, exiting with EXIT_CONFIG on configuration defects."""
    console = get_console()
    workflow_path = discover_workflow(workflow)
    try:
        return workflow_path, load_workflow(workflow_path)
    except CONFIG_ERRORS as e:
        console.print_error("Invalid workflow", str(e), details=[f"Workflow: {workflow_path}"])
        sys.exit(EXIT_CONFIG)


def _run_trigger(registry: TaskRegistry, ctx: TaskContext, trigger: Trigger) -> None:
    """One watch-triggered run. Failures are shown, the session keeps going."""
    console = ctx.console
    console.print_info("")
    if trigger.paths:
        console.print_debug(f"changed: {', '.join(trigger.paths)}")
    try:
        report = run_tasks(registry, list(trigger.tasks), replace(ctx, changed_paths=trigger.paths))
    except Exception as e:
        ctx.sink.report(e, task=", ".join(trigger.tasks))
        return
    if not report.ok:
        console.print_failure(f"Run of {', '.join(trigger.tasks)} failed (exit={report.exit_code})")


def _stay_alive(registry: TaskRegistry, ctx: TaskContext, watch: WatchSession) -> None:
    """Serve watch triggers (and keep background services up) until Ctrl+C."""
    console = ctx.console
    if watch.active:
        console.print_watching(len(watch.bindings), str(watch.root))
        try:
            watch.serve_forever(lambda trigger: _run_trigger(registry, ctx, trigger))
        finally:
            watch.stop()
        return

    console.print_info("\nServices running. Press Ctrl+C to stop.")
    while ctx.supervisor.live():
        time.sleep(0.5)


@click.group()
@click.option(
    "--debug",
    is_flag=True,
    default=False,
    help="Enable debug mode (show stack traces and detailed output)",
)
@click.option("--quiet", is_flag=True, default=False, help="Never ring the terminal bell")
@click.pass_context
def cli(ctx, debug, quiet):
    """taskline: run theme build tasks in dependency order."""
    console = Console(debug=debug, quiet=quiet)
    set_console(console)
    ctx.ensure_object(dict)
    ctx.obj["debug"] = debug


@cli.command()
@click.argument("tasks", nargs=-1)
@click.option(
    "--workflow",
    default=None,
    help=f"Workflow file path (defaults to {DEFAULT_WORKFLOW} if present)",
)
@click.option("--watch/--no-watch", default=True, show_default=True, help="Keep serving watch bindings after the run")
@click.pass_context
def run(ctx, tasks, workflow, watch):
    """Run TASKS (default: 'default') and everything they need."""
    console = get_console()
    settings = Settings.from_env()
    if settings.quiet:
        console.quiet = True
    targets = list(tasks) or ["default"]

    workflow_path, registry = _load(workflow)

    try:
        order = resolve(registry, *targets)
    except CONFIG_ERRORS as e:
        console.print_error("Cannot resolve tasks", str(e))
        sys.exit(EXIT_CONFIG)

    sink = ErrorSink(console)
    session = WatchSession(settings.root, delay=settings.watch_delay, throttle=settings.watch_throttle)

    try:
        with ProcessSupervisor(sink) as supervisor:
            task_ctx = TaskContext(
                settings=settings,
                supervisor=supervisor,
                sink=sink,
                console=console,
                watch=session,
            )
            console.print_run_started(workflow=workflow_path.name, targets=targets, order=order)

            report = run_tasks(registry, targets, task_ctx)
            console.print_results(report.statuses())

            if report.ok and watch and (session.active or supervisor.live()):
                _stay_alive(registry, task_ctx, session)
            elif session.active:
                session.stop()

        if not report.ok:
            sys.exit(report.exit_code)

    except KeyboardInterrupt:
        console.print_info("\nInterrupted by user")
        sys.exit(EXIT_INTERRUPTED)
    except Exception as e:
        console.print_exception(e)
        sys.exit(1)


@cli.command("list")
@click.option("--workflow", default=None, help="Workflow file path")
def list_tasks(workflow):
    """List the tasks a workflow defines."""
    console = get_console()
    _, registry = _load(workflow)

    width = max((len(n) for n in registry.names()), default=0)
    for name in registry.names():
        t = registry.get(name)
        flags = [] if t.fail_fast else ["nofail"]
        if t.is_composite:
            flags.append("composite")
        line = f"  {name.ljust(width)}"
        if t.needs:
            line += f"  needs: {', '.join(t.needs)}"
        if flags:
            line += f"  [{', '.join(flags)}]"
        console.print_info(line)
        if t.description:
            console.print_info(f"  {' ' * width}  {t.description}")


@cli.command()
@click.argument("task")
@click.option("--workflow", default=None, help="Workflow file path")
def graph(task, workflow):
    """Show the execution order for TASK and what depends on it."""
    console = get_console()
    _, registry = _load(workflow)
    try:
        order = resolve(registry, task)
        used_by = dependents(registry, task)
    except CONFIG_ERRORS as e:
        console.print_error("Cannot resolve task", str(e))
        sys.exit(EXIT_CONFIG)

    for i, name in enumerate(order, start=1):
        console.print_info(f"{i:>3}. {name}")
    if used_by:
        console.print_info(f"\nNeeded by: {', '.join(used_by)}")


def main() -> None:
    cli()


if __name__ == "__main__":
    cli()
