"""Console output formatting utilities for taskline."""

from __future__ import annotations

import sys
from typing import Optional

import click


class Console:
    """Centralized console output formatting."""

    def __init__(self, debug: bool = False, quiet: bool = False):
        """
        Initialize console formatter.

        Args:
            debug: If True, show detailed output including stack traces
            quiet: If True, never ring the terminal bell
        """
        self.debug = debug
        self.quiet = quiet

    def print_run_started(
        self,
        workflow: str,
        targets: list[str],
        order: list[str],
    ) -> None:
        """Print run start information."""
        click.echo("\nRUN STARTED")
        click.echo(f"Workflow: {workflow}")
        click.echo(f"Targets: {', '.join(targets)}")
        click.echo(f"Order: {' -> '.join(order)}")
        click.echo()

    def print_task_start(self, name: str) -> None:
        click.echo(f"Starting '{click.style(name, fg='cyan')}'...")

    def print_task_done(self, name: str, status: str, duration: float) -> None:
        color = {"ok": "green", "recovered": "yellow", "failed": "red"}.get(status, None)
        click.echo(
            f"Finished '{click.style(name, fg='cyan')}' "
            f"{click.style(status, fg=color)} after {_fmt_duration(duration)}"
        )

    def print_command(self, command: str) -> None:
        """Print the tool command about to run."""
        click.echo(f"Running '{click.style(command, fg='cyan')}'...")

    def print_failure(self, message: str) -> None:
        """Print a failure line in red on stderr."""
        click.secho(message, fg="red", err=True)

    def beep(self) -> None:
        """Audible alert (terminal bell)."""
        if not self.quiet:
            click.echo("\a", nl=False, err=True)

    def print_results(self, results: dict[str, str]) -> None:
        """Print final results summary."""
        click.echo("\n" + "=" * 40)
        click.echo("RESULTS")
        click.echo("=" * 40)
        for task, status in results.items():
            color = {"ok": "green", "recovered": "yellow", "failed": "red"}.get(status)
            status_display = status.upper() if status != "ok" else "SUCCESS"
            click.echo(f"  {task}: {click.style(status_display, fg=color)}")

    def print_error(
        self,
        title: str,
        message: str,
        details: Optional[list[str]] = None,
        suggestion: Optional[str] = None,
    ) -> None:
        """
        Print structured error message.

        Args:
            title: Error title
            message: Main error message
            details: Optional list of detail lines
            suggestion: Optional suggestion for user
        """
        click.secho(f"\nERROR: {title}", fg="red", err=True)
        click.echo(f"{message}", err=True)
        if details:
            for detail in details:
                click.echo(f"  {detail}", err=True)
        if suggestion:
            click.echo(f"\n{suggestion}", err=True)

    def print_exception(self, exc: BaseException) -> None:
        """Print exception, with full traceback only in debug mode."""
        if self.debug:
            import traceback
            traceback.print_exception(type(exc), exc, exc.__traceback__, file=sys.stderr)
        else:
            click.echo(f"Error: {exc}", err=True)

    def print_watching(self, bindings: int, root: str) -> None:
        click.echo(f"\nWatching {root} ({bindings} bindings). Press Ctrl+C to stop.")

    def print_info(self, message: str) -> None:
        """Print informational message."""
        click.echo(message)

    def print_debug(self, message: str) -> None:
        """Print debug message (only if debug mode enabled)."""
        if self.debug:
            click.echo(f"[DEBUG] {message}", err=True)


def _fmt_duration(seconds: float) -> str:
    if seconds < 1:
        return f"{seconds * 1000:.0f} ms"
    return f"{seconds:.2f} s"


# Global console instance (will be initialized by CLI)
_console: Optional[Console] = None


def get_console() -> Console:
    """Get the global console instance."""
    global _console
    if _console is None:
        _console = Console()
    return _console


def set_console(console: Console) -> None:
    """Set the global console instance."""
    global _console
    _console = console
