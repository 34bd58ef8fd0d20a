"""Shared test fixtures."""

from __future__ import annotations

import sys

import pytest

from taskline.config import Settings
from taskline.dsl import call, sh
from taskline.runner import TaskContext
from taskline.sink import ErrorSink
from taskline.supervisor import ProcessSupervisor
from taskline.ui.console import Console, set_console


def py(name: str, code: str):
    """A shell step running a Python one-liner with the current interpreter."""
    return sh(name, sys.executable, "-c", code)


def exits(code: int):
    return py(f"exit {code}", f"import sys; sys.exit({code})")


def record(calls: list, label: str | None = None):
    """A call step that appends the running task's name (or label) to `calls`."""
    return call("record", lambda ctx: calls.append(label or ctx.task.name))


@pytest.fixture()
def console() -> Console:
    c = Console(quiet=True)
    set_console(c)
    return c


@pytest.fixture()
def sink(console) -> ErrorSink:
    return ErrorSink(console)


@pytest.fixture()
def supervisor(sink):
    sup = ProcessSupervisor(sink, grace_period=2.0)
    yield sup
    sup.teardown()


@pytest.fixture()
def settings(tmp_path) -> Settings:
    return Settings(root=tmp_path)


@pytest.fixture()
def ctx(settings, supervisor, sink, console) -> TaskContext:
    return TaskContext(settings=settings, supervisor=supervisor, sink=sink, console=console)
