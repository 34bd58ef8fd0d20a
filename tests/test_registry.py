from __future__ import annotations

import pytest

from taskline.dsl import TaskBuilder, nofail, task
from taskline.errors import CyclicDependencyError, DuplicateTaskError, UnknownTaskError
from taskline.model import Task
from taskline.registry import TaskRegistry

from conftest import exits


def test_register_and_get() -> None:
    reg = TaskRegistry()
    t = reg.register(Task(name="build"))
    assert reg.get("build") is t
    assert "build" in reg
    assert len(reg) == 1


def test_duplicate_name_rejected() -> None:
    reg = TaskRegistry([Task(name="build")])
    with pytest.raises(DuplicateTaskError) as exc:
        reg.register(Task(name="build", needs=("other",)))
    assert exc.value.name == "build"
    # the original definition stays
    assert reg.get("build").needs == ()


def test_get_unknown_lists_known_names() -> None:
    reg = TaskRegistry([Task(name="b"), Task(name="a")])
    with pytest.raises(UnknownTaskError) as exc:
        reg.get("c")
    assert exc.value.known == ["a", "b"]
    assert "Known tasks: a, b" in str(exc.value)


def test_validate_catches_missing_prerequisite() -> None:
    reg = TaskRegistry([Task(name="lint", needs=("format",))])
    with pytest.raises(UnknownTaskError) as exc:
        reg.validate()
    assert exc.value.referenced_by == "lint"


def test_validate_catches_cycle() -> None:
    reg = TaskRegistry([Task(name="a", needs=("b",)), Task(name="b", needs=("a",))])
    with pytest.raises(CyclicDependencyError):
        reg.validate()


def test_validate_accepts_dag() -> None:
    reg = TaskRegistry(
        [Task(name="a"), Task(name="b", needs=("a",)), Task(name="c", needs=("a", "b"))]
    )
    reg.validate()


def test_task_needs_steps_or_prerequisites() -> None:
    with pytest.raises(ValueError):
        task("empty")


def test_composite_task() -> None:
    t = task("all", needs=["a", "b"])
    assert t.is_composite
    assert t.needs == ("a", "b")


def test_nofail_copy_keeps_steps() -> None:
    strict = task("jstest", exits(1), needs=["prep"])
    loose = nofail(strict)
    assert loose.name == "jstest-nofail"
    assert loose.steps == strict.steps
    assert loose.needs == ("prep",)
    assert strict.fail_fast and not loose.fail_fast


def test_builder() -> None:
    t = (
        TaskBuilder("test")
        .depends_on("lint")
        .define_step("run tests", "pytest", "-q")
        .best_effort()
        .build()
    )
    assert t.needs == ("lint",)
    assert t.steps[0].command == "pytest"
    assert list(t.steps[0].args) == ["-q"]
    assert t.fail_fast is False
