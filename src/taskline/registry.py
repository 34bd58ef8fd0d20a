# registry.py
from __future__ import annotations

from typing import Dict, Iterable, Iterator

from .errors import DuplicateTaskError, UnknownTaskError
from .model import Task


class TaskRegistry:
    """Name -> Task mapping. Tasks are registered once and never replaced."""

    def __init__(self, tasks: Iterable[Task] = ()):
        self._tasks: Dict[str, Task] = {}
        self.register_all(tasks)

    def register(self, task: Task) -> Task:
        if task.name in self._tasks:
            raise DuplicateTaskError(task.name)
        self._tasks[task.name] = task
        return task

    def register_all(self, tasks: Iterable[Task]) -> None:
        for t in tasks:
            self.register(t)

    def get(self, name: str) -> Task:
        try:
            return self._tasks[name]
        except KeyError:
            raise UnknownTaskError(name, known=self.names()) from None

    def names(self) -> list[str]:
        return sorted(self._tasks)

    def validate(self) -> None:
        """
        Fail on configuration defects before anything runs:
          - a task needs a name that was never registered
          - the needs graph has a cycle
        """
        for task in self._tasks.values():
            for dep in task.needs:
                if dep not in self._tasks:
                    raise UnknownTaskError(dep, referenced_by=task.name, known=self.names())

        from .dag import check_acyclic

        check_acyclic(self)

    def __contains__(self, name: object) -> bool:
        return name in self._tasks

    def __iter__(self) -> Iterator[Task]:
        return iter(self._tasks.values())

    def __len__(self) -> int:
        return len(self._tasks)
