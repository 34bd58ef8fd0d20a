# dag.py
from __future__ import annotations

from typing import Dict, List

from .errors import CyclicDependencyError, UnknownTaskError
from .registry import TaskRegistry

# Node colors for the depth-first walk
_GRAY = 1   # on the current path
_BLACK = 2  # fully resolved


def resolve(registry: TaskRegistry, *names: str) -> List[str]:
    """
    Execution order for the requested task(s).

    - Prerequisites come before the task that needs them.
    - Needs run in declaration order, depth-first: a prerequisite's own needs
      are fully resolved before moving to the next declared prerequisite.
    - Every task appears once, however many paths reach it.

    Several names share one walk, so a prerequisite common to two requested
    tasks is still emitted once.
    """
    order: List[str] = []
    color: Dict[str, int] = {}

    for name in names:
        _visit(registry, name, color, order, path=[])

    return order


def _visit(
    registry: TaskRegistry,
    name: str,
    color: Dict[str, int],
    order: List[str],
    path: List[str],
) -> None:
    state = color.get(name)
    if state == _BLACK:
        return
    if state == _GRAY:
        start = path.index(name)
        raise CyclicDependencyError(path[start:] + [name])

    task = registry.get(name)
    color[name] = _GRAY
    path.append(name)

    for dep in task.needs:
        if dep not in registry:
            raise UnknownTaskError(dep, referenced_by=name, known=registry.names())
        _visit(registry, dep, color, order, path)

    path.pop()
    color[name] = _BLACK
    order.append(name)


def check_acyclic(registry: TaskRegistry) -> None:
    """Walk from every task so cycles not reachable from 'default' are caught too."""
    color: Dict[str, int] = {}
    scratch: List[str] = []
    for task in registry:
        _visit(registry, task.name, color, scratch, path=[])


def dependents(registry: TaskRegistry, name: str) -> List[str]:
    """Tasks that list `name` directly in their needs."""
    registry.get(name)
    return sorted(t.name for t in registry if name in t.needs)
