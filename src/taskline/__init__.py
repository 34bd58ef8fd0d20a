from .dsl import task, sh, call, background, nofail, wf, TaskBuilder, build
from .runner import run_task, run_tasks, load_workflow, TaskContext, RunReport
from .registry import TaskRegistry
from .dag import resolve
from .model import Task, Step

__all__ = [
    "task", "sh", "call", "background", "nofail", "wf", "TaskBuilder", "build",
    "run_task", "run_tasks", "load_workflow", "TaskContext", "RunReport",
    "TaskRegistry", "resolve", "Task", "Step",
]
