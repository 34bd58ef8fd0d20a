# step_workflows/lint.py
from __future__ import annotations

from typing import List, Optional, Sequence, Tuple

from ..model import Step


def split_globs(patterns: Sequence[str]) -> Tuple[List[str], List[str]]:
    """Separate include globs from '!' exclusions (returned without the '!')."""
    include = [p for p in patterns if not p.startswith("!")]
    exclude = [p[1:] for p in patterns if p.startswith("!")]
    return include, exclude


# ---------------------------------------------------------------------
# Lint step helper
# ---------------------------------------------------------------------

def lint_step(
    name: str,
    tool: str,
    args: List[str] | None = None,
    *,
    cwd: str | None = None,
    files: List[str] | None = None,
    files_from_changes: bool = False,
) -> Step:
    """
    Create a lint step. A non-zero exit is a LintViolationError.

    files_from_changes lints only the paths handed over by a watch trigger,
    falling back to `files` when there are none.
    """
    base = list(args or [])
    default_files = list(files or [])

    if files_from_changes:
        def argv(ctx) -> List[str]:
            return base + list(ctx.changed_paths or default_files)
    else:
        argv = tuple(base + default_files)

    return Step(name=name, command=tool, args=argv, cwd=cwd, kind="lint")


def eslint(patterns: Sequence[str], name: str = "eslint") -> Step:
    include, exclude = split_globs(patterns)
    args: List[str] = []
    for pat in exclude:
        args += ["--ignore-pattern", pat]
    return lint_step(name, "eslint", args, files=include)


def sass_lint(
    patterns: Sequence[str],
    name: str = "sass-lint",
    *,
    config: Optional[str] = None,
    files_from_changes: bool = False,
) -> Step:
    include, exclude = split_globs(patterns)
    args = ["--verbose"]
    if exclude:
        args += ["--ignore", ", ".join(exclude)]
    if config:
        args += ["--config", config]
    return lint_step(name, "sass-lint", args, files=include, files_from_changes=files_from_changes)
