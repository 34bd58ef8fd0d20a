# step_workflows/test.py
from __future__ import annotations

from typing import List, Sequence

from ..model import Step
from .lint import split_globs


def coverage_args(
    include: Sequence[str],
    *,
    verbose: bool = False,
    mocha: str = "mocha",
    report_dir: str = "./jscov",
) -> List[str]:
    """
    nyc arguments wrapping a mocha run.

    verbose: spec reporter + full text coverage table
    quiet:   dot reporter + text summary
    """
    mocha_reporter = "spec" if verbose else "dot"
    cov_reporters = (
        ["text", "html", "lcovonly"] if verbose else ["text-summary", "html", "lcovonly"]
    )
    inc, exc = split_globs(include)

    args: List[str] = []
    args += [f"--include={p}" for p in inc]
    args += [f"--exclude={p}" for p in exc]
    args += [f"--reporter={r}" for r in cov_reporters]
    args += ["--cache=true", "--all=true", f"--report-dir={report_dir}"]
    args += [mocha, "--reporter", mocha_reporter]
    return args


def mocha_step(
    name: str,
    framework: str,
    *,
    include: Sequence[str] = (),
    files: Sequence[str] = (),
    verbose: bool = False,
    mocha: str = "mocha",
    cwd: str | None = None,
) -> Step:
    """
    Create a test-runner step.

    framework:
      - "mocha": run mocha on `files`
      - "nyc":   mocha under nyc coverage, instrumenting `include`
    """
    if framework == "mocha":
        return Step(name=name, command="mocha", args=tuple(files), cwd=cwd, kind="test")

    if framework == "nyc":
        args = coverage_args(include, verbose=verbose, mocha=mocha) + list(files)
        return Step(name=name, command="nyc", args=tuple(args), cwd=cwd, kind="test")

    raise ValueError(f"Unknown framework: {framework!r}")
