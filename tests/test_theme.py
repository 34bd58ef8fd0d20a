from __future__ import annotations

import json
import sys

import pytest

from taskline.config import Settings, docs_config
from taskline.dag import resolve
from taskline.registry import TaskRegistry
from taskline.runner import run_task
from taskline.step_workflows.lint import eslint, sass_lint
from taskline.step_workflows.test import coverage_args
from taskline.theme import DOCS_CONFIG_FILE, _write_docs_config, theme_bindings, theme_workflow
from taskline.watch import ADDED, CHANGED, WatchSession

COMMAND_SURFACE = [
    "format-code",
    "lint-code",
    "lint-code-nofail",
    "lint-styles",
    "lint-styles-nofail",
    "compile-styles",
    "run-style-tests",
    "run-code-tests",
    "run-code-tests-nofail",
    "run-all-tests",
    "generate-documentation",
    "minify-assets",
    "minify-scripts",
    "minify-vector-icons",
    "compress-raster-images",
    "copy-fonts",
    "start-dev-server",
    "start-watch-session",
    "default",
    "serve",
    "dev",
]


@pytest.fixture()
def registry(tmp_path) -> TaskRegistry:
    reg = TaskRegistry(theme_workflow(Settings(root=tmp_path)))
    reg.validate()
    return reg


def _before(order: list[str], first: str, then: str) -> bool:
    return order.index(first) < order.index(then)


def test_command_surface_is_registered(registry) -> None:
    for name in COMMAND_SURFACE:
        assert name in registry


def test_nofail_variants(registry) -> None:
    for name in (
        "lint-code-nofail",
        "lint-styles-nofail",
        "run-code-tests-nofail",
        "lint-styles-changed",
        "format-code",
        "compile-styles",
    ):
        assert registry.get(name).fail_fast is False
    for name in ("lint-code", "lint-styles", "run-code-tests"):
        assert registry.get(name).fail_fast is True


def test_default_order(registry) -> None:
    order = resolve(registry, "default")
    assert order[-1] == "default"
    assert _before(order, "compile-styles", "generate-documentation")
    assert _before(order, "minify-assets", "generate-documentation")
    assert _before(order, "clean-icons", "minify-vector-icons")
    assert _before(order, "format-code", "lint-code")
    assert _before(order, "run-style-tests", "run-code-tests")
    assert len(order) == len(set(order))


def test_docs_needs_styles_then_assets(registry) -> None:
    assert resolve(registry, "generate-documentation") == [
        "compile-styles",
        "minify-scripts",
        "clean-icons",
        "minify-vector-icons",
        "compress-raster-images",
        "copy-fonts",
        "minify-assets",
        "generate-documentation",
    ]


def test_dev_uses_best_effort_linting(registry) -> None:
    order = resolve(registry, "dev")
    assert "lint-code-nofail" in order
    assert "lint-styles-nofail" in order
    assert "lint-code" not in order
    assert order[-2:] == ["start-watch-session", "dev"]


def test_serve(registry) -> None:
    assert resolve(registry, "serve") == ["start-watch-session", "start-dev-server", "serve"]


def test_dev_server_runs_in_background(registry) -> None:
    step = registry.get("start-dev-server").steps[0]
    assert step.background
    assert step.command == "browser-sync"
    assert "--no-open" in step.args


def test_bindings_reference_registered_tasks(registry, tmp_path) -> None:
    for b in theme_bindings(Settings(root=tmp_path)):
        for name in b.tasks:
            assert name in registry


def test_style_change_triggers(tmp_path) -> None:
    session = WatchSession(tmp_path, delay=0, throttle=0)
    for b in theme_bindings(Settings(root=tmp_path)):
        session.add(b)

    session.dispatch(CHANGED, "scss/config/_colors.scss")
    fired = []
    while (t := session.next_trigger(timeout=0)) is not None:
        fired.append(t)

    assert {t.tasks for t in fired} == {
        ("generate-documentation",),
        ("lint-styles-changed",),
        ("run-style-tests",),
    }
    lint = next(t for t in fired if t.tasks == ("lint-styles-changed",))
    assert lint.paths == ("scss/config/_colors.scss",)


def test_editor_temp_files_are_ignored(tmp_path) -> None:
    session = WatchSession(tmp_path, delay=0, throttle=0)
    for b in theme_bindings(Settings(root=tmp_path)):
        session.add(b)
    assert session.dispatch(ADDED, "scss/.#_colors.scss") == 0
    assert session.dispatch(CHANGED, "lib/flycheck_index.js") == 0


def test_lint_config_change_reruns_nofail_lint(tmp_path) -> None:
    session = WatchSession(tmp_path, delay=0, throttle=0)
    for b in theme_bindings(Settings(root=tmp_path)):
        session.add(b)
    session.dispatch(CHANGED, ".eslintrc.yml")
    assert session.next_trigger(timeout=0).tasks == ("lint-code-nofail",)


def test_docs_config_written_as_json(ctx) -> None:
    _write_docs_config(ctx)
    written = json.loads((ctx.root / DOCS_CONFIG_FILE).read_text(encoding="utf-8"))
    assert written == json.loads(json.dumps(docs_config(ctx.settings)))
    assert written["herman"]["minifiedIcons"] == "templates/_icons.svg"
    assert written["groups"]["style-icons"] == "_Icons"
    assert written["cache"] is False


def test_settings_from_env(monkeypatch, tmp_path) -> None:
    monkeypatch.setenv("TASKLINE_DIST_DIR", "build")
    monkeypatch.setenv("TASKLINE_WATCH_DELAY", "1.5")
    monkeypatch.setenv("TASKLINE_QUIET", "yes")
    s = Settings.from_env(tmp_path)
    assert s.paths.dist_dir == "build/"
    assert s.watch_delay == 1.5
    assert s.quiet is True
    assert s.paths.sass[0] == "scss/**/*.scss"
    assert "!**/.#*" in s.paths.sass


def test_settings_rejects_bad_number(monkeypatch, tmp_path) -> None:
    monkeypatch.setenv("TASKLINE_WATCH_THROTTLE", "soon")
    with pytest.raises(ValueError):
        Settings.from_env(tmp_path)


def test_tool_prefers_local_node_bin(tmp_path) -> None:
    s = Settings(root=tmp_path)
    assert s.tool("eslint") == "eslint"
    local = tmp_path / "node_modules/.bin/eslint"
    local.parent.mkdir(parents=True)
    local.write_text("#!/bin/sh\n")
    assert s.tool("eslint") == str(local)


def test_coverage_args() -> None:
    verbose = coverage_args(["lib/**/*.js", "!**/.#*"], verbose=True)
    assert "--include=lib/**/*.js" in verbose
    assert "--exclude=**/.#*" in verbose
    assert "--reporter=text" in verbose
    assert verbose[-3:] == ["mocha", "--reporter", "spec"]

    quiet = coverage_args(["lib/**/*.js"])
    assert "--reporter=text-summary" in quiet
    assert "--report-dir=./jscov" in quiet
    assert quiet[-1] == "dot"


def _fake_tool(root, name: str, code: int) -> None:
    tool = root / "node_modules/.bin" / name
    tool.parent.mkdir(parents=True, exist_ok=True)
    tool.write_text(f"#!/bin/sh\nexit {code}\n")
    tool.chmod(0o755)


@pytest.mark.skipif(sys.platform == "win32", reason="shell script tools")
def test_formatter_error_does_not_stop_linting(ctx, sink) -> None:
    _fake_tool(ctx.root, "prettier", 2)
    _fake_tool(ctx.root, "eslint", 0)
    reg = TaskRegistry(theme_workflow(ctx.settings))

    report = run_task(reg, "lint-code", ctx)

    assert report.statuses() == {"format-code": "recovered", "lint-code": "ok"}
    assert report.ok
    assert sink.count == 1


def test_sass_lint_fails_on_errors_only() -> None:
    step = sass_lint(["scss/**/*.scss", "!**/.#*", "!**/flycheck_*"])
    assert step.kind == "lint"
    assert list(step.args) == [
        "--verbose",
        "--ignore",
        "**/.#*, **/flycheck_*",
        "scss/**/*.scss",
    ]


def test_eslint_exclusions_become_ignore_patterns() -> None:
    step = eslint(["lib/**/*.js", "!assets/js/highlight.js"])
    assert list(step.args) == ["--ignore-pattern", "assets/js/highlight.js", "lib/**/*.js"]
