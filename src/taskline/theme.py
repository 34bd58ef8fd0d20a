# theme.py
# Build, lint, test, and docs workflow for the Herman SassDoc theme.
from __future__ import annotations

import json
from typing import List

from . import assets
from .config import IGNORE, Settings, docs_config
from .dsl import background, call, sh, task, wf
from .model import Task
from .step_workflows.lint import eslint, sass_lint
from .step_workflows.test import mocha_step
from .watch import ADDED, CHANGED, WatchBinding, binding

DOCS_CONFIG_FILE = ".taskline/sassdoc.json"


# ---------------------------------------------------------------------
# Python-side actions
# ---------------------------------------------------------------------

def _clean_icons(ctx) -> None:
    assets.clean([ctx.settings.paths.icons_sprite], root=ctx.root, sink=ctx.sink)


def _icon_sprite(ctx) -> None:
    p = ctx.settings.paths
    optimized = assets.expand(ctx.root, [f"{p.dist_dir}svg/**/*.svg"])
    dest = assets.build_icon_sprite(optimized, ctx.root / p.icons_sprite)
    ctx.console.print_debug(f"wrote {dest} ({len(optimized)} icons)")


def _copy_fonts(ctx) -> None:
    p = ctx.settings.paths
    copied = assets.copy_files(ctx.root, [p.fonts, *IGNORE], f"{p.dist_dir}fonts/")
    ctx.console.print_debug(f"copied {len(copied)} font files")


def _minify_scripts(ctx) -> None:
    """One uglifyjs run per source file, mirrored under dist/js/."""
    p = ctx.settings.paths
    base = ctx.root / p.assets_js_dir
    for src in assets.expand(ctx.root, p.assets_js):
        rel = src.relative_to(base)
        out = ctx.root / p.dist_dir / "js" / rel
        out.parent.mkdir(parents=True, exist_ok=True)
        ctx.supervisor.run(
            ctx.settings.tool("uglifyjs"),
            [str(src), "--compress", "--mangle", "--output", str(out)],
            fail_on_error=ctx.fail_fast,
            cwd=str(ctx.root),
            task=ctx.task.name,
            step=f"uglifyjs {rel.as_posix()}",
        )


def _write_docs_config(ctx) -> None:
    target = ctx.root / DOCS_CONFIG_FILE
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(json.dumps(docs_config(ctx.settings), indent=2), encoding="utf-8")


def _start_watching(ctx) -> None:
    if ctx.watch is None:
        ctx.console.print_info("No watch session available; skipping file watching.")
        return
    for b in theme_bindings(ctx.settings):
        ctx.watch.add(b)
    ctx.watch.start()


# ---------------------------------------------------------------------
# Watch bindings
# ---------------------------------------------------------------------

def theme_bindings(settings: Settings) -> List[WatchBinding]:
    p = settings.paths
    docs_inputs = [
        *p.all_js,
        *p.sass,
        *p.templates,
        p.img,
        p.svg,
        p.fonts,
        p.icon_template,
        "README.md",
        "package.json",
    ]
    return [
        binding(docs_inputs, "generate-documentation"),
        binding(p.js_tests_files, "run-code-tests-nofail"),
        binding(p.sass, "lint-styles-changed", events=[ADDED, CHANGED], pass_paths=True),
        binding(p.sass, "run-style-tests"),
        binding("**/.sass-lint.yml", "lint-styles-nofail"),
        binding("**/.eslintrc.yml", "lint-code-nofail"),
    ]


# ---------------------------------------------------------------------
# Tasks
# ---------------------------------------------------------------------

def theme_workflow(settings: Settings) -> List[Task]:
    p = settings.paths
    dist = p.dist_dir
    docs = p.docs_dir

    prettier = sh(
        "prettier",
        "prettier",
        "--write",
        "--single-quote",
        "--trailing-comma",
        "es5",
        *p.all_js,
    )

    return wf(
        # Formatting and linting
        task("format-code", prettier, fail_fast=False),
        task("lint-code", eslint(p.all_js), needs=["format-code"]),
        task("lint-code-nofail", eslint(p.all_js), fail_fast=False),
        task("lint-styles", sass_lint(p.sass)),
        task("lint-styles-nofail", sass_lint(p.sass), fail_fast=False),
        task(
            "lint-styles-changed",
            sass_lint(p.sass, files_from_changes=True),
            fail_fast=False,
            description="Lint only the style files a watch event reported.",
        ),

        # Styles
        task(
            "compile-styles",
            sh("sass", "sass", "--style=compressed", "--source-map", f"{p.sass_dir}:{dist}css/"),
            sh(
                "autoprefixer",
                "postcss",
                f"{dist}css/*.css",
                "--use",
                "autoprefixer",
                "--replace",
                "--map",
                env={"BROWSERSLIST": "last 2 versions"},
            ),
            fail_fast=False,
        ),

        # Tests
        task("run-style-tests", mocha_step("sasstest", "mocha", files=[f"{p.sass_tests_dir}test_sass.js"])),
        task(
            "run-code-tests",
            mocha_step(
                "jstest", "nyc", include=p.js_coverage, verbose=True, mocha=settings.tool("mocha")
            ),
        ),
        task(
            "run-code-tests-nofail",
            mocha_step("jstest", "nyc", include=p.js_coverage, mocha=settings.tool("mocha")),
            fail_fast=False,
        ),
        task("run-all-tests", needs=["run-style-tests", "run-code-tests"]),

        # Assets
        task("minify-scripts", call("uglifyjs", _minify_scripts)),
        task("clean-icons", call("remove icon sprite", _clean_icons)),
        task(
            "minify-vector-icons",
            sh("svgo", "svgo", "--recursive", "--folder", assets.static_base(p.svg), "--output", f"{dist}svg"),
            call("icon sprite", _icon_sprite),
            needs=["clean-icons"],
        ),
        task(
            "compress-raster-images",
            sh(
                "imagemin",
                "imagemin",
                p.img,
                f"--out-dir={dist}img",
                "--plugin=gifsicle",
                "--plugin=jpegtran",
                "--plugin=optipng",
                "--plugin=svgo",
            ),
        ),
        task("copy-fonts", call("copy fonts", _copy_fonts)),
        task(
            "minify-assets",
            needs=["minify-scripts", "minify-vector-icons", "compress-raster-images", "copy-fonts"],
        ),

        # Documentation
        task(
            "generate-documentation",
            call("sassdoc config", _write_docs_config),
            sh(
                "sassdoc",
                "sassdoc",
                p.sass_dir,
                "--config",
                DOCS_CONFIG_FILE,
                "--dest",
                docs,
                "--verbose",
            ),
            needs=["compile-styles", "minify-assets"],
        ),

        # Dev server and watching
        task(
            "start-dev-server",
            background(
                "browser-sync",
                "browser-sync",
                "start",
                "--server",
                docs,
                "--files",
                f"{docs}**/*",
                "--no-open",
                "--no-notify",
                "--no-ghost-mode",
                "--no-inject-changes",
                "--reload-delay",
                "300",
                "--reload-throttle",
                "500",
                "--logLevel",
                "info",
                "--logPrefix",
                "herman",
            ),
        ),
        task("start-watch-session", call("watch", _start_watching)),

        # Composites
        task("default", needs=["generate-documentation", "lint-code", "lint-styles", "run-all-tests"]),
        task("serve", needs=["start-watch-session", "start-dev-server"]),
        task(
            "dev",
            needs=[
                "format-code",
                "lint-code-nofail",
                "lint-styles-nofail",
                "run-all-tests",
                "start-watch-session",
            ],
        ),
    )
