# config.py
# Theme and project specific paths, plus environment overrides.
from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, List

# Editor droppings excluded from every glob.
IGNORE = ["!**/.#*", "!**/flycheck_*"]


@dataclass(frozen=True)
class Paths:
    """
    Logical path categories -> glob lists.

    The plain *_DIR fields are the knobs; build() derives the glob lists
    from them and appends IGNORE to each.
    """
    dist_dir: str = "dist/"
    sass_dir: str = "scss/"
    sass_tests_dir: str = "test/sass/"
    img: str = "assets/img/**/*"
    svg: str = "assets/svg/**/*.svg"
    assets_js_dir: str = "assets/js/"
    fonts: str = "assets/fonts/**/*"
    docs_dir: str = "docs/"
    js_tests_dir: str = "test/"
    templates_dir: str = "templates/"

    # derived (filled by build())
    templates: List[str] = field(default_factory=list)
    sass: List[str] = field(default_factory=list)
    assets_js: List[str] = field(default_factory=list)
    js_coverage: List[str] = field(default_factory=list)
    all_js: List[str] = field(default_factory=list)
    js_tests_files: List[str] = field(default_factory=list)

    def build(self) -> "Paths":
        return replace(
            self,
            templates=[f"{self.templates_dir}**/*.j2", *IGNORE],
            sass=[f"{self.sass_dir}**/*.scss", *IGNORE],
            assets_js=[f"{self.assets_js_dir}**/*.js", *IGNORE],
            js_coverage=["lib/**/*.js", "index.js", *IGNORE],
            all_js=[
                f"{self.assets_js_dir}**/*.js",
                "lib/**/*.js",
                f"{self.js_tests_dir}**/*.js",
                "index.js",
                "!assets/js/highlight.js",
                "!assets/js/jquery-3.1.1.slim.js",
                "!assets/js/srcdoc-polyfill.min.js",
                *IGNORE,
            ],
            js_tests_files=[
                f"{self.js_tests_dir}*.js",
                f"{self.js_tests_dir}**/*.j2",
                *IGNORE,
            ],
        )

    @property
    def icons_sprite(self) -> str:
        return f"{self.templates_dir}_icons.svg"

    @property
    def icon_template(self) -> str:
        return f"{self.templates_dir}_icon_template.lodash"


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}") from None


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class Settings:
    root: Path = Path(".")
    paths: Paths = field(default_factory=lambda: Paths().build())
    node_bin: str = "node_modules/.bin"

    # Watch debounce: wait this long after the first event, then keep
    # reactions at least `watch_throttle` apart.
    watch_delay: float = 0.3
    watch_throttle: float = 0.5

    quiet: bool = False

    @classmethod
    def from_env(cls, root: str | Path = ".") -> "Settings":
        base = Paths()
        dist = os.environ.get("TASKLINE_DIST_DIR")
        docs = os.environ.get("TASKLINE_DOCS_DIR")
        if dist:
            base = replace(base, dist_dir=dist.rstrip("/") + "/")
        if docs:
            base = replace(base, docs_dir=docs.rstrip("/") + "/")

        return cls(
            root=Path(root).resolve(),
            paths=base.build(),
            node_bin=os.environ.get("TASKLINE_NODE_BIN", "node_modules/.bin"),
            watch_delay=_env_float("TASKLINE_WATCH_DELAY", 0.3),
            watch_throttle=_env_float("TASKLINE_WATCH_THROTTLE", 0.5),
            quiet=_env_bool("TASKLINE_QUIET"),
        )

    def tool(self, name: str) -> str:
        """Prefer the project-local node binary, fall back to PATH lookup."""
        local = self.root / self.node_bin / name
        if local.exists():
            return str(local)
        return name


# SassDoc / Herman configuration. Passed to the doc tool as-is.
# See: http://sassdoc.com/customising-the-view/
DOC_SUBPROJECTS = [
    "accoutrement-color",
    "accoutrement-scale",
    "accoutrement-type",
    "accoutrement-layout",
    "accoutrement-init",
]

DOC_GROUPS = {
    "api_sass-utilities": "Sass API",
    "demo_mixins": "Documenting Mixins & Functions",
    "demo_variables": "Documenting Variables",
    "config-colors": "_Config: Colors",
    "config-scale": "_Config: Sizes",
    "config-fonts": "_Config: Fonts",
    "config-utils": "_Config: Utilities",
    "config-z-index": "_Config: Z-index",
    "style-typography": "_Typography",
    "style-icons": "_Icons",
    "style-nav": "_Navigation",
    "style-sections": "_Sections",
    "style-code": "_Code Blocks",
}


def docs_config(settings: Settings) -> Dict[str, Any]:
    p = settings.paths
    root = settings.root
    return {
        "verbose": True,
        "dest": p.docs_dir,
        "theme": "./",
        "herman": {
            "subprojects": list(DOC_SUBPROJECTS),
            "templatepath": str(root / "templates"),
            "sass": {
                "jsonfile": f"{p.dist_dir}css/json.css",
                "includepaths": [str(root / "scss")],
                "includes": ["utilities", "config/manifest"],
            },
            "customCSS": f"{p.dist_dir}css/main.css",
            "minifiedIcons": p.icons_sprite,
            "displayColors": ["hex", "hsl"],
            "extraDocs": [{"name": "Changelog", "path": "./CHANGELOG.md"}],
        },
        "display": {"alias": True},
        "groups": dict(DOC_GROUPS),
        # Disable cache to enable live-reloading.
        "cache": False,
    }
