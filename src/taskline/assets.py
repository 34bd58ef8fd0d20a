# assets.py
# File-level build actions that need no external tool.
from __future__ import annotations

import shutil
import xml.etree.ElementTree as ET
from pathlib import Path
from typing import Iterable, List, Optional, Sequence

from .errors import ResourceCleanupError
from .sink import ErrorSink
from .watch import matches

SVG_NS = "http://www.w3.org/2000/svg"
XLINK_NS = "http://www.w3.org/1999/xlink"
ET.register_namespace("xlink", XLINK_NS)
_GLOB_CHARS = set("*?[")


def static_base(pattern: str) -> str:
    """Leading directories of a glob that contain no wildcard: 'a/b/**/*.x' -> 'a/b'."""
    parts = []
    for part in pattern.split("/"):
        if not part or _GLOB_CHARS & set(part):
            break
        parts.append(part)
    # a pattern without wildcards names a file; its base is the parent
    if len(parts) == len([p for p in pattern.split("/") if p]):
        parts = parts[:-1]
    return "/".join(parts)


def expand(root: Path, patterns: Sequence[str]) -> List[Path]:
    """
    Files under `root` matching the include globs and none of the '!' globs.
    Sorted, de-duplicated.
    """
    found: dict[str, Path] = {}
    for pat in patterns:
        if pat.startswith("!"):
            continue
        for p in sorted(root.glob(pat)):
            if not p.is_file():
                continue
            rel = p.relative_to(root).as_posix()
            if rel in found or not matches(rel, patterns):
                continue
            found[rel] = p
    return [found[k] for k in sorted(found)]


def copy_files(root: Path, patterns: Sequence[str], dest: str | Path) -> List[Path]:
    """Copy matching files into `dest`, keeping their path below the glob's static base."""
    root = Path(root)
    dest_dir = root / dest
    copied: List[Path] = []
    for pat in patterns:
        if pat.startswith("!"):
            continue
        base = root / static_base(pat)
        for src in expand(root, [pat, *[p for p in patterns if p.startswith("!")]]):
            target = dest_dir / src.relative_to(base)
            target.parent.mkdir(parents=True, exist_ok=True)
            shutil.copy2(src, target)
            copied.append(target)
    return copied


def clean(paths: Iterable[str | Path], *, root: Path, sink: Optional[ErrorSink] = None) -> List[Path]:
    """
    Delete files or directories. Missing paths are fine.

    A path that cannot be removed is a ResourceCleanupError: reported to the
    sink when one is given (and the rest still get cleaned), raised otherwise.
    """
    removed: List[Path] = []
    for raw in paths:
        p = Path(root) / raw
        try:
            if p.is_dir() and not p.is_symlink():
                shutil.rmtree(p)
            elif p.exists() or p.is_symlink():
                p.unlink()
            else:
                continue
        except OSError as e:
            err = ResourceCleanupError(path=str(raw), reason=e.strerror or str(e))
            if sink is None:
                raise err from e
            sink.report(err)
            continue
        removed.append(p)
    return removed


# ----------------------------------------------------------------------
# Icon sprite
# ----------------------------------------------------------------------

def _local(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def _strip_ns(el: ET.Element) -> None:
    for node in el.iter():
        if isinstance(node.tag, str):
            node.tag = _local(node.tag)


def build_icon_sprite(
    sources: Sequence[Path],
    dest: Path,
    *,
    id_format: str = "icon-{name}",
    title_format: str = "{name} icon",
) -> Path:
    """
    Combine SVG files into one hidden <svg> of <symbol> elements.

    Each symbol gets id/title from the file stem and keeps the source's
    viewBox (or one built from width/height).
    """
    sprite = ET.Element("svg", {"xmlns": SVG_NS, "style": "display: none;"})

    for src in sorted(sources, key=lambda p: p.stem):
        tree = ET.parse(src)
        svg = tree.getroot()
        _strip_ns(svg)
        name = src.stem

        attrs = {"id": id_format.format(name=name)}
        view_box = svg.get("viewBox")
        if view_box is None and svg.get("width") and svg.get("height"):
            view_box = f"0 0 {svg.get('width')} {svg.get('height')}"
        if view_box:
            attrs["viewBox"] = view_box

        symbol = ET.SubElement(sprite, "symbol", attrs)
        title = ET.SubElement(symbol, "title")
        title.text = title_format.format(name=name)
        for child in list(svg):
            if child.tag == "title":
                continue
            symbol.append(child)

    dest = Path(dest)
    dest.parent.mkdir(parents=True, exist_ok=True)
    ET.indent(sprite)
    dest.write_text(ET.tostring(sprite, encoding="unicode") + "\n", encoding="utf-8")
    return dest
