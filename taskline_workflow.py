# taskline_workflow.py
# Theme workflow: formatting, linting, styles, tests, assets, docs, dev server.
from __future__ import annotations

from taskline.config import Settings
from taskline.theme import theme_workflow


def workflow():
    return theme_workflow(Settings.from_env())
