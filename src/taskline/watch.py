# watch.py
from __future__ import annotations

import os
import queue
import threading
import time
from dataclasses import dataclass, field
from fnmatch import fnmatch
from pathlib import Path
from typing import Callable, FrozenSet, Iterable, List, Optional, Sequence, Set, Tuple

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from .ui.console import get_console

ADDED = "added"
CHANGED = "changed"
DELETED = "deleted"
MOVED = "moved"

EVENT_KINDS = frozenset({ADDED, CHANGED, DELETED, MOVED})

# watchdog event_type -> our event kind
_WATCHDOG_KINDS = {
    "created": ADDED,
    "modified": CHANGED,
    "deleted": DELETED,
    "moved": MOVED,
}


# ----------------------------------------------------------------------
# Path matching
# ----------------------------------------------------------------------

def _match_one(path: str, pattern: str) -> bool:
    # fnmatch's '*' already crosses '/', so '**/' only needs to also match
    # zero directories ("scss/**/*.scss" must match "scss/a.scss").
    if fnmatch(path, pattern):
        return True
    if "**/" in pattern:
        return fnmatch(path, pattern.replace("**/", ""))
    return False


def matches(path: str, patterns: Sequence[str]) -> bool:
    """
    True if `path` matches at least one positive pattern and no '!' pattern.

    Paths are POSIX-style and relative to the watch root; a leading './'
    on patterns is ignored.
    """
    included = False
    for pat in patterns:
        negate = pat.startswith("!")
        if negate:
            pat = pat[1:]
        if pat.startswith("./"):
            pat = pat[2:]
        if not _match_one(path, pat):
            continue
        if negate:
            return False
        included = True
    return included


# ----------------------------------------------------------------------
# Bindings
# ----------------------------------------------------------------------

@dataclass(frozen=True)
class WatchBinding:
    """
    Path globs -> task names, optionally limited to some event kinds.

    pass_paths forwards the changed files to the triggered run, so a task can
    act on just those files.
    """
    patterns: Tuple[str, ...]
    tasks: Tuple[str, ...]
    events: Optional[FrozenSet[str]] = None
    pass_paths: bool = False

    def __post_init__(self) -> None:
        if self.events is not None:
            unknown = set(self.events) - EVENT_KINDS
            if unknown:
                raise ValueError(f"Unknown watch event kinds: {sorted(unknown)}")
        if not self.tasks:
            raise ValueError("A watch binding needs at least one task")

    def accepts(self, kind: str, path: str) -> bool:
        if self.events is not None and kind not in self.events:
            return False
        return matches(path, self.patterns)


def binding(
    patterns: Iterable[str] | str,
    tasks: Iterable[str] | str,
    *,
    events: Iterable[str] | None = None,
    pass_paths: bool = False,
) -> WatchBinding:
    if isinstance(patterns, str):
        patterns = [patterns]
    if isinstance(tasks, str):
        tasks = [tasks]
    return WatchBinding(
        patterns=tuple(patterns),
        tasks=tuple(tasks),
        events=frozenset(events) if events is not None else None,
        pass_paths=pass_paths,
    )


@dataclass(frozen=True)
class Trigger:
    tasks: Tuple[str, ...]
    paths: Tuple[str, ...] = ()


# ----------------------------------------------------------------------
# Debounce
# ----------------------------------------------------------------------

class Debouncer:
    """
    Coalesces a burst of events into one callback.

    The first event opens a window of `delay` seconds; events arriving while
    it is open only add their paths. When the window closes the callback gets
    the union of paths. Consecutive callbacks are at least `throttle` seconds
    apart: a window that would close sooner is stretched.
    """

    def __init__(
        self,
        delay: float,
        throttle: float,
        callback: Callable[[Tuple[str, ...]], None],
        *,
        timer_factory: Callable[..., threading.Timer] = threading.Timer,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.delay = delay
        self.throttle = throttle
        self.callback = callback
        self._timer_factory = timer_factory
        self._clock = clock
        self._lock = threading.Lock()
        self._pending: List[str] = []
        self._timer: Optional[threading.Timer] = None
        self._last_fired: Optional[float] = None

    def push(self, path: str) -> None:
        with self._lock:
            if path not in self._pending:
                self._pending.append(path)
            if self._timer is not None:
                return
            wait = self.delay
            if self._last_fired is not None:
                earliest = self._last_fired + self.throttle
                wait = max(wait, earliest - self._clock())
            if wait <= 0:
                paths = self._take()
            else:
                self._timer = self._timer_factory(wait, self._fire)
                self._timer.daemon = True
                self._timer.start()
                return
        self.callback(paths)

    def _take(self) -> Tuple[str, ...]:
        paths = tuple(self._pending)
        self._pending.clear()
        self._last_fired = self._clock()
        return paths

    def _fire(self) -> None:
        with self._lock:
            self._timer = None
            paths = self._take()
        self.callback(paths)

    def cancel(self) -> None:
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
            self._pending.clear()


# ----------------------------------------------------------------------
# Session
# ----------------------------------------------------------------------

class _Handler(FileSystemEventHandler):
    """watchdog handler that forwards file events to the session."""

    def __init__(self, session: "WatchSession"):
        super().__init__()
        self.session = session

    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.is_directory:
            return
        kind = _WATCHDOG_KINDS.get(event.event_type)
        if kind is None:
            return
        self.session.dispatch(kind, os.fsdecode(event.src_path))
        if kind == MOVED:
            dest = getattr(event, "dest_path", "")
            if dest:
                self.session.dispatch(ADDED, os.fsdecode(dest))


class WatchSession:
    """
    Persistent filesystem subscriptions that turn file events into task runs.

    Observer and debounce timers live on background threads and only queue
    Trigger objects. Runs happen on whichever thread calls serve_forever(),
    one at a time, through the normal resolve + run path.
    """

    def __init__(
        self,
        root: str | Path,
        *,
        delay: float = 0.3,
        throttle: float = 0.5,
        timer_factory: Callable[..., threading.Timer] = threading.Timer,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.root = Path(root).resolve()
        self.delay = delay
        self.throttle = throttle
        self._timer_factory = timer_factory
        self._clock = clock
        self.bindings: List[WatchBinding] = []
        self._debouncers: List[Debouncer] = []
        self.triggers: "queue.Queue[Optional[Trigger]]" = queue.Queue()
        self._queued: Set[Trigger] = set()
        self._queued_lock = threading.Lock()
        self._observer = None

    def add(self, b: WatchBinding) -> WatchBinding:
        self.bindings.append(b)
        self._debouncers.append(
            Debouncer(
                self.delay,
                self.throttle,
                lambda paths, b=b: self._enqueue(b, paths),
                timer_factory=self._timer_factory,
                clock=self._clock,
            )
        )
        return b

    def watch(
        self,
        patterns: Iterable[str] | str,
        tasks: Iterable[str] | str,
        *,
        events: Iterable[str] | None = None,
        pass_paths: bool = False,
    ) -> WatchBinding:
        return self.add(binding(patterns, tasks, events=events, pass_paths=pass_paths))

    def _relative(self, path: str) -> str:
        p = Path(path)
        if p.is_absolute():
            try:
                p = p.resolve().relative_to(self.root)
            except ValueError:
                return p.as_posix()
        return p.as_posix()

    def dispatch(self, kind: str, path: str) -> int:
        """Feed one filesystem event to every binding; returns how many matched."""
        rel = self._relative(path)
        hits = 0
        for b, debouncer in zip(self.bindings, self._debouncers):
            if b.accepts(kind, rel):
                debouncer.push(rel)
                hits += 1
        return hits

    def _enqueue(self, b: WatchBinding, paths: Tuple[str, ...]) -> None:
        trigger = Trigger(tasks=b.tasks, paths=paths if b.pass_paths else ())
        with self._queued_lock:
            if trigger in self._queued:
                return
            self._queued.add(trigger)
        self.triggers.put(trigger)

    def next_trigger(self, timeout: float | None = None) -> Optional[Trigger]:
        try:
            trigger = self.triggers.get(timeout=timeout)
        except queue.Empty:
            return None
        if trigger is not None:
            with self._queued_lock:
                self._queued.discard(trigger)
        return trigger

    # ------------------------------------------------------------------
    # Observer lifecycle
    # ------------------------------------------------------------------

    @property
    def active(self) -> bool:
        return self._observer is not None

    def start(self) -> None:
        if self._observer is not None:
            return
        observer = Observer()
        observer.schedule(_Handler(self), str(self.root), recursive=True)
        observer.daemon = True
        observer.start()
        self._observer = observer
        get_console().print_debug(f"watching {self.root} with {len(self.bindings)} bindings")

    def stop(self) -> None:
        for d in self._debouncers:
            d.cancel()
        if self._observer is not None:
            self._observer.stop()
            self._observer.join()
            self._observer = None
        # wake up serve_forever
        self.triggers.put(None)

    def serve_forever(self, run: Callable[[Trigger], object]) -> None:
        """Run triggers as they arrive until stop() is called."""
        while True:
            trigger = self.next_trigger()
            if trigger is None:
                return
            run(trigger)
