from __future__ import annotations

import enum
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Generic, Optional, Sequence, TypeVar

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from .cache import BuildCache
from .config import CONFIG_NAMES
from .content import PAGES_DIR, POSTS_DIR
from .errors import BuildError
from .layouts import LAYOUTS_DIR
from .log import get_logger
from .pipeline import Pipeline
from .writer import RESOURCES_DIR

DEBOUNCE_SECONDS = 0.1
WATCHED_DIRS = (LAYOUTS_DIR, PAGES_DIR, POSTS_DIR, RESOURCES_DIR)
WATCHED_FILES = (*CONFIG_NAMES, "elm.json")
EVENT_VERBS = {
    "created": "added",
    "modified": "updated",
    "deleted": "deleted",
}

logger = get_logger("watch")

T = TypeVar("T")


class Debouncer(Generic[T]):
    """Collect items until ``delay`` seconds pass without a new one.

    Each push re-arms a single timer; when it fires the batch is drained and
    handed to ``callback``. Dispatches never overlap: items pushed while a
    batch is being handled go into the next batch, which still waits for its
    own quiet interval.
    """

    def __init__(self, delay: float, callback: Callable[[list[T]], None]) -> None:
        self.delay = delay
        self.callback = callback
        self._items: list[T] = []
        self._timer: Optional[threading.Timer] = None
        self._generation = 0
        self._lock = threading.Lock()
        self._dispatch_lock = threading.Lock()

    def push(self, item: T) -> None:
        with self._lock:
            self._items.append(item)
            self._generation += 1
            if self._timer is not None:
                self._timer.cancel()
            self._timer = threading.Timer(self.delay, self._fire, args=(self._generation,))
            self._timer.daemon = True
            self._timer.start()

    def _fire(self, generation: int) -> None:
        with self._dispatch_lock:
            with self._lock:
                # A later push armed a newer timer; that one owns the batch.
                if generation != self._generation:
                    return
                batch, self._items = self._items, []
                self._timer = None
            if batch:
                self.callback(batch)

    def cancel(self) -> None:
        with self._lock:
            self._generation += 1
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
            self._items = []


@dataclass(frozen=True)
class FileEvent:
    event_type: str
    path: Path
    dest_path: Optional[Path] = None


def describe_event(event: FileEvent) -> str:
    if event.event_type == "moved":
        return f"{event.path} moved to {event.dest_path}"
    verb = EVENT_VERBS.get(event.event_type, f"generated event {event.event_type}")
    return f"{event.path} {verb}"


class WatchState(enum.Enum):
    IDLE = "idle"
    BUILDING = "building"
    ERROR_IDLE = "error-idle"


class Watcher:
    """Rebuild state across passes: the cache is replaced only by a successful pass."""

    def __init__(self, pipeline: Pipeline, root: Path) -> None:
        self.pipeline = pipeline
        self.root = root
        self.cache = BuildCache.empty()
        self.state = WatchState.IDLE
        self.last_error: Optional[Exception] = None

    def relative(self, path: Path) -> Path:
        if not path.is_absolute():
            return path
        try:
            return path.resolve().relative_to(self.root.resolve())
        except ValueError:
            return path

    def invalidates_everything(self, event: FileEvent) -> bool:
        paths = [event.path] + ([event.dest_path] if event.dest_path is not None else [])
        for path in paths:
            rel = self.relative(path)
            if rel.parts and rel.parts[0] == LAYOUTS_DIR:
                return True
            if len(rel.parts) == 1 and rel.name in CONFIG_NAMES:
                return True
        return False

    def run_pass(self, seed: BuildCache, *, keep_output_alive: bool) -> bool:
        self.state = WatchState.BUILDING
        try:
            cache = self.pipeline.run(seed, keep_output_alive=keep_output_alive)
        except (BuildError, OSError) as exc:
            self.state = WatchState.ERROR_IDLE
            self.last_error = exc
            message = str(exc)
            if message:
                logger.error("\n%s", message)
            logger.info("Error! Watching for more changes...")
            return False
        finally:
            self.state = WatchState.IDLE
        self.cache = cache
        self.last_error = None
        return True

    def initial_build(self) -> bool:
        logger.info(
            "Building the site%s", ", including draft content" if self.pipeline.include_drafts else ""
        )
        built = self.run_pass(BuildCache.empty(), keep_output_alive=False)
        if built:
            logger.info("Ready! Watching for changes...")
        return built

    def handle_batch(self, events: Sequence[FileEvent]) -> bool:
        for event in events:
            logger.info("%s", describe_event(event))
        layouts_changed = any(self.invalidates_everything(event) for event in events)
        seed = BuildCache.empty() if layouts_changed else self.cache
        built = self.run_pass(seed, keep_output_alive=True)
        if built:
            logger.info("Ready! Watching for more changes...")
        return built


class SiteEventHandler(FileSystemEventHandler):
    def __init__(self, root: Path, debouncer: Debouncer[FileEvent]) -> None:
        super().__init__()
        self.root = root.resolve()
        self.debouncer = debouncer

    def is_watched(self, path: Path) -> bool:
        try:
            rel = path.resolve().relative_to(self.root)
        except ValueError:
            return False
        if not rel.parts:
            return False
        if len(rel.parts) == 1:
            return rel.name in WATCHED_FILES or rel.name in WATCHED_DIRS
        return rel.parts[0] in WATCHED_DIRS

    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.event_type not in ("created", "modified", "deleted", "moved"):
            return
        if event.is_directory and event.event_type == "modified":
            return
        path = Path(str(event.src_path))
        dest = getattr(event, "dest_path", "") or None
        dest_path = Path(str(dest)) if dest else None
        if not self.is_watched(path) and not (dest_path is not None and self.is_watched(dest_path)):
            return
        self.debouncer.push(FileEvent(event.event_type, self.relative(path), self.relative(dest_path)))

    def relative(self, path: Optional[Path]) -> Optional[Path]:
        if path is None:
            return None
        try:
            return path.resolve().relative_to(self.root)
        except ValueError:
            return path


def watch(
    root: Path,
    *,
    include_drafts: bool = False,
    workers: Optional[int] = None,
    delay: float = DEBOUNCE_SECONDS,
) -> None:
    pipeline = Pipeline(root, include_drafts=include_drafts, workers=workers)
    watcher = Watcher(pipeline, root)
    watcher.initial_build()

    debouncer: Debouncer[FileEvent] = Debouncer(delay, watcher.handle_batch)
    handler = SiteEventHandler(root, debouncer)
    observer = Observer()
    observer.schedule(handler, str(root), recursive=False)
    for name in WATCHED_DIRS:
        directory = root / name
        if directory.is_dir():
            observer.schedule(handler, str(directory), recursive=True)
    observer.start()
    try:
        while observer.is_alive():
            time.sleep(0.5)
    except KeyboardInterrupt:
        logger.info("Stopping")
    finally:
        debouncer.cancel()
        observer.stop()
        observer.join()
