from __future__ import annotations

import os
import queue
from pathlib import Path
from typing import Callable, FrozenSet, Iterator, List, Optional, Sequence, Set

from watchdog.events import (
    EVENT_TYPE_CREATED,
    EVENT_TYPE_DELETED,
    EVENT_TYPE_MODIFIED,
    EVENT_TYPE_MOVED,
    FileSystemEvent,
    FileSystemEventHandler,
)
from watchdog.observers import Observer
from watchdog.observers.api import BaseObserver
from watchdog.observers.polling import PollingObserver

from beady.cli.formatter import OutputFormatter
from beady.runtime.reload_contracts import ChangeEvent, ChangeKind, WatchTarget
from beady.utils.diagnostics import WatchSetupError

_STOP = object()

ObserverFactory = Callable[[], BaseObserver]


class _ChangeEventHandler(FileSystemEventHandler):
    """Watchdog handler that forwards file events into the watcher queue."""

    def __init__(self, watcher: "FileChangeWatcher") -> None:
        super().__init__()
        self.watcher = watcher

    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.is_directory:
            return
        try:
            self.watcher.handle_fs_event(event)
        except Exception as exc:
            self.watcher.report_error(exc)


class FileChangeWatcher:
    """Watches the files present under a set of roots at startup.

    Files created after ``start`` are not tracked. ``events`` is a blocking,
    infinite iterator that ends only after ``stop``.
    """

    def __init__(
        self,
        targets: Sequence[WatchTarget],
        use_polling: bool = False,
        polling_interval_ms: int = 1000,
        observer_factory: Optional[ObserverFactory] = None,
    ) -> None:
        self.targets = list(targets)
        self.use_polling = use_polling
        self.polling_interval_ms = polling_interval_ms
        self.observer_factory = observer_factory

        self._queue: "queue.Queue[object]" = queue.Queue()
        self._watched: FrozenSet[Path] = frozenset()
        self._observer: Optional[BaseObserver] = None
        self._handler = _ChangeEventHandler(self)

    @property
    def running(self) -> bool:
        return self._observer is not None

    def start(self) -> None:
        """Enumerate watched files and start the underlying observer."""
        if self._observer is not None:
            return

        roots = self._resolve_roots()
        self._watched = frozenset(self._enumerate_files(roots))

        try:
            observer = self._create_observer()
            for root in roots:
                observer.schedule(self._handler, str(root), recursive=True)
            observer.start()
        except OSError as exc:
            raise WatchSetupError(f"Failed to create file watcher: {exc}") from exc

        self._observer = observer
        OutputFormatter.log(
            f"Watching {len(self._watched)} files under {', '.join(str(r) for r in roots)}",
            severity="info",
        )

    def stop(self) -> None:
        """Stop the observer and end any running ``events`` iteration."""
        self._queue.put(_STOP)
        observer = self._observer
        self._observer = None
        if observer is None:
            return

        observer.stop()
        if observer.is_alive():
            observer.join(timeout=1)

    def watched_paths(self) -> Set[Path]:
        return set(self._watched)

    def events(self) -> Iterator[ChangeEvent]:
        while True:
            item = self._queue.get()
            if item is _STOP:
                return
            if isinstance(item, BaseException):
                OutputFormatter.log(f"Watcher error: {item}", severity="warning")
                continue
            yield item

    def handle_fs_event(self, event: FileSystemEvent) -> None:
        """Translate one watchdog event into zero or more change events."""
        src_path = self._normalize(event.src_path)

        if event.event_type == EVENT_TYPE_MODIFIED:
            self._emit(src_path, ChangeKind.WRITE)
        elif event.event_type == EVENT_TYPE_CREATED:
            self._emit(src_path, ChangeKind.CREATE)
        elif event.event_type == EVENT_TYPE_DELETED:
            self._emit(src_path, ChangeKind.REMOVE)
        elif event.event_type == EVENT_TYPE_MOVED:
            self._emit(src_path, ChangeKind.RENAME)
            dest_path = getattr(event, "dest_path", None)
            if dest_path:
                # Editors that save atomically replace the file via rename.
                self._emit(self._normalize(dest_path), ChangeKind.CREATE)

    def report_error(self, exc: BaseException) -> None:
        self._queue.put(exc)

    def _emit(self, path: Path, kind: ChangeKind) -> None:
        if path not in self._watched:
            return
        self._queue.put(ChangeEvent(path=path, kind=kind))

    def _resolve_roots(self) -> List[Path]:
        roots: List[Path] = []
        for target in self.targets:
            root = Path(os.path.abspath(target.path))
            if not root.is_dir():
                raise WatchSetupError(f"Watch root not found for {target.kind.value} files", str(target.path))
            if root not in roots:
                roots.append(root)
        # A recursive watch on a parent already covers nested roots.
        return [root for root in roots if not any(root != other and root.is_relative_to(other) for other in roots)]

    @staticmethod
    def _enumerate_files(roots: List[Path]) -> Set[Path]:
        files: Set[Path] = set()
        for root in roots:
            for path in root.rglob("*"):
                if path.is_file():
                    files.add(path)
        return files

    def _create_observer(self) -> BaseObserver:
        if self.observer_factory is not None:
            return self.observer_factory()
        if self.use_polling:
            return PollingObserver(timeout=self.polling_interval_ms / 1000.0)
        return Observer()

    @staticmethod
    def _normalize(raw_path: object) -> Path:
        return Path(os.path.abspath(os.fsdecode(raw_path)))
