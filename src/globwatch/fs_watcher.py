"""Recursive directory watching using the watchdog library."""

import logging
import os
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, Optional, Tuple

from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer
from watchdog.observers.api import BaseObserver
from watchdog.observers.polling import PollingObserver

from .config import WatchConfig
from .exceptions import WatchError
from .matchers import Matcher
from .models import RawChangeKind

logger = logging.getLogger(__name__)

WatchCallback = Callable[[str, RawChangeKind], None]
CancelFunc = Callable[[], None]


@dataclass(frozen=True)
class WatchOptions:
    """
    Options of one directory watch.

    Attributes:
        recursive: Watch the whole tree below the directory
        include: Only paths matching this matcher are reported
        exclude: Paths matching this matcher are never reported
    """
    recursive: bool = True
    include: Optional[Matcher] = None
    exclude: Optional[Matcher] = None

    def allows(self, path: str) -> bool:
        if self.include is not None and not self.include.matches(path):
            return False
        if self.exclude is not None and self.exclude.matches(path):
            return False
        return True


class WatchEventHandler(FileSystemEventHandler):
    """Handler that converts watchdog events to (path, RawChangeKind) callbacks."""

    def __init__(self, callback: WatchCallback, options: WatchOptions):
        super().__init__()
        self.callback = callback
        self.options = options
        self._cancelled = False
        self._lock = threading.Lock()

    def cancel(self) -> None:
        """Stop reporting events. Waits for a callback in progress to return."""
        with self._lock:
            self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def _emit(self, path, kind: RawChangeKind) -> None:
        path = os.fsdecode(path)
        if not self.options.allows(path):
            return
        with self._lock:
            if self._cancelled:
                return
            self.callback(path, kind)

    def on_created(self, event):
        self._emit(event.src_path, RawChangeKind.CREATED)

    def on_deleted(self, event):
        self._emit(event.src_path, RawChangeKind.DELETED)

    def on_modified(self, event):
        # A directory is "modified" whenever one of its entries changes.
        if event.is_directory:
            return
        self._emit(event.src_path, RawChangeKind.CHANGED)

    def on_moved(self, event):
        self._emit(event.src_path, RawChangeKind.DELETED)
        self._emit(event.dest_path, RawChangeKind.CREATED)


class DirectoryWatcher:
    """
    Manages watchdog observers, one per installed watch.

    ``watch`` is the primitive the registration manager consumes: it starts
    watching a directory and returns a function that cancels the watch.
    """

    def __init__(self, config: Optional[WatchConfig] = None):
        """
        Initialize the watcher pool.

        Args:
            config: Watch configuration
        """
        self.config = config or WatchConfig()
        self._observers: Dict[int, Tuple[BaseObserver, WatchEventHandler]] = {}
        self._next_id = 0
        self._lock = threading.Lock()

    def _create_observer(self) -> BaseObserver:
        if self.config.use_polling:
            return PollingObserver(timeout=self.config.polling_interval_s)
        return Observer()

    def watch(self, path: str, options: WatchOptions, callback: WatchCallback) -> CancelFunc:
        """
        Start watching a directory.

        Args:
            path: Directory to watch
            options: Recursion and include/exclude filters
            callback: Called with (full path, change kind) for each reported event

        Returns:
            Function that cancels the watch; calling it more than once is harmless

        Raises:
            WatchError: If the directory cannot be watched
        """
        if not Path(path).is_dir():
            raise WatchError(f"Not a directory: {path}")

        handler = WatchEventHandler(callback, options)
        observer = self._create_observer()
        try:
            observer.schedule(handler, str(path), recursive=options.recursive)
            observer.start()
        except OSError as e:
            raise WatchError(f"Cannot watch {path}: {e}") from e

        with self._lock:
            watch_id = self._next_id
            self._next_id += 1
            self._observers[watch_id] = (observer, handler)

        logger.info(f"Started watching {path} (polling={self.config.use_polling})")

        def cancel() -> None:
            self._stop(watch_id)

        return cancel

    def _stop(self, watch_id: int) -> bool:
        with self._lock:
            entry = self._observers.pop(watch_id, None)
        if entry is None:
            return False

        observer, handler = entry
        handler.cancel()
        observer.stop()
        observer.join(timeout=self.config.join_timeout_s)
        logger.info(f"Stopped watch {watch_id}")
        return True

    def stop_all(self) -> int:
        """
        Stop all watches.

        Returns:
            Number of watches stopped
        """
        with self._lock:
            entries = list(self._observers.values())
            self._observers.clear()

        for observer, handler in entries:
            handler.cancel()
            observer.stop()

        for observer, _ in entries:
            observer.join(timeout=self.config.join_timeout_s)

        return len(entries)

    def __len__(self) -> int:
        """Return the number of active watches."""
        with self._lock:
            return len(self._observers)
