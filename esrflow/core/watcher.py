"""
Output directory watch based on watchdog.

The watch only posts created file paths to a queue; counting happens on the
thread that owns the run so progress callbacks are never invoked concurrently.
"""

from __future__ import annotations

import logging
import queue
from pathlib import Path
from typing import Any, Dict, List

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

logger = logging.getLogger(__name__)


class _CreatedHandler(FileSystemEventHandler):
    def __init__(self, events: "queue.Queue[Dict[str, Any]]"):
        super().__init__()
        self._events = events

    def on_created(self, event: FileSystemEvent) -> None:
        if event.is_directory:
            return
        self._events.put({"type": "created", "path": str(event.src_path)})


class OutputDirectoryWatch:
    """Subscription to file creation events in a single directory.

    ``stop()`` is idempotent and must be called on every exit path of a run;
    the class is also usable as a context manager.
    """

    def __init__(self, directory: Path, events: "queue.Queue[Dict[str, Any]]"):
        self.directory = Path(directory)
        self._events = events
        self._observer = None
        self.baseline: List[str] = []

    def start(self) -> "OutputDirectoryWatch":
        self.baseline = self.snapshot()
        observer = Observer()
        observer.schedule(_CreatedHandler(self._events), str(self.directory), recursive=False)
        observer.start()
        self._observer = observer
        logger.debug("Watching %s (%d existing files)", self.directory, len(self.baseline))
        return self

    def snapshot(self) -> List[str]:
        """Current top-level file names, sorted."""
        return sorted(p.name for p in self.directory.iterdir() if p.is_file())

    def stop(self) -> None:
        observer, self._observer = self._observer, None
        if observer is None:
            return
        observer.stop()
        observer.join(timeout=5)
        logger.debug("Stopped watching %s", self.directory)

    @property
    def active(self) -> bool:
        return self._observer is not None

    def __enter__(self) -> "OutputDirectoryWatch":
        return self.start()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop()
