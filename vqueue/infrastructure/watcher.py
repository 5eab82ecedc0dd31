"""
Filesystem watcher for the queue directory.

Subscribes to creation events on queue/ (non-recursive) with watchdog and
forwards every new regular, non-hidden file to a callback. The watcher is
started *before* the backlog scan and holds its events until `release()` is
called with the files the scan already enqueued, so files created while the
scan runs are neither missed nor enqueued twice. The scan's (inode, mtime)
identities are kept after release: a creation event that watchdog delivers
late for a file the scan already found is dropped as well.
"""

import logging
import os
import stat
import threading
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Union

from watchdog.events import FileCreatedEvent, FileMovedEvent, FileSystemEventHandler
from watchdog.observers import Observer

from vqueue.infrastructure.file_scanner import FileIdentity, file_identity, is_hidden_name

logger = logging.getLogger(__name__)


def _event_path(raw: Any) -> Path:
    return Path(os.fsdecode(raw))


class QueueEventHandler(FileSystemEventHandler):
    """Watchdog event handler for the queue directory."""

    def __init__(self, watcher: "QueueWatcher"):
        super().__init__()
        self.watcher = watcher

    def on_created(self, event: FileCreatedEvent) -> None:  # type: ignore[override]
        if not event.is_directory:
            self._dispatch(_event_path(event.src_path))

    def on_moved(self, event: FileMovedEvent) -> None:  # type: ignore[override]
        # A rename inside queue/ (e.g. "clip.part" -> "clip.mov") arrives as a move
        if not event.is_directory:
            self._dispatch(_event_path(event.dest_path))

    def _dispatch(self, path: Path) -> None:
        # An exception here would kill the observer thread
        try:
            self.watcher.handle_path(path)
        except Exception as e:
            logger.error(f"error: {e}", exc_info=True)


class QueueWatcher:
    """
    Watch the queue directory for new files.

    Args:
        queue_dir: Directory to watch (only its immediate entries).
        on_path: Called with the absolute path of each eligible new file.
    """

    def __init__(self, queue_dir: Path, on_path: Callable[[Path], None]):
        self.queue_dir = Path(queue_dir).absolute()
        self.on_path = on_path
        self._lock = threading.Lock()
        self._live = False
        self._buffer: List[Path] = []
        self._backlog: Dict[Path, Optional[FileIdentity]] = {}
        self._observer: Optional[Any] = None

    @property
    def live(self) -> bool:
        return self._live

    def start(self) -> None:
        """Subscribes to notifications. Raises OSError if the subscription fails."""
        handler = QueueEventHandler(self)
        observer = Observer()
        observer.schedule(handler, str(self.queue_dir), recursive=False)
        observer.start()
        self._observer = observer
        logger.info(f"Watching {self.queue_dir}")

    def handle_path(self, path: Path) -> None:
        """Validates one notified path and forwards (or buffers) it."""
        path = Path(path).absolute()
        if path.parent != self.queue_dir:
            return
        if is_hidden_name(path.name):
            logger.debug(f"Ignoring hidden file {path}")
            return
        try:
            st = path.stat()
        except FileNotFoundError:
            # Created and removed/renamed again before we got here
            logger.debug(f"Ignoring vanished file {path}")
            return
        except OSError as e:
            logger.warning(f"Cannot stat {path}: {e}")
            return
        if not stat.S_ISREG(st.st_mode):
            logger.debug(f"Ignoring non-regular entry {path}")
            return

        with self._lock:
            if not self._live:
                self._buffer.append(path)
                return
            if path in self._backlog:
                if self._backlog[path] == (st.st_ino, st.st_mtime_ns):
                    logger.debug(f"Dropping late event for backlog file {path}")
                    return
                # same name, different file: a new arrival
                del self._backlog[path]
            self.on_path(path)

    def release(
        self,
        already_enqueued: Union[Mapping[Path, Optional[FileIdentity]], Iterable[Path]] = (),
    ) -> int:
        """Flushes buffered events and switches to live forwarding.

        already_enqueued maps each backlog path to the identity it had when
        scanned; a plain iterable of paths is stat'ed here instead. Buffered
        paths in the backlog, and repeats within the buffer, are dropped.
        Returns the number of paths forwarded.
        """
        if isinstance(already_enqueued, Mapping):
            backlog = {Path(p).absolute(): ident for p, ident in already_enqueued.items()}
        else:
            backlog = {Path(p).absolute(): file_identity(Path(p)) for p in already_enqueued}
        seen = set(backlog)
        forwarded = 0
        with self._lock:
            for path in self._buffer:
                if path in seen:
                    logger.debug(f"Dropping duplicate event for {path}")
                    continue
                seen.add(path)
                self.on_path(path)
                forwarded += 1
            self._buffer.clear()
            self._backlog = backlog
            self._live = True
        return forwarded

    def stop(self, timeout: float = 5.0) -> None:
        """Stop watching."""
        observer = self._observer
        self._observer = None
        if observer is not None:
            observer.stop()
            observer.join(timeout=timeout)
