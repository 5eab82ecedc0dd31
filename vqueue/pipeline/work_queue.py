import logging
import queue
import threading
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

_CLOSED = object()


class WorkQueue:
    """Unbounded FIFO hand-off of file paths from producers to the worker.

    put() never blocks: there is no backpressure on the watcher. Contents
    are in memory only; after a crash the backlog scan rebuilds them from
    disk.

    close() wakes any blocked get() and makes every later get() return None,
    even when items remain.
    """

    def __init__(self):
        self._queue: "queue.Queue[object]" = queue.Queue()
        self._closed = threading.Event()
        self._sentinel_queued = False

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    def put(self, path: Path) -> bool:
        """Enqueues path. Returns False (and drops it) once the queue is closed."""
        if self._closed.is_set():
            logger.debug(f"Queue closed, dropping {path}")
            return False
        self._queue.put(Path(path))
        return True

    def get(self, timeout: Optional[float] = None) -> Optional[Path]:
        """Blocks for the next path; None once closed (or on timeout)."""
        if self._closed.is_set():
            return None
        try:
            item = self._queue.get(timeout=timeout)
        except queue.Empty:
            return None
        if item is _CLOSED:
            self._sentinel_queued = False
            return None
        if self._closed.is_set():
            return None
        return item  # type: ignore[return-value]

    def close(self) -> None:
        if not self._closed.is_set():
            self._closed.set()
            self._sentinel_queued = True
            self._queue.put(_CLOSED)

    def qsize(self) -> int:
        """Paths still waiting (approximate, like queue.Queue.qsize)."""
        size = self._queue.qsize()
        if self._sentinel_queued:
            size -= 1
        return max(size, 0)
