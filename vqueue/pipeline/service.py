"""Queue pipeline lifecycle.

Wires the backlog scanner, the filesystem watcher, the work queue and the
serial worker together, and owns startup ordering and shutdown:

1. start the worker thread (it blocks on the empty queue)
2. subscribe the watcher (events are buffered)
3. scan the backlog and enqueue it
4. release the watcher: buffered events not already in the backlog are
   enqueued, later events go straight to the queue
5. wait for an interrupt or a fatal worker error

On shutdown the queue is closed at once so nothing new starts. Depending on
`shutdown_mode` the in-flight job either runs to completion ("finish") or its
child process is terminated and its partial output removed ("terminate"). A
second interrupt while waiting escalates "finish" to "terminate".
"""

import logging
import threading
from pathlib import Path
from typing import List, Optional

from vqueue.config.models import PipelineSettings
from vqueue.domain.events import JobQueued, ShutdownRequested
from vqueue.infrastructure.event_bus import EventBus
from vqueue.infrastructure.file_scanner import BacklogScanner, file_identity
from vqueue.infrastructure.transcoder import TranscoderAdapter
from vqueue.infrastructure.watcher import QueueWatcher
from vqueue.pipeline.work_queue import WorkQueue
from vqueue.pipeline.worker import FatalPipelineError, TranscodeWorker


class QueuePipeline:
    def __init__(
        self,
        settings: PipelineSettings,
        event_bus: Optional[EventBus] = None,
        transcoder: Optional[TranscoderAdapter] = None,
        scanner: Optional[BacklogScanner] = None,
    ):
        self.settings = settings
        self.event_bus = event_bus or EventBus()
        self.logger = logging.getLogger(__name__)

        self.work_queue = WorkQueue()
        self.transcoder = transcoder or TranscoderAdapter(settings)
        self.scanner = scanner or BacklogScanner()
        self.worker = TranscodeWorker(
            settings=settings,
            work_queue=self.work_queue,
            transcoder=self.transcoder,
            event_bus=self.event_bus,
            on_fatal=self._on_fatal,
        )
        self.watcher = QueueWatcher(settings.layout.queue, on_path=self._enqueue_live)

        self._done = threading.Event()
        self._shutdown_requested = False
        self._terminate = settings.shutdown_mode == "terminate"

    @property
    def fatal_error(self) -> Optional[FatalPipelineError]:
        return self.worker.fatal_error

    def _enqueue(self, path: Path, origin: str) -> bool:
        if not self.work_queue.put(path):
            return False
        self.logger.debug(f"Queued ({origin}): {path}")
        self.event_bus.publish(JobQueued(path=path, origin=origin))
        return True

    def _enqueue_live(self, path: Path) -> None:
        self._enqueue(path, "watcher")

    def _on_fatal(self, error: FatalPipelineError) -> None:
        self.work_queue.close()
        self._done.set()

    def start(self) -> List[Path]:
        """Runs the startup sequence. Returns the backlog that was enqueued.

        Raises OSError if the watcher cannot subscribe or queue/ cannot be
        listed; the worker is stopped again in that case.
        """
        self.worker.start()
        try:
            self.watcher.start()
            backlog = {}
            for path in self.scanner.scan(self.settings.layout.queue):
                # identity before enqueueing: the worker may consume the file at once
                identity = file_identity(path)
                if self._enqueue(path, "backlog"):
                    backlog[path] = identity
            flushed = self.watcher.release(backlog)
        except BaseException:
            self.watcher.stop()
            self.worker.stop()
            raise

        self.logger.info(
            f"Backlog: {len(backlog)} file(s) queued, {flushed} file(s) arrived during scan"
        )
        return list(backlog)

    def request_shutdown(self, terminate: bool = False) -> None:
        """Asks the pipeline to stop.

        Only flips flags and sets an Event, so it may be called from a signal
        handler that interrupted the main thread mid-scan. The queue is closed
        by shutdown().
        """
        if terminate or self._shutdown_requested:
            self._terminate = True
        self._shutdown_requested = True
        self._done.set()

    def wait(self, poll_interval: float = 0.5) -> None:
        """Blocks until request_shutdown() or a fatal worker error."""
        while not self._done.wait(poll_interval):
            pass

    def shutdown(self, poll_interval: float = 0.2) -> None:
        """Stops the watcher and the worker, honouring the shutdown mode."""
        pending = self.work_queue.qsize()
        self.worker.stop()
        if pending:
            self.logger.info(f"Shutting down with {pending} file(s) still queued; they stay in queue/ for the next start")
        if self._shutdown_requested:
            self.event_bus.publish(ShutdownRequested(terminate=self._terminate))
        self.watcher.stop()

        current = self.worker.current_job
        if current is not None and not self._terminate:
            self.logger.info(f"Waiting for in-flight job to finish: {current.source_path.name}")

        while not self.worker.join(timeout=poll_interval):
            if self._terminate:
                self.transcoder.cancel()

    def run(self) -> None:
        """start(), wait(), shutdown(). Raises the worker's fatal error, if any."""
        self.start()
        try:
            self.wait()
        finally:
            self.shutdown()
        if self.fatal_error is not None:
            raise self.fatal_error
