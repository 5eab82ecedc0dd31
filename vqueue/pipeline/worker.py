"""Serial transcode worker.

Pulls paths off the WorkQueue one at a time and drives each job through the
state machine in `domain/transitions.py`:

- PENDING -> IN_FLIGHT: the command is spawned, output goes to working/
- IN_FLIGHT -> TRANSCODED -> FINISHED: exit 0, output renamed into finished/,
  source removed from queue/ (best effort)
- IN_FLIGHT -> FAILED: non-zero exit or spawn error, queue/ left untouched

A failed rename from working/ to finished/ is fatal: the worker stops and
reports FatalPipelineError, since on-disk state is then only safely
recoverable by a clean restart.
"""

import logging
import os
import threading
from pathlib import Path
from typing import Optional

from vqueue.config.models import PipelineSettings
from vqueue.domain.events import JobCompleted, JobFailed, JobStarted
from vqueue.domain.models import Job, JobTrigger
from vqueue.domain.transitions import advance
from vqueue.infrastructure.event_bus import EventBus
from vqueue.infrastructure.transcoder import TranscodeCancelled, TranscoderAdapter
from vqueue.pipeline.work_queue import WorkQueue


class FatalPipelineError(Exception):
    """An inconsistency the pipeline must not continue past."""


class TranscodeWorker:
    """Consumes the work queue on a dedicated thread, strictly one job at a time.

    Args:
        settings: Resolved PipelineSettings (layout, flags, extension).
        work_queue: Source of absolute file paths.
        transcoder: Adapter running the external command.
        event_bus: Receives JobStarted / JobCompleted / JobFailed.
        on_fatal: Called (from the worker thread) after a fatal error.
    """

    def __init__(
        self,
        settings: PipelineSettings,
        work_queue: WorkQueue,
        transcoder: TranscoderAdapter,
        event_bus: EventBus,
        on_fatal=None,
    ):
        self.settings = settings
        self.work_queue = work_queue
        self.transcoder = transcoder
        self.event_bus = event_bus
        self.on_fatal = on_fatal
        self.logger = logging.getLogger(__name__)

        self.fatal_error: Optional[FatalPipelineError] = None
        self.current_job: Optional[Job] = None
        self._thread: Optional[threading.Thread] = None
        self._stopping = threading.Event()

    def start(self) -> None:
        self._thread = threading.Thread(target=self._run, name="vqueue-worker", daemon=True)
        self._thread.start()

    def stop(self) -> None:
        """Stops taking new jobs; an in-flight job is left to the caller."""
        self._stopping.set()
        self.work_queue.close()

    def join(self, timeout: Optional[float] = None) -> bool:
        """Waits for the worker thread. Returns True if it has exited."""
        if self._thread is None:
            return True
        self._thread.join(timeout=timeout)
        return not self._thread.is_alive()

    @property
    def alive(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def _run(self) -> None:
        while not self._stopping.is_set():
            path = self.work_queue.get()
            if path is None or self._stopping.is_set():
                break
            try:
                self.process(path)
            except FatalPipelineError as e:
                self.fatal_error = e
                self.logger.error(str(e))
                if self.on_fatal:
                    self.on_fatal(e)
                break
        self.logger.debug("Worker stopped")

    def process(self, path: Path) -> Job:
        """Runs one job to its terminal state and returns it."""
        job = Job.for_source(Path(path), self.settings.layout, self.settings.output_extension)
        self.logger.info(f"Work on: {job.source_path}")

        advance(job, JobTrigger.DEQUEUED)
        self.current_job = job
        self.event_bus.publish(JobStarted(job=job))
        try:
            try:
                returncode = self.transcoder.run(job)
            except (OSError, TranscodeCancelled) as e:
                self._fail(job, f"Transcode call error: {e}")
                return job

            if returncode != 0:
                self._fail(job, f"Transcode call error: exit status {returncode}")
                return job

            advance(job, JobTrigger.TRANSCODE_SUCCEEDED)
            self._commit(job)
            return job
        finally:
            self.current_job = None

    def _fail(self, job: Job, message: str) -> None:
        advance(job, JobTrigger.TRANSCODE_FAILED)
        job.error_message = message
        self.logger.error(f"{message} ({job.source_path})")

        if self.transcoder.terminated:
            # Killed on shutdown: its half-written output is of no use
            try:
                job.working_path.unlink()
            except FileNotFoundError:
                pass
            except OSError as e:
                self.logger.warning(f"Could not remove partial output {job.working_path}: {e}")

        self.event_bus.publish(JobFailed(job=job, error_message=message))

    def _commit(self, job: Job) -> None:
        try:
            os.rename(job.working_path, job.finished_path)
        except OSError as e:
            job.error_message = f"Could not move {job.working_path} to {job.finished_path}: {e}"
            raise FatalPipelineError(job.error_message) from e

        advance(job, JobTrigger.RENAME_SUCCEEDED)
        self.logger.info(f"Finished: {job.finished_path}")

        try:
            job.source_path.unlink()
        except OSError as e:
            # Output is safe in finished/; a leftover source is recoverable by hand
            self.logger.warning(f"Could not remove source {job.source_path}: {e}")

        self.event_bus.publish(JobCompleted(job=job))
