import threading
from vqueue.domain.events import JobCompleted, JobFailed, JobQueued
from vqueue.infrastructure.event_bus import EventBus


class PipelineStats:
    """Run counters fed from the event bus (per process, never persisted)."""

    def __init__(self, event_bus: EventBus):
        self._lock = threading.Lock()
        self.queued_backlog = 0
        self.queued_live = 0
        self.completed = 0
        self.failed = 0

        event_bus.subscribe(JobQueued, self._on_queued)
        event_bus.subscribe(JobCompleted, self._on_completed)
        event_bus.subscribe(JobFailed, self._on_failed)

    def _on_queued(self, event: JobQueued):
        with self._lock:
            if event.origin == "backlog":
                self.queued_backlog += 1
            else:
                self.queued_live += 1

    def _on_completed(self, event: JobCompleted):
        with self._lock:
            self.completed += 1

    def _on_failed(self, event: JobFailed):
        with self._lock:
            self.failed += 1

    def summary(self) -> str:
        with self._lock:
            return (
                f"queued={self.queued_backlog + self.queued_live} "
                f"(backlog={self.queued_backlog}, live={self.queued_live}), "
                f"finished={self.completed}, failed={self.failed}"
            )
