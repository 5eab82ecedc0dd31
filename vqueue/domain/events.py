"""Domain events for the transcode queue.

Events flow through the EventBus so that the worker and the watcher stay
decoupled from whatever observes them (run statistics, tests).

See `infrastructure/event_bus.py` for the pub/sub mechanism.
"""

from pathlib import Path
from pydantic import BaseModel
from .models import Job


class Event(BaseModel):
    """Base class for all domain events."""

    pass


class JobQueued(Event):
    """Emitted when a path is placed on the work queue.

    origin is "backlog" for the startup scan and "watcher" for live events.
    """

    path: Path
    origin: str


class JobEvent(Event):
    """Base class for events related to a specific job."""

    job: Job


class JobStarted(JobEvent):
    """Emitted right before the transcode command is spawned."""

    pass


class JobCompleted(JobEvent):
    """Emitted once the output has been moved into finished/."""

    pass


class JobFailed(JobEvent):
    """Emitted when the command exits non-zero or cannot be spawned."""

    error_message: str


class ShutdownRequested(Event):
    """Emitted by shutdown() after request_shutdown() (an interrupt).

    A fatal worker error stops the pipeline without it.
    """

    terminate: bool = False
