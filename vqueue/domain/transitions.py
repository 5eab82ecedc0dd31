"""Job state machine.

A job's state advances only through `transition`; the worker performs the
matching filesystem side effect (spawn, rename, unlink) after the state has
changed, so the table below can be exercised without touching a disk.

    PENDING    --DEQUEUED-------------> IN_FLIGHT
    IN_FLIGHT  --TRANSCODE_SUCCEEDED--> TRANSCODED
    IN_FLIGHT  --TRANSCODE_FAILED-----> FAILED
    TRANSCODED --RENAME_SUCCEEDED-----> FINISHED

FINISHED and FAILED are terminal.
"""

from typing import Dict, Tuple
from .models import Job, JobState, JobTrigger


class InvalidTransition(Exception):
    """Raised when a trigger does not apply to the current state."""

    def __init__(self, state: JobState, trigger: JobTrigger):
        super().__init__(f"Cannot apply {trigger.value} to a job in state {state.value}")
        self.state = state
        self.trigger = trigger


TRANSITIONS: Dict[Tuple[JobState, JobTrigger], JobState] = {
    (JobState.PENDING, JobTrigger.DEQUEUED): JobState.IN_FLIGHT,
    (JobState.IN_FLIGHT, JobTrigger.TRANSCODE_SUCCEEDED): JobState.TRANSCODED,
    (JobState.IN_FLIGHT, JobTrigger.TRANSCODE_FAILED): JobState.FAILED,
    (JobState.TRANSCODED, JobTrigger.RENAME_SUCCEEDED): JobState.FINISHED,
}

TERMINAL_STATES = frozenset({JobState.FINISHED, JobState.FAILED})


def transition(state: JobState, trigger: JobTrigger) -> JobState:
    try:
        return TRANSITIONS[(state, trigger)]
    except KeyError:
        raise InvalidTransition(state, trigger) from None


def advance(job: Job, trigger: JobTrigger) -> JobState:
    """Applies trigger to job in place and returns the new state."""
    job.state = transition(job.state, trigger)
    return job.state


def is_terminal(state: JobState) -> bool:
    return state in TERMINAL_STATES
