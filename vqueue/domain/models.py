from enum import Enum
from pathlib import Path
from typing import Optional
from pydantic import BaseModel, ConfigDict

QUEUE_DIR = "queue"
WORKING_DIR = "working"
FINISHED_DIR = "finished"


class JobState(str, Enum):
    PENDING = "PENDING"
    IN_FLIGHT = "IN_FLIGHT"
    TRANSCODED = "TRANSCODED"  # output complete in working/, not yet moved
    FINISHED = "FINISHED"
    FAILED = "FAILED"


class JobTrigger(str, Enum):
    DEQUEUED = "DEQUEUED"
    TRANSCODE_SUCCEEDED = "TRANSCODE_SUCCEEDED"
    TRANSCODE_FAILED = "TRANSCODE_FAILED"
    RENAME_SUCCEEDED = "RENAME_SUCCEEDED"


class DirectoryLayout(BaseModel):
    """Absolute paths of the four directory roles under a base directory."""
    model_config = ConfigDict(frozen=True)

    base: Path
    queue: Path
    working: Path
    finished: Path
    staging: Path

    @classmethod
    def under(cls, base: Path, staging_name: str = "upload") -> "DirectoryLayout":
        base = Path(base).absolute()
        return cls(
            base=base,
            queue=base / QUEUE_DIR,
            working=base / WORKING_DIR,
            finished=base / FINISHED_DIR,
            staging=base / staging_name,
        )


def output_name(source: Path, extension: str = ".mp4") -> str:
    """Output file name: the source stem with its extension replaced.

    `clip.mov` -> `clip.mp4`, `clip` -> `clip.mp4`, `a.b.mkv` -> `a.b.mp4`,
    `clip.` -> `clip.mp4`. A leading dot does not start an extension.
    """
    name = Path(source).name
    dot = name.rfind(".")
    stem = name[:dot] if dot > 0 else name
    return f"{stem}{extension}"


class Job(BaseModel):
    source_path: Path
    working_path: Path
    finished_path: Path
    state: JobState = JobState.PENDING
    error_message: Optional[str] = None
    return_code: Optional[int] = None
    duration_seconds: Optional[float] = None

    @classmethod
    def for_source(cls, source: Path, layout: DirectoryLayout, extension: str = ".mp4") -> "Job":
        name = output_name(source, extension)
        return cls(
            source_path=source,
            working_path=layout.working / name,
            finished_path=layout.finished / name,
        )
