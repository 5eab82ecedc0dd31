import logging
import shutil
from pathlib import Path
from vqueue.domain.models import DirectoryLayout

logger = logging.getLogger(__name__)


class TopologyError(Exception):
    """The base directory or one of its role directories is unusable."""


def _ensure_dir(path: Path) -> None:
    if path.is_dir():
        return
    if path.exists():
        raise TopologyError(f"{path} exists and is not a directory")
    try:
        path.mkdir()
    except OSError as e:
        raise TopologyError(f"Could not create dir {path}: {e}") from e
    logger.info(f"Created {path}")


def reset_working(working: Path) -> None:
    """Discards everything in working/ and recreates it empty.

    Anything left there is output orphaned by a crash mid-transcode.
    """
    try:
        if working.is_dir() and not working.is_symlink():
            shutil.rmtree(working)
        elif working.exists() or working.is_symlink():
            working.unlink()
    except OSError as e:
        raise TopologyError(f"Error removing working files in {working}: {e}") from e
    _ensure_dir(working)


def ensure_layout(base_dir: Path, staging_name: str = "upload") -> DirectoryLayout:
    """Guarantees queue/, working/, finished/ and the staging dir exist under base_dir.

    Idempotent apart from working/, which is emptied on every call.
    Raises TopologyError on any filesystem problem; callers treat it as fatal.
    """
    base = Path(base_dir)
    try:
        if not base.is_dir():
            raise TopologyError(f"Directory {base} does not exist")
    except OSError as e:
        raise TopologyError(f"Directory {base} error: {e}") from e

    layout = DirectoryLayout.under(base, staging_name)

    _ensure_dir(layout.queue)
    _ensure_dir(layout.staging)
    reset_working(layout.working)
    _ensure_dir(layout.finished)

    return layout


def inspect_layout(base_dir: Path, staging_name: str = "upload") -> DirectoryLayout:
    """Read-only counterpart of ensure_layout: validates without creating or resetting."""
    base = Path(base_dir)
    if not base.is_dir():
        raise TopologyError(f"Directory {base} does not exist")
    layout = DirectoryLayout.under(base, staging_name)
    for role in (layout.queue, layout.working, layout.finished, layout.staging):
        if role.exists() and not role.is_dir():
            raise TopologyError(f"{role} exists and is not a directory")
    return layout
