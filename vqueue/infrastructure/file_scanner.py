import os
from pathlib import Path
from typing import Generator, Optional, Tuple

FileIdentity = Tuple[int, int]


def is_hidden_name(name: str) -> bool:
    """Dot-files are never work. An empty name is treated as hidden."""
    return not name or name.startswith(".")


def is_eligible(path: Path) -> bool:
    """True for an existing, regular, non-hidden file.

    A path that vanished or cannot be stat'ed is simply not eligible.
    """
    if is_hidden_name(path.name):
        return False
    try:
        return path.is_file()
    except OSError:
        return False


def file_identity(path: Path) -> Optional[FileIdentity]:
    """(inode, mtime in ns) of path, or None if it cannot be stat'ed."""
    try:
        st = os.stat(path)
    except OSError:
        return None
    return st.st_ino, st.st_mtime_ns


class BacklogScanner:
    """Lists the files already waiting in the queue directory (non-recursive)."""

    def scan(self, queue_dir: Path) -> Generator[Path, None, None]:
        """Yields absolute paths of eligible entries, sorted by name.

        Raises OSError if the directory itself cannot be listed.
        """
        queue_dir = Path(queue_dir).absolute()
        with os.scandir(queue_dir) as it:
            entries = sorted(it, key=lambda e: e.name)

        for entry in entries:
            if is_hidden_name(entry.name):
                continue
            try:
                if not entry.is_file():
                    continue
            except OSError:
                # Vanished between listing and stat
                continue
            yield queue_dir / entry.name
