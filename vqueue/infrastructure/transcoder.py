import logging
import shutil
import subprocess
import threading
import time
from pathlib import Path
from typing import List, Optional
from vqueue.config.models import PipelineSettings
from vqueue.domain.models import Job


class TranscoderNotFound(Exception):
    """The transcode executable is not on PATH."""


class TranscodeCancelled(Exception):
    """The adapter was cancelled before the command could be spawned."""


def locate_transcoder(executable: str) -> Path:
    """Resolves executable on PATH (or as given, if it is a path)."""
    found = shutil.which(executable)
    if not found:
        raise TranscoderNotFound(f"{executable} path error: executable file not found in $PATH")
    return Path(found).absolute()


class TranscoderAdapter:
    """Runs the external transcode command, one process at a time.

    The command is an opaque tool: its stdout/stderr are inherited and its
    exit status is the only result consumed.
    """

    def __init__(self, settings: PipelineSettings):
        self.settings = settings
        self.logger = logging.getLogger(__name__)
        self._lock = threading.Lock()
        self._process: Optional[subprocess.Popen] = None
        self._cancelled = False
        self._terminated = False

    @property
    def terminated(self) -> bool:
        """True when the last run was cut short by cancel()."""
        return self._terminated

    def build_command(self, job: Job) -> List[str]:
        """<tool> <input flags> -i <input> <output flags> <working output path>."""
        cmd = [str(self.settings.executable)]
        cmd.extend(self.settings.input_flags)
        cmd.extend(["-i", str(job.source_path)])
        cmd.extend(self.settings.output_flags)
        cmd.append(str(job.working_path))
        return cmd

    def run(self, job: Job) -> int:
        """Spawns the command for job and waits for it. Returns the exit code.

        Raises OSError if the command cannot be spawned and TranscodeCancelled
        if cancel() was called first.
        """
        cmd = self.build_command(job)
        self.logger.info(f"Command: {cmd}")

        with self._lock:
            if self._cancelled:
                raise TranscodeCancelled(f"Not starting {job.source_path.name}: shutting down")
            self._terminated = False
            # Own session: a terminal Ctrl+C reaches us, not the child
            self._process = subprocess.Popen(cmd, start_new_session=True)
            process = self._process

        start = time.monotonic()
        try:
            returncode = process.wait()
        finally:
            with self._lock:
                self._process = None
        job.duration_seconds = time.monotonic() - start
        job.return_code = returncode
        return returncode

    def cancel(self, timeout: Optional[float] = None) -> bool:
        """Stops the running child (SIGTERM, then SIGKILL after timeout).

        Also prevents any further run(). Returns True if a child was stopped.
        """
        timeout = self.settings.terminate_timeout_s if timeout is None else timeout
        with self._lock:
            self._cancelled = True
            process = self._process
            if process is None or process.poll() is not None:
                return False
            self._terminated = True

        self.logger.info(f"Terminating transcode process {process.pid}")
        process.terminate()
        try:
            process.wait(timeout=timeout)
        except subprocess.TimeoutExpired:
            self.logger.warning(f"Transcode process {process.pid} ignored SIGTERM, killing")
            process.kill()
            process.wait()
        return True
