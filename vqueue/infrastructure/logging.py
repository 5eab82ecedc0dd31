import logging
import sys
from pathlib import Path
from typing import List, Optional

def setup_logging(debug: bool = False, log_path: Optional[Path] = None) -> logging.Logger:
    """
    Setup logging configuration for vqueue.

    Diagnostics always go to stderr; when log_path is given they are
    additionally appended to that file. Returns configured logger instance.

    Args:
        debug: If True, enable DEBUG level logging (skipped events, queue traffic)
        log_path: Optional path to a log file (parent directories are created)
    """
    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stderr)]

    if log_path:
        log_file = Path(log_path)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file))

    # Configure logging level
    level = logging.DEBUG if debug else logging.INFO

    # Configure logging
    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(levelname)s - %(message)s',
        handlers=handlers,
        force=True  # Override any existing configuration
    )

    logger = logging.getLogger("vqueue")
    logger.info(f"Logging initialized: {log_path or 'stderr'} (debug={'ON' if debug else 'OFF'})")

    return logger
