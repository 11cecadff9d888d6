import logging
import os
import sys
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from typing import Optional


DEFAULT_LOG_DIR = os.path.join(os.path.expanduser("~"), ".leedz", "logs")


class IsoFormatter(logging.Formatter):
    """Formats records as ``[2025-01-01T12:00:00.000Z] [LEVEL] message``."""

    def formatTime(self, record, datefmt=None):
        stamp = datetime.fromtimestamp(record.created, tz=timezone.utc)
        return stamp.isoformat(timespec="milliseconds").replace("+00:00", "Z")


class QuietRotatingFileHandler(RotatingFileHandler):
    """
    Rotating file handler that drops records it cannot write.

    The log file may be locked by another process (the tray supervisor
    tails it on Windows); losing a line is preferable to noise on stderr.
    """

    def handleError(self, record):
        pass


def setup_logger(
    name: str = "leedz_bridge",
    log_file: Optional[str] = None,
    level: str = "INFO",
) -> logging.Logger:
    """
    Configure a logger that writes to a file and to stderr.

    NEVER stdout: stdout carries the JSON-RPC response stream.
    Only WARNING and above are duplicated to stderr so the parent host's
    console stays readable. Calling it again re-targets the same logger.
    """
    if not log_file:
        log_file = os.path.join(DEFAULT_LOG_DIR, "bridge.log")
    log_file = os.path.abspath(os.path.expanduser(log_file))

    logger = logging.getLogger(name)
    logger.setLevel(getattr(logging, str(level).upper(), logging.INFO))
    logger.propagate = False

    for handler in logger.handlers[:]:
        logger.removeHandler(handler)
        handler.close()

    formatter = IsoFormatter("[%(asctime)s] [%(levelname)s] %(message)s")

    try:
        os.makedirs(os.path.dirname(log_file), exist_ok=True)
        # Max 5MB, keep 3 backups
        file_handler = QuietRotatingFileHandler(
            log_file, maxBytes=5 * 1024 * 1024, backupCount=3, encoding="utf-8"
        )
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)
    except OSError as e:
        sys.stderr.write(f"[leedz] Could not open log file {log_file}: {e}\n")

    stream_handler = logging.StreamHandler(sys.stderr)
    stream_handler.setLevel(logging.WARNING)
    stream_handler.setFormatter(formatter)
    logger.addHandler(stream_handler)

    return logger


logger = setup_logger()
