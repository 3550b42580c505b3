"""rotolog startup inspection of a pre-existing log file."""
from __future__ import annotations
import logging
import os
from dataclasses import dataclass
from datetime import date, datetime
from pathlib import Path
from typing import Optional

from filelog.errors import StartupScanError

logger = logging.getLogger("rotolog.filelog.inspector")


@dataclass
class FileInspection:
    exists: bool = False
    readable: bool = False
    size: int = 0
    lines: int = 0
    day_modified: Optional[date] = None
    error: Optional[StartupScanError] = None


def _mtime_day(path: Path) -> date:
    return datetime.fromtimestamp(path.stat().st_mtime).date()


def inspect_file(path: Path) -> FileInspection:
    """
    Report whether a log file already exists at ``path`` and, if it can be
    read, its size in bytes, its line count and the day it was last modified.

    A file that exists but cannot be read is reported present with zeroed
    counts; the failure is kept on ``error`` rather than raised.
    """
    try:
        fd = open(path, "rb")
    except FileNotFoundError:
        return FileInspection()
    except OSError as e:
        err = StartupScanError(f"{path}: {e}")
        err.__cause__ = e
        logger.warning("Existing logfile unreadable: %s", err)
        try:
            day = _mtime_day(path)
        except OSError:
            day = None
        return FileInspection(exists=True, day_modified=day, error=err)

    with fd:
        try:
            info = os.fstat(fd.fileno())
            lines = sum(1 for _ in fd)
        except OSError as e:
            err = StartupScanError(f"{path}: {e}")
            err.__cause__ = e
            logger.warning("Failed to scan existing logfile: %s", err)
            return FileInspection(exists=True, error=err)

    result = FileInspection(
        exists=True,
        readable=True,
        size=info.st_size,
        lines=lines,
        day_modified=datetime.fromtimestamp(info.st_mtime).date(),
    )
    logger.debug("Existing logfile %s: size=%d lines=%d modified=%s",
                 path, result.size, result.lines, result.day_modified)
    return result
