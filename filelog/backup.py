"""rotolog backup naming and retention."""
from __future__ import annotations
import logging
import os
from datetime import date, datetime
from pathlib import Path
from typing import Optional

from filelog.errors import CleanupError, RotationIOError
from shared.config import DEFAULT_MAX_BACKUP, DEFAULT_MAX_DAYS

logger = logging.getLogger("rotolog.filelog.backup")

SECONDS_PER_DAY = 24 * 60 * 60


class BackupManager:
    """
    Moves a closed logfile out of the way during rotation.

    Daily mode renames the file to ``<path>.YYYY-MM-DD`` (the file's own
    modification date) once the day has changed, then sweeps expired daily
    archives. Otherwise numbered backups ``<path>.1`` (newest) up to
    ``<path>.<max_backup - 1>`` are shifted and the file becomes ``<path>.1``.
    """

    def __init__(self, path: Path, max_backup: int = DEFAULT_MAX_BACKUP,
                 max_days: int = DEFAULT_MAX_DAYS, daily: bool = False):
        self.path = Path(path)
        self.max_backup = max_backup
        self.max_days = max_days
        self.daily = daily

    @property
    def retained_backups(self) -> int:
        return max(self.max_backup - 1, 1)

    def numbered(self, n: int) -> Path:
        return self.path.with_name(f"{self.path.name}.{n}")

    def dated(self, day: date) -> Path:
        return self.path.with_name(f"{self.path.name}.{day:%Y-%m-%d}")

    def modified_day(self) -> Optional[date]:
        """Local date of the logfile's last modification, or None if it does not exist."""
        try:
            info = self.path.stat()
        except FileNotFoundError:
            return None
        except OSError as e:
            raise RotationIOError(f"Rotate: {e}") from e
        return datetime.fromtimestamp(info.st_mtime).date()

    def archive(self, now: datetime, modified: Optional[date] = None) -> Optional[Path]:
        """
        Archive the logfile if it exists. Returns the new path, or None if it
        was left in place.

        ``modified`` overrides the on-disk modification date in daily mode.
        The writer passes the date sampled before its trailer touched the file.
        """
        on_disk = self.modified_day()
        if on_disk is None:
            return None
        if self.daily:
            day = modified or on_disk
            if day == now.date():
                # Same calendar day: keep appending to the current file.
                return None
            return self._archive_daily(day, now)
        return self._archive_numbered()

    def _archive_daily(self, day: date, now: datetime) -> Path:
        target = self.dated(day)
        try:
            os.replace(self.path, target)
        except OSError as e:
            raise RotationIOError(f"Rotate: {e}") from e
        logger.info("Archived %s -> %s", self.path, target.name)
        self.prune_old_daily_logs(now)
        return target

    def _archive_numbered(self) -> Path:
        keep = self.retained_backups
        try:
            oldest = self.numbered(keep)
            if oldest.exists():
                oldest.unlink()
            for n in range(keep - 1, 0, -1):
                src = self.numbered(n)
                if src.exists():
                    os.replace(src, self.numbered(n + 1))
            target = self.numbered(1)
            os.replace(self.path, target)
        except OSError as e:
            raise RotationIOError(f"Rotate: {e}") from e
        logger.info("Archived %s -> %s", self.path, target.name)
        return target

    def is_older_than_max_days(self, mtime: float, now: datetime) -> bool:
        max_days = self.max_days if self.max_days > 0 else DEFAULT_MAX_DAYS
        return now.timestamp() - mtime > max_days * SECONDS_PER_DAY

    def prune_old_daily_logs(self, now: datetime) -> list[Path]:
        """
        Delete regular files in the log directory whose name starts with the
        logfile's name and whose age exceeds ``max_days``. Stops at the first
        failure, leaving the rest for a later sweep.
        """
        log_dir = self.path.parent
        prefix = self.path.name
        try:
            entries = sorted(os.scandir(log_dir), key=lambda e: e.name)
        except OSError as e:
            raise CleanupError(f"RemoveOldDailyLogs: {e}") from e

        removed = []
        for entry in entries:
            if not entry.name.startswith(prefix):
                continue
            try:
                if not entry.is_file(follow_symlinks=False):
                    continue
                mtime = entry.stat(follow_symlinks=False).st_mtime
                if not self.is_older_than_max_days(mtime, now):
                    continue
                os.remove(entry.path)
            except OSError as e:
                raise CleanupError(f"RemoveOldDailyLogs: {e}") from e
            logger.info("Removed expired logfile: %s", entry.name)
            removed.append(Path(entry.path))
        return removed
