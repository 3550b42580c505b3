"""rotolog file writer errors."""
from __future__ import annotations


class FileLogError(Exception):
    """Base class for file writer failures."""


class StartupScanError(FileLogError):
    """The pre-existing log file could not be opened, stat'ed or scanned."""


class RotationIOError(FileLogError):
    """Rename, open or write failure while rotating."""


class WriteIOError(FileLogError):
    """Formatting or appending a record failed."""


class CleanupError(FileLogError):
    """Deleting an expired daily archive failed."""


class ConfigFrozenError(FileLogError):
    """A setter was called after the writer started accepting records."""


class WriterClosedError(FileLogError):
    """A record was submitted after close()."""
