"""rotolog log record definitions."""
from __future__ import annotations
import enum
from dataclasses import dataclass, field
from datetime import datetime
from typing import Union


def _local_now() -> datetime:
    return datetime.now().astimezone()


class Level(enum.IntEnum):
    FINEST = 0
    FINE = 1
    DEBUG = 2
    TRACE = 3
    INFO = 4
    WARNING = 5
    ERROR = 6
    CRITICAL = 7

    @property
    def short(self) -> str:
        return _SHORT_NAMES[self]

    @classmethod
    def parse(cls, value: Union[int, str, "Level"]) -> "Level":
        """Accept a Level, an int, a full level name or a four-letter short code."""
        if isinstance(value, Level):
            return value
        if isinstance(value, int) and not isinstance(value, bool):
            return cls(value)
        if isinstance(value, str):
            key = value.strip().upper()
            if key in cls.__members__:
                return cls[key]
            for level, short in _SHORT_NAMES.items():
                if short == key:
                    return level
        raise ValueError(f"Unknown log level: {value!r}")


_SHORT_NAMES = {
    Level.FINEST: "FNST",
    Level.FINE: "FINE",
    Level.DEBUG: "DEBG",
    Level.TRACE: "TRAC",
    Level.INFO: "INFO",
    Level.WARNING: "WARN",
    Level.ERROR: "EROR",
    Level.CRITICAL: "CRIT",
}


@dataclass(frozen=True)
class LogRecord:
    level: Level = Level.INFO
    source: str = ""
    message: str = ""
    created: datetime = field(default_factory=_local_now)
