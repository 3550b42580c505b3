"""rotolog write loop state."""
from __future__ import annotations
import enum
from dataclasses import dataclass
from datetime import date
from pathlib import Path
from typing import BinaryIO, Optional


class Phase(str, enum.Enum):
    IDLE = "idle"
    RUNNING = "running"
    DRAINING = "draining"
    STOPPED = "stopped"


@dataclass
class WriterState:
    """Mutable state owned by the write loop. Never touched from another task."""
    path: Path
    file: Optional[BinaryIO] = None
    cur_lines: int = 0
    cur_size: int = 0
    day_opened: Optional[date] = None

    def reset_counters(self, today: date) -> None:
        self.cur_lines = 0
        self.cur_size = 0
        self.day_opened = today

    def count_write(self, nbytes: int) -> None:
        self.cur_lines += 1
        self.cur_size += nbytes
