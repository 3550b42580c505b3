"""rotolog rotation decision."""
from __future__ import annotations
from datetime import date, datetime
from typing import Optional


def should_rotate(
    cur_lines: int,
    cur_size: int,
    day_opened: Optional[date],
    now: datetime,
    max_lines: int = 0,
    max_size: int = 0,
    daily: bool = False,
) -> bool:
    """
    True when the current file must be rotated before the next write.
    A zero ``max_lines`` or ``max_size`` disables that threshold.
    """
    if max_lines > 0 and cur_lines >= max_lines:
        return True
    if max_size > 0 and cur_size >= max_size:
        return True
    if daily and day_opened is not None and now.date() != day_opened:
        return True
    return False
