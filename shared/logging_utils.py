"""rotolog logging utilities."""
from __future__ import annotations
import logging
import logging.handlers
from pathlib import Path
from typing import Optional


def setup_rotating_logger(name: str, log_dir: Optional[Path] = None,
                          level: int = logging.DEBUG) -> logging.Logger:
    """Set up the diagnostic logger: console output plus an optional rotating file."""
    logger = logging.getLogger(name)
    logger.setLevel(level)

    if not logger.handlers:
        fmt = logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s")

        if log_dir is not None:
            log_dir.mkdir(parents=True, exist_ok=True)
            # Rotating file handler: 5MB x 5 files
            fh = logging.handlers.RotatingFileHandler(
                log_dir / f"{name}.log", maxBytes=5 * 1024 * 1024, backupCount=5, encoding="utf-8"
            )
            fh.setLevel(level)
            fh.setFormatter(fmt)
            logger.addHandler(fh)

        # Console handler
        ch = logging.StreamHandler()
        ch.setLevel(level)
        ch.setFormatter(fmt)
        logger.addHandler(ch)

    return logger
