"""rotolog configuration file (TOML) parsing and validation."""
from __future__ import annotations
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
import re
from typing import Union

from shared.formatting import DEFAULT_FORMAT

DEFAULT_QUEUE_SIZE = 32
DEFAULT_MAX_BACKUP = 5
DEFAULT_MAX_DAYS = 4
DEFAULT_PORT = 9430

_SIZE_RE = re.compile(r"^\s*(\d+)\s*([KMG]?)B?\s*$", re.IGNORECASE)
_MULTIPLIERS = {"": 1, "K": 1024, "M": 1024 ** 2, "G": 1024 ** 3}
_COUNT_MULTIPLIERS = {"": 1, "K": 1000, "M": 1000 ** 2, "G": 1000 ** 3}


def parse_size(value: Union[int, str], *, binary: bool = True) -> int:
    """Parse ``10M``-style values. ``binary`` picks 1024 over 1000 multiples."""
    if isinstance(value, bool):
        raise ValueError(f"Invalid size: {value!r}")
    if isinstance(value, int):
        return value
    m = _SIZE_RE.match(str(value))
    if not m:
        raise ValueError(f"Invalid size: {value!r}")
    table = _MULTIPLIERS if binary else _COUNT_MULTIPLIERS
    return int(m.group(1)) * table[m.group(2).upper()]


@dataclass
class WriterConfig:
    path: str = "logs/rotolog.log"
    format: str = DEFAULT_FORMAT
    header: str = ""
    trailer: str = ""
    rotate: bool = False
    rotate_on_start: bool = False
    daily: bool = False
    max_days: int = DEFAULT_MAX_DAYS
    max_size: int = 0  # bytes, 0 disables
    max_lines: int = 0  # 0 disables
    max_backup: int = DEFAULT_MAX_BACKUP
    sanitize: bool = False
    queue_size: int = DEFAULT_QUEUE_SIZE

    def validate(self) -> list[str]:
        errors = []
        if not self.path:
            errors.append("writer.path is required")
        if self.max_size < 0:
            errors.append("writer.max_size must be >= 0")
        if self.max_lines < 0:
            errors.append("writer.max_lines must be >= 0")
        if self.max_backup < 1:
            errors.append("writer.max_backup must be >= 1")
        if self.queue_size < 1:
            errors.append("writer.queue_size must be >= 1")
        return errors


@dataclass
class IngestConfig:
    host: str = "127.0.0.1"
    port: int = DEFAULT_PORT

    def validate(self) -> list[str]:
        errors = []
        if not (0 <= self.port <= 65535):
            errors.append(f"ingest.port out of range: {self.port}")
        return errors


@dataclass
class LoggingConfig:
    level: str = "INFO"
    log_dir: str = ""


@dataclass
class AppConfig:
    writer: WriterConfig = field(default_factory=WriterConfig)
    ingest: IngestConfig = field(default_factory=IngestConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    def validate(self) -> list[str]:
        errors = self.writer.validate() + self.ingest.validate()
        if self.logging.level.upper() not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            errors.append(f"Invalid logging.level: {self.logging.level}")
        return errors


def _parse_writer(raw: dict) -> WriterConfig:
    return WriterConfig(
        path=raw.get("path", "logs/rotolog.log"),
        format=raw.get("format", DEFAULT_FORMAT),
        header=raw.get("header", ""),
        trailer=raw.get("trailer", ""),
        rotate=raw.get("rotate", False),
        rotate_on_start=raw.get("rotate_on_start", False),
        daily=raw.get("daily", False),
        max_days=raw.get("max_days", DEFAULT_MAX_DAYS),
        max_size=parse_size(raw.get("max_size", 0)),
        max_lines=parse_size(raw.get("max_lines", 0), binary=False),
        max_backup=raw.get("max_backup", DEFAULT_MAX_BACKUP),
        sanitize=raw.get("sanitize", False),
        queue_size=raw.get("queue_size", DEFAULT_QUEUE_SIZE),
    )


def _parse_ingest(raw: dict) -> IngestConfig:
    return IngestConfig(
        host=raw.get("host", "127.0.0.1"),
        port=raw.get("port", DEFAULT_PORT),
    )


def load_config(path: Path) -> AppConfig:
    """Load a rotolog TOML config file. Raises ValueError if it does not validate."""
    with open(path, "rb") as f:
        data = tomllib.load(f)

    logging_raw = data.get("logging", {})
    config = AppConfig(
        writer=_parse_writer(data.get("writer", {})),
        ingest=_parse_ingest(data.get("ingest", {})),
        logging=LoggingConfig(
            level=logging_raw.get("level", "INFO"),
            log_dir=logging_raw.get("log_dir", ""),
        ),
    )
    errors = config.validate()
    if errors:
        raise ValueError(f"Invalid config {path}: " + "; ".join(errors))
    return config
