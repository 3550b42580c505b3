"""rotolog asynchronous rotating file writer."""
from __future__ import annotations
import asyncio
import logging
import os
from dataclasses import replace
from datetime import date, datetime
from pathlib import Path
from typing import Any, Callable, Optional

from filelog.backup import BackupManager
from filelog.errors import (
    ConfigFrozenError, FileLogError, RotationIOError, WriteIOError, WriterClosedError,
)
from filelog.inspector import FileInspection, inspect_file
from filelog.policy import should_rotate
from filelog.state import Phase, WriterState
from shared.config import DEFAULT_QUEUE_SIZE, WriterConfig
from shared.formatting import (
    XML_FORMAT, XML_HEADER, XML_TRAILER, format_log_record, sanitize_newlines,
)
from shared.record import LogRecord

logger = logging.getLogger("rotolog.filelog.writer")

_CLOSE = object()  # end-of-stream marker on the record queue


def _local_now() -> datetime:
    return datetime.now().astimezone()


class FileLogWriter:
    """
    Appends formatted log records to a file, rotating it when a line count,
    byte size or calendar-day threshold is crossed.

    One asyncio task owns the open file and every counter. Producers reach it
    only through the bounded record queue (``log_write``) and the rotation
    queue (``rotate``). Configuration setters are chainable and only honored
    before ``start()`` or the first accepted record.
    """

    def __init__(self, path: os.PathLike | str, rotate: bool = False, daily: bool = False,
                 max_size: int = 0, max_lines: int = 0, *,
                 queue_size: int = DEFAULT_QUEUE_SIZE,
                 clock: Optional[Callable[[], datetime]] = None):
        self._config = WriterConfig(
            path=str(path), rotate=rotate, daily=daily,
            max_size=max_size, max_lines=max_lines, queue_size=queue_size,
        )
        self._clock = clock or _local_now
        self._state = WriterState(path=Path(path))
        self._records: asyncio.Queue = asyncio.Queue(maxsize=queue_size)
        self._rotations: asyncio.Queue = asyncio.Queue(maxsize=1)
        self._backup: Optional[BackupManager] = None
        self._task: Optional[asyncio.Task] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._phase = Phase.IDLE
        self._frozen = False
        self._closed = False
        self._archive_once = False
        self.failure: Optional[BaseException] = None

        self.inspection: FileInspection = inspect_file(self._state.path)
        self._state.cur_lines = self.inspection.lines
        self._state.cur_size = self.inspection.size
        self._state.day_opened = self.inspection.day_modified

    @classmethod
    def from_config(cls, config: WriterConfig,
                    clock: Optional[Callable[[], datetime]] = None) -> FileLogWriter:
        errors = config.validate()
        if errors:
            raise ValueError("Invalid writer config: " + "; ".join(errors))
        writer = cls(config.path, queue_size=config.queue_size, clock=clock)
        writer._config = replace(config)
        return writer

    # ---- Configuration (chainable, before start) ----

    def _check_mutable(self) -> None:
        if self._frozen:
            raise ConfigFrozenError(f"{self.path}: configuration is frozen once the writer is active")

    def set_format(self, fmt: str) -> FileLogWriter:
        self._check_mutable()
        self._config.format = fmt
        return self

    def set_head_foot(self, header: str, trailer: str) -> FileLogWriter:
        """Header is written to every freshly opened file, trailer before every close."""
        self._check_mutable()
        self._config.header = header
        self._config.trailer = trailer
        return self

    def set_rotate_lines(self, max_lines: int) -> FileLogWriter:
        self._check_mutable()
        self._config.max_lines = max_lines
        return self

    def set_rotate_size(self, max_size: int) -> FileLogWriter:
        self._check_mutable()
        self._config.max_size = max_size
        return self

    def set_rotate_daily(self, daily: bool) -> FileLogWriter:
        self._check_mutable()
        self._config.daily = daily
        return self

    def set_max_days(self, max_days: int) -> FileLogWriter:
        self._check_mutable()
        self._config.max_days = max_days
        return self

    def set_rotate_max_backup(self, max_backup: int) -> FileLogWriter:
        self._check_mutable()
        self._config.max_backup = max_backup
        return self

    def set_rotate(self, rotate: bool) -> FileLogWriter:
        """Keep rotated files as archives instead of reopening the same file."""
        self._check_mutable()
        self._config.rotate = rotate
        return self

    def set_rotate_on_start(self, rotate_on_start: bool) -> FileLogWriter:
        self._check_mutable()
        self._config.rotate_on_start = rotate_on_start
        return self

    def set_sanitize(self, sanitize: bool) -> FileLogWriter:
        """Escape newlines inside messages to prevent forged multi-line entries."""
        self._check_mutable()
        self._config.sanitize = sanitize
        return self

    # ---- Read-only view ----

    @property
    def path(self) -> Path:
        return self._state.path

    @property
    def config(self) -> WriterConfig:
        return replace(self._config)

    @property
    def phase(self) -> Phase:
        return self._phase

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def lines_written(self) -> int:
        return self._state.cur_lines

    @property
    def bytes_written(self) -> int:
        return self._state.cur_size

    @property
    def day_opened(self) -> Optional[date]:
        return self._state.day_opened

    def status(self) -> dict[str, Any]:
        return {
            "path": str(self.path),
            "phase": self._phase.value,
            "running": self.running,
            "lines": self._state.cur_lines,
            "bytes": self._state.cur_size,
            "day_opened": self._state.day_opened.isoformat() if self._state.day_opened else None,
            "queued": self._records.qsize(),
            "failure": str(self.failure) if self.failure else None,
        }

    # ---- Runtime operations ----

    async def start(self) -> FileLogWriter:
        """Open (or rotate) the logfile and spawn the write loop."""
        if self._task is not None:
            return self
        if self._closed:
            raise WriterClosedError(f"{self.path}: writer is closed")
        self._frozen = True
        self._loop = asyncio.get_running_loop()
        cfg = self._config
        self._backup = BackupManager(self.path, cfg.max_backup, cfg.max_days, cfg.daily)
        self._archive_once = cfg.rotate_on_start
        self._open_initial(self._clock())
        self._phase = Phase.RUNNING
        self._task = asyncio.create_task(self._run(), name=f"filelog:{self.path.name}")
        logger.info("Writing %s (lines=%d bytes=%d)", self.path,
                    self._state.cur_lines, self._state.cur_size)
        return self

    async def log_write(self, record: LogRecord) -> None:
        """Queue a record. Blocks while the queue is full; never waits for the disk."""
        if self._closed:
            raise WriterClosedError(f"{self.path}: writer is closed")
        self._frozen = True
        await self._records.put(record)

    def submit(self, record: LogRecord) -> None:
        """Thread-safe blocking variant of log_write. Must not be called from the loop thread."""
        if self._loop is None:
            raise RuntimeError("FileLogWriter.start() has not been called")
        asyncio.run_coroutine_threadsafe(self.log_write(record), self._loop).result()

    async def rotate(self) -> None:
        """Force a rotation now, ignoring thresholds. Returns once it has run."""
        if not self.running:
            logger.warning("FileLogWriter(%r): rotate requested but writer is not running",
                           str(self.path))
            return
        done = asyncio.get_running_loop().create_future()
        await self._await_or_loop_exit(self._rotations.put(done))
        await self._await_or_loop_exit(done)

    async def close(self) -> None:
        """Drain queued records, write the trailer and close the file."""
        if self._closed:
            if self._task is not None:
                await asyncio.wait({self._task})
            return
        self._closed = True
        if self._task is None:
            if not self._records.empty():
                logger.warning("FileLogWriter(%r): closed before start; %d records dropped",
                               str(self.path), self._records.qsize())
            self._phase = Phase.STOPPED
            return
        if not self._task.done():
            self._phase = Phase.DRAINING
            await self._await_or_loop_exit(self._records.put(_CLOSE))
        await asyncio.wait({self._task})

    async def _await_or_loop_exit(self, aw) -> None:
        fut = asyncio.ensure_future(aw)
        await asyncio.wait({fut, self._task}, return_when=asyncio.FIRST_COMPLETED)
        if not fut.done():
            fut.cancel()

    # ---- Write loop (owns self._state) ----

    async def _run(self) -> None:
        get_record = asyncio.ensure_future(self._records.get())
        get_rotate = asyncio.ensure_future(self._rotations.get())
        try:
            while True:
                done, _ = await asyncio.wait({get_record, get_rotate},
                                             return_when=asyncio.FIRST_COMPLETED)
                # A record already dequeued goes out before a rotation that became ready alongside it.
                if get_record in done:
                    record = get_record.result()
                    if record is _CLOSE:
                        break
                    self._write(record)
                    get_record = asyncio.ensure_future(self._records.get())
                if get_rotate in done:
                    waiter = get_rotate.result()
                    try:
                        self._rotate(self._clock())
                    finally:
                        if not waiter.done():
                            waiter.set_result(None)
                    get_rotate = asyncio.ensure_future(self._rotations.get())
        except FileLogError as e:
            self.failure = e
            logger.error("FileLogWriter(%r): %s", str(self.path), e)
        except Exception as e:
            self.failure = e
            logger.exception("FileLogWriter(%r): unexpected fault in write loop", str(self.path))
        finally:
            get_record.cancel()
            get_rotate.cancel()
            try:
                self._close_file(self._clock())
            except OSError as e:
                logger.error("FileLogWriter(%r): error closing logfile: %s", str(self.path), e)
            self._phase = Phase.STOPPED
            logger.info("Stopped writing %s", self.path)

    def _open_initial(self, now: datetime) -> None:
        st, cfg = self._state, self._config
        exceeded = should_rotate(st.cur_lines, st.cur_size, st.day_opened, now,
                                 cfg.max_lines, cfg.max_size, cfg.daily)
        if self.inspection.exists and (exceeded or self._archive_once):
            logger.info("Rotating existing logfile %s on start", self.path)
            self._rotate(now)
            return
        try:
            self._open_file()
            if st.day_opened is None:
                st.day_opened = now.date()
            # An unreadable file reports zero lines but may not be empty.
            if st.cur_lines == 0 and (self.inspection.readable or not self.inspection.exists):
                self._write_template(cfg.header, now)
        except OSError as e:
            raise WriteIOError(f"{self.path}: {e}") from e

    def _write(self, record: LogRecord) -> None:
        st, cfg = self._state, self._config
        now = self._clock()
        if should_rotate(st.cur_lines, st.cur_size, st.day_opened, now,
                         cfg.max_lines, cfg.max_size, cfg.daily):
            self._rotate(now)

        if cfg.sanitize:
            record = replace(record, message=sanitize_newlines(record.message))

        try:
            data = format_log_record(cfg.format, record).encode("utf-8")
            st.file.write(data)
            st.file.flush()
        except (OSError, ValueError, TypeError, AttributeError) as e:
            raise WriteIOError(f"{self.path}: {e}") from e
        st.count_write(len(data))

    def _rotate(self, now: datetime) -> None:
        archive = self._config.rotate or self._archive_once
        # Sampled before the trailer write bumps the mtime.
        modified = self._backup.modified_day() if archive else None
        try:
            self._close_file(now)
        except OSError as e:
            raise RotationIOError(f"Rotate: {e}") from e

        if archive:
            self._archive_once = False
            self._backup.archive(now, modified)

        try:
            self._open_file()
            self._write_template(self._config.header, now)
        except OSError as e:
            raise RotationIOError(f"Rotate: {e}") from e
        self._state.reset_counters(now.date())

    def _open_file(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        flags = os.O_WRONLY | os.O_APPEND | os.O_CREAT | getattr(os, "O_BINARY", 0)
        fd = os.open(self.path, flags, 0o660)
        self._state.file = os.fdopen(fd, "ab")

    def _write_template(self, template: str, now: datetime) -> None:
        if not template:
            return
        self._state.file.write(format_log_record(template, LogRecord(created=now)).encode("utf-8"))
        self._state.file.flush()

    def _close_file(self, now: datetime) -> None:
        fh = self._state.file
        if fh is None:
            return
        self._state.file = None
        try:
            if self._config.trailer:
                fh.write(format_log_record(self._config.trailer, LogRecord(created=now)).encode("utf-8"))
                fh.flush()
        finally:
            fh.close()


def new_xml_log_writer(path: os.PathLike | str, rotate: bool = False, daily: bool = False,
                       max_size: int = 0, max_lines: int = 0, **kwargs) -> FileLogWriter:
    """A FileLogWriter that emits XML ``<record>`` elements inside a ``<log>`` element."""
    return (FileLogWriter(path, rotate, daily, max_size, max_lines, **kwargs)
            .set_format(XML_FORMAT)
            .set_head_foot(XML_HEADER, XML_TRAILER))
