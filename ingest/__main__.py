"""rotolog ingest entry point: ``python -m ingest [config.toml]``."""
from __future__ import annotations
import asyncio
import logging
import signal
import sys
from pathlib import Path

from filelog.writer import FileLogWriter
from ingest.server import serve_forever
from shared.config import AppConfig, load_config
from shared.logging_utils import setup_rotating_logger

DEFAULT_CONFIG = Path("rotolog.toml")


async def _run(config: AppConfig) -> None:
    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop.set)
        except NotImplementedError:
            # Windows: KeyboardInterrupt still ends asyncio.run
            pass
    writer = FileLogWriter.from_config(config.writer)
    await serve_forever(writer, config.ingest.host, config.ingest.port, stop)


def main() -> None:
    config_path = Path(sys.argv[1]) if len(sys.argv) > 1 else DEFAULT_CONFIG
    config = load_config(config_path) if config_path.exists() else AppConfig()

    log_dir = Path(config.logging.log_dir) if config.logging.log_dir else None
    setup_rotating_logger("rotolog", log_dir, getattr(logging, config.logging.level.upper()))
    logger = logging.getLogger("rotolog")
    logger.info("rotolog ingest starting (config: %s)", config_path)

    try:
        asyncio.run(_run(config))
    except KeyboardInterrupt:
        pass
    logger.info("rotolog ingest stopped")


if __name__ == "__main__":
    main()
