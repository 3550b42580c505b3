"""Tests for config file parsing and validation."""
import pytest
from pathlib import Path
from shared.config import AppConfig, WriterConfig, load_config, parse_size
from shared.formatting import DEFAULT_FORMAT


EXAMPLE_TOML = """\
[writer]
path = "logs/service.log"
format = "%L %M"
header = "BEGIN"
trailer = "END"
rotate = true
daily = true
max_days = 7
max_size = "10M"
max_lines = "2K"
max_backup = 3
sanitize = true
queue_size = 64

[ingest]
host = "0.0.0.0"
port = 9555

[logging]
level = "DEBUG"
log_dir = "diag"
"""


def _write(tmp_path: Path, text: str) -> Path:
    path = tmp_path / "rotolog.toml"
    path.write_text(text, encoding="utf-8")
    return path


def test_load_config_full(tmp_path):
    config = load_config(_write(tmp_path, EXAMPLE_TOML))
    w = config.writer
    assert w.path == "logs/service.log"
    assert w.format == "%L %M"
    assert (w.header, w.trailer) == ("BEGIN", "END")
    assert w.rotate is True
    assert w.daily is True
    assert w.max_days == 7
    assert w.max_size == 10 * 1024 * 1024
    assert w.max_lines == 2000
    assert w.max_backup == 3
    assert w.sanitize is True
    assert w.queue_size == 64
    assert config.ingest.host == "0.0.0.0"
    assert config.ingest.port == 9555
    assert config.logging.level == "DEBUG"
    assert config.logging.log_dir == "diag"


def test_load_config_defaults(tmp_path):
    config = load_config(_write(tmp_path, "[writer]\npath = \"x.log\"\n"))
    w = config.writer
    assert w.path == "x.log"
    assert w.format == DEFAULT_FORMAT
    assert w.max_backup == 5
    assert w.max_days == 4
    assert w.sanitize is False
    assert w.max_size == 0 and w.max_lines == 0
    assert config.ingest.port == 9430


def test_load_config_invalid(tmp_path):
    with pytest.raises(ValueError, match="max_backup"):
        load_config(_write(tmp_path, "[writer]\nmax_backup = 0\n"))


def test_parse_size():
    assert parse_size(512) == 512
    assert parse_size("1K") == 1024
    assert parse_size("3mb") == 3 * 1024 * 1024
    assert parse_size("1G") == 1024 ** 3
    assert parse_size("5K", binary=False) == 5000
    with pytest.raises(ValueError):
        parse_size("lots")
    with pytest.raises(ValueError):
        parse_size(True)


def test_writer_config_validation():
    assert WriterConfig().validate() == []
    errors = WriterConfig(max_size=-1, max_lines=-5, queue_size=0).validate()
    assert len(errors) == 3


def test_app_config_invalid_level():
    config = AppConfig()
    config.logging.level = "chatty"
    assert any("logging.level" in e for e in config.validate())
