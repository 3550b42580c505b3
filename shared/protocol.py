"""rotolog ingest protocol definitions."""
from __future__ import annotations
import json
import time
from datetime import datetime, timezone
from typing import Any

from shared.record import Level, LogRecord


def _now_ms() -> int:
    return int(time.time() * 1000)


def make_envelope(msg_type: str, payload: dict[str, Any]) -> str:
    return json.dumps({"type": msg_type, "ts_utc_ms": _now_ms(), "payload": payload})


def parse_envelope(raw: str) -> tuple[str, int, dict[str, Any]]:
    data = json.loads(raw)
    payload = data.get("payload", {})
    if not isinstance(payload, dict):
        raise ValueError("payload must be an object")
    return data["type"], data.get("ts_utc_ms", 0), payload


def record_from_payload(payload: dict[str, Any]) -> LogRecord:
    """Build a LogRecord from a LOG payload. Raises ValueError on bad fields."""
    if "message" not in payload:
        raise ValueError("LOG payload missing 'message'")
    created_ms = payload.get("created_utc_ms")
    if created_ms is None:
        created = datetime.now().astimezone()
    else:
        created = datetime.fromtimestamp(created_ms / 1000.0, tz=timezone.utc).astimezone()
    return LogRecord(
        level=Level.parse(payload.get("level", "INFO")),
        source=str(payload.get("source", "")),
        message=str(payload["message"]),
        created=created,
    )


# ---- Producer → Server message types ----
MSG_HELLO = "HELLO"
MSG_LOG = "LOG"
MSG_ROTATE = "ROTATE"
MSG_STATUS_REQUEST = "STATUS_REQUEST"

# ---- Server → Producer message types ----
MSG_HELLO_ACK = "HELLO_ACK"
MSG_STATUS = "STATUS"
MSG_ERROR = "ERROR"
