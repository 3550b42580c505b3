"""rotolog websocket ingest server."""
from __future__ import annotations
import asyncio
import logging
import time
import uuid
from typing import Optional

import websockets
from websockets.asyncio.server import Server, ServerConnection, serve

from filelog.errors import WriterClosedError
from filelog.writer import FileLogWriter
from shared.config import DEFAULT_PORT
from shared.protocol import (
    make_envelope, parse_envelope, record_from_payload,
    MSG_HELLO, MSG_LOG, MSG_ROTATE, MSG_STATUS_REQUEST,
    MSG_HELLO_ACK, MSG_STATUS, MSG_ERROR,
)

logger = logging.getLogger("rotolog.ingest.server")


class ProducerSession:
    """Represents a connected log producer."""

    def __init__(self, ws: ServerConnection, client_id: str, hostname: str):
        self.ws = ws
        self.client_id = client_id
        self.hostname = hostname
        self.records_received: int = 0
        self.last_seen: float = time.time()

    async def send(self, msg_type: str, payload: dict) -> None:
        try:
            await self.ws.send(make_envelope(msg_type, payload))
        except websockets.exceptions.ConnectionClosed as e:
            logger.warning("Failed to send to %s: %s", self.client_id, e)


class IngestServer:
    """
    Accepts LOG envelopes over websockets and feeds them to a single
    FileLogWriter. Producers must say HELLO first.
    """

    def __init__(self, writer: FileLogWriter, host: str = "127.0.0.1", port: int = DEFAULT_PORT):
        self.writer = writer
        self.host = host
        self.port = port
        self.server_id = str(uuid.uuid4())
        self._sessions: dict[str, ProducerSession] = {}
        self._ws_server: Optional[Server] = None

    @property
    def sessions(self) -> dict[str, ProducerSession]:
        return self._sessions

    @property
    def bound_port(self) -> int:
        """Actual listening port (useful when started with port 0)."""
        if self._ws_server is None:
            return self.port
        return self._ws_server.sockets[0].getsockname()[1]

    def status(self) -> dict:
        """Writer status plus one entry per connected producer."""
        status = self.writer.status()
        status["producers"] = [
            {
                "client_id": s.client_id,
                "hostname": s.hostname,
                "records_received": s.records_received,
                "last_seen": s.last_seen,
            }
            for s in self._sessions.values()
        ]
        return status

    async def start(self) -> None:
        self._ws_server = await serve(self._handle_client, self.host, self.port)
        logger.info("Ingest server listening on %s:%d", self.host, self.bound_port)

    async def stop(self) -> None:
        if self._ws_server:
            self._ws_server.close()
            await self._ws_server.wait_closed()
            self._ws_server = None

    async def _handle_client(self, ws: ServerConnection) -> None:
        session: Optional[ProducerSession] = None
        try:
            async for raw in ws:
                try:
                    msg_type, _ts, payload = parse_envelope(raw)
                except (ValueError, KeyError, TypeError) as e:
                    await ws.send(make_envelope(MSG_ERROR, {"reason": f"Malformed envelope: {e}"}))
                    continue

                if msg_type == MSG_HELLO:
                    session = await self._on_hello(ws, payload)
                elif session is None:
                    await ws.send(make_envelope(MSG_ERROR, {"reason": "HELLO required"}))
                elif msg_type == MSG_LOG:
                    await self._on_log(session, payload)
                elif msg_type == MSG_ROTATE:
                    session.last_seen = time.time()
                    await self.writer.rotate()
                elif msg_type == MSG_STATUS_REQUEST:
                    session.last_seen = time.time()
                    await session.send(MSG_STATUS, self.status())
                else:
                    await session.send(MSG_ERROR, {"reason": f"Unknown message type: {msg_type}"})
        except websockets.exceptions.ConnectionClosed:
            pass
        finally:
            if session and self._sessions.get(session.client_id) is session:
                del self._sessions[session.client_id]
                logger.info("Producer disconnected: %s (%d records)",
                            session.client_id, session.records_received)

    async def _on_hello(self, ws: ServerConnection, payload: dict) -> ProducerSession:
        client_id = payload.get("client_id") or str(uuid.uuid4())
        hostname = payload.get("hostname", "unknown")
        session = ProducerSession(ws, client_id, hostname)
        self._sessions[client_id] = session
        await session.send(MSG_HELLO_ACK, {
            "server_id": self.server_id,
            "client_id": client_id,
            "path": str(self.writer.path),
        })
        logger.info("Producer connected: %s (%s)", client_id, hostname)
        return session

    async def _on_log(self, session: ProducerSession, payload: dict) -> None:
        session.last_seen = time.time()
        try:
            record = record_from_payload(payload)
        except (ValueError, TypeError) as e:
            await session.send(MSG_ERROR, {"reason": str(e)})
            return
        try:
            await self.writer.log_write(record)
        except WriterClosedError as e:
            await session.send(MSG_ERROR, {"reason": str(e)})
            return
        session.records_received += 1


async def serve_forever(writer: FileLogWriter, host: str, port: int,
                        stop: asyncio.Event) -> None:
    """Run an IngestServer until ``stop`` is set, then shut down server and writer."""
    server = IngestServer(writer, host, port)
    await writer.start()
    await server.start()
    try:
        await stop.wait()
    finally:
        await server.stop()
        await writer.close()
