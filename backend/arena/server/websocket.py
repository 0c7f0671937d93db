from __future__ import annotations

import contextlib
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any
from uuid import uuid4

import structlog
from starlette.websockets import WebSocket, WebSocketDisconnect

from arena.messaging.encoder import DecodeError, decode
from arena.messaging.protocol import ConnectionProtocol
from arena.messaging.types import ErrorCode
from arena.server.rate_limit import TokenBucket

logger = structlog.get_logger()

if TYPE_CHECKING:
    from arena.messaging.router import MessageRouter

# Paddle input arrives at most once per client frame (~60/s); leave headroom for bursts.
RATE_LIMIT_RATE = 120.0
RATE_LIMIT_BURST = 200

# Consecutive undecodable frames tolerated before the socket is closed.
MAX_DECODE_ERRORS = 5
DECODE_ERRORS_CLOSE_CODE = 4004


class WebSocketConnection(ConnectionProtocol):
    """Starlette WebSocket adapted to the connection protocol."""

    def __init__(self, websocket: WebSocket, connection_id: str | None = None) -> None:
        self._websocket = websocket
        self._connection_id = connection_id or uuid4().hex

    @property
    def connection_id(self) -> str:
        return self._connection_id

    async def send_bytes(self, data: bytes) -> None:
        try:
            await self._websocket.send_bytes(data)
        except WebSocketDisconnect:
            raise ConnectionError("peer disconnected") from None

    async def receive_bytes(self) -> bytes:
        try:
            return await self._websocket.receive_bytes()
        except WebSocketDisconnect:
            raise ConnectionError("peer disconnected") from None

    async def close(self, code: int = 1000, reason: str = "") -> None:
        # The peer may already be gone, or the close frame may already be sent.
        with contextlib.suppress(WebSocketDisconnect, RuntimeError):
            await self._websocket.close(code=code, reason=reason)


@dataclass
class InboundGuard:
    """Per-connection admission checks run on every inbound frame."""

    bucket: TokenBucket
    max_decode_errors: int
    decode_errors: int = 0

    def decode(self, raw: bytes) -> dict[str, Any]:
        """Decode a frame, counting consecutive failures. Re-raises DecodeError."""
        try:
            data = decode(raw)
        except DecodeError:
            self.decode_errors += 1
            raise
        self.decode_errors = 0
        return data

    @property
    def exhausted(self) -> bool:
        return self.decode_errors >= self.max_decode_errors


async def websocket_endpoint(websocket: WebSocket, router: MessageRouter) -> None:
    await websocket.accept()

    connection = WebSocketConnection(websocket)
    structlog.contextvars.bind_contextvars(connection_id=connection.connection_id)
    logger.info("websocket connected")
    await router.handle_connect(connection)

    guard = InboundGuard(
        bucket=TokenBucket(rate=RATE_LIMIT_RATE, burst=RATE_LIMIT_BURST),
        max_decode_errors=MAX_DECODE_ERRORS,
    )
    try:
        while True:
            raw = await connection.receive_bytes()
            try:
                data = guard.decode(raw)
            except DecodeError as e:
                logger.warning("undecodable frame", error=str(e), strikes=guard.decode_errors)
                router.send_error(connection, ErrorCode.INVALID_MESSAGE, str(e))
                if guard.exhausted:
                    logger.info("closing after repeated decode errors")
                    await connection.close(code=DECODE_ERRORS_CLOSE_CODE, reason="too_many_decode_errors")
                    return
                continue

            if not guard.bucket.consume():
                router.send_error(connection, ErrorCode.RATE_LIMITED, "Too many messages")
                continue
            await router.handle_message(connection, data)
    except (WebSocketDisconnect, RuntimeError, ConnectionError):  # fmt: skip
        pass
    finally:
        logger.info("websocket disconnected")
        await router.handle_disconnect(connection)
        structlog.contextvars.clear_contextvars()
