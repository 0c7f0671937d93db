from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from arena.logic.enums import LeaveReason
from arena.messaging.types import (
    CreateRoomMessage,
    ErrorCode,
    JoinRoomMessage,
    LeaveGameMessage,
    PaddleMoveMessage,
    PlayerReadyMessage,
    parse_client_message,
)

if TYPE_CHECKING:
    from arena.messaging.protocol import ConnectionProtocol
    from arena.session.manager import SessionManager

logger = logging.getLogger(__name__)


class MessageRouter:
    """
    Routes incoming messages to appropriate handlers.

    This class contains pure business logic and can be tested
    without real WebSocket connections.
    """

    def __init__(self, session_manager: SessionManager) -> None:
        self._session_manager = session_manager

    async def handle_connect(self, connection: ConnectionProtocol) -> None:
        self._session_manager.register_connection(connection)

    async def handle_disconnect(self, connection: ConnectionProtocol) -> None:
        await self._session_manager.leave(connection, reason=LeaveReason.DISCONNECT)
        self._session_manager.unregister_connection(connection)

    def send_error(self, connection: ConnectionProtocol, code: ErrorCode, message: str) -> None:
        self._session_manager.send_error(connection, code, message)

    async def handle_message(
        self,
        connection: ConnectionProtocol,
        raw_message: dict[str, Any],
    ) -> None:
        try:
            message = parse_client_message(raw_message)
        except (ValidationError, KeyError, TypeError, ValueError) as e:
            logger.warning("invalid message from %s: %s", connection.connection_id, e)
            self._session_manager.send_error(connection, ErrorCode.INVALID_MESSAGE, str(e))
            return

        if isinstance(message, PaddleMoveMessage):
            await self._session_manager.move_paddle(connection, message.y)
        elif isinstance(message, CreateRoomMessage):
            await self._session_manager.create_room(
                connection,
                nickname=message.nickname,
                bot=message.bot,
                bot_difficulty=message.bot_difficulty,
            )
        elif isinstance(message, JoinRoomMessage):
            await self._session_manager.join_room(connection, message.room_id, message.nickname)
        elif isinstance(message, PlayerReadyMessage):
            await self._session_manager.set_ready(connection)
        elif isinstance(message, LeaveGameMessage):
            await self._session_manager.leave(connection, reason=LeaveReason.LEFT)
