"""Wire message models.

Every frame is a map whose `event` key names the message; the remaining keys are
the payload. Inbound frames are validated into a closed set of variants.
"""

from enum import StrEnum
from typing import Annotated, Any, Literal

from pydantic import AfterValidator, BaseModel, Field, TypeAdapter

from arena.logic.enums import BotDifficulty, LeaveReason, ScoreType, Side

# ASCII control character boundaries for input validation
_SPACE_ORD = 0x20
_DEL_ORD = 0x7F

NICKNAME_MAX_LENGTH = 30


class ClientMessageType(StrEnum):
    CREATE_ROOM = "create_room"
    JOIN_ROOM = "join_room"
    PLAYER_READY = "player_ready"
    PADDLE_MOVE = "paddle_move"
    LEAVE_GAME = "leave_game"


class ServerMessageType(StrEnum):
    ROOM_CREATED = "room_created"
    ROOM_JOINED = "room_joined"
    PLAYER_JOINED = "player_joined"
    COUNTDOWN = "countdown"
    GAME_START = "game_start"
    GAME_STATE = "game_state"
    SCORE_UPDATE = "score_update"
    GAME_OVER = "game_over"
    OPPONENT_DISCONNECTED = "opponent_disconnected"
    ERROR = "error"


class ErrorCode(StrEnum):
    ROOM_NOT_FOUND = "ROOM_NOT_FOUND"
    ROOM_FULL = "ROOM_FULL"
    ROOM_EXPIRED = "ROOM_EXPIRED"
    ALREADY_IN_ROOM = "ALREADY_IN_ROOM"
    SERVER_FULL = "SERVER_FULL"
    INVALID_MESSAGE = "INVALID_MESSAGE"
    RATE_LIMITED = "RATE_LIMITED"
    INTERNAL_ERROR = "INTERNAL_ERROR"


def _validate_nickname(value: str) -> str:
    value = value.strip()
    if any(ord(c) < _SPACE_ORD or ord(c) == _DEL_ORD for c in value):
        raise ValueError("nickname must not contain control characters")
    return value


Nickname = Annotated[str, Field(max_length=NICKNAME_MAX_LENGTH), AfterValidator(_validate_nickname)]


# --- Inbound ---


class CreateRoomMessage(BaseModel):
    event: Literal[ClientMessageType.CREATE_ROOM] = ClientMessageType.CREATE_ROOM
    nickname: Nickname | None = None
    bot: bool = False
    bot_difficulty: BotDifficulty = BotDifficulty.MEDIUM


class JoinRoomMessage(BaseModel):
    event: Literal[ClientMessageType.JOIN_ROOM] = ClientMessageType.JOIN_ROOM
    room_id: str = Field(min_length=1, max_length=50, pattern=r"^[a-zA-Z0-9_-]+$")
    nickname: Nickname | None = None


class PlayerReadyMessage(BaseModel):
    event: Literal[ClientMessageType.PLAYER_READY] = ClientMessageType.PLAYER_READY


class PaddleMoveMessage(BaseModel):
    """Requested paddle center. Out-of-range values are clamped, not rejected."""

    event: Literal[ClientMessageType.PADDLE_MOVE] = ClientMessageType.PADDLE_MOVE
    y: float
    timestamp: float | None = None


class LeaveGameMessage(BaseModel):
    event: Literal[ClientMessageType.LEAVE_GAME] = ClientMessageType.LEAVE_GAME


ClientMessage = Annotated[
    CreateRoomMessage | JoinRoomMessage | PlayerReadyMessage | PaddleMoveMessage | LeaveGameMessage,
    Field(discriminator="event"),
]

_client_message_adapter = TypeAdapter(ClientMessage)


def parse_client_message(data: dict[str, Any]) -> ClientMessage:
    """Parse a raw dict into a typed ClientMessage."""
    return _client_message_adapter.validate_python(data)


# --- Outbound ---


class PlayerInfo(BaseModel):
    nickname: str
    side: Side


class Scores(BaseModel):
    left: int
    right: int


class BallState(BaseModel):
    x: float
    y: float
    vx: float
    vy: float


class ObstacleState(BaseModel):
    id: str
    x: float
    y: float
    shape: int
    radius: float
    rotation: float


class RoomCreatedMessage(BaseModel):
    event: Literal[ServerMessageType.ROOM_CREATED] = ServerMessageType.ROOM_CREATED
    room_id: str
    room_url: str
    nickname: str
    bot_enabled: bool


class RoomJoinedMessage(BaseModel):
    event: Literal[ServerMessageType.ROOM_JOINED] = ServerMessageType.ROOM_JOINED
    your_side: Side
    nickname: str


class PlayerJoinedMessage(BaseModel):
    event: Literal[ServerMessageType.PLAYER_JOINED] = ServerMessageType.PLAYER_JOINED
    player1: PlayerInfo
    player2: PlayerInfo


class CountdownMessage(BaseModel):
    event: Literal[ServerMessageType.COUNTDOWN] = ServerMessageType.COUNTDOWN
    count: int


class GameStartMessage(BaseModel):
    event: Literal[ServerMessageType.GAME_START] = ServerMessageType.GAME_START
    countdown: int = 0
    start_time: str


class GameStateMessage(BaseModel):
    event: Literal[ServerMessageType.GAME_STATE] = ServerMessageType.GAME_STATE
    timestamp: float
    ball: BallState
    obstacles: list[ObstacleState]
    paddle1_y: float
    paddle2_y: float
    scores: Scores


class ScoreUpdateMessage(BaseModel):
    event: Literal[ServerMessageType.SCORE_UPDATE] = ServerMessageType.SCORE_UPDATE
    type: Literal[ScoreType.GOAL, ScoreType.OBSTACLE]
    scorer: Side
    scores: Scores
    obstacle_id: str | None = None


class GameOverMessage(BaseModel):
    event: Literal[ServerMessageType.GAME_OVER] = ServerMessageType.GAME_OVER
    winner: PlayerInfo
    final_scores: Scores
    duration_seconds: int
    obstacles_destroyed: int


class OpponentDisconnectedMessage(BaseModel):
    event: Literal[ServerMessageType.OPPONENT_DISCONNECTED] = ServerMessageType.OPPONENT_DISCONNECTED
    reason: LeaveReason
    forfeit: bool


class ErrorMessage(BaseModel):
    event: Literal[ServerMessageType.ERROR] = ServerMessageType.ERROR
    message: str
    code: ErrorCode


ServerMessage = (
    RoomCreatedMessage
    | RoomJoinedMessage
    | PlayerJoinedMessage
    | CountdownMessage
    | GameStartMessage
    | GameStateMessage
    | ScoreUpdateMessage
    | GameOverMessage
    | OpponentDisconnectedMessage
    | ErrorMessage
)
