from enum import StrEnum
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator
from pydantic.alias_generators import to_camel

from whack.session.models import SessionStatus

# ASCII control character boundaries for input validation
_SPACE_ORD = 0x20
_DEL_ORD = 0x7F

MAX_PLAYER_NAME_LENGTH = 50
SESSION_ID_PATTERN = r"^[a-z0-9]+$"


class ClientMessageType(StrEnum):
    CREATE_SESSION = "createSession"
    QUICK_MATCH = "quickMatch"
    JOIN_SESSION = "joinSession"
    START_GAME = "startGame"
    CUBE_HIT = "cubeHit"
    PING = "ping"


class ServerMessageType(StrEnum):
    SESSION_CREATED = "sessionCreated"
    SESSION_JOINED = "sessionJoined"
    PLAYERS_UPDATE = "playersUpdate"
    HOST_CHANGED = "hostChanged"
    GAME_STARTED = "gameStarted"
    GAME_PAUSED = "gamePaused"
    CUBE_SPAWNED = "cubeSpawned"
    CUBE_HIDDEN = "cubeHidden"
    SCORE_UPDATE = "scoreUpdate"
    ERROR = "error"
    PONG = "pong"


class ErrorCode(StrEnum):
    INVALID_MESSAGE = "invalid_message"
    SESSION_NOT_FOUND = "session_not_found"
    SESSION_FULL = "session_full"
    ALREADY_IN_SESSION = "already_in_session"
    NOT_IN_SESSION = "not_in_session"
    NOT_HOST = "not_host"
    NOT_ENOUGH_PLAYERS = "not_enough_players"
    ALREADY_ACTIVE = "already_active"
    HIT_REJECTED = "hit_rejected"
    SERVER_FULL = "server_full"
    RATE_LIMITED = "rate_limited"
    INTERNAL_ERROR = "internal_error"


class WireModel(BaseModel):
    """Snake_case in Python, camelCase on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


# --- Client -> server ---


class CreateSessionMessage(WireModel):
    type: Literal[ClientMessageType.CREATE_SESSION] = ClientMessageType.CREATE_SESSION


class _NamedPlayerMessage(WireModel):
    player_name: str | None = Field(default=None, max_length=MAX_PLAYER_NAME_LENGTH)

    @field_validator("player_name")
    @classmethod
    def _validate_player_name(cls, v: str | None) -> str | None:
        if v is None:
            return None
        if any(ord(c) < _SPACE_ORD or ord(c) == _DEL_ORD for c in v):
            raise ValueError("player name must not contain control characters")
        return v.strip() or None


class QuickMatchMessage(_NamedPlayerMessage):
    type: Literal[ClientMessageType.QUICK_MATCH] = ClientMessageType.QUICK_MATCH


class JoinSessionMessage(_NamedPlayerMessage):
    type: Literal[ClientMessageType.JOIN_SESSION] = ClientMessageType.JOIN_SESSION
    session_id: str = Field(min_length=1, max_length=16, pattern=SESSION_ID_PATTERN)


class StartGameMessage(WireModel):
    type: Literal[ClientMessageType.START_GAME] = ClientMessageType.START_GAME


class CubeHitMessage(WireModel):
    type: Literal[ClientMessageType.CUBE_HIT] = ClientMessageType.CUBE_HIT
    is_red: bool


class PingMessage(WireModel):
    type: Literal[ClientMessageType.PING] = ClientMessageType.PING


ClientMessage = (
    CreateSessionMessage | QuickMatchMessage | JoinSessionMessage | StartGameMessage | CubeHitMessage | PingMessage
)

_client_adapter = TypeAdapter(Annotated[ClientMessage, Field(discriminator="type")])


def parse_client_message(data: dict[str, Any]) -> ClientMessage:
    """Validate a decoded frame into a typed client message."""
    return _client_adapter.validate_python(data)


# --- Server -> client ---


class PlayerInfo(WireModel):
    """Roster entry, in join order."""

    id: str
    name: str
    score: int
    lives: int
    is_game_over: bool
    is_host: bool


class TargetInfo(WireModel):
    is_red: bool
    x: float
    z: float
    spawn_time: int
    hit_by: str | None = None


class SessionCreatedMessage(WireModel):
    type: Literal[ServerMessageType.SESSION_CREATED] = ServerMessageType.SESSION_CREATED
    session_id: str


class SessionJoinedMessage(WireModel):
    """Full session snapshot sent to a joining connection."""

    type: Literal[ServerMessageType.SESSION_JOINED] = ServerMessageType.SESSION_JOINED
    session_id: str
    socket_id: str
    status: SessionStatus
    players: list[PlayerInfo]
    host_id: str | None
    min_players: int
    max_players: int


class PlayersUpdateMessage(WireModel):
    type: Literal[ServerMessageType.PLAYERS_UPDATE] = ServerMessageType.PLAYERS_UPDATE
    players: list[PlayerInfo]


class HostChangedMessage(WireModel):
    type: Literal[ServerMessageType.HOST_CHANGED] = ServerMessageType.HOST_CHANGED
    new_host_id: str


class GameStartedMessage(WireModel):
    type: Literal[ServerMessageType.GAME_STARTED] = ServerMessageType.GAME_STARTED
    status: SessionStatus


class GamePausedMessage(WireModel):
    type: Literal[ServerMessageType.GAME_PAUSED] = ServerMessageType.GAME_PAUSED
    reason: str
    min_players: int


class CubeSpawnedMessage(TargetInfo):
    type: Literal[ServerMessageType.CUBE_SPAWNED] = ServerMessageType.CUBE_SPAWNED


class CubeHiddenMessage(WireModel):
    type: Literal[ServerMessageType.CUBE_HIDDEN] = ServerMessageType.CUBE_HIDDEN


class ScoreUpdateMessage(WireModel):
    type: Literal[ServerMessageType.SCORE_UPDATE] = ServerMessageType.SCORE_UPDATE
    score: int
    lives: int
    is_game_over: bool


class ErrorMessage(WireModel):
    type: Literal[ServerMessageType.ERROR] = ServerMessageType.ERROR
    code: ErrorCode
    message: str


class PongMessage(WireModel):
    type: Literal[ServerMessageType.PONG] = ServerMessageType.PONG
