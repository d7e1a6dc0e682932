from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from whack.messaging.types import (
    CreateSessionMessage,
    CubeHitMessage,
    CubeSpawnedMessage,
    ErrorCode,
    ErrorMessage,
    JoinSessionMessage,
    PingMessage,
    PongMessage,
    QuickMatchMessage,
    SessionCreatedMessage,
    StartGameMessage,
    parse_client_message,
)
from whack.session.models import StartRefusal
from whack.session.registry import RegistryFullError

if TYPE_CHECKING:
    from whack.messaging.protocol import ConnectionProtocol
    from whack.session.registry import SessionRegistry
    from whack.session.session import Session

logger = logging.getLogger(__name__)

_START_REFUSAL_CODES = {
    StartRefusal.ALREADY_ACTIVE: ErrorCode.ALREADY_ACTIVE,
    StartRefusal.NOT_ENOUGH_PLAYERS: ErrorCode.NOT_ENOUGH_PLAYERS,
}


class MessageRouter:
    """
    Bind connection lifecycle and client intents to registry and session calls.

    Contains no network I/O beyond ConnectionProtocol, so it is tested with
    in-memory connections. Tracks which session each connection is seated in;
    a connection is in at most one session.
    """

    def __init__(self, registry: SessionRegistry) -> None:
        self._registry = registry
        self._groups = registry.groups
        self._session_by_connection: dict[str, str] = {}  # connection_id -> session_id

    def session_for(self, connection_id: str) -> Session | None:
        session_id = self._session_by_connection.get(connection_id)
        if session_id is None:
            return None
        return self._registry.lookup(session_id)

    async def handle_connect(self, connection: ConnectionProtocol) -> None:
        self._groups.register(connection)

    async def handle_message(
        self,
        connection: ConnectionProtocol,
        raw_message: dict[str, Any],
    ) -> None:
        try:
            message = parse_client_message(raw_message)
        except (ValidationError, KeyError, TypeError, ValueError) as e:
            logger.warning("invalid message from %s: %s", connection.connection_id, e)
            await self._send_error(connection, ErrorCode.INVALID_MESSAGE, str(e))
            return

        try:
            await self._dispatch(connection, message)
        except Exception:
            logger.exception("unhandled error routing %s from %s", message.type, connection.connection_id)
            await self._send_error(connection, ErrorCode.INTERNAL_ERROR, "Internal server error")

    async def _dispatch(self, connection: ConnectionProtocol, message: object) -> None:
        if isinstance(message, CreateSessionMessage):
            await self._handle_create_session(connection)
        elif isinstance(message, QuickMatchMessage):
            await self._handle_quick_match(connection, message)
        elif isinstance(message, JoinSessionMessage):
            await self._handle_join_session(connection, message)
        elif isinstance(message, StartGameMessage):
            await self._handle_start_game(connection)
        elif isinstance(message, CubeHitMessage):
            await self._handle_cube_hit(connection, message)
        elif isinstance(message, PingMessage):
            await connection.send_message(PongMessage().to_wire())

    async def _handle_create_session(self, connection: ConnectionProtocol) -> None:
        """Create a session; the creator joins it with a separate joinSession."""
        try:
            session = self._registry.create_session()
        except RegistryFullError as e:
            logger.warning("create refused for %s: %s", connection.connection_id, e)
            await self._send_error(connection, ErrorCode.SERVER_FULL, "Server is full, try again later")
            return
        self._registry.schedule_empty_cleanup(session.session_id)
        await connection.send_message(SessionCreatedMessage(session_id=session.session_id).to_wire())

    async def _handle_quick_match(self, connection: ConnectionProtocol, message: QuickMatchMessage) -> None:
        if await self._reject_if_seated(connection):
            return
        session = self._registry.find_joinable_session()
        if session is None:
            try:
                session = self._registry.create_session()
            except RegistryFullError as e:
                logger.warning("quick match refused for %s: %s", connection.connection_id, e)
                await self._send_error(connection, ErrorCode.SERVER_FULL, "Server is full, try again later")
                return
        await self._join(connection, session, message.player_name)

    async def _handle_join_session(self, connection: ConnectionProtocol, message: JoinSessionMessage) -> None:
        if await self._reject_if_seated(connection):
            return
        session = self._registry.lookup(message.session_id)
        if session is None:
            await self._send_error(connection, ErrorCode.SESSION_NOT_FOUND, "Session not found")
            return
        if not session.can_join():
            await self._send_error(connection, ErrorCode.SESSION_FULL, "Session is full")
            return
        await self._join(connection, session, message.player_name)

    async def _join(self, connection: ConnectionProtocol, session: Session, player_name: str | None) -> None:
        connection_id = connection.connection_id
        self._groups.join(session.session_id, connection_id)
        session.add_player(connection_id, player_name)
        self._session_by_connection[connection_id] = session.session_id
        self._registry.cancel_empty_cleanup(session.session_id)
        live_target = session.live_target

        await connection.send_message(session.snapshot(connection_id).to_wire())
        await session.broadcast_roster()
        if live_target is not None and live_target is session.live_target:
            await connection.send_message(CubeSpawnedMessage(**session.target_info(live_target)).to_wire())

    async def _handle_start_game(self, connection: ConnectionProtocol) -> None:
        session = await self._require_session(connection)
        if session is None:
            return
        if not session.is_host(connection.connection_id):
            await self._send_error(connection, ErrorCode.NOT_HOST, "Only the host can start the game")
            return
        result = await session.start_game()
        if result.started:
            return
        if result.refusal == StartRefusal.NOT_ENOUGH_PLAYERS:
            text = f"Need {result.players_needed} more player(s) to start"
        else:
            text = "Game already in progress"
        await self._send_error(connection, _START_REFUSAL_CODES[result.refusal], text)

    async def _handle_cube_hit(self, connection: ConnectionProtocol, message: CubeHitMessage) -> None:
        session = await self._require_session(connection)
        if session is None:
            return
        outcome = await session.resolve_hit(connection.connection_id, claimed_hazard=message.is_red)
        if not outcome.accepted:
            await self._send_error(connection, ErrorCode.HIT_REJECTED, f"Hit rejected: {outcome.rejection}")

    async def handle_disconnect(self, connection: ConnectionProtocol) -> None:
        connection_id = connection.connection_id
        session_id = self._session_by_connection.pop(connection_id, None)
        self._groups.unregister(connection_id)
        if session_id is None:
            return
        session = self._registry.lookup(session_id)
        if session is None:
            return

        await session.remove_player(connection_id)
        if session.is_empty:
            self._registry.schedule_empty_cleanup(session_id)
            return
        await session.broadcast_roster()

    async def _require_session(self, connection: ConnectionProtocol) -> Session | None:
        session = self.session_for(connection.connection_id)
        if session is None:
            await self._send_error(connection, ErrorCode.NOT_IN_SESSION, "You are not in a session")
        return session

    async def _reject_if_seated(self, connection: ConnectionProtocol) -> bool:
        if self.session_for(connection.connection_id) is None:
            return False
        await self._send_error(connection, ErrorCode.ALREADY_IN_SESSION, "You are already in a session")
        return True

    async def _send_error(self, connection: ConnectionProtocol, code: ErrorCode, message: str) -> None:
        await connection.send_message(ErrorMessage(code=code, message=message).to_wire())
