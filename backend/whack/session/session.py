"""One whack-a-cube game: roster, host, lifecycle status and the target spawn loop."""

from __future__ import annotations

import math
import random
import time
from typing import TYPE_CHECKING

import structlog

from whack.messaging.types import (
    CubeHiddenMessage,
    CubeSpawnedMessage,
    GamePausedMessage,
    GameStartedMessage,
    HostChangedMessage,
    PlayerInfo,
    PlayersUpdateMessage,
    ScoreUpdateMessage,
    SessionJoinedMessage,
    WireModel,
)
from whack.session.models import (
    HitOutcome,
    HitRejection,
    Player,
    SessionStatus,
    StartRefusal,
    StartResult,
    Target,
    TargetKind,
)
from whack.session.settings import SessionSettings
from whack.session.timer import OneShotTimer

if TYPE_CHECKING:
    from whack.session.groups import GroupBroadcaster

logger = structlog.get_logger()

PAUSE_REASON_NOT_ENOUGH_PLAYERS = "Not enough players"


class Session:
    """
    An isolated game instance.

    The session id is also the name of its broadcast group. Every operation
    applies all of its state changes before its first await, so a timer
    callback or message interleaved at a send never sees a half-applied
    transition. Timer callbacks re-check status, emptiness and target
    identity before acting.
    """

    def __init__(
        self,
        session_id: str,
        groups: GroupBroadcaster,
        settings: SessionSettings | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self.session_id = session_id
        self.settings = settings or SessionSettings()
        self.status = SessionStatus.WAITING
        self.players: dict[str, Player] = {}  # connection_id -> Player, join order
        self.host_id: str | None = None
        self.current_target: Target | None = None
        self.created_at = time.monotonic()
        self._groups = groups
        self._rng = rng or random.Random()
        self._spawn_timer = OneShotTimer(f"{session_id}:spawn")
        self._hide_timer = OneShotTimer(f"{session_id}:hide")

    @property
    def player_count(self) -> int:
        return len(self.players)

    @property
    def is_empty(self) -> bool:
        return not self.players

    @property
    def is_active(self) -> bool:
        return self.status == SessionStatus.ACTIVE

    @property
    def spawn_pending(self) -> bool:
        return self._spawn_timer.pending

    @property
    def hide_pending(self) -> bool:
        return self._hide_timer.pending

    @property
    def live_target(self) -> Target | None:
        """The target a late joiner should be shown, if any."""
        target = self.current_target
        if target is None or target.is_claimed or not self.is_active:
            return None
        return target

    def can_join(self) -> bool:
        return self.player_count < self.settings.max_players and self.status != SessionStatus.FINISHED

    def is_host(self, connection_id: str) -> bool:
        return self.host_id is not None and self.host_id == connection_id

    # --- Membership ---

    def add_player(self, connection_id: str, name: str | None = None) -> Player:
        """Seat a connection. The first player in an empty session becomes host."""
        if connection_id in self.players:
            raise ValueError(f"connection {connection_id} already in session {self.session_id}")
        display_name = (name or "").strip() or f"Player {self.player_count + 1}"
        player = Player(connection_id=connection_id, name=display_name, lives=self.settings.starting_lives)
        self.players[connection_id] = player
        if self.host_id is None:
            self.host_id = connection_id
        logger.info(
            "player joined session",
            session_id=self.session_id,
            player_name=display_name,
            player_count=self.player_count,
            is_host=self.host_id == connection_id,
        )
        return player

    async def remove_player(self, connection_id: str) -> Player | None:
        """Drop a player, handing off host and pausing or halting as the new count requires."""
        player = self.players.pop(connection_id, None)
        if player is None:
            return None

        new_host_id: str | None = None
        if self.host_id == connection_id:
            self.host_id = next(iter(self.players), None)
            new_host_id = self.host_id

        paused = self.is_active and self.player_count < self.settings.min_players
        if paused:
            self.status = SessionStatus.WAITING
        if paused or self.is_empty:
            self.halt()

        logger.info(
            "player left session",
            session_id=self.session_id,
            player_name=player.name,
            player_count=self.player_count,
            status=self.status,
        )

        if new_host_id is not None:
            logger.info("host transferred", session_id=self.session_id, new_host_id=new_host_id)
            await self._emit(HostChangedMessage(new_host_id=new_host_id))
        if paused:
            await self._emit(
                GamePausedMessage(reason=PAUSE_REASON_NOT_ENOUGH_PLAYERS, min_players=self.settings.min_players),
            )
        return player

    # --- Lifecycle ---

    async def start_game(self) -> StartResult:
        if self.status != SessionStatus.WAITING:
            logger.info("start refused, game already running", session_id=self.session_id)
            return StartResult(started=False, refusal=StartRefusal.ALREADY_ACTIVE)

        players_needed = self.settings.min_players - self.player_count
        if players_needed > 0:
            logger.info("start refused, not enough players", session_id=self.session_id, needed=players_needed)
            return StartResult(
                started=False,
                refusal=StartRefusal.NOT_ENOUGH_PLAYERS,
                players_needed=players_needed,
            )

        self.status = SessionStatus.ACTIVE
        self.schedule_next_spawn()
        logger.info("game started", session_id=self.session_id, player_count=self.player_count)
        await self._emit(GameStartedMessage(status=self.status))
        return StartResult(started=True)

    def halt(self) -> None:
        """Cancel both spawn-loop timers and discard any live target unscored."""
        self._spawn_timer.cancel()
        self._hide_timer.cancel()
        self.current_target = None

    # --- Spawn loop ---

    def schedule_next_spawn(self) -> None:
        if self.is_empty or not self.is_active:
            return
        low = self.settings.cube_spawn_delay_min
        high = self.settings.cube_spawn_delay_max
        delay = low + self._rng.random() * (high - low)
        logger.debug("next cube scheduled", session_id=self.session_id, delay=round(delay, 3))
        self._spawn_timer.start(delay, self.spawn_target)

    async def spawn_target(self) -> None:
        # the session may have emptied or paused since this spawn was scheduled
        if self.is_empty or not self.is_active:
            logger.debug("spawn skipped", session_id=self.session_id, status=self.status)
            return

        target = self._roll_target()
        self.current_target = target
        self._hide_timer.start(self.settings.cube_stay_duration, lambda: self._auto_hide(target))
        logger.info(
            "cube spawned",
            session_id=self.session_id,
            kind=target.kind,
            x=round(target.x, 2),
            z=round(target.z, 2),
        )
        await self._emit(CubeSpawnedMessage(**self.target_info(target)))

    async def _auto_hide(self, target: Target) -> None:
        if self.current_target is not target or target.is_claimed:
            return
        self.current_target = None
        self.schedule_next_spawn()
        logger.info("cube auto-hidden", session_id=self.session_id)
        await self._emit(CubeHiddenMessage())

    def _roll_target(self) -> Target:
        kind = TargetKind.HAZARD if self._rng.random() < self.settings.hazard_probability else TargetKind.SAFE
        angle = self._rng.random() * 2 * math.pi
        radius = self._rng.random() * self.settings.spawn_radius
        return Target(
            kind=kind,
            x=radius * math.cos(angle),
            z=radius * math.sin(angle),
            spawn_time=int(time.time() * 1000),
        )

    # --- Hits ---

    async def resolve_hit(self, connection_id: str, claimed_hazard: bool) -> HitOutcome:
        """Claim the live target for a player.

        The server-side target kind decides the effect; the client's claim is
        only compared for diagnostics.
        """
        target = self.current_target
        player = self.players.get(connection_id)
        rejection = self._hit_rejection(target, player)
        if rejection is not None:
            logger.info("hit rejected", session_id=self.session_id, connection_id=connection_id, reason=rejection)
            return HitOutcome(accepted=False, rejection=rejection)

        if claimed_hazard != target.is_hazard:
            logger.warning(
                "hit kind mismatch",
                session_id=self.session_id,
                claimed_hazard=claimed_hazard,
                kind=target.kind,
            )

        target.claim(connection_id)
        player.apply_hit(target.kind)
        self._hide_timer.cancel()
        self.current_target = None
        self.schedule_next_spawn()

        logger.info(
            "cube hit",
            session_id=self.session_id,
            player_name=player.name,
            kind=target.kind,
            score=player.score,
            lives=player.lives,
            game_over=player.is_game_over,
        )

        await self._groups.send(
            connection_id,
            ScoreUpdateMessage(
                score=player.score,
                lives=player.lives,
                is_game_over=player.is_game_over,
            ).to_wire(),
        )
        await self.broadcast_roster()
        await self._emit(CubeHiddenMessage())
        return HitOutcome(accepted=True, kind=target.kind, player=player)

    @staticmethod
    def _hit_rejection(target: Target | None, player: Player | None) -> HitRejection | None:
        if target is None:
            return HitRejection.NO_TARGET
        if target.is_claimed:
            return HitRejection.ALREADY_CLAIMED
        if player is None:
            return HitRejection.UNKNOWN_PLAYER
        if player.is_game_over:
            return HitRejection.PLAYER_GAME_OVER
        return None

    # --- Views ---

    def roster(self) -> list[PlayerInfo]:
        return [
            PlayerInfo(
                id=p.connection_id,
                name=p.name,
                score=p.score,
                lives=p.lives,
                is_game_over=p.is_game_over,
                is_host=p.connection_id == self.host_id,
            )
            for p in self.players.values()
        ]

    def snapshot(self, connection_id: str) -> SessionJoinedMessage:
        return SessionJoinedMessage(
            session_id=self.session_id,
            socket_id=connection_id,
            status=self.status,
            players=self.roster(),
            host_id=self.host_id,
            min_players=self.settings.min_players,
            max_players=self.settings.max_players,
        )

    @staticmethod
    def target_info(target: Target) -> dict[str, object]:
        return {
            "is_red": target.is_hazard,
            "x": target.x,
            "z": target.z,
            "spawn_time": target.spawn_time,
            "hit_by": target.claimed_by,
        }

    async def broadcast_roster(self) -> None:
        await self._emit(PlayersUpdateMessage(players=self.roster()))

    async def _emit(self, message: WireModel) -> None:
        await self._groups.emit(self.session_id, message.to_wire())
