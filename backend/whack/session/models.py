from dataclasses import dataclass
from enum import StrEnum


class SessionStatus(StrEnum):
    WAITING = "waiting"
    ACTIVE = "active"
    FINISHED = "finished"  # reserved, nothing transitions here yet


class TargetKind(StrEnum):
    SAFE = "safe"
    HAZARD = "hazard"


class StartRefusal(StrEnum):
    ALREADY_ACTIVE = "already_active"
    NOT_ENOUGH_PLAYERS = "not_enough_players"


class HitRejection(StrEnum):
    NO_TARGET = "no_target"
    ALREADY_CLAIMED = "already_claimed"
    UNKNOWN_PLAYER = "unknown_player"
    PLAYER_GAME_OVER = "player_game_over"


@dataclass
class Player:
    """Represent a connected participant of a session.

    Lifecycle:
    - Created when the connection joins a session (first joiner becomes host)
    - Mutated only by hit resolution (score, lives, is_game_over)
    - Dropped when the connection disconnects or the session is torn down
    """

    connection_id: str
    name: str
    score: int = 0
    lives: int = 3
    is_game_over: bool = False

    def apply_hit(self, kind: TargetKind) -> None:
        """Score a safe hit or charge a life for a hazard hit."""
        if kind == TargetKind.HAZARD:
            self.lives = max(0, self.lives - 1)
            if self.lives == 0:
                self.is_game_over = True
        else:
            self.score += 1


@dataclass
class Target:
    """A spawned cube. Claimed at most once; a claimed target is never reused."""

    kind: TargetKind
    x: float
    z: float
    spawn_time: int  # epoch milliseconds, diagnostics only
    claimed_by: str | None = None

    @property
    def is_hazard(self) -> bool:
        return self.kind == TargetKind.HAZARD

    @property
    def is_claimed(self) -> bool:
        return self.claimed_by is not None

    def claim(self, connection_id: str) -> None:
        if self.claimed_by is not None:
            raise ValueError(f"target already claimed by {self.claimed_by}")
        self.claimed_by = connection_id


@dataclass(frozen=True)
class StartResult:
    started: bool
    refusal: StartRefusal | None = None
    players_needed: int = 0


@dataclass(frozen=True)
class HitOutcome:
    """Result of a claimed hit. Rejected outcomes carry the reason and changed nothing."""

    accepted: bool
    rejection: HitRejection | None = None
    kind: TargetKind | None = None
    player: Player | None = None
