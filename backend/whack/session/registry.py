"""Process-wide session registry: creation, lookup, matchmaking and empty-session cleanup."""

from __future__ import annotations

import logging
import secrets
import string
from typing import TYPE_CHECKING

from whack.session.models import SessionStatus
from whack.session.session import Session
from whack.session.settings import SessionSettings
from whack.session.timer import OneShotTimer

if TYPE_CHECKING:
    import random
    from collections.abc import Callable

    from whack.session.groups import GroupBroadcaster

logger = logging.getLogger(__name__)

SESSION_ID_ALPHABET = string.ascii_lowercase + string.digits
SESSION_ID_LENGTH = 6


class RegistryFullError(Exception):
    """Raised when creating a session would exceed the registry capacity."""

    def __init__(self, max_sessions: int) -> None:
        super().__init__(f"session limit reached ({max_sessions})")
        self.max_sessions = max_sessions


def generate_session_id() -> str:
    return "".join(secrets.choice(SESSION_ID_ALPHABET) for _ in range(SESSION_ID_LENGTH))


class SessionRegistry:
    """Own every live Session, keyed by id, in creation order.

    An empty session is not removed at once: a grace timer gives the creator
    (or a reconnecting client) time to join. Each session has at most one
    grace timer; re-arming replaces it.
    """

    def __init__(
        self,
        groups: GroupBroadcaster,
        *,
        settings: SessionSettings | None = None,
        empty_grace_seconds: float = 30.0,
        max_sessions: int = 1000,
        id_factory: Callable[[], str] = generate_session_id,
        rng_factory: Callable[[], random.Random] | None = None,
    ) -> None:
        self._groups = groups
        self._settings = settings or SessionSettings()
        self._empty_grace_seconds = empty_grace_seconds
        self._max_sessions = max_sessions
        self._id_factory = id_factory
        self._rng_factory = rng_factory
        self._sessions: dict[str, Session] = {}
        self._cleanup_timers: dict[str, OneShotTimer] = {}

    @property
    def groups(self) -> GroupBroadcaster:
        return self._groups

    @property
    def settings(self) -> SessionSettings:
        return self._settings

    @property
    def max_sessions(self) -> int:
        return self._max_sessions

    @property
    def session_count(self) -> int:
        return len(self._sessions)

    @property
    def active_session_count(self) -> int:
        return sum(1 for s in self._sessions.values() if s.status == SessionStatus.ACTIVE)

    @property
    def player_count(self) -> int:
        return sum(s.player_count for s in self._sessions.values())

    def create_session(self) -> Session:
        """Create a waiting session under a fresh id. No timers start here."""
        if len(self._sessions) >= self._max_sessions:
            raise RegistryFullError(self._max_sessions)

        session_id = self._id_factory()
        while session_id in self._sessions:
            logger.debug("session id collision on %s, regenerating", session_id)
            session_id = self._id_factory()

        rng = self._rng_factory() if self._rng_factory is not None else None
        session = Session(session_id, self._groups, settings=self._settings, rng=rng)
        self._sessions[session_id] = session
        logger.info("session %s created, %d live", session_id, len(self._sessions))
        return session

    def lookup(self, session_id: str) -> Session | None:
        return self._sessions.get(session_id)

    def find_joinable_session(self) -> Session | None:
        """Pick the waiting session with the fewest players that still has room.

        min() keeps the first of equal candidates, so ties go to the
        earliest-created session.
        """
        candidates = [
            s for s in self._sessions.values() if s.status == SessionStatus.WAITING and s.can_join()
        ]
        if not candidates:
            return None
        return min(candidates, key=lambda s: s.player_count)

    def schedule_empty_cleanup(self, session_id: str) -> None:
        """Arm (or re-arm) the grace timer that removes a session left empty."""
        if session_id not in self._sessions:
            return
        timer = self._cleanup_timers.get(session_id)
        if timer is None:
            timer = OneShotTimer(f"{session_id}:cleanup")
            self._cleanup_timers[session_id] = timer
        timer.start(self._empty_grace_seconds, lambda: self._expire_empty(session_id))
        logger.debug("cleanup armed for session %s in %.1fs", session_id, self._empty_grace_seconds)

    def cancel_empty_cleanup(self, session_id: str) -> None:
        timer = self._cleanup_timers.pop(session_id, None)
        if timer is not None:
            timer.cancel()

    def cleanup_pending(self, session_id: str) -> bool:
        timer = self._cleanup_timers.get(session_id)
        return timer is not None and timer.pending

    async def _expire_empty(self, session_id: str) -> None:
        session = self._sessions.get(session_id)
        if session is None:
            return
        if not session.is_empty:
            logger.debug("session %s repopulated before cleanup, keeping it", session_id)
            return
        self.remove(session_id)
        logger.info("empty session %s removed after grace period", session_id)

    def remove(self, session_id: str) -> Session | None:
        """Drop a session and cancel every timer it owns."""
        self.cancel_empty_cleanup(session_id)
        session = self._sessions.pop(session_id, None)
        if session is not None:
            session.halt()
        return session

    def shutdown(self) -> None:
        """Cancel all timers and forget every session."""
        count = len(self._sessions)
        for session_id in list(self._sessions):
            self.remove(session_id)
        for timer in self._cleanup_timers.values():
            timer.cancel()
        self._cleanup_timers.clear()
        logger.info("registry shut down, %d sessions dropped", count)
