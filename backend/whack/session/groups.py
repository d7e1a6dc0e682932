"""Named broadcast groups over live connections."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from whack.messaging.protocol import ConnectionProtocol

logger = logging.getLogger(__name__)


class GroupBroadcaster:
    """Track live connections and the groups (one per session) they belong to.

    Delivery order within a group follows join order. A failed send to one
    member never interrupts delivery to the others.
    """

    def __init__(self) -> None:
        self._connections: dict[str, ConnectionProtocol] = {}
        self._groups: dict[str, dict[str, None]] = {}  # group -> ordered connection ids

    @property
    def connection_count(self) -> int:
        return len(self._connections)

    def register(self, connection: ConnectionProtocol) -> None:
        self._connections[connection.connection_id] = connection

    def unregister(self, connection_id: str) -> None:
        self.leave_all(connection_id)
        self._connections.pop(connection_id, None)

    def join(self, group: str, connection_id: str) -> None:
        self._groups.setdefault(group, {})[connection_id] = None

    def leave(self, group: str, connection_id: str) -> None:
        members = self._groups.get(group)
        if members is None:
            return
        members.pop(connection_id, None)
        if not members:
            del self._groups[group]

    def leave_all(self, connection_id: str) -> None:
        for group in [g for g, members in self._groups.items() if connection_id in members]:
            self.leave(group, connection_id)

    def members(self, group: str) -> list[str]:
        return list(self._groups.get(group, ()))

    async def emit(
        self,
        group: str,
        message: dict[str, Any],
        exclude_connection_id: str | None = None,
    ) -> None:
        """Send a message to every member of a group.

        Snapshot the member list first: a disconnect handled while we yield on
        a send may mutate the group.
        """
        for connection_id in self.members(group):
            if connection_id != exclude_connection_id:
                await self.send(connection_id, message)

    async def send(self, connection_id: str, message: dict[str, Any]) -> None:
        connection = self._connections.get(connection_id)
        if connection is None:
            return
        try:
            await connection.send_message(message)
        except (RuntimeError, OSError) as e:
            logger.debug("dropped %s for %s: %s", message.get("type"), connection_id, e)
