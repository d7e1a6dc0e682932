"""Transport-neutral connection interface."""

from abc import ABC, abstractmethod
from typing import Any

from whack.messaging.encoder import decode, encode


class ConnectionProtocol(ABC):
    """
    One client connection, as seen by the session layer.

    The connection id is the player's only identity. Routing and session
    logic depend on this interface alone, so they run against in-memory
    connections in tests.
    """

    @property
    @abstractmethod
    def connection_id(self) -> str: ...

    @abstractmethod
    async def send_bytes(self, data: bytes) -> None: ...

    @abstractmethod
    async def receive_bytes(self) -> bytes: ...

    @abstractmethod
    async def close(self, code: int = 1000, reason: str = "") -> None: ...

    async def send_message(self, data: dict[str, Any]) -> None:
        await self.send_bytes(encode(data))

    async def receive_message(self) -> dict[str, Any]:
        return decode(await self.receive_bytes())
