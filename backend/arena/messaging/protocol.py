"""Transport seam between the session layer and client sockets."""

from abc import ABC, abstractmethod


class ConnectionProtocol(ABC):
    """One participant's bidirectional byte channel.

    The connection id is also the participant id inside rooms. Writes are issued
    only by the broadcaster's per-connection outbox, so implementations never see
    two concurrent send_bytes() calls.
    """

    @property
    @abstractmethod
    def connection_id(self) -> str: ...

    @abstractmethod
    async def send_bytes(self, data: bytes) -> None:
        """Write one MessagePack frame. May raise ConnectionError once the peer is gone."""

    @abstractmethod
    async def receive_bytes(self) -> bytes: ...

    @abstractmethod
    async def close(self, code: int = 1000, reason: str = "") -> None: ...
