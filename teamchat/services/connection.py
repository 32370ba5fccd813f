import enum
import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, Set

from fastapi.websockets import WebSocketState

logger = logging.getLogger(__name__)


class ConnectionState(enum.Enum):
    CONNECTING = "connecting"
    AUTHENTICATED = "authenticated"
    IDLE = "idle"
    IN_CHANNEL = "in_channel"
    DISCONNECTED = "disconnected"


def new_connection_id() -> str:
    return uuid.uuid4().hex


@dataclass(eq=False)
class Connection:
    """One live transport session owned by exactly one user."""

    websocket: Any
    user_id: int
    username: str = ""
    connection_id: str = field(default_factory=new_connection_id)
    state: ConnectionState = ConnectionState.CONNECTING
    channels: Set[int] = field(default_factory=set)

    @property
    def is_open(self) -> bool:
        return self.state is not ConnectionState.DISCONNECTED

    async def send(self, event: str, payload: Any) -> bool:
        """
        Send one `{type, payload}` frame.

        Returns False instead of raising when the socket is already gone;
        the connection's own teardown takes care of cleanup.
        """
        if getattr(self.websocket, "application_state", WebSocketState.CONNECTED) != WebSocketState.CONNECTED:
            return False
        try:
            await self.websocket.send_json({"type": event, "payload": payload})
            return True
        except Exception as e:
            logger.debug(f"Failed to send '{event}' to connection {self.connection_id}: {e}")
            return False
