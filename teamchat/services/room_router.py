import asyncio
import logging
from typing import Any, Dict, List, Optional, Set

from teamchat.services.connection import Connection

logger = logging.getLogger(__name__)


class ChannelRoomRouter:
    """
    Process-wide registry of live connections and their channel subscriptions.

    Only this class mutates the subscriber sets. All mutation happens on the
    event loop thread, so plain dicts and sets are enough; the per-channel
    locks only serialize deliveries so every subscriber of a channel sees
    events in the same order.
    """

    def __init__(self):
        self.connections: Dict[str, Connection] = {}
        self.subscriptions: Dict[int, Set[str]] = {}
        # {connection_id: {channel_id, ...}} where the connection is currently typing
        self.typing: Dict[str, Set[int]] = {}
        # Created on first delivery to a subscribed channel, dropped when it empties
        self._channel_locks: Dict[int, asyncio.Lock] = {}

    # Connection registry

    def attach(self, connection: Connection) -> None:
        self.connections[connection.connection_id] = connection
        logger.debug(f"Attached connection {connection.connection_id} (user {connection.user_id}). Live: {len(self.connections)}")

    def detach(self, connection_id: str) -> List[int]:
        """
        Forget a connection and drop it from every subscriber set.

        Returns the channels where the connection was typing so the caller
        can tell the remaining subscribers it stopped.
        """
        connection = self.connections.pop(connection_id, None)
        was_typing = sorted(self.typing.pop(connection_id, set()))

        for channel_id in list(self.subscriptions.keys()):
            self._discard(channel_id, connection_id)
        if connection is not None:
            connection.channels.clear()

        logger.debug(f"Detached connection {connection_id}. Live: {len(self.connections)}")
        return was_typing

    def get(self, connection_id: str) -> Optional[Connection]:
        return self.connections.get(connection_id)

    def connection_ids(self) -> List[str]:
        return list(self.connections.keys())

    # Subscriptions

    def subscribe(self, connection_id: str, channel_id: int) -> bool:
        """Add the connection to the channel. Returns False if it was already subscribed."""
        connection = self.connections.get(connection_id)
        if connection is None:
            logger.warning(f"subscribe: unknown connection {connection_id}")
            return False

        subscribers = self.subscriptions.setdefault(channel_id, set())
        if connection_id in subscribers:
            return False
        subscribers.add(connection_id)
        connection.channels.add(channel_id)
        return True

    def unsubscribe(self, connection_id: str, channel_id: int) -> bool:
        """Remove the connection from the channel. Returns False if it was not subscribed."""
        removed = self._discard(channel_id, connection_id)
        connection = self.connections.get(connection_id)
        if connection is not None:
            connection.channels.discard(channel_id)
        return removed

    def subscribers(self, channel_id: int) -> Set[str]:
        return set(self.subscriptions.get(channel_id, set()))

    def channels_for(self, connection_id: str) -> Set[int]:
        connection = self.connections.get(connection_id)
        return set(connection.channels) if connection else set()

    def _discard(self, channel_id: int, connection_id: str) -> bool:
        subscribers = self.subscriptions.get(channel_id)
        if not subscribers or connection_id not in subscribers:
            return False
        subscribers.discard(connection_id)
        if not subscribers:
            del self.subscriptions[channel_id]
            self._drop_idle_lock(channel_id)
        return True

    def _drop_idle_lock(self, channel_id: int) -> None:
        # A held lock is dropped by the broadcast that holds it, once it finishes
        lock = self._channel_locks.get(channel_id)
        if lock is not None and not lock.locked() and channel_id not in self.subscriptions:
            del self._channel_locks[channel_id]

    # Typing state

    def set_typing(self, connection_id: str, channel_id: int, is_typing: bool) -> bool:
        """Record the flag. Returns True if it changed."""
        channels = self.typing.setdefault(connection_id, set())
        changed = (channel_id in channels) != is_typing
        if is_typing:
            channels.add(channel_id)
        else:
            channels.discard(channel_id)
        if not channels:
            self.typing.pop(connection_id, None)
        return changed

    def is_typing(self, connection_id: str, channel_id: int) -> bool:
        return channel_id in self.typing.get(connection_id, set())

    # Delivery

    async def send(self, connection_id: str, event: str, payload: Any) -> bool:
        connection = self.connections.get(connection_id)
        if connection is None:
            return False
        return await connection.send(event, payload)

    async def broadcast(self, channel_id: int, event: str, payload: Any, exclude_connection_id: Optional[str] = None) -> int:
        """Deliver to every subscriber of the channel except the excluded one. Returns the delivery count."""
        if not self.subscriptions.get(channel_id):
            return 0

        lock = self._channel_locks.setdefault(channel_id, asyncio.Lock())
        async with lock:
            # Snapshot: subscribers may change while sends are awaited
            targets = [
                self.connections[cid]
                for cid in self.subscriptions.get(channel_id, set())
                if cid != exclude_connection_id and cid in self.connections
            ]
            delivered = 0
            for connection in targets:
                if await connection.send(event, payload):
                    delivered += 1
                else:
                    logger.warning(f"[broadcast] Failed to deliver '{event}' to connection {connection.connection_id} in channel {channel_id}")
        self._drop_idle_lock(channel_id)
        logger.debug(f"[broadcast] '{event}' to channel {channel_id}: {delivered}/{len(targets)} delivered")
        return delivered

    async def broadcast_global(self, event: str, payload: Any, exclude_connection_id: Optional[str] = None) -> int:
        targets = [c for cid, c in list(self.connections.items()) if cid != exclude_connection_id]
        delivered = 0
        for connection in targets:
            if await connection.send(event, payload):
                delivered += 1
        logger.debug(f"[broadcast_global] '{event}': {delivered}/{len(targets)} delivered")
        return delivered

    async def disconnect_all(self) -> None:
        logger.info("Disconnecting all clients...")
        for connection in list(self.connections.values()):
            try:
                await connection.websocket.close(code=1001)
            except Exception as e:
                logger.debug(f"Error closing websocket for connection {connection.connection_id}: {e}")
        self.connections.clear()
        self.subscriptions.clear()
        self.typing.clear()
        self._channel_locks.clear()
        logger.info("All clients disconnected.")
