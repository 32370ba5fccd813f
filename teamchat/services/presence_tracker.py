"""
Presence Tracker

Keeps the connection -> user mapping for every live connection in this
process and derives each user's online state from it. A user is online while
at least one of their connections is live, so closing one tab out of several
never flickers the user offline.

Presence rows are also written to the database (soft-flagged on disconnect,
so last-seen survives). Those writes are best-effort: failures are logged and
never block connection handling or message delivery.
"""

import datetime
import logging
from collections import defaultdict
from typing import Dict, List, Optional, Set

from teamchat.core.exceptions import StorageError
from teamchat.schemas.websockets import PresenceUpdate, to_wire
from teamchat.services.room_router import ChannelRoomRouter
from teamchat.services.stores import PresenceStore

logger = logging.getLogger(__name__)

PRESENCE_EVENT = "presence_update"


def utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


class PresenceTracker:
    def __init__(self, router: ChannelRoomRouter, store: Optional[PresenceStore] = None):
        self.router = router
        self.store = store or PresenceStore()
        self.connection_users: Dict[str, int] = {}
        self.user_connections: Dict[int, Set[str]] = defaultdict(set)
        self.last_seen_at: Dict[int, datetime.datetime] = {}

    async def register_connection(self, connection_id: str, user_id: int) -> None:
        self.connection_users[connection_id] = user_id
        self.user_connections[user_id].add(connection_id)
        logger.info(f"User {user_id} connected on {connection_id} ({len(self.user_connections[user_id])} live connection(s))")

        try:
            await self.store.upsert(connection_id, user_id, utcnow())
        except StorageError as e:
            logger.warning(f"Could not persist presence for connection {connection_id}: {e}")

        await self.router.broadcast_global(
            PRESENCE_EVENT,
            to_wire(PresenceUpdate(user_id=user_id, online=True)),
            exclude_connection_id=connection_id,
        )

    async def deregister_connection(self, connection_id: str) -> None:
        user_id = self.connection_users.pop(connection_id, None)
        if user_id is None:
            logger.debug(f"deregister_connection: {connection_id} was not registered")
            return

        connections = self.user_connections.get(user_id)
        if connections is not None:
            connections.discard(connection_id)
            if not connections:
                del self.user_connections[user_id]

        seen_at = utcnow()
        self.last_seen_at[user_id] = seen_at
        try:
            await self.store.mark_offline(connection_id, seen_at)
        except StorageError as e:
            logger.warning(f"Could not flag presence offline for connection {connection_id}: {e}")

        # Checked after the await: a reconnect that raced this teardown keeps the user online
        if self.is_online(user_id):
            logger.info(f"User {user_id} closed {connection_id}, still online on {len(self.user_connections[user_id])} connection(s)")
            return

        logger.info(f"User {user_id} is now offline")
        await self.router.broadcast_global(
            PRESENCE_EVENT,
            to_wire(PresenceUpdate(user_id=user_id, online=False, last_seen=seen_at)),
            exclude_connection_id=connection_id,
        )

    def is_online(self, user_id: int) -> bool:
        return bool(self.user_connections.get(user_id))

    def list_online_user_ids(self) -> List[int]:
        return sorted(user_id for user_id, connections in self.user_connections.items() if connections)

    def connection_count(self, user_id: int) -> int:
        return len(self.user_connections.get(user_id, ()))

    def last_seen(self, user_id: int) -> Optional[datetime.datetime]:
        return self.last_seen_at.get(user_id)
