"""
Realtime Session Coordinator

Wires identity, presence, channel routing and the message store together for
each WebSocket connection. One coordinator serves the whole process.

Per-connection lifecycle:

    CONNECTING -> AUTHENTICATED -> (IDLE | IN_CHANNEL)* -> DISCONNECTED

Every inbound event is handled in isolation: a bad payload or a failed
storage call is logged and reported to the requesting connection with an
`error` event, and never closes the connection.
"""

import logging
from typing import Any, Optional

import pydantic

from teamchat.core.config import settings
from teamchat.core.exceptions import ChatError, PermissionDeniedError, StorageError, ValidationError
from teamchat.schemas.websockets import (
    ChannelHistory,
    ChannelRef,
    ErrorEvent,
    MessageAck,
    SendMessagePayload,
    SessionReady,
    TypingPayload,
    UserTyping,
    WebSocketMessage,
    to_wire,
)
from teamchat.services.connection import Connection, ConnectionState
from teamchat.services.identity_service import IdentityVerifier
from teamchat.services.presence_tracker import PresenceTracker
from teamchat.services.room_router import ChannelRoomRouter
from teamchat.services.stores import MembershipStore, MessageStore

logger = logging.getLogger(__name__)


def _parse(model, payload: Any):
    try:
        return model.model_validate(payload)
    except pydantic.ValidationError as e:
        first = e.errors()[0]
        location = ".".join(str(part) for part in first.get("loc", ())) or "payload"
        raise ValidationError(f"Invalid {location}: {first.get('msg')}")


def _channel_ref(payload: Any) -> ChannelRef:
    # join/leave accept either a bare channel id or {"channelId": ...}
    if isinstance(payload, (str, int)) and not isinstance(payload, bool):
        payload = {"channelId": payload}
    return _parse(ChannelRef, payload)


def _as_channel_id(value: Any) -> Optional[int]:
    # Payload models accept numeric strings, so error events echo them as ints
    if isinstance(value, bool) or not isinstance(value, (int, str)):
        return None
    try:
        return int(value)
    except ValueError:
        return None


class RealtimeSessionCoordinator:
    def __init__(
        self,
        router: Optional[ChannelRoomRouter] = None,
        presence: Optional[PresenceTracker] = None,
        verifier: Optional[IdentityVerifier] = None,
        message_store: Optional[MessageStore] = None,
        membership_store: Optional[MembershipStore] = None,
        enforce_membership: Optional[bool] = None,
        history_limit: Optional[int] = None,
    ):
        self.router = router or ChannelRoomRouter()
        self.presence = presence or PresenceTracker(self.router)
        self.verifier = verifier or IdentityVerifier()
        self.message_store = message_store or MessageStore()
        self.membership_store = membership_store or MembershipStore()
        self.enforce_membership = settings.ENFORCE_CHANNEL_MEMBERSHIP if enforce_membership is None else enforce_membership
        self.history_limit = history_limit or settings.CHANNEL_HISTORY_LIMIT

        self.handlers = {
            "join_channel": self.join_channel,
            "leave_channel": self.leave_channel,
            "send_message": self.send_message,
            "typing": self.typing,
            "ping": self.ping,
        }

    # Lifecycle

    async def connect(self, websocket: Any, credential: Optional[str]) -> Connection:
        """
        Authenticate a new transport session and register it.

        Raises AuthenticationError before anything is registered, so a
        refused connection leaves no trace in the router or the tracker.
        """
        user = await self.verifier.authenticate(credential)

        connection = Connection(websocket=websocket, user_id=user.id, username=user.username)
        connection.state = ConnectionState.AUTHENTICATED
        self.router.attach(connection)

        await self.router.send(connection.connection_id, "session_ready", to_wire(SessionReady(
            connection_id=connection.connection_id,
            user_id=user.id,
            typing_timeout_seconds=settings.TYPING_TIMEOUT_SECONDS,
        )))
        await self.presence.register_connection(connection.connection_id, user.id)
        return connection

    async def disconnect(self, connection: Connection) -> None:
        if connection.state is ConnectionState.DISCONNECTED:
            return
        connection.state = ConnectionState.DISCONNECTED

        was_typing = self.router.detach(connection.connection_id)
        for channel_id in was_typing:
            await self._broadcast_typing(connection, channel_id, False)

        await self.presence.deregister_connection(connection.connection_id)
        logger.info(f"Connection {connection.connection_id} (user {connection.user_id}) closed")

    # Dispatch

    async def handle_event(self, connection: Connection, message: Any) -> None:
        if not connection.is_open:
            logger.debug(f"Ignoring event for closed connection {connection.connection_id}")
            return

        try:
            envelope = WebSocketMessage.model_validate(message)
        except pydantic.ValidationError:
            logger.info(f"Dropping malformed frame from connection {connection.connection_id}")
            await self._send_error(connection, "unknown", "Malformed event")
            return

        event = envelope.type
        handler = self.handlers.get(event)
        if handler is None:
            logger.info(f"Dropping unknown event {event!r} from connection {connection.connection_id}")
            await self._send_error(connection, event, "Unknown event type")
            return

        payload = envelope.payload
        try:
            await handler(connection, payload)
        except ValidationError as e:
            logger.info(f"[{event}] Invalid payload from connection {connection.connection_id}: {e.detail}")
            await self._send_error(connection, event, e.detail, payload)
        except PermissionDeniedError as e:
            logger.info(f"[{event}] Denied for user {connection.user_id}: {e.detail}")
            await self._send_error(connection, event, e.detail, payload)
        except StorageError as e:
            logger.error(f"[{event}] Storage failure for connection {connection.connection_id}: {e.detail}")
            await self._send_error(connection, event, "Server error", payload)
        except ChatError as e:
            logger.warning(f"[{event}] {e.__class__.__name__} for connection {connection.connection_id}: {e.detail}")
            await self._send_error(connection, event, e.detail or "Server error", payload)
        except Exception:
            logger.exception(f"[{event}] Unexpected error handling event for connection {connection.connection_id}")
            await self._send_error(connection, event, "Server error", payload)

    # Event handlers

    async def join_channel(self, connection: Connection, payload: Any) -> None:
        channel_id = _channel_ref(payload).channel_id
        await self._require_membership(connection, channel_id)
        if not connection.is_open:
            # Disconnected while the membership check was in flight
            return

        if self.router.subscribe(connection.connection_id, channel_id):
            logger.info(f"User {connection.user_id} joined channel {channel_id}")
        connection.state = ConnectionState.IN_CHANNEL

        messages = await self.message_store.get_history(channel_id, self.history_limit)
        await self.router.send(connection.connection_id, "channel_history", to_wire(ChannelHistory(channel_id=channel_id, messages=messages)))

    async def leave_channel(self, connection: Connection, payload: Any) -> None:
        channel_id = _channel_ref(payload).channel_id
        await self._leave(connection, channel_id)

    async def revoke_channel_access(self, user_id: int, channel_id: int) -> int:
        """
        Unsubscribe every live connection of the user from the channel.

        Called when the membership row is removed, so open sockets stop
        receiving a channel the user can no longer read. Returns the number
        of connections that were subscribed.
        """
        revoked = 0
        for connection_id in sorted(self.presence.user_connections.get(user_id, ())):
            connection = self.router.get(connection_id)
            if connection is None:
                continue
            if await self._leave(connection, channel_id):
                revoked += 1
        if revoked:
            logger.info(f"Revoked channel {channel_id} from {revoked} connection(s) of user {user_id}")
        return revoked

    async def send_message(self, connection: Connection, payload: Any) -> None:
        data = _parse(SendMessagePayload, payload)
        await self._require_membership(connection, data.channel_id)

        try:
            message = await self.message_store.create_message(data.channel_id, connection.user_id, data.content)
        except StorageError as e:
            logger.error(f"Send message error in channel {data.channel_id} for user {connection.user_id}: {e.detail}")
            await self._send_error(connection, "send_message", "Message could not be saved", payload)
            return

        # Sender included: clients de-duplicate their own message by id
        await self.router.broadcast(data.channel_id, "new_message", to_wire(message))
        await self.router.send(connection.connection_id, "message_ack", to_wire(MessageAck(
            channel_id=data.channel_id,
            message_id=message.id,
            client_message_id=data.client_message_id,
        )))

    async def typing(self, connection: Connection, payload: Any) -> None:
        data = _parse(TypingPayload, payload)
        self.router.set_typing(connection.connection_id, data.channel_id, data.is_typing)
        await self._broadcast_typing(connection, data.channel_id, data.is_typing)

    async def ping(self, connection: Connection, payload: Any) -> None:
        await self.router.send(connection.connection_id, "pong", {})

    # Helpers

    async def _leave(self, connection: Connection, channel_id: int) -> bool:
        if self.router.is_typing(connection.connection_id, channel_id):
            self.router.set_typing(connection.connection_id, channel_id, False)
            await self._broadcast_typing(connection, channel_id, False)

        left = self.router.unsubscribe(connection.connection_id, channel_id)
        if left:
            logger.info(f"User {connection.user_id} left channel {channel_id}")
        if not connection.channels and connection.is_open:
            connection.state = ConnectionState.IDLE
        return left

    async def _require_membership(self, connection: Connection, channel_id: int) -> None:
        if not self.enforce_membership:
            return
        if not await self.membership_store.is_member(connection.user_id, channel_id):
            raise PermissionDeniedError("You are not a member of this channel")

    async def _broadcast_typing(self, connection: Connection, channel_id: int, is_typing: bool) -> None:
        await self.router.broadcast(
            channel_id,
            "user_typing",
            to_wire(UserTyping(user_id=connection.user_id, is_typing=is_typing, channel_id=channel_id)),
            exclude_connection_id=connection.connection_id,
        )

    async def _send_error(self, connection: Connection, event: str, detail: str, payload: Any = None) -> None:
        channel_id = None
        client_message_id = None
        if isinstance(payload, dict):
            channel_id = payload.get("channelId")
            client_message_id = payload.get("clientMessageId")
        else:
            channel_id = payload

        error = ErrorEvent(
            event=event,
            detail=detail,
            channel_id=_as_channel_id(channel_id),
            client_message_id=client_message_id if isinstance(client_message_id, str) else None,
        )
        await self.router.send(connection.connection_id, "error", to_wire(error))


coordinator = RealtimeSessionCoordinator()
