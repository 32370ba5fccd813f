from teamchat.services.connection import Connection, ConnectionState
from teamchat.services.identity_service import IdentityVerifier
from teamchat.services.presence_tracker import PresenceTracker
from teamchat.services.room_router import ChannelRoomRouter
from teamchat.services.session_coordinator import RealtimeSessionCoordinator, coordinator
