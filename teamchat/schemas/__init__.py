from teamchat.schemas.user import User, UserCreate, UserInChat, ChannelMember
from teamchat.schemas.channel import Channel, ChannelCreate, ChannelSummary, ChannelDetail, ChannelMembership
from teamchat.schemas.message import Message, MessageCreate
from teamchat.schemas.presence import OnlineUsers
from teamchat.schemas.websockets import WebSocketMessage
