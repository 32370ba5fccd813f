from teamchat.models.user import User
from teamchat.models.channel import Channel
from teamchat.models.channel_membership import ChannelMembership
from teamchat.models.message import Message
from teamchat.models.presence import Presence
