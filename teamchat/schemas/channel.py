from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from typing import List, Optional
import datetime

from teamchat.schemas.user import ChannelMember

_camel = ConfigDict(from_attributes=True, alias_generator=to_camel, populate_by_name=True)

class ChannelBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=80)
    description: Optional[str] = None

class ChannelCreate(ChannelBase):
    pass

class Channel(ChannelBase):
    id: int
    created_at: datetime.datetime

    model_config = _camel

class ChannelSummary(Channel):
    member_count: int = 0

class ChannelDetail(Channel):
    members: List[ChannelMember] = []

class ChannelMembership(BaseModel):
    id: int
    user_id: int
    channel_id: int
    joined_at: datetime.datetime

    model_config = _camel
