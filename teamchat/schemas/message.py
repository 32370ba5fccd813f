from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel
import datetime

from teamchat.schemas.user import UserInChat

class MessageBase(BaseModel):
    content: str
    channel_id: int

class MessageCreate(MessageBase):
    pass

class Message(MessageBase):
    id: int
    user_id: int
    created_at: datetime.datetime
    user: UserInChat

    model_config = ConfigDict(from_attributes=True, alias_generator=to_camel, populate_by_name=True)
