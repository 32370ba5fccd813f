from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel
from typing import Optional
import datetime

class UserBase(BaseModel):
    username: str
    email: str

class UserCreate(UserBase):
    pass

class User(UserBase):
    id: int
    created_at: Optional[datetime.datetime] = None

    model_config = ConfigDict(from_attributes=True, alias_generator=to_camel, populate_by_name=True)

class UserInChat(BaseModel):
    """Author summary embedded in message payloads."""
    id: int
    username: str

    model_config = ConfigDict(from_attributes=True)

class ChannelMember(BaseModel):
    id: int
    username: str
    email: str

    model_config = ConfigDict(from_attributes=True)
