from pydantic import BaseModel, ConfigDict, field_validator
from pydantic.alias_generators import to_camel
from typing import Any, List, Optional
import datetime

from teamchat.schemas.message import Message


class WebSocketMessage(BaseModel):
    type: str
    payload: Any = None


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# Client -> server payloads

class ChannelRef(_CamelModel):
    channel_id: int


class SendMessagePayload(_CamelModel):
    channel_id: int
    content: str
    client_message_id: Optional[str] = None

    @field_validator("content")
    @classmethod
    def content_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("Message content cannot be empty")
        return value


class TypingPayload(_CamelModel):
    channel_id: int
    is_typing: bool


# Server -> client payloads

class SessionReady(_CamelModel):
    connection_id: str
    user_id: int
    typing_timeout_seconds: int


class PresenceUpdate(_CamelModel):
    user_id: int
    online: bool
    last_seen: Optional[datetime.datetime] = None


class ChannelHistory(_CamelModel):
    channel_id: int
    messages: List[Message]


class UserTyping(_CamelModel):
    user_id: int
    is_typing: bool
    channel_id: int


class MessageAck(_CamelModel):
    channel_id: int
    message_id: int
    client_message_id: Optional[str] = None


class ErrorEvent(_CamelModel):
    event: str
    detail: str
    channel_id: Optional[int] = None
    client_message_id: Optional[str] = None


def to_wire(model: BaseModel) -> dict:
    """Serialize an event payload the way clients expect it (camelCase, JSON-safe, no nulls)."""
    return model.model_dump(mode="json", by_alias=True, exclude_none=True)
