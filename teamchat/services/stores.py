"""
Async adapters over the CRUD modules for the realtime layer.

Each call opens its own session and runs in a worker thread, so a slow
database suspends only the event that issued the call. Results are converted
to schemas before the session closes. SQLAlchemy failures surface as
StorageError.
"""

import asyncio
import datetime
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError

from teamchat.core.database import SessionLocal
from teamchat.core.exceptions import StorageError
from teamchat.crud import crud_channel, crud_message, crud_presence, crud_user
from teamchat.schemas import message as message_schema, user as user_schema


class _SessionStore:
    def __init__(self, session_factory=SessionLocal):
        self.session_factory = session_factory

    async def _run(self, fn, *args, **kwargs):
        def work():
            db = self.session_factory()
            try:
                return fn(db, *args, **kwargs)
            finally:
                db.close()

        try:
            return await asyncio.to_thread(work)
        except SQLAlchemyError as e:
            raise StorageError(f"{fn.__name__} failed: {e.__class__.__name__}") from e


class UserStore(_SessionStore):
    async def get_user(self, user_id: int) -> Optional[user_schema.UserInChat]:
        def load(db):
            user = crud_user.get_user(db, user_id)
            return user_schema.UserInChat.model_validate(user) if user else None
        return await self._run(load)


class MembershipStore(_SessionStore):
    async def is_member(self, user_id: int, channel_id: int) -> bool:
        return await self._run(crud_channel.is_channel_member, user_id=user_id, channel_id=channel_id)


class MessageStore(_SessionStore):
    async def create_message(self, channel_id: int, user_id: int, content: str) -> message_schema.Message:
        def create(db):
            message = crud_message.create_message(
                db,
                message_schema.MessageCreate(content=content, channel_id=channel_id),
                user_id=user_id,
            )
            return message_schema.Message.model_validate(message)
        return await self._run(create)

    async def get_history(self, channel_id: int, limit: int) -> List[message_schema.Message]:
        def load(db):
            messages = crud_message.get_channel_history(db, channel_id=channel_id, limit=limit)
            return [message_schema.Message.model_validate(m) for m in messages]
        return await self._run(load)


class PresenceStore(_SessionStore):
    async def upsert(self, connection_id: str, user_id: int, seen_at: datetime.datetime) -> None:
        def upsert(db):
            crud_presence.upsert_presence(db, connection_id=connection_id, user_id=user_id, seen_at=seen_at)
        await self._run(upsert)

    async def mark_offline(self, connection_id: str, seen_at: datetime.datetime) -> None:
        await self._run(crud_presence.mark_offline, connection_id=connection_id, seen_at=seen_at)
