from sqlalchemy import and_, or_
from sqlalchemy.orm import Session, joinedload
from typing import List, Optional

from teamchat.core.exceptions import NotFoundError
from teamchat.models import Message
from teamchat.schemas import message as message_schema

def create_message(db: Session, message: message_schema.MessageCreate, user_id: int) -> Message:
    db_message = Message(content=message.content, channel_id=message.channel_id, user_id=user_id)
    db.add(db_message)
    db.commit()
    # Reload with the author so the row can be serialized after the session closes
    return get_message(db, db_message.id)

def get_message(db: Session, message_id: int) -> Optional[Message]:
    return db.query(Message).options(joinedload(Message.user)).filter(Message.id == message_id).first()

def get_channel_history(db: Session, channel_id: int, limit: int) -> List[Message]:
    """The most recent `limit` messages of a channel, returned oldest first."""
    newest_first = db.query(Message).options(joinedload(Message.user)).filter(
        Message.channel_id == channel_id
    ).order_by(Message.created_at.desc(), Message.id.desc()).limit(limit).all()
    return list(reversed(newest_first))

def get_channel_messages(db: Session, channel_id: int, cursor: Optional[int] = None, limit: int = 50) -> List[Message]:
    """
    A newest-first page of a channel's messages.

    `cursor` is the id of the last message of the previous page; the page
    starts with the message immediately older than it.
    """
    query = db.query(Message).options(joinedload(Message.user)).filter(Message.channel_id == channel_id)

    if cursor is not None:
        anchor = db.query(Message).filter(Message.id == cursor, Message.channel_id == channel_id).first()
        if anchor is None:
            raise NotFoundError("Cursor message not found")
        query = query.filter(or_(
            Message.created_at < anchor.created_at,
            and_(Message.created_at == anchor.created_at, Message.id < anchor.id),
        ))

    return query.order_by(Message.created_at.desc(), Message.id.desc()).limit(limit).all()
