from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload
from typing import List, Optional, Tuple

from teamchat.core.exceptions import ConflictError, NotFoundError
from teamchat.models import Channel, ChannelMembership
from teamchat.schemas import channel as channel_schema

# CRUD for Channel
def create_channel(db: Session, channel: channel_schema.ChannelCreate, creator_id: int) -> Channel:
    if get_channel_by_name(db, channel.name):
        raise ConflictError("Channel name already taken")

    db_channel = Channel(name=channel.name, description=channel.description)
    # The creator is the first member, written in the same transaction
    db_channel.members.append(ChannelMembership(user_id=creator_id))
    db.add(db_channel)
    try:
        db.commit()
    except IntegrityError:
        # Lost a race with a concurrent create of the same name
        db.rollback()
        raise ConflictError("Channel name already taken")
    db.refresh(db_channel)
    return db_channel

def get_channel(db: Session, channel_id: int) -> Optional[Channel]:
    return db.query(Channel).filter(Channel.id == channel_id).first()

def get_channel_by_name(db: Session, name: str) -> Optional[Channel]:
    return db.query(Channel).filter(Channel.name == name).first()

def get_channel_with_members(db: Session, channel_id: int) -> Channel:
    channel = db.query(Channel).options(
        joinedload(Channel.members).joinedload(ChannelMembership.user)
    ).filter(Channel.id == channel_id).first()
    if channel is None:
        raise NotFoundError("Channel not found")
    return channel

def get_channels_with_member_count(db: Session) -> List[Tuple[Channel, int]]:
    """All channels, oldest first, each paired with its member count."""
    member_count = func.count(ChannelMembership.id)
    return db.query(Channel, member_count).outerjoin(
        ChannelMembership, ChannelMembership.channel_id == Channel.id
    ).group_by(Channel.id).order_by(Channel.created_at.asc(), Channel.id.asc()).all()

# CRUD for ChannelMembership
def get_membership(db: Session, user_id: int, channel_id: int) -> Optional[ChannelMembership]:
    return db.query(ChannelMembership).filter(
        ChannelMembership.user_id == user_id,
        ChannelMembership.channel_id == channel_id
    ).first()

def is_channel_member(db: Session, user_id: int, channel_id: int) -> bool:
    return get_membership(db, user_id=user_id, channel_id=channel_id) is not None

def add_user_to_channel(db: Session, user_id: int, channel_id: int) -> ChannelMembership:
    if get_channel(db, channel_id) is None:
        raise NotFoundError("Channel not found")
    if is_channel_member(db, user_id=user_id, channel_id=channel_id):
        raise ConflictError("Already a member")

    db_membership = ChannelMembership(user_id=user_id, channel_id=channel_id)
    db.add(db_membership)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ConflictError("Already a member")
    db.refresh(db_membership)
    return db_membership

def remove_user_from_channel(db: Session, user_id: int, channel_id: int) -> None:
    deleted = db.query(ChannelMembership).filter(
        ChannelMembership.user_id == user_id,
        ChannelMembership.channel_id == channel_id
    ).delete()
    db.commit()
    if not deleted:
        raise NotFoundError("Not a member of this channel")
