from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from typing import List

from teamchat.core.dependencies import get_coordinator, get_db, get_current_user
from teamchat.core.exceptions import ConflictError, NotFoundError
from teamchat.crud import crud_channel
from teamchat.models.user import User
from teamchat.schemas import channel as channel_schema
from teamchat.schemas.user import ChannelMember
from teamchat.services.session_coordinator import RealtimeSessionCoordinator

router = APIRouter()

@router.get("/", response_model=List[channel_schema.ChannelSummary])
def read_channels(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return [
        channel_schema.ChannelSummary(
            id=channel.id,
            name=channel.name,
            description=channel.description,
            created_at=channel.created_at,
            member_count=member_count,
        )
        for channel, member_count in crud_channel.get_channels_with_member_count(db)
    ]

@router.post("/", response_model=channel_schema.Channel, status_code=status.HTTP_201_CREATED)
def create_channel(
    channel: channel_schema.ChannelCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    try:
        return crud_channel.create_channel(db=db, channel=channel, creator_id=current_user.id)
    except ConflictError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.detail)

@router.get("/{channel_id}", response_model=channel_schema.ChannelDetail)
def read_channel(
    channel_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    try:
        channel = crud_channel.get_channel_with_members(db, channel_id=channel_id)
    except NotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.detail)

    return channel_schema.ChannelDetail(
        id=channel.id,
        name=channel.name,
        description=channel.description,
        created_at=channel.created_at,
        members=[ChannelMember.model_validate(membership.user) for membership in channel.members],
    )

@router.post("/{channel_id}/join", response_model=channel_schema.ChannelMembership)
def join_channel(
    channel_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    try:
        return crud_channel.add_user_to_channel(db=db, user_id=current_user.id, channel_id=channel_id)
    except NotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.detail)
    except ConflictError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.detail)

@router.post("/{channel_id}/leave")
async def leave_channel(
    channel_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    realtime: RealtimeSessionCoordinator = Depends(get_coordinator),
):
    try:
        crud_channel.remove_user_from_channel(db=db, user_id=current_user.id, channel_id=channel_id)
    except NotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.detail)

    # Open sockets lose the channel together with the membership
    await realtime.revoke_channel_access(current_user.id, channel_id)
    return {"message": "Left channel"}
