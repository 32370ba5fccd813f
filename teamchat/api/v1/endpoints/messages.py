from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session
from typing import List, Optional

from teamchat.core.config import settings
from teamchat.core.dependencies import get_db, get_current_user
from teamchat.core.exceptions import NotFoundError
from teamchat.crud import crud_channel, crud_message
from teamchat.models.user import User
from teamchat.schemas import message as message_schema

router = APIRouter()

@router.get("/{channel_id}", response_model=List[message_schema.Message])
def read_channel_messages(
    channel_id: int,
    cursor: Optional[int] = None,
    limit: int = Query(50, ge=1, le=settings.MESSAGE_PAGE_LIMIT_MAX),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Newest-first page of a channel's messages. Pass the last id of a page as `cursor` to get the next one."""
    if settings.ENFORCE_CHANNEL_MEMBERSHIP and not crud_channel.is_channel_member(db, user_id=current_user.id, channel_id=channel_id):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="You are not a member of this channel")

    try:
        return crud_message.get_channel_messages(db=db, channel_id=channel_id, cursor=cursor, limit=limit)
    except NotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.detail)
