from fastapi import APIRouter, Depends

from teamchat.core.dependencies import get_coordinator, get_current_user
from teamchat.models.user import User
from teamchat.schemas.presence import OnlineUsers
from teamchat.services.session_coordinator import RealtimeSessionCoordinator

router = APIRouter()

@router.get("/online", response_model=OnlineUsers)
def read_online_users(
    realtime: RealtimeSessionCoordinator = Depends(get_coordinator),
    current_user: User = Depends(get_current_user),
):
    return OnlineUsers(online_users=realtime.presence.list_online_user_ids())
