from fastapi import APIRouter, Depends

from teamchat.core.dependencies import get_current_user
from teamchat.models.user import User
from teamchat.schemas import user as user_schema

router = APIRouter()

@router.get("/me", response_model=user_schema.User)
def read_current_user(current_user: User = Depends(get_current_user)):
    return current_user
