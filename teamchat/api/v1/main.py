from fastapi import APIRouter

from teamchat.api.v1.endpoints import channels, messages, presence, users, websockets


api_router = APIRouter()
websocket_router = APIRouter()

api_router.include_router(channels.router, prefix="/channels", tags=["channels"])
api_router.include_router(messages.router, prefix="/messages", tags=["messages"])
api_router.include_router(presence.router, prefix="/presence", tags=["presence"])
api_router.include_router(users.router, prefix="/users", tags=["users"])

websocket_router.include_router(websockets.router)
