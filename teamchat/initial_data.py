"""
Seed development data: a few users and a #general channel they all belong to,
then print a bearer token per user for connecting to /ws.

    python -m teamchat.initial_data
"""

import logging

from teamchat import models  # noqa: F401
from teamchat.core.database import Base, SessionLocal, engine
from teamchat.core.exceptions import ConflictError
from teamchat.core.security import create_access_token
from teamchat.crud import crud_channel, crud_user
from teamchat.schemas import channel as channel_schema, user as user_schema

logger = logging.getLogger(__name__)

DEFAULT_USERS = ["alice", "bob", "carol"]
DEFAULT_CHANNEL = "general"


def create_initial_data(usernames=DEFAULT_USERS) -> dict:
    """Create missing users and the default channel. Returns {username: token}."""
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        users = []
        for username in usernames:
            user = crud_user.get_user_by_username(db, username)
            if user is None:
                logger.info(f"Creating user {username}...")
                user = crud_user.create_user(db, user_schema.UserCreate(username=username, email=f"{username}@example.com"))
            users.append(user)

        channel = crud_channel.get_channel_by_name(db, DEFAULT_CHANNEL)
        if channel is None and users:
            logger.info(f"Creating #{DEFAULT_CHANNEL}...")
            channel = crud_channel.create_channel(
                db,
                channel_schema.ChannelCreate(name=DEFAULT_CHANNEL, description="Company-wide announcements and chatter"),
                creator_id=users[0].id,
            )
        for user in users[1:]:
            try:
                crud_channel.add_user_to_channel(db, user_id=user.id, channel_id=channel.id)
            except ConflictError:
                pass  # Already a member

        return {user.username: create_access_token(user.id) for user in users}
    finally:
        db.close()


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    for username, token in create_initial_data().items():
        print(f"{username}: {token}")
