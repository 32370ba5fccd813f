import asyncio
import datetime
import os

# The app module builds its engine at import time; keep it off the filesystem
os.environ.setdefault("DATABASE_URL", "sqlite://")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from teamchat import models  # noqa: F401
from teamchat.core.database import Base
from teamchat.core.dependencies import get_coordinator, get_db
from teamchat.core.exceptions import AuthenticationError, StorageError
from teamchat.core.security import create_access_token
from teamchat.crud import crud_user
from teamchat.main import app
from teamchat.schemas.message import Message
from teamchat.schemas.user import UserCreate, UserInChat
from teamchat.services.identity_service import IdentityVerifier
from teamchat.services.presence_tracker import PresenceTracker
from teamchat.services.room_router import ChannelRoomRouter
from teamchat.services.session_coordinator import RealtimeSessionCoordinator
from teamchat.services.stores import MembershipStore, MessageStore, PresenceStore, UserStore


# ---------------------------------------------------------------------------
# In-memory collaborators for the realtime core
# ---------------------------------------------------------------------------

class FakeWebSocket:
    def __init__(self, delay: float = 0.0):
        self.sent = []
        self.delay = delay
        self.closed_with = None

    async def send_json(self, data):
        if self.delay:
            await asyncio.sleep(self.delay)
        self.sent.append(data)

    async def close(self, code: int = 1000, reason: str = ""):
        self.closed_with = code

    def types(self):
        return [frame["type"] for frame in self.sent]

    def payloads(self, event: str):
        return [frame["payload"] for frame in self.sent if frame["type"] == event]


class BrokenWebSocket(FakeWebSocket):
    async def send_json(self, data):
        raise RuntimeError("socket is gone")


class StubVerifier:
    """Accepts credentials of the form `token-<user id>` for known users."""

    def __init__(self, users):
        self.users = {user.id: user for user in users}

    async def authenticate(self, credential):
        if not credential or not credential.startswith("token-"):
            raise AuthenticationError()
        user = self.users.get(int(credential.split("-", 1)[1]))
        if user is None:
            raise AuthenticationError()
        return user


class InMemoryMessageStore:
    def __init__(self, users):
        self.users = {user.id: user for user in users}
        self.messages = []
        self.fail = False
        self.create_calls = 0

    async def create_message(self, channel_id, user_id, content):
        self.create_calls += 1
        if self.fail:
            raise StorageError("database is down")
        message = Message(
            id=len(self.messages) + 1,
            content=content,
            channel_id=channel_id,
            user_id=user_id,
            created_at=datetime.datetime.now(datetime.timezone.utc),
            user=self.users[user_id],
        )
        self.messages.append(message)
        return message

    async def get_history(self, channel_id, limit):
        ordered = sorted(
            (m for m in self.messages if m.channel_id == channel_id),
            key=lambda m: (m.created_at, m.id),
        )
        return ordered[-limit:]


class InMemoryMembershipStore:
    def __init__(self):
        self.members = set()

    def add(self, user_id, channel_id):
        self.members.add((user_id, channel_id))

    async def is_member(self, user_id, channel_id):
        return (user_id, channel_id) in self.members


class InMemoryPresenceStore:
    def __init__(self):
        self.records = {}
        self.fail = False

    async def upsert(self, connection_id, user_id, seen_at):
        if self.fail:
            raise StorageError("presence table unavailable")
        self.records[connection_id] = {"user_id": user_id, "online": True, "last_seen": seen_at}

    async def mark_offline(self, connection_id, seen_at):
        if self.fail:
            raise StorageError("presence table unavailable")
        self.records[connection_id].update(online=False, last_seen=seen_at)


@pytest.fixture
def chat_users():
    return [UserInChat(id=1, username="alice"), UserInChat(id=2, username="bob"), UserInChat(id=3, username="carol")]


@pytest.fixture
def message_store(chat_users):
    return InMemoryMessageStore(chat_users)


@pytest.fixture
def membership_store():
    return InMemoryMembershipStore()


@pytest.fixture
def presence_store():
    return InMemoryPresenceStore()


@pytest.fixture
def coordinator(chat_users, message_store, membership_store, presence_store):
    router = ChannelRoomRouter()
    return RealtimeSessionCoordinator(
        router=router,
        presence=PresenceTracker(router, presence_store),
        verifier=StubVerifier(chat_users),
        message_store=message_store,
        membership_store=membership_store,
        enforce_membership=True,
        history_limit=50,
    )


# ---------------------------------------------------------------------------
# Database and HTTP fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def session_factory():
    engine = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
    Base.metadata.create_all(bind=engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def make_user(db):
    def _make_user(username):
        return crud_user.create_user(db, UserCreate(username=username, email=f"{username}@example.com"))
    return _make_user


def auth_headers(user) -> dict:
    return {"Authorization": f"Bearer {create_access_token(user.id)}"}


@pytest.fixture
def realtime(session_factory):
    router = ChannelRoomRouter()
    return RealtimeSessionCoordinator(
        router=router,
        presence=PresenceTracker(router, PresenceStore(session_factory)),
        verifier=IdentityVerifier(UserStore(session_factory)),
        message_store=MessageStore(session_factory),
        membership_store=MembershipStore(session_factory),
        enforce_membership=True,
    )


@pytest.fixture
def client(session_factory, realtime):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_coordinator] = lambda: realtime
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
