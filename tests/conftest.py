import asyncio
import uuid
from datetime import datetime, timezone

import pytest

from realtime.errors import PersistenceError
from realtime.hub import ChatHub
from realtime.tokens import JWTTokenService
from schemas.chat import Message, SenderSummary, UserSummary

TEST_SECRET = "test-secret"


class FakeChatStore:
    """In-memory stand-in for the Redis backend.

    `failing` holds method names that raise PersistenceError; `delays` maps a
    method name to seconds slept before it runs.
    """

    def __init__(self):
        self.users = {}
        self.members = {}
        self.messages = {}
        self.touched_chats = []
        self.presence_writes = []
        self.failing = set()
        self.delays = {}

    def add_user(self, user_id, username=None):
        self.users[user_id] = UserSummary(id=user_id, username=username or f"user_{user_id}")
        return self.users[user_id]

    def add_chat(self, chat_id, *member_ids):
        self.members[chat_id] = set(member_ids)

    async def _enter(self, name):
        if name in self.delays:
            await asyncio.sleep(self.delays[name])
        if name in self.failing:
            raise PersistenceError(f"{name} failed")

    async def find_user_by_id(self, user_id):
        await self._enter("find_user_by_id")
        return self.users.get(user_id)

    async def is_chat_member(self, user_id, chat_id):
        await self._enter("is_chat_member")
        return user_id in self.members.get(chat_id, set())

    async def list_chat_members(self, chat_id):
        await self._enter("list_chat_members")
        return sorted(self.members.get(chat_id, set()))

    async def create_message(self, data):
        await self._enter("create_message")
        now = datetime.now(timezone.utc)
        sender = self.users[data.sender_id]
        message = Message(
            id=uuid.uuid4().hex,
            created_at=now,
            updated_at=now,
            sender=SenderSummary(id=sender.id, username=sender.username),
            **data.model_dump(),
        )
        self.messages[message.id] = message
        return message

    async def update_chat_timestamp(self, chat_id):
        await self._enter("update_chat_timestamp")
        self.touched_chats.append(chat_id)

    async def update_user_presence(self, user_id, is_online, last_seen=None):
        await self._enter("update_user_presence")
        self.presence_writes.append((user_id, is_online, last_seen))

    async def find_message_by_id(self, message_id):
        await self._enter("find_message_by_id")
        return self.messages.get(message_id)

    async def update_message_read_flag(self, message_id):
        await self._enter("update_message_read_flag")
        message = self.messages.get(message_id)
        if message is None:
            return None
        message = message.model_copy(update={"is_read": True})
        self.messages[message_id] = message
        return message


def drain(connection):
    """Pop every event queued for a connection."""
    events = []
    while not connection.outbox.empty():
        events.append(connection.outbox.get_nowait())
    return events


def names(events):
    return [event["event"] for event in events]


@pytest.fixture
def store():
    store = FakeChatStore()
    for user_id in ("u1", "u2", "u3", "u4"):
        store.add_user(user_id)
    store.add_chat("c1", "u1", "u2", "u3")
    return store


@pytest.fixture
def tokens():
    return JWTTokenService(secret=TEST_SECRET)


@pytest.fixture
def hub(store, tokens):
    return ChatHub(store, tokens, auth_timeout=1.0)


@pytest.fixture
def connect(hub, tokens):
    async def _connect(user_id):
        return await hub.connect(tokens.issue(user_id))
    return _connect


@pytest.fixture(name="drain")
def drain_fixture():
    return drain


@pytest.fixture(name="names")
def names_fixture():
    return names
