import functools
import json
import uuid
from datetime import datetime, timezone
from typing import Iterable, List, Optional

import redis
import redis.asyncio as aioredis

from constants import REDIS_DB, REDIS_HOST, REDIS_PASSWORD, REDIS_PORT
from logging_config import get_logger
from realtime.errors import PersistenceError
from redis_keys import (
    REDIS_CHAT_KEY, REDIS_CHAT_MEMBERS_KEY, REDIS_CHAT_MESSAGES_KEY, REDIS_MESSAGE_KEY, REDIS_USER_KEY,
)
from schemas.chat import Message, MessageCreate, SenderSummary, UserSummary

logger = get_logger(__name__)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _to_hash(data: dict) -> dict:
    # Convert dict values to strings for Redis hash, skip None values
    result = {}
    for k, v in data.items():
        if v is None:
            continue
        if isinstance(v, bool):
            result[k] = "1" if v else "0"
        elif isinstance(v, (dict, list)):
            result[k] = json.dumps(v)
        elif isinstance(v, datetime):
            result[k] = v.isoformat()
        else:
            result[k] = str(v)
    return result


def _flag(value: Optional[str]) -> bool:
    return value in ("1", "true", "True")


def storage_call(func):
    """Log and re-raise Redis failures as PersistenceError."""
    @functools.wraps(func)
    async def wrapper(self, *args, **kwargs):
        try:
            return await func(self, *args, **kwargs)
        except redis.RedisError as e:
            logger.error(f"Redis error in {func.__name__}: {e}", exc_info=True)
            raise PersistenceError(f"{func.__name__} failed: {e}") from e
    return wrapper


class RedisBackend:
    """Chat store over Redis hashes and sets (users, chats, members, messages)."""

    def __init__(self, redis_client: Optional[aioredis.Redis] = None):
        if redis_client is None:
            logger.info(f"Initializing RedisBackend with connection to {REDIS_HOST}:{REDIS_PORT}")
            redis_client = aioredis.Redis(
                host=REDIS_HOST, port=REDIS_PORT, password=REDIS_PASSWORD, db=REDIS_DB, decode_responses=True,
            )
        self.redis_client = redis_client

    async def ping(self) -> bool:
        try:
            await self.redis_client.ping()
            logger.info(f"Redis client connected successfully to {REDIS_HOST}:{REDIS_PORT}")
            return True
        except redis.RedisError as e:
            logger.error(f"Failed to connect to Redis at {REDIS_HOST}:{REDIS_PORT}: {e}")
            return False

    async def close(self):
        await self.redis_client.aclose()
        logger.debug("Redis client closed")

    # Users

    @storage_call
    async def create_user(self, user_id: str, username: str, **profile) -> UserSummary:
        key = REDIS_USER_KEY.format(user_id=user_id)
        await self.redis_client.hset(key, mapping=_to_hash({
            "id": user_id,
            "username": username,
            "is_online": False,
            "created_at": _now(),
            **profile,
        }))
        logger.info(f"Created user {user_id} ({username})")
        return await self.find_user_by_id(user_id)

    @storage_call
    async def find_user_by_id(self, user_id: str) -> Optional[UserSummary]:
        logger.debug(f"Fetching user {user_id}")
        data = await self.redis_client.hgetall(REDIS_USER_KEY.format(user_id=user_id))
        if not data:
            logger.debug(f"User {user_id} not found in Redis")
            return None
        return UserSummary(
            id=data.get("id", user_id),
            username=data.get("username", user_id),
            first_name=data.get("first_name"),
            last_name=data.get("last_name"),
            avatar=data.get("avatar"),
            is_online=_flag(data.get("is_online")),
            last_seen=data.get("last_seen") or None,
        )

    @storage_call
    async def update_user_presence(self, user_id: str, is_online: bool, last_seen: Optional[datetime] = None) -> None:
        key = REDIS_USER_KEY.format(user_id=user_id)
        if not await self.redis_client.exists(key):
            logger.debug(f"Skipping presence update for unknown user {user_id}")
            return
        await self.redis_client.hset(key, mapping=_to_hash({"is_online": is_online, "last_seen": last_seen}))
        logger.debug(f"Presence for user {user_id} stored: online={is_online}, last_seen={last_seen}")

    # Chats

    @storage_call
    async def create_chat(self, chat_id: str, member_ids: Iterable[str], name: Optional[str] = None, is_group: bool = False) -> str:
        logger.info(f"Creating chat {chat_id}")
        now = _now()
        await self.redis_client.hset(REDIS_CHAT_KEY.format(chat_id=chat_id), mapping=_to_hash({
            "id": chat_id,
            "name": name,
            "is_group": is_group,
            "created_at": now,
            "updated_at": now,
        }))
        members = list(member_ids)
        if members:
            await self.redis_client.sadd(REDIS_CHAT_MEMBERS_KEY.format(chat_id=chat_id), *members)
        logger.debug(f"Chat {chat_id} created with {len(members)} members")
        return chat_id

    @storage_call
    async def add_chat_member(self, chat_id: str, user_id: str) -> bool:
        added = await self.redis_client.sadd(REDIS_CHAT_MEMBERS_KEY.format(chat_id=chat_id), user_id)
        logger.debug(f"User {user_id} added to chat {chat_id} (new member: {bool(added)})")
        return bool(added)

    @storage_call
    async def is_chat_member(self, user_id: str, chat_id: str) -> bool:
        return bool(await self.redis_client.sismember(REDIS_CHAT_MEMBERS_KEY.format(chat_id=chat_id), user_id))

    @storage_call
    async def list_chat_members(self, chat_id: str) -> List[str]:
        members = await self.redis_client.smembers(REDIS_CHAT_MEMBERS_KEY.format(chat_id=chat_id))
        logger.debug(f"Chat {chat_id} has {len(members)} members")
        return sorted(members)

    @storage_call
    async def update_chat_timestamp(self, chat_id: str) -> None:
        await self.redis_client.hset(REDIS_CHAT_KEY.format(chat_id=chat_id), "updated_at", _now())

    # Messages

    @storage_call
    async def create_message(self, data: MessageCreate) -> Message:
        message_id = uuid.uuid4().hex
        now = _now()
        await self.redis_client.hset(REDIS_MESSAGE_KEY.format(message_id=message_id), mapping=_to_hash({
            "id": message_id,
            **data.model_dump(),
            "is_read": False,
            "created_at": now,
            "updated_at": now,
        }))
        await self.redis_client.rpush(REDIS_CHAT_MESSAGES_KEY.format(chat_id=data.chat_id), message_id)
        logger.debug(f"Message {message_id} created in chat {data.chat_id}")

        message = await self.find_message_by_id(message_id)
        sender = await self.find_user_by_id(data.sender_id)
        if sender is not None:
            message = message.model_copy(update={
                "sender": SenderSummary(id=sender.id, username=sender.username, avatar=sender.avatar),
            })
        return message

    @storage_call
    async def find_message_by_id(self, message_id: str) -> Optional[Message]:
        data = await self.redis_client.hgetall(REDIS_MESSAGE_KEY.format(message_id=message_id))
        if not data:
            return None
        return Message(
            id=data["id"],
            chat_id=data["chat_id"],
            sender_id=data["sender_id"],
            receiver_id=data.get("receiver_id"),
            content=data.get("content"),
            type=data.get("type", "TEXT"),
            file_url=data.get("file_url"),
            file_name=data.get("file_name"),
            file_size=int(data["file_size"]) if data.get("file_size") else None,
            is_read=_flag(data.get("is_read")),
            created_at=data["created_at"],
            updated_at=data["updated_at"],
        )

    @storage_call
    async def update_message_read_flag(self, message_id: str) -> Optional[Message]:
        key = REDIS_MESSAGE_KEY.format(message_id=message_id)
        if not await self.redis_client.exists(key):
            logger.debug(f"Message {message_id} not found, read flag not updated")
            return None
        await self.redis_client.hset(key, mapping={"is_read": "1", "updated_at": _now()})
        return await self.find_message_by_id(message_id)
