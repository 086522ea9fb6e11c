"""
Chat room subscriptions per connection.

A room corresponds 1:1 with a chat id. Subscribing requires the connection's
user to be a persisted member of the chat; leaving never checks anything.
"""

from typing import Dict, Set

from logging_config import get_logger
from realtime.collaborators import ChatStore
from realtime.errors import PersistenceError
from realtime.registry import ConnectionRegistry

logger = get_logger(__name__)


class RoomMembership:
    def __init__(self, registry: ConnectionRegistry, store: ChatStore):
        self.registry = registry
        self.store = store
        # chat_id -> {connection_id}
        self._room_connections: Dict[str, Set[str]] = {}
        # connection_id -> {chat_id}
        self._connection_rooms: Dict[str, Set[str]] = {}

    async def join(self, connection_id: str, user_id: str, chat_id: str) -> bool:
        """Subscribe a connection to a chat room if its user is a member.

        A non-member join is declined silently: nothing is reported to the
        client and False is returned.
        """
        try:
            is_member = await self.store.is_chat_member(user_id, chat_id)
        except PersistenceError as e:
            logger.error(f"Membership lookup failed for user {user_id} in chat {chat_id}: {e}")
            return False

        if not is_member:
            logger.info(f"User {user_id} is not a member of chat {chat_id}, join declined")
            return False

        # The connection may have closed while the lookup was in flight
        if connection_id not in self.registry:
            logger.debug(f"Connection {connection_id} closed before joining chat {chat_id}")
            return False

        self._room_connections.setdefault(chat_id, set()).add(connection_id)
        self._connection_rooms.setdefault(connection_id, set()).add(chat_id)
        logger.debug(f"Connection {connection_id} joined room {chat_id}")
        return True

    def leave(self, connection_id: str, chat_id: str) -> None:
        subscribers = self._room_connections.get(chat_id)
        if subscribers is not None:
            subscribers.discard(connection_id)
            if not subscribers:
                del self._room_connections[chat_id]

        rooms = self._connection_rooms.get(connection_id)
        if rooms is not None:
            rooms.discard(chat_id)
            if not rooms:
                del self._connection_rooms[connection_id]
        logger.debug(f"Connection {connection_id} left room {chat_id}")

    def drop_connection(self, connection_id: str) -> Set[str]:
        """Remove every subscription of a connection; returns the rooms it was in."""
        rooms = self._connection_rooms.pop(connection_id, set())
        for chat_id in rooms:
            subscribers = self._room_connections.get(chat_id)
            if subscribers is None:
                continue
            subscribers.discard(connection_id)
            if not subscribers:
                del self._room_connections[chat_id]
        return rooms

    def subscribers(self, chat_id: str) -> Set[str]:
        return set(self._room_connections.get(chat_id, ()))

    def rooms_for(self, connection_id: str) -> Set[str]:
        return set(self._connection_rooms.get(connection_id, ()))

    def is_subscribed(self, connection_id: str, chat_id: str) -> bool:
        return connection_id in self._room_connections.get(chat_id, ())
