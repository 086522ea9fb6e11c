"""
Per-process hub for live connections.

The hub owns one registry and wires the gateway, room membership, presence and
fanout around it. Transports call `connect`, `dispatch` and `disconnect`; every
failure inside `dispatch` is turned into an `error` event for the originating
connection and never escapes to the transport.
"""

import uuid
from typing import Optional

from constants import AUTH_TIMEOUT_SECONDS, PRESENCE_WRITE_TIMEOUT_SECONDS
from logging_config import get_logger
from realtime.collaborators import ChatStore, TokenVerifier
from realtime.delivery import LiveDelivery
from realtime.errors import InvalidEvent, PersistenceError, SendError
from realtime.fanout import MessageFanout
from realtime.gateway import ConnectionGateway
from realtime.presence import PresenceTracker
from realtime.registry import Connection, ConnectionRegistry
from realtime.rooms import RoomMembership
from schemas.events import (
    JoinChatEvent, LeaveChatEvent, MarkMessageReadEvent, SendMessageEvent,
    StopTypingEvent, TypingEvent, error_event, parse_inbound,
)

logger = get_logger(__name__)


class ChatHub:
    def __init__(self, store: ChatStore, tokens: TokenVerifier, auth_timeout: float = AUTH_TIMEOUT_SECONDS,
                 presence_timeout: float = PRESENCE_WRITE_TIMEOUT_SECONDS):
        self.store = store
        self.registry = ConnectionRegistry()
        self.rooms = RoomMembership(self.registry, store)
        self.delivery = LiveDelivery(self.registry, self.rooms)
        self.presence = PresenceTracker(store, self.delivery, timeout=presence_timeout)
        self.fanout = MessageFanout(self.registry, self.rooms, store, self.delivery)
        self.gateway = ConnectionGateway(tokens, store, timeout=auth_timeout)

    async def connect(self, token: Optional[str], connection_id: Optional[str] = None) -> Connection:
        """Authenticate and admit a connection.

        AuthError propagates to the transport, which rejects the socket. Reusing
        the id of a live connection raises ValueError.
        """
        user = await self.gateway.admit(token)

        connection = Connection(connection_id=connection_id or str(uuid.uuid4()), user=user)
        if connection.connection_id in self.registry:
            raise ValueError(f"Connection {connection.connection_id} is already registered")
        is_first = self.registry.register(user.id, connection.connection_id, connection)
        logger.info(f"User {user.username} ({user.id}) connected as {connection.connection_id} "
                    f"(connections: {self.registry.connection_count(user.id)})")

        try:
            await self.presence.on_connection_registered(user, is_first)
        except Exception as e:
            logger.error(f"Presence update failed for user {user.id} on connect: {e}", exc_info=True)
        return connection

    async def disconnect(self, connection_id: str) -> None:
        """Tear down a connection; calling it twice is harmless."""
        connection = self.registry.get(connection_id)
        user_id, was_last = self.registry.unregister(connection_id)
        if user_id is None:
            return
        rooms = self.rooms.drop_connection(connection_id)
        username = connection.user.username if connection else user_id
        logger.info(f"User {username} ({user_id}) disconnected {connection_id}, left {len(rooms)} rooms")

        try:
            await self.presence.on_connection_removed(user_id, was_last)
        except Exception as e:
            logger.error(f"Presence update failed for user {user_id} on disconnect: {e}", exc_info=True)

    async def dispatch(self, connection_id: str, frame: str) -> None:
        connection = self.registry.get(connection_id)
        if connection is None:
            logger.debug(f"Ignoring frame for unknown connection {connection_id}")
            return

        event = None
        try:
            event = parse_inbound(frame)
            logger.debug(f"Event {event.event} from connection {connection_id}")
            await self._handle(connection, event)
        except InvalidEvent as e:
            logger.info(f"Invalid event from connection {connection_id}: {e}")
            self.delivery.send_to_connection(connection_id, error_event(e.message))
        except SendError as e:
            logger.info(f"Rejected event from connection {connection_id}: {e.reason}")
            self.delivery.send_to_connection(connection_id, error_event(e.message))
        except PersistenceError as e:
            logger.error(f"Storage failure handling event from connection {connection_id}: {e}")
            self.delivery.send_to_connection(connection_id, error_event(self._failure_message(event)))
        except Exception as e:
            logger.error(f"Unexpected error handling event from connection {connection_id}: {e}", exc_info=True)
            self.delivery.send_to_connection(connection_id, error_event("Internal server error"))

    async def _handle(self, connection: Connection, event) -> None:
        connection_id = connection.connection_id
        if isinstance(event, JoinChatEvent):
            await self.rooms.join(connection_id, connection.user_id, event.chat_id)
        elif isinstance(event, LeaveChatEvent):
            self.rooms.leave(connection_id, event.chat_id)
        elif isinstance(event, SendMessageEvent):
            await self.fanout.send(connection_id, event)
        elif isinstance(event, TypingEvent):
            self.fanout.typing(connection_id, event.chat_id, is_typing=True)
        elif isinstance(event, StopTypingEvent):
            self.fanout.typing(connection_id, event.chat_id, is_typing=False)
        elif isinstance(event, MarkMessageReadEvent):
            await self.fanout.mark_read(connection_id, event.message_id, event.chat_id)

    @staticmethod
    def _failure_message(event) -> str:
        if isinstance(event, SendMessageEvent):
            return "Failed to send message"
        return f"Failed to process {event.event}" if event is not None else "Operation failed"
