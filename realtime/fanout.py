"""
Message delivery.

A sent message reaches recipients along two independent paths:

- room broadcast: `newMessage` to every connection subscribed to the chat's
  room, the sender's own connections included;
- per-user notification: `newMessageNotification` to every connection of every
  persisted member except the sender, whether or not they joined the room.

Members without a live connection get nothing here.
"""

from typing import Optional

from logging_config import get_logger
from realtime.collaborators import ChatStore
from realtime.delivery import LiveDelivery
from realtime.errors import (
    AccessDenied, EmptyMessage, MessageNotFound, MissingChat, PersistenceError, SendError,
)
from realtime.registry import ConnectionRegistry
from realtime.rooms import RoomMembership
from schemas.chat import Message, MessageCreate, SenderSummary, UserSummary
from schemas.events import (
    SendMessageEvent, message_read_event, new_message_event,
    new_message_notification_event, typing_event,
)

logger = get_logger(__name__)


class MessageFanout:
    def __init__(self, registry: ConnectionRegistry, rooms: RoomMembership, store: ChatStore, delivery: LiveDelivery):
        self.registry = registry
        self.rooms = rooms
        self.store = store
        self.delivery = delivery

    def _sender(self, connection_id: str) -> UserSummary:
        connection = self.registry.get(connection_id)
        if connection is None:
            raise SendError("Connection is closed")
        return connection.user

    async def send(self, sender_connection_id: str, payload: SendMessageEvent) -> Message:
        """Validate, persist and deliver one message.

        Raises MissingChat, EmptyMessage or AccessDenied (checked in that order)
        and PersistenceError when the message could not be stored.
        """
        sender = self._sender(sender_connection_id)

        if not payload.chat_id:
            raise MissingChat()
        if not payload.content and not payload.file_url:
            raise EmptyMessage()

        chat_id = payload.chat_id
        if not await self.store.is_chat_member(sender.id, chat_id):
            logger.warning(f"User {sender.id} tried to send to chat {chat_id} without membership")
            raise AccessDenied()

        message = await self.store.create_message(MessageCreate(
            sender_id=sender.id,
            chat_id=chat_id,
            receiver_id=payload.receiver_id,
            content=payload.content,
            type=payload.type,
            file_url=payload.file_url,
            file_name=payload.file_name,
            file_size=payload.file_size,
        ))
        logger.info(f"Message {message.id} stored for chat {chat_id} from user {sender.id}")

        try:
            await self.store.update_chat_timestamp(chat_id)
        except PersistenceError as e:
            logger.error(f"Failed to touch chat {chat_id} after message {message.id}: {e}")

        sender_summary = message.sender or SenderSummary(id=sender.id, username=sender.username, avatar=sender.avatar)
        if message.sender is None:
            message = message.model_copy(update={"sender": sender_summary})

        room_count = self.delivery.send_to_room(chat_id, new_message_event(message))
        notified = await self._notify_members(chat_id, sender.id, message, sender_summary)
        logger.debug(f"Message {message.id}: room delivery to {room_count} connections, notification to {notified} connections")
        return message

    async def _notify_members(self, chat_id: str, sender_id: str, message: Message, sender: SenderSummary) -> int:
        try:
            members = await self.store.list_chat_members(chat_id)
        except PersistenceError as e:
            # The message is stored and the room already has it; badges will catch up on reload
            logger.error(f"Could not list members of chat {chat_id} for message {message.id}: {e}")
            return 0

        event = new_message_notification_event(message, sender)
        sent = 0
        for member_id in members:
            if member_id == sender_id:
                continue
            sent += self.delivery.send_to_user(member_id, event)
        return sent

    def typing(self, connection_id: str, chat_id: str, is_typing: bool = True) -> int:
        """Relay a typing indicator to the rest of the room; nothing is stored."""
        connection = self.registry.get(connection_id)
        if connection is None or not self.rooms.is_subscribed(connection_id, chat_id):
            logger.debug(f"Ignoring typing from connection {connection_id} not subscribed to room {chat_id}")
            return 0
        return self.delivery.send_to_room(chat_id, typing_event(connection.user, chat_id, is_typing), exclude=connection_id)

    async def mark_read(self, connection_id: str, message_id: str, chat_id: str) -> Optional[Message]:
        reader = self._sender(connection_id)

        if not await self.store.is_chat_member(reader.id, chat_id):
            raise AccessDenied()

        message = await self.store.find_message_by_id(message_id)
        if message is None or message.chat_id != chat_id:
            raise MessageNotFound()
        if message.sender_id == reader.id:
            logger.info(f"User {reader.id} tried to mark their own message {message_id} as read")
            raise AccessDenied()

        message = await self.store.update_message_read_flag(message_id)
        if message is None:
            raise MessageNotFound()

        logger.debug(f"Message {message_id} marked read by user {reader.id}")
        self.delivery.send_to_room(chat_id, message_read_event(message_id, reader.id, chat_id))
        return message
