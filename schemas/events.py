"""
Wire events exchanged over the live connection.

Every frame, in both directions, is a JSON object:

    {"event": "<name>", "data": <payload>}

Inbound payloads are validated into a closed set of models before they reach
the hub. Outbound payloads are built by the helpers at the bottom of the module.
"""

import json
from datetime import datetime
from typing import Annotated, Any, Dict, Literal, Optional, Union

from pydantic import Field, TypeAdapter, ValidationError

from constants import MESSAGE_MAX_LENGTH
from realtime.errors import InvalidEvent
from schemas.chat import CamelModel, Message, MessageType, SenderSummary, UserSummary

# Inbound event names
JOIN_CHAT = "joinChat"
LEAVE_CHAT = "leaveChat"
SEND_MESSAGE = "sendMessage"
TYPING = "typing"
STOP_TYPING = "stopTyping"
MARK_MESSAGE_READ = "markMessageRead"

# Outbound event names
USER_ONLINE = "userOnline"
USER_OFFLINE = "userOffline"
NEW_MESSAGE = "newMessage"
NEW_MESSAGE_NOTIFICATION = "newMessageNotification"
USER_TYPING = "userTyping"
USER_STOPPED_TYPING = "userStoppedTyping"
MESSAGE_READ = "messageRead"
ERROR = "error"


class JoinChatEvent(CamelModel):
    event: Literal["joinChat"]
    chat_id: str = Field(min_length=1)


class LeaveChatEvent(CamelModel):
    event: Literal["leaveChat"]
    chat_id: str = Field(min_length=1)


class SendMessageEvent(CamelModel):
    # chat_id and content stay optional here; the fanout reports them as send errors
    event: Literal["sendMessage"]
    chat_id: Optional[str] = None
    content: Optional[str] = Field(default=None, max_length=MESSAGE_MAX_LENGTH)
    type: MessageType = "TEXT"
    receiver_id: Optional[str] = None
    file_url: Optional[str] = None
    file_name: Optional[str] = None
    file_size: Optional[int] = Field(default=None, ge=0)


class TypingEvent(CamelModel):
    event: Literal["typing"]
    chat_id: str = Field(min_length=1)


class StopTypingEvent(CamelModel):
    event: Literal["stopTyping"]
    chat_id: str = Field(min_length=1)


class MarkMessageReadEvent(CamelModel):
    event: Literal["markMessageRead"]
    message_id: str = Field(min_length=1)
    chat_id: str = Field(min_length=1)


InboundEvent = Annotated[
    Union[
        JoinChatEvent,
        LeaveChatEvent,
        SendMessageEvent,
        TypingEvent,
        StopTypingEvent,
        MarkMessageReadEvent,
    ],
    Field(discriminator="event"),
]

INBOUND_EVENTS = (JOIN_CHAT, LEAVE_CHAT, SEND_MESSAGE, TYPING, STOP_TYPING, MARK_MESSAGE_READ)

_inbound_adapter = TypeAdapter(InboundEvent)


def parse_inbound(frame: str) -> InboundEvent:
    """Decode and validate one inbound text frame."""
    try:
        raw = json.loads(frame)
    except json.JSONDecodeError as e:
        raise InvalidEvent("Malformed event frame") from e

    if not isinstance(raw, dict) or not isinstance(raw.get("event"), str):
        raise InvalidEvent("Event name is required")

    name = raw["event"]
    if name not in INBOUND_EVENTS:
        raise InvalidEvent(f"Unknown event: {name}")

    data = raw.get("data")
    if data is None:
        data = {}
    # joinChat / leaveChat may carry the bare chat id as payload
    if name in (JOIN_CHAT, LEAVE_CHAT) and isinstance(data, (str, int)):
        data = {"chatId": str(data)}
    if not isinstance(data, dict):
        raise InvalidEvent(f"Invalid payload for {name}")

    try:
        return _inbound_adapter.validate_python({**data, "event": name})
    except ValidationError as e:
        raise InvalidEvent(f"Invalid payload for {name}") from e


def build_event(name: str, data: Any) -> Dict[str, Any]:
    return {"event": name, "data": data}


def user_online_event(user: UserSummary) -> Dict[str, Any]:
    return build_event(USER_ONLINE, {
        "userId": user.id,
        "isOnline": True,
        "user": user.to_wire(),
    })


def user_offline_event(user_id: str, last_seen: datetime) -> Dict[str, Any]:
    return build_event(USER_OFFLINE, {
        "userId": user_id,
        "isOnline": False,
        "lastSeen": last_seen.isoformat(),
    })


def new_message_event(message: Message) -> Dict[str, Any]:
    return build_event(NEW_MESSAGE, message.to_wire())


def new_message_notification_event(message: Message, sender: SenderSummary) -> Dict[str, Any]:
    return build_event(NEW_MESSAGE_NOTIFICATION, {
        "chatId": message.chat_id,
        "message": message.to_wire(),
        "sender": sender.to_wire(),
    })


def typing_event(user: UserSummary, chat_id: str, is_typing: bool = True) -> Dict[str, Any]:
    return build_event(USER_TYPING if is_typing else USER_STOPPED_TYPING, {
        "userId": user.id,
        "username": user.username,
        "chatId": chat_id,
    })


def message_read_event(message_id: str, user_id: str, chat_id: str) -> Dict[str, Any]:
    return build_event(MESSAGE_READ, {
        "messageId": message_id,
        "userId": user_id,
        "chatId": chat_id,
    })


def error_event(message: str) -> Dict[str, Any]:
    return build_event(ERROR, {"message": message})
