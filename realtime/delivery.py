"""
Live delivery capability.

Components that push events receive a LiveDelivery instead of reaching for a
process-wide broadcaster. Each write looks the target up in the registry at the
moment of sending, so a connection that went away while the caller was awaiting
storage is skipped rather than written to.
"""

import asyncio
from typing import Any, Dict, Iterable, Optional

from logging_config import get_logger
from realtime.registry import ConnectionRegistry
from realtime.rooms import RoomMembership

logger = get_logger(__name__)


class LiveDelivery:
    def __init__(self, registry: ConnectionRegistry, rooms: RoomMembership):
        self.registry = registry
        self.rooms = rooms

    def send_to_connection(self, connection_id: str, event: Dict[str, Any]) -> bool:
        connection = self.registry.get(connection_id)
        if connection is None:
            logger.debug(f"Dropping {event.get('event')} for closed connection {connection_id}")
            return False
        try:
            connection.outbox.put_nowait(event)
        except asyncio.QueueFull:
            logger.warning(f"Outbound queue full for connection {connection_id}, dropping {event.get('event')}")
            return False
        return True

    def send_to_connections(self, connection_ids: Iterable[str], event: Dict[str, Any]) -> int:
        sent = 0
        for connection_id in connection_ids:
            if self.send_to_connection(connection_id, event):
                sent += 1
        return sent

    def send_to_user(self, user_id: str, event: Dict[str, Any]) -> int:
        """Per-user channel: every live connection of the user."""
        return self.send_to_connections(self.registry.connections_for(user_id), event)

    def send_to_room(self, chat_id: str, event: Dict[str, Any], exclude: Optional[str] = None) -> int:
        targets = [cid for cid in self.rooms.subscribers(chat_id) if cid != exclude]
        sent = self.send_to_connections(targets, event)
        logger.debug(f"Delivered {event.get('event')} to {sent} connections in room {chat_id}")
        return sent

    def broadcast_except_user(self, user_id: str, event: Dict[str, Any]) -> int:
        """Every live connection that does not belong to `user_id`."""
        sent = 0
        for other_user_id in self.registry.online_users():
            if other_user_id == user_id:
                continue
            sent += self.send_to_user(other_user_id, event)
        return sent
